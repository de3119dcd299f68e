"""Chat with an AI assistant about the web page you are reading."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pagechat")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
