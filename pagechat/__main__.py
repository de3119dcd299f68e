"""Entry point for `python -m pagechat`."""

from __future__ import annotations

from pagechat.cli import app

if __name__ == "__main__":
    app()
