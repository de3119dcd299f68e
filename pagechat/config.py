"""Pydantic models for the relay and bridge settings, and config file loading."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from pagechat.constants import (
    ANTHROPIC_VERSION,
    CONTEXT_LIMIT_TOKENS,
    DEFAULT_AWS_REGION,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL_ID,
    DEFAULT_RELAY_URL,
    DEFAULT_TEMPERATURE,
)
from pagechat.core.utils import console

# --- Config File Loading ---

CONFIG_PATH = Path.home() / ".config" / "pagechat" / "config.toml"
CONFIG_PATH_2 = Path("pagechat-config.toml")


def _replace_dashed_keys_recursive(d: dict[str, Any]) -> dict[str, Any]:
    """Recursively replace dashed keys with underscores in a dictionary."""
    new_dict = {}
    for k, v in d.items():
        new_key = k.replace("-", "_")
        if isinstance(v, dict):
            new_dict[new_key] = _replace_dashed_keys_recursive(v)
        else:
            new_dict[new_key] = v
    return new_dict


def load_config(config_path_str: str | None = None) -> dict[str, Any]:
    """Load the TOML configuration file, normalizing dashed keys."""
    if config_path_str:
        config_path = Path(config_path_str)
    elif CONFIG_PATH.exists():
        config_path = CONFIG_PATH
    elif CONFIG_PATH_2.exists():
        config_path = CONFIG_PATH_2
    else:
        return {}

    if config_path.exists():
        try:
            with config_path.open("rb") as f:
                return _replace_dashed_keys_recursive(tomllib.load(f))
        except tomllib.TOMLDecodeError as e:
            console.print(
                f"[bold red]Error parsing config file {config_path}: {e}[/bold red]",
            )
            return {}

    # Report error only if an explicit path was given
    if config_path_str:
        console.print(
            f"[bold red]Config file not found at {config_path_str}[/bold red]",
        )
    return {}


# --- Pydantic Models for Configuration ---


class RelaySettings(BaseModel):
    """Settings for the relay endpoint and its Bedrock client."""

    region: str = DEFAULT_AWS_REGION
    model_id: str = DEFAULT_MODEL_ID
    api_key: str | None = None
    endpoint_url: str | None = None
    token_limit: int = Field(default=CONTEXT_LIMIT_TOKENS, gt=0)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, gt=0)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=1.0)
    anthropic_version: str = ANTHROPIC_VERSION

    @field_validator("api_key", "endpoint_url")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v

    def __repr__(self) -> str:
        key = "set" if self.api_key else "unset"
        return f"RelaySettings(region={self.region!r}, model_id={self.model_id!r}, api_key={key})"


class BridgeSettings(BaseModel):
    """Settings for the port bridge."""

    relay_url: str = DEFAULT_RELAY_URL

    @field_validator("relay_url")
    @classmethod
    def _check_scheme(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            msg = f"Relay URL must start with http:// or https://, got {v!r}"
            raise ValueError(msg)
        return v
