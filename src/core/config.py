"""Core configuration.

Why here:
- Centralizes environment variables (pydantic-settings) without leaking them
  into the CLI or the services.
- Services receive an explicit `AppSettings` (or plain values taken from it);
  nothing in the core reads ambient globals such as a user-defaults store.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.domain.language import dedupe_locales, locales_from_environ

APP_NAME = "eduvpn-discovery"


def get_user_config_dir() -> Path:
    """Per-user configuration directory (cross-platform, no dependencies)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / APP_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / APP_NAME
    return Path.home() / ".config" / APP_NAME


def get_user_cache_dir() -> Path:
    if sys.platform.startswith("win") or sys.platform == "darwin":
        return get_user_config_dir() / "cache"

    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg) / APP_NAME
    return Path.home() / ".cache" / APP_NAME


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], env_path: Path | None = None) -> Path:
    """Write/update variables in the user's global .env file."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# eduvpn-discovery user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Central application configuration.

    Recognized options are the fields below, read from `EDUVPN_*` environment
    variables, the project `.env` and then the user config `.env`.
    """

    model_config = SettingsConfigDict(
        env_prefix="EDUVPN_",
        extra="ignore",
        case_sensitive=False,
        # Order: project first (dev), then the user's global config.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    http_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Timeout per HTTP request (seconds).",
    )
    user_agent: str = Field(
        default="eduvpn-discovery/0.1",
        min_length=1,
        description="User-Agent for discovery and portal requests.",
    )

    discovery_base_url: str = Field(
        default="https://disco.eduvpn.org/v2/",
        min_length=8,
        description="Base URL of the discovery feeds (server_list.json, organization_list.json).",
    )
    cache_dir: Path = Field(
        default_factory=get_user_cache_dir,
        description="Where the last server-tier discovery feeds are cached.",
    )
    data_dir: Path = Field(
        default_factory=lambda: get_user_config_dir() / "data",
        description="Where added servers are stored.",
    )
    include_organizations: bool = Field(
        default=True,
        description="Offer Secure Internet organizations in search results.",
    )
    preferred_locales: list[str] = Field(
        default_factory=lambda: locales_from_environ(os.environ),
        min_length=1,
        description="Ranked locale tags used for messages and display names.",
    )

    force_tcp: bool = Field(
        default=False,
        description="Only use TCP for VPN connections (read by the connection layer).",
    )

    oauth_client_id: str = Field(
        default="org.eduvpn.app.linux",
        min_length=1,
        description="OAuth client id registered with eduVPN portals.",
    )
    oauth_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="How long to wait for the browser authorization to complete.",
    )

    log_level: str = Field(
        default="WARNING",
        description="Log level for the core/adapters/cli loggers.",
    )

    @field_validator("discovery_base_url")
    @classmethod
    def _ensure_trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else value + "/"

    @field_validator("preferred_locales")
    @classmethod
    def _clean_locales(cls, value: list[str]) -> list[str]:
        cleaned = dedupe_locales(value)
        if not cleaned:
            raise ValueError("preferred_locales must contain at least one locale tag")
        return cleaned
