"""Core configuration.

- Centralizes environment variables (pydantic-settings) away from the CLI.
- Adapters (HTTP transports) and the scheduler read the same settings object.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.domain.execution_mode import ExecutionMode

DEFAULT_PROXY_URL = "http://localhost:3001/proxy"
_APP_DIR = "hostdiff"


def get_user_config_dir() -> Path:
    """Per-user config directory: APPDATA on Windows, Application Support on macOS, XDG elsewhere."""

    home = Path.home()
    if sys.platform.startswith("win"):
        return Path(os.environ.get("APPDATA") or home) / _APP_DIR
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / _APP_DIR
    return Path(os.environ.get("XDG_CONFIG_HOME") or home / ".config") / _APP_DIR


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def read_env_file(path: Path) -> dict[str, str]:
    """KEY=value pairs of a dotenv file; comments and malformed lines are skipped."""

    if not path.exists():
        return {}
    values: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        key, sep, value = line.strip().partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        values[key] = value.strip().strip("\"'")
    return values


def write_user_env_vars(values: dict[str, str], *, env_path: Path | None = None) -> Path:
    """Merge `values` into the user's .env (keys sorted, `None` values skipped)."""

    env_path = env_path or get_user_env_file()
    merged = read_env_file(env_path)
    merged.update({key: value for key, value in values.items() if value is not None})

    body = "".join(f"{key}={merged[key]}\n" for key in sorted(merged))
    env_path.parent.mkdir(parents=True, exist_ok=True)
    env_path.write_text(f"# hostdiff user config (.env)\n{body}", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Central application settings.

    One typed contract for the CLI, the scheduler and the transports, validated
    at the edge (env vars / .env files).
    """

    model_config = SettingsConfigDict(
        env_prefix="HOSTDIFF_",
        extra="ignore",
        case_sensitive=False,
        # Project .env first (dev), then the user's global config.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Fixed timeout applied to every dispatched request (seconds).",
    )
    user_agent: str = Field(
        default="hostdiff/0.1",
        min_length=1,
        description="User-Agent sent when a command does not set one.",
    )
    verify_tls: bool = Field(
        default=True,
        description="Verify TLS certificates on direct requests.",
    )

    proxy_fallback: bool = Field(
        default=False,
        description="Retry a failed direct request once through the local proxy.",
    )
    proxy_url: str = Field(
        default=DEFAULT_PROXY_URL,
        min_length=8,
        description="Address of the local forwarding proxy (target passed as ?url=).",
    )

    execution_mode: ExecutionMode = Field(
        default=ExecutionMode.ALL_AT_ONCE,
        description="Default concurrency policy for the request matrix.",
    )
    log_level: str = Field(
        default="WARNING",
        min_length=1,
        description="Root log level used by the CLI.",
    )
