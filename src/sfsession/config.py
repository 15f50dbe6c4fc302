"""Environment and client configuration.

Loads .env (or .env.example), then secrets/private.env if present.

If SFS_DATA_DIR is set, that path is used as project root (for Docker).
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_LOGIN_URL = "https://login.salesforce.com/"
DEFAULT_API_VERSION = "v35.0"
DEFAULT_POLL_INTERVAL = 0.1


def _truthy(v: str | None) -> bool:
    return (v or "").strip().lower() in {"1", "true", "yes", "on"}


# Project root: SFS_DATA_DIR (Docker) or discover via .env
_data_dir = os.environ.get("SFS_DATA_DIR")
if _data_dir:
    PROJECT_ROOT = Path(_data_dir).resolve()
    _env_file = PROJECT_ROOT / ".env"
    if not _env_file.exists():
        _env_file = PROJECT_ROOT / ".env.example" if (PROJECT_ROOT / ".env.example").exists() else None
    _env_path = str(_env_file) if _env_file and _env_file.exists() else None
else:
    _env_path = find_dotenv(".env", usecwd=True)
    if not _env_path:
        _env_path = find_dotenv(".env.example", usecwd=True)
    PROJECT_ROOT = Path(_env_path).resolve().parent if _env_path else Path.cwd()

if _env_path:
    load_dotenv(_env_path)

# secrets/private.env overrides the base file
_private_env = PROJECT_ROOT / "secrets" / "private.env"
if _private_env.exists():
    load_dotenv(_private_env, override=True)


def verbose_enabled() -> bool:
    return _truthy(os.environ.get("SFS_VERBOSE"))


def env(name: str) -> str:
    v = os.environ.get(name)
    if not v:
        raise RuntimeError(f"Missing env var: {name}")
    return v


def _optional(name: str) -> Optional[str]:
    v = (os.environ.get(name) or "").strip()
    return v or None


def _seconds(name: str) -> Optional[float]:
    v = _optional(name)
    if v is None:
        return None
    try:
        secs = float(v)
    except ValueError:
        raise RuntimeError(f"{name} must be a number of seconds, got {v!r}")
    return secs if secs > 0 else None


@dataclass
class ForceConfig:
    consumer_key: Optional[str] = None
    callback_url: Optional[str] = None
    login_url: str = DEFAULT_LOGIN_URL
    api_version: str = DEFAULT_API_VERSION
    proxy_url: Optional[str] = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    http_timeout: Optional[float] = None  # None: wait indefinitely
    login_timeout: Optional[float] = None
    fetch_email: bool = True

    @property
    def token_url(self) -> str:
        return self.login_url.rstrip("/") + "/services/oauth2/token"

    @property
    def authorize_url(self) -> str:
        return self.login_url.rstrip("/") + "/services/oauth2/authorize"


def load_config() -> ForceConfig:
    """Build a ForceConfig from SF_* environment variables."""
    interval = _seconds("SF_POLL_INTERVAL")
    fetch_email = _optional("SF_FETCH_EMAIL")
    return ForceConfig(
        consumer_key=_optional("SF_CONSUMER_KEY"),
        callback_url=_optional("SF_CALLBACK_URL"),
        login_url=_optional("SF_LOGIN_URL") or DEFAULT_LOGIN_URL,
        api_version=_optional("SF_API_VERSION") or DEFAULT_API_VERSION,
        proxy_url=_optional("SF_PROXY_URL"),
        poll_interval=interval if interval is not None else DEFAULT_POLL_INTERVAL,
        http_timeout=_seconds("SF_HTTP_TIMEOUT"),
        login_timeout=_seconds("SF_LOGIN_TIMEOUT"),
        fetch_email=True if fetch_email is None else _truthy(fetch_email),
    )


def mask(token: str | None) -> str:
    """Show only the last 4 characters of a credential in diagnostics."""
    if not token:
        return "(none)"
    return "..." + token[-4:] if len(token) > 4 else "****"
