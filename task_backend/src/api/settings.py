from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/tasks.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default.
      Credentialed (cookie) CORS is only enabled for an explicit list.
    - LOG_LEVEL: root log level for the service (default: INFO)
    - SESSION_COOKIE_NAME: name of the session cookie (default: session_id)
    - SESSION_COOKIE_SECURE: 'true' to mark the session cookie Secure (default: false)
    - SESSION_IDLE_TIMEOUT_SECONDS: idle lifetime of a session (default: 86400)
    - SESSION_ABSOLUTE_TIMEOUT_SECONDS: absolute lifetime of a session (default: 604800)
    - SESSION_PURGE_INTERVAL_SECONDS: how often expired sessions are swept (default: 86400)
    - PASSWORD_HASH_METHOD: werkzeug hash method for new passwords (default: pbkdf2:sha256:600000)
    - OPENAI_API_KEY: provider credential; suggestions use the fallback when unset
    - OPENAI_MODEL: chat model used for suggestions (default: gpt-4o)
    - OPENAI_BASE_URL: optional OpenAI-compatible endpoint
    - SUGGESTION_TIMEOUT_SECONDS: provider call timeout (default: 20)
    """

    persistence_backend: str
    sqlite_db_path: str
    cors_allow_origins: List[str]
    log_level: str
    session_cookie_name: str
    session_cookie_secure: bool
    session_idle_timeout_seconds: int
    session_absolute_timeout_seconds: int
    session_purge_interval_seconds: int
    password_hash_method: str
    openai_api_key: Optional[str]
    openai_model: str
    openai_base_url: Optional[str]
    suggestion_timeout_seconds: float


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _get_optional_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(value: str, default: int, minimum: int = 1) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _parse_float(value: str, default: float) -> float:
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        # Star will be handled in main via allow_origins=["*"]
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        # Fallback to memory if unsupported
        backend = "memory"

    sqlite_path = _get_env("SQLITE_DB_PATH", "./data/tasks.db").strip()
    cors_raw = _get_env("CORS_ALLOW_ORIGINS", "*")
    origins = _parse_origins(cors_raw)

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=sqlite_path,
        cors_allow_origins=origins,
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        session_cookie_name=_get_env("SESSION_COOKIE_NAME", "session_id").strip(),
        session_cookie_secure=_parse_bool(_get_env("SESSION_COOKIE_SECURE", "false"), False),
        session_idle_timeout_seconds=_parse_int(_get_env("SESSION_IDLE_TIMEOUT_SECONDS", "86400"), 86400),
        session_absolute_timeout_seconds=_parse_int(
            _get_env("SESSION_ABSOLUTE_TIMEOUT_SECONDS", "604800"), 604800
        ),
        session_purge_interval_seconds=_parse_int(_get_env("SESSION_PURGE_INTERVAL_SECONDS", "86400"), 86400),
        password_hash_method=_get_env("PASSWORD_HASH_METHOD", "pbkdf2:sha256:600000").strip(),
        openai_api_key=_get_optional_env("OPENAI_API_KEY"),
        openai_model=_get_env("OPENAI_MODEL", "gpt-4o").strip(),
        openai_base_url=_get_optional_env("OPENAI_BASE_URL"),
        suggestion_timeout_seconds=_parse_float(_get_env("SUGGESTION_TIMEOUT_SECONDS", "20"), 20.0),
    )
