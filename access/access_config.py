"""
ACCESS CONFIG
=============
Centralized settings loaded from environment.
"""

# FLOW:
# - Read env vars once and expose ACCESS_SETTINGS.
# HOW:
# - Loads the active .env file, then reads env vars into a dict.

from __future__ import annotations

import logging
import os
import secrets

import dotenv


def get_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).strip().lower() == "true"


def get_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def get_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return default
    return [item.strip() for item in raw.split(",") if item.strip()]


def feature_enabled(feature_id: str, default: bool = True) -> bool:
    """Runtime toggle: FEATURE_<ID>_ENABLED, e.g. FEATURE_AUDIT_TRAIL_ENABLED."""
    key = "FEATURE_" + feature_id.upper().replace("-", "_") + "_ENABLED"
    return get_bool(key, default)


def _env_name() -> str:
    env = os.getenv("APP_ENV", "").strip().lower()
    if env in {"prod", "production"}:
        return ".env.production"
    if env in {"local", "localhost", "dev", "development"}:
        return ".env.localhost"
    return ".env"


def _env_path() -> str:
    root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(root, _env_name())


dotenv.load_dotenv(_env_path())

if get_bool("APP_ENV_LOG", False):
    logging.getLogger("access.env").info("Active env file: %s", _env_path())


def _session_secret() -> str:
    placeholders = {"", "change-this-secret", "AUTO_GENERATE"}
    value = (os.getenv("SESSION_SECRET_KEY") or os.getenv("SECRET_KEY") or "").strip()
    if value in placeholders:
        # Sessions do not survive a restart without a configured secret.
        return secrets.token_urlsafe(64)
    return value


ACCESS_SETTINGS = {
    "DATABASE_URL": os.getenv("DATABASE_URL", "sqlite:///./edu_portal.db"),
    "SESSION_SECRET_KEY": _session_secret(),
    "SESSION_MAX_AGE": get_int("SESSION_MAX_AGE", 60 * 60 * 8),
    "SESSION_IDLE_TIMEOUT": get_int("SESSION_IDLE_TIMEOUT", 60 * 30),
    "SESSION_HTTPS_ONLY": get_bool("SESSION_HTTPS_ONLY", False),
    "LOG_DIR": os.getenv("LOG_DIR", "logs"),
    "SCHEDULER_ENABLED": get_bool("SCHEDULER_ENABLED", True),
    "SUBSCRIPTION_SWEEP_MINUTES": get_int("SUBSCRIPTION_SWEEP_MINUTES", 15),
    "PROMETHEUS_ENABLED": get_bool("PROMETHEUS_ENABLED", True),
    "EXTRA_PUBLIC_PATHS": get_list("EXTRA_PUBLIC_PATHS", []),
}
