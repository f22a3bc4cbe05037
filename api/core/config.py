"""
Environment-driven settings.

Everything is read lazily from `os.environ` so tests and the CLI can set
variables before first use. Invalid numeric values fall back to defaults.
"""

from __future__ import annotations

import logging
import os

DEFAULT_OPENTDB_BASE_URL = "https://opentdb.com"
DEFAULT_API_HUG_MS = 5000
DEFAULT_API_MAX_AMOUNT = 50
DEFAULT_MAX_BATCH_RETRIES = 0
DEFAULT_OPENTDB_TIMEOUT_S = 30.0
DEFAULT_DB_POOL_MAX_SIZE = 5

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def database_url() -> str:
    return os.environ.get("DATABASE_URL", "").strip()


def db_pool_max_size() -> int:
    value = _env_int("DB_POOL_MAX_SIZE", DEFAULT_DB_POOL_MAX_SIZE)
    return value if value > 0 else DEFAULT_DB_POOL_MAX_SIZE


def opentdb_base_url() -> str:
    return os.environ.get("OPENTDB_BASE_URL", DEFAULT_OPENTDB_BASE_URL).strip() or DEFAULT_OPENTDB_BASE_URL


def opentdb_timeout_s() -> float:
    value = _env_float("OPENTDB_TIMEOUT_S", DEFAULT_OPENTDB_TIMEOUT_S)
    return value if value > 0 else DEFAULT_OPENTDB_TIMEOUT_S


def api_hug_ms() -> int:
    """
    Minimum spacing between two rate-limited calls to Open Trivia DB.

    The public API allows one call per IP every 5 seconds.
    """
    value = _env_int("API_HUG_MS", DEFAULT_API_HUG_MS)
    return value if value >= 0 else DEFAULT_API_HUG_MS


def api_max_amount() -> int:
    """
    Largest `amount` accepted by /api.php in one request.
    """
    value = _env_int("API_MAX_AMOUNT", DEFAULT_API_MAX_AMOUNT)
    return value if value > 0 else DEFAULT_API_MAX_AMOUNT


def max_batch_retries() -> int:
    value = _env_int("SEED_MAX_BATCH_RETRIES", DEFAULT_MAX_BATCH_RETRIES)
    return max(value, 0)


def log_level() -> str:
    return os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"


def configure_logging() -> None:
    """
    Root logger setup for command-line entrypoints.

    The API server leaves this to uvicorn.
    """
    logging.basicConfig(level=log_level(), format=LOG_FORMAT)
