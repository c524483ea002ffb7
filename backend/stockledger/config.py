# backend/stockledger/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class ConfigurationError(RuntimeError):
    """Raised at startup when configured values contradict each other."""


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///stockledger.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Alerting
    LOW_STOCK_DEFAULT_THRESHOLD = _env_int("LOW_STOCK_DEFAULT_THRESHOLD", 10)

    # Lifecycle windows (days). The purge window may never be shorter than the
    # restore window, otherwise a restorable record could be purged.
    RESTORE_WINDOW_DAYS = _env_int("RESTORE_WINDOW_DAYS", 30)
    PURGE_WINDOW_DAYS = _env_int("PURGE_WINDOW_DAYS", 30)

    # Timers
    RECONCILIATION_INTERVAL_HOURS = _env_int("RECONCILIATION_INTERVAL_HOURS", 6)
    LOW_STOCK_REPORT_HOUR = _env_int("LOW_STOCK_REPORT_HOUR", 9)
    PURGE_HOUR = _env_int("PURGE_HOUR", 2)

    # SKU allocation: SKU-000001, SKU-000002, ...
    SKU_PREFIX = os.environ.get("SKU_PREFIX", "SKU-")
    SKU_WIDTH = _env_int("SKU_WIDTH", 6)

    CELERY = {
        "broker_url": os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0"),
        "result_backend": os.environ.get("CELERY_RESULT_BACKEND", "redis://localhost:6379/0"),
        "task_ignore_result": True,
        "task_always_eager": os.environ.get("CELERY_ALWAYS_EAGER", "false").lower() == "true",
    }


def validate_config(config) -> None:
    """
    Reject configurations that break lifecycle or alerting guarantees.

    `config` is any mapping with the keys above (normally `app.config`).
    """
    restore_days = config["RESTORE_WINDOW_DAYS"]
    purge_days = config["PURGE_WINDOW_DAYS"]

    if restore_days < 0 or purge_days < 0:
        raise ConfigurationError("RESTORE_WINDOW_DAYS and PURGE_WINDOW_DAYS must be >= 0")
    if purge_days < restore_days:
        raise ConfigurationError(
            f"PURGE_WINDOW_DAYS ({purge_days}) must be >= RESTORE_WINDOW_DAYS ({restore_days}); "
            "otherwise soft-deleted records would be purged while still restorable"
        )
    if config["LOW_STOCK_DEFAULT_THRESHOLD"] < 0:
        raise ConfigurationError("LOW_STOCK_DEFAULT_THRESHOLD must be >= 0")
    if config["RECONCILIATION_INTERVAL_HOURS"] <= 0:
        raise ConfigurationError("RECONCILIATION_INTERVAL_HOURS must be > 0")
    if config["SKU_WIDTH"] <= 0:
        raise ConfigurationError("SKU_WIDTH must be > 0")
    if not config["SKU_PREFIX"]:
        raise ConfigurationError("SKU_PREFIX cannot be empty")
    for key in ("LOW_STOCK_REPORT_HOUR", "PURGE_HOUR"):
        if not 0 <= config[key] <= 23:
            raise ConfigurationError(f"{key} must be between 0 and 23")
