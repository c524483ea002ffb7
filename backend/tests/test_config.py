from datetime import timedelta

import pytest

from stockledger import create_app
from stockledger.config import Config, ConfigurationError, validate_config
from stockledger.tasks import build_beat_schedule


def _settings(**overrides):
    settings = {
        key: getattr(Config, key)
        for key in dir(Config)
        if key.isupper()
    }
    settings.update(overrides)
    return settings


def test_defaults_are_valid():
    validate_config(_settings())


def test_purge_window_shorter_than_restore_window_is_rejected():
    with pytest.raises(ConfigurationError):
        validate_config(_settings(RESTORE_WINDOW_DAYS=30, PURGE_WINDOW_DAYS=5))


def test_longer_purge_window_is_accepted():
    validate_config(_settings(RESTORE_WINDOW_DAYS=30, PURGE_WINDOW_DAYS=90))


@pytest.mark.parametrize("overrides", [
    {"RESTORE_WINDOW_DAYS": -1},
    {"LOW_STOCK_DEFAULT_THRESHOLD": -5},
    {"RECONCILIATION_INTERVAL_HOURS": 0},
    {"SKU_WIDTH": 0},
    {"SKU_PREFIX": ""},
    {"LOW_STOCK_REPORT_HOUR": 24},
    {"PURGE_HOUR": -1},
])
def test_invalid_settings(overrides):
    with pytest.raises(ConfigurationError):
        validate_config(_settings(**overrides))


def test_app_refuses_to_start_with_contradictory_windows():
    with pytest.raises(ConfigurationError):
        create_app({"RESTORE_WINDOW_DAYS": 30, "PURGE_WINDOW_DAYS": 5})


def test_beat_schedule_follows_config():
    schedule = build_beat_schedule(_settings(
        RECONCILIATION_INTERVAL_HOURS=4, LOW_STOCK_REPORT_HOUR=7, PURGE_HOUR=3,
    ))

    assert schedule["reconcile-stock-levels"]["schedule"] == timedelta(hours=4)
    assert schedule["daily-low-stock-report"]["schedule"].hour == {7}
    assert schedule["purge-expired-records"]["schedule"].hour == {3}
    assert schedule["purge-expired-records"]["task"] == "stockledger.tasks.purge_expired_records"


def test_app_installs_beat_schedule(app):
    beat = app.extensions["celery"].conf.beat_schedule
    assert set(beat) == {"reconcile-stock-levels", "daily-low-stock-report", "purge-expired-records"}
