from __future__ import annotations

import pytest
from pydantic import ValidationError

from batchflow import config
from batchflow.config import Settings, build_dsn


def test_get_settings_defaults(monkeypatch):
    for var in ("BATCH_SIZE_MIN", "BATCH_SIZE_MAX", "AUDIT_SCHEMA", "ANALYTICS_BATCH_SIZE"):
        monkeypatch.delenv(var, raising=False)
    settings = Settings(_env_file=None)

    assert settings.batch_size_min == 2
    assert settings.batch_size_max == 5
    assert settings.batch_creation_interval_seconds == 65.0
    assert settings.batch_update_interval_seconds == 45.0
    assert settings.audit_schema == "paydash"
    assert settings.analytics_batch_size == 100
    assert settings.analytics_flush_interval_seconds == 5.0
    assert settings.analytics_shutdown_timeout_seconds == 10.0
    assert settings.poll_timeout_seconds == 1.0


def test_environment_aliases_are_read(monkeypatch):
    monkeypatch.setenv("BATCH_SIZE_MIN", "3")
    monkeypatch.setenv("BATCH_SIZE_MAX", "9")
    monkeypatch.setenv("BATCH_CREATION_ENABLED", "false")
    monkeypatch.setenv("QUEUE_DB_NAME", "queue_test")

    settings = Settings(_env_file=None)

    assert (settings.batch_size_min, settings.batch_size_max) == (3, 9)
    assert settings.batch_creation_enabled is False
    assert settings.queue_dsn.endswith("/queue_test")


def test_inverted_batch_size_range_is_rejected(monkeypatch):
    monkeypatch.setenv("BATCH_SIZE_MIN", "6")
    monkeypatch.setenv("BATCH_SIZE_MAX", "2")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_build_dsn():
    assert build_dsn("u", "p", "db", 6543, "audit") == "postgresql://u:p@db:6543/audit"


def test_get_settings_is_cached():
    assert config.get_settings() is config.get_settings()
