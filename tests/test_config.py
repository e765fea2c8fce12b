"""Tests for configuration management."""

import pytest
from pydantic import ValidationError

from honeyguard.core.config import Settings


def test_settings_defaults():
    settings = Settings()

    assert settings.app_name == "HoneyGuard"
    assert settings.signature_memory_capacity == 10_000
    assert settings.timing_history_size == 100
    assert settings.timing_window_seconds == 60.0
    assert settings.honeypot_buffer_size == 1000
    assert settings.honeypot_flush_interval == 300.0
    assert settings.sweep_interval == 3600.0
    assert settings.sweep_threshold == 0.7
    assert settings.alert_anomaly_threshold == 0.7
    assert settings.isolation_seed is None
    assert settings.log_max_field_length == 256


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("SWEEP_THRESHOLD", "0.5")
    monkeypatch.setenv("HONEYPOT_BUFFER_SIZE", "250")
    monkeypatch.setenv("ISOLATION_SEED", "42")

    settings = Settings()
    assert settings.sweep_threshold == 0.5
    assert settings.honeypot_buffer_size == 250
    assert settings.isolation_seed == 42


def test_threshold_bounds():
    with pytest.raises(ValidationError):
        Settings(sweep_threshold=1.5)
    with pytest.raises(ValidationError):
        Settings(alert_anomaly_threshold=-0.1)


def test_intervals_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(sweep_interval=0)
    with pytest.raises(ValidationError):
        Settings(honeypot_flush_interval=-5)


def test_log_level_restricted():
    with pytest.raises(ValidationError):
        Settings(log_level="TRACE")
