"""Tests for env-driven configuration."""

import pytest

from livestylist.core.config import (
    GeminiConfig,
    RateLimitConfig,
    RelayConfig,
    SessionConfig,
    StylistConfig,
)


def test_defaults():
    cfg = StylistConfig()

    assert cfg.session.duration_seconds == 300
    assert cfg.session.warning_seconds == 270
    assert cfg.session.seconds_after_warning == 30
    assert cfg.relay.vision_cooldown_seconds == 10.0
    assert cfg.relay.preview_cooldown_seconds == 5.0
    assert cfg.relay.min_style_description_length == 10


def test_daily_limit_by_tier():
    cfg = SessionConfig()

    assert cfg.daily_limit("free") == 1
    assert cfg.daily_limit("premium") == 5


def test_warning_must_precede_expiry():
    with pytest.raises(ValueError):
        SessionConfig(duration_seconds=60, warning_seconds=60)


def test_session_from_env(monkeypatch):
    monkeypatch.setenv("SESSION_DURATION_SECONDS", "600")
    monkeypatch.setenv("SESSION_WARNING_SECONDS", "540")
    monkeypatch.setenv("FREE_SESSIONS_PER_DAY", "2")

    cfg = SessionConfig.from_env()

    assert cfg.duration_seconds == 600
    assert cfg.seconds_after_warning == 60
    assert cfg.free_sessions_per_day == 2


def test_relay_from_env(monkeypatch):
    monkeypatch.setenv("LIVESTYLIST_VISION_COOLDOWN", "3.5")

    assert RelayConfig.from_env().vision_cooldown_seconds == 3.5


def test_gemini_from_env(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "g-key")
    monkeypatch.setenv("GEMINI_VOICE", "Kore")

    cfg = GeminiConfig.from_env()

    assert cfg.api_key == "g-key"
    assert cfg.voice_name == "Kore"


def test_rate_limit_from_env(monkeypatch):
    monkeypatch.setenv("LIVESTYLIST_RATE_LIMIT", "60/minute")
    monkeypatch.setenv("LIVESTYLIST_RATE_LIMIT_ENABLED", "false")

    cfg = RateLimitConfig.from_env()

    assert cfg.general == "60/minute"
    assert cfg.session_start == "10/hour"
    assert cfg.enabled is False
