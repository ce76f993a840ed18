"""Tests for engine configuration."""

import pytest

from core.config import (
    check_required_env_vars,
    check_timeout_budget,
    get_ai_timeout_seconds,
    get_broadcast_rate_per_second,
    get_content_max_length,
    get_custom_reminder_interval_seconds,
    get_default_timezone,
    get_devotional_hour,
    get_dispatch_timeout_seconds,
    get_start_notifications_enabled,
    get_tick_interval_seconds,
    get_trigger_tolerance_seconds,
    get_worker_pool_size,
)


class TestDefaults:
    def test_defaults(self):
        assert get_tick_interval_seconds() == 60
        assert get_trigger_tolerance_seconds() == 30
        assert get_worker_pool_size() == 8
        assert get_default_timezone() == "Africa/Harare"
        assert get_ai_timeout_seconds() == 10
        assert get_dispatch_timeout_seconds() == 5
        assert get_content_max_length() == 1024
        assert get_broadcast_rate_per_second() == 2
        assert get_devotional_hour() == 6
        assert get_start_notifications_enabled() is True
        assert get_custom_reminder_interval_seconds() == 300

    def test_default_budget_is_consistent(self):
        assert check_timeout_budget() == []


class TestOverrides:
    def test_tolerance_follows_tick_interval(self, monkeypatch):
        monkeypatch.setenv("REMINDER_TICK_SECONDS", "300")
        assert get_trigger_tolerance_seconds() == 150

    def test_explicit_tolerance_wins(self, monkeypatch):
        monkeypatch.setenv("REMINDER_TICK_SECONDS", "300")
        monkeypatch.setenv("REMINDER_TOLERANCE_SECONDS", "45")
        assert get_trigger_tolerance_seconds() == 45

    def test_non_numeric_value_uses_default(self, monkeypatch):
        monkeypatch.setenv("REMINDER_WORKERS", "lots")
        assert get_worker_pool_size() == 8

    def test_worker_pool_is_at_least_one(self, monkeypatch):
        monkeypatch.setenv("REMINDER_WORKERS", "0")
        assert get_worker_pool_size() == 1

    @pytest.mark.parametrize("raw", ["", "   ", "dawn", "24", "-1"])
    def test_devotional_hour_disabled(self, monkeypatch, raw):
        monkeypatch.setenv("DEVOTIONAL_HOUR", raw)
        assert get_devotional_hour() is None

    @pytest.mark.parametrize("raw", ["false", "0", "No"])
    def test_start_notifications_disabled(self, monkeypatch, raw):
        monkeypatch.setenv("REMINDER_START_NOTIFICATIONS", raw)
        assert get_start_notifications_enabled() is False

    def test_custom_reminder_interval(self, monkeypatch):
        monkeypatch.setenv("CUSTOM_REMINDER_SECONDS", "60")
        assert get_custom_reminder_interval_seconds() == 60


class TestTimeoutBudget:
    def test_ai_timeout_must_be_shorter_than_tick(self, monkeypatch):
        monkeypatch.setenv("REMINDER_TICK_SECONDS", "10")
        monkeypatch.setenv("AI_TIMEOUT_SECONDS", "15")

        warnings = check_timeout_budget()

        assert len(warnings) == 1
        assert "AI_TIMEOUT_SECONDS" in warnings[0]

    def test_dispatch_timeout_must_be_shorter_than_ai(self, monkeypatch):
        monkeypatch.setenv("DISPATCH_TIMEOUT_SECONDS", "12")

        warnings = check_timeout_budget()

        assert len(warnings) == 1
        assert "DISPATCH_TIMEOUT_SECONDS" in warnings[0]


class TestRequiredEnvVars:
    def test_missing_vars_warn_outside_production(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("RAILWAY_ENVIRONMENT", raising=False)

        ok, warnings = check_required_env_vars()

        assert ok is True
        assert any("DATABASE_URL" in w for w in warnings)

    def test_missing_vars_fail_in_production(self, monkeypatch):
        monkeypatch.setenv("RAILWAY_ENVIRONMENT", "production")
        monkeypatch.delenv("DATABASE_URL", raising=False)

        ok, _ = check_required_env_vars()

        assert ok is False
