"""Tests for src.core.window_calculator and src.core.frequency."""

from datetime import datetime, timedelta, timezone

import pytest

from src.core.frequency import parse_frequency, rule_for
from src.core.window_calculator import is_window_open, next_allowed
from src.data.models import Frequency

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestNextAllowed:
    @pytest.mark.parametrize("frequency", list(Frequency))
    def test_never_submitted_is_open_now(self, frequency):
        assert next_allowed(frequency, None, NOW) == NOW

    def test_daily_cooldown_is_22_hours(self):
        last = NOW - timedelta(hours=1)
        assert next_allowed(Frequency.DAILY, last, NOW) == last + timedelta(hours=22)

    def test_weekly_cooldown_is_162_hours(self):
        last = NOW - timedelta(days=1)
        assert next_allowed(Frequency.WEEKLY, last, NOW) == last + timedelta(hours=162)

    def test_monthly_cooldown_is_714_hours(self):
        last = NOW - timedelta(days=1)
        assert next_allowed(Frequency.MONTHLY, last, NOW) == last + timedelta(hours=714)

    @pytest.mark.parametrize("frequency, nominal", [
        (Frequency.DAILY, timedelta(days=1)),
        (Frequency.WEEKLY, timedelta(days=7)),
        (Frequency.MONTHLY, timedelta(days=30)),
    ])
    def test_cooldown_shorter_than_nominal_period(self, frequency, nominal):
        assert rule_for(frequency).cooldown < nominal


class TestIsWindowOpen:
    def test_open_when_never_submitted(self):
        assert is_window_open(Frequency.DAILY, None, NOW) is True

    def test_closed_inside_cooldown(self):
        last = NOW - timedelta(hours=21, minutes=59)
        assert is_window_open(Frequency.DAILY, last, NOW) is False

    def test_open_exactly_at_reopen_instant(self):
        last = NOW - timedelta(hours=22)
        assert is_window_open(Frequency.DAILY, last, NOW) is True


class TestParseFrequency:
    def test_case_and_whitespace_insensitive(self):
        assert parse_frequency(" Daily ") is Frequency.DAILY
        assert parse_frequency("MONTHLY") is Frequency.MONTHLY

    def test_unknown_returns_none(self):
        assert parse_frequency("hourly") is None
        assert parse_frequency("") is None
