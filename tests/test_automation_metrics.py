"""Tests for the shared metric primitives.

Covers floored day counting, ceiling days-until, goal percentages,
half-up rounding and the urgency tier boundaries.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from src.crm.automations.metrics import (
    as_utc,
    clamp,
    classify_urgency,
    days_since,
    days_until,
    percent_of,
    round_half_up,
)
from src.crm.automations.schemas import Urgency

NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


class TestDaysSince:
    def test_none_means_never(self):
        assert days_since(None, NOW) is None

    def test_same_instant_is_zero(self):
        assert days_since(NOW, NOW) == 0

    def test_floors_partial_days(self):
        assert days_since(NOW - timedelta(days=3, hours=23), NOW) == 3

    def test_future_moment_is_negative(self):
        assert days_since(NOW + timedelta(hours=1), NOW) == -1

    def test_naive_datetime_is_utc(self):
        naive = datetime(2026, 3, 8, 15, 0)
        assert days_since(naive, NOW) == 2

    def test_date_is_midnight_utc(self):
        assert days_since(date(2026, 3, 9), NOW) == 1


class TestDaysUntil:
    def test_rounds_up_partial_days(self):
        # Midnight on the 12th is 1 day 9 hours away.
        assert days_until(date(2026, 3, 12), NOW) == 2

    def test_today_is_zero(self):
        assert days_until(date(2026, 3, 10), NOW) == 0


class TestPercentOf:
    def test_zero_denominator(self):
        assert percent_of(50, 0) == 0.0

    def test_over_goal_not_capped(self):
        assert percent_of(150, 100) == 150.0

    def test_basic(self):
        assert percent_of(1, 4) == 25.0


class TestRounding:
    def test_half_goes_up(self):
        assert round_half_up(52.5) == 53
        assert round_half_up(2.5) == 3

    def test_below_half_goes_down(self):
        assert round_half_up(52.49) == 52

    def test_clamp(self):
        assert clamp(120, 0, 100) == 100
        assert clamp(-3, 0, 100) == 0
        assert clamp(42, 0, 100) == 42


class TestUrgency:
    @pytest.mark.parametrize(
        "days, expected",
        [
            (0, Urgency.CRITICAL),
            (2, Urgency.CRITICAL),
            (3, Urgency.HIGH),
            (4, Urgency.HIGH),
            (5, Urgency.MEDIUM),
            (7, Urgency.MEDIUM),
            (8, Urgency.LOW),
        ],
    )
    def test_boundaries(self, days, expected):
        assert classify_urgency(days) == expected


def test_as_utc_converts_offsets():
    eastern = timezone(timedelta(hours=-5))
    moment = datetime(2026, 3, 10, 10, 0, tzinfo=eastern)
    assert as_utc(moment) == NOW
