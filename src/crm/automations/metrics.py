"""Metric primitives shared by every automation.

Elapsed-day counting, goal percentages, clamping, JavaScript-style rounding
and deadline urgency tiering. All functions are pure; the current instant is
always passed in explicitly so results are reproducible in tests.

Date-only values are interpreted as midnight UTC and naive datetimes as UTC,
which is how the CRM store serialises them.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timezone

from src.crm.automations.schemas import Urgency

SECONDS_PER_DAY = 86_400

# Urgency tiers by whole days remaining until a publication deadline.
CRITICAL_MAX_DAYS = 2
HIGH_MAX_DAYS = 4
MEDIUM_MAX_DAYS = 7


def as_utc(moment: date | datetime) -> datetime:
    """Normalise a date or datetime to an aware UTC datetime."""
    if isinstance(moment, datetime):
        if moment.tzinfo is None:
            return moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(timezone.utc)
    return datetime.combine(moment, time.min, tzinfo=timezone.utc)


def days_since(moment: date | datetime | None, now: datetime) -> int | None:
    """Whole days elapsed since ``moment`` (floored).

    Returns None when ``moment`` is absent so that "never contacted" stays
    distinguishable from "contacted today" (0).
    """
    if moment is None:
        return None
    elapsed = (as_utc(now) - as_utc(moment)).total_seconds()
    return math.floor(elapsed / SECONDS_PER_DAY)


def days_until(deadline: date | datetime, now: datetime) -> int:
    """Whole days remaining until ``deadline``, rounded up."""
    remaining = (as_utc(deadline) - as_utc(now)).total_seconds()
    return math.ceil(remaining / SECONDS_PER_DAY)


def percent_of(numerator: float, denominator: float) -> float:
    """``100 * numerator / denominator``, or 0 when the denominator is not positive.

    Unrounded; callers decide on rounding.
    """
    if denominator <= 0:
        return 0.0
    return 100.0 * numerator / denominator


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (``Math.round`` semantics).

    Python's built-in round() uses banker's rounding, which would turn a
    priority of 52.5 into 52.
    """
    return math.floor(value + 0.5)


def classify_urgency(days_remaining: int) -> Urgency:
    """Bucket days remaining into an urgency tier.

    Tiers:
        <= 2 days -> critical
        <= 4 days -> high
        <= 7 days -> medium
        otherwise -> low
    """
    if days_remaining <= CRITICAL_MAX_DAYS:
        return Urgency.CRITICAL
    if days_remaining <= HIGH_MAX_DAYS:
        return Urgency.HIGH
    if days_remaining <= MEDIUM_MAX_DAYS:
        return Urgency.MEDIUM
    return Urgency.LOW


__all__ = [
    "as_utc",
    "days_since",
    "days_until",
    "percent_of",
    "clamp",
    "round_half_up",
    "classify_urgency",
]
