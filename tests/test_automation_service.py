"""Tests for AutomationService and lenient threshold parsing.

Checks that configured defaults reach the automations, that runs are
tracked in Prometheus, and that unusable thresholds fall back to defaults.
"""

from __future__ import annotations

import math
from unittest.mock import AsyncMock

import pytest
from prometheus_client import REGISTRY

from src.crm.automations.exceptions import StoreReadError
from src.crm.automations.service import (
    MAX_DAYS_THRESHOLD,
    AutomationService,
    parse_days_threshold,
)
from tests.doubles import InMemoryAutomationStore, days_ago, make_account


class TestParseDaysThreshold:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (3, 3),
            (3.99, 3),
            ("12", 12),
            (" 12 ", 12),
            ("4.5", 4),
            (None, 7),
            (0, 7),
            (0.5, 7),
            (-1, 7),
            ("", 7),
            ("next week", 7),
            (True, 7),
            (math.inf, 7),
            (float("nan"), 7),
            ({"days": 3}, 7),
            ("1e400", 7),
            (36_500, 36_500),
            (3_000_000, 36_500),
            (3e6, 36_500),
            ("3000000", 36_500),
            (10**400, 36_500),
        ],
    )
    def test_values(self, value, expected):
        assert parse_days_threshold(value, 7) == expected

    @pytest.mark.asyncio
    async def test_capped_window_runs(self, settings):
        service = AutomationService(
            InMemoryAutomationStore(accounts=[make_account("acc-1", last_contact=days_ago(400))]),
            settings,
        )

        alerts = await service.deadline_alerts(10**400)
        stale = await service.stale_contacts(3_000_000)

        assert alerts.threshold_days == MAX_DAYS_THRESHOLD
        assert stale.threshold_days == MAX_DAYS_THRESHOLD
        assert stale.stale_contacts_count == 0


def _runs(automation: str, status: str) -> float:
    value = REGISTRY.get_sample_value(
        "automation_runs_total", {"automation": automation, "status": status}
    )
    return value or 0.0


class TestAutomationService:
    @pytest.mark.asyncio
    async def test_configured_defaults(self, settings):
        settings.DEADLINE_ALERT_DAYS = 14
        settings.STALE_CONTACT_DAYS = 2
        service = AutomationService(InMemoryAutomationStore(), settings)

        deadlines = await service.deadline_alerts()
        stale = await service.stale_contacts("garbage")

        assert deadlines.threshold_days == 14
        assert stale.threshold_days == 2

    @pytest.mark.asyncio
    async def test_run_tracked_on_success(self, settings):
        service = AutomationService(InMemoryAutomationStore(), settings)
        before = _runs("daily-digest", "success")

        await service.daily_digest()

        assert _runs("daily-digest", "success") == before + 1

    @pytest.mark.asyncio
    async def test_run_tracked_on_error(self, settings):
        store = InMemoryAutomationStore(accounts=[make_account()])
        store.snapshot = AsyncMock(side_effect=StoreReadError("down"))
        service = AutomationService(store, settings)
        before = _runs("recalc-waffling", "error")

        with pytest.raises(StoreReadError):
            await service.recalculate_waffling()

        assert _runs("recalc-waffling", "error") == before + 1

    @pytest.mark.asyncio
    async def test_run_all_parallel_setting(self, settings):
        settings.AUTOMATION_PARALLEL_STEPS = True
        service = AutomationService(InMemoryAutomationStore(), settings)

        report = await service.run_all()

        assert report.success is True
        assert len(report.results) == 5
