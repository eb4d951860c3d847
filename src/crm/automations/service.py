"""AutomationService: entry point the API and scripts call.

Binds the automations to a store and the configured defaults, and wraps
every run in Prometheus run tracking. One instance lives on
``app.state.automation_service`` for the lifetime of the process; it holds
no per-run state.
"""

from __future__ import annotations

import math
from typing import Any

import structlog

from src.crm.automations.at_risk import detect_at_risk
from src.crm.automations.deadlines import deadline_alerts
from src.crm.automations.digest import daily_digest
from src.crm.automations.orchestrator import run_all
from src.crm.automations.ports import AutomationStore
from src.crm.automations.schemas import (
    AtRiskDetectionResult,
    DailyDigestResult,
    DeadlineAlertsResult,
    RunAllResult,
    StaleContactsResult,
    WafflingRecalcResult,
)
from src.crm.automations.stale_contacts import stale_contacts
from src.crm.automations.waffling import recalculate_waffling
from src.crm.config import Settings, get_settings
from src.crm.core.monitoring import track_automation

logger = structlog.get_logger(__name__)

# Upper bound for a requested window (~100 years); larger values are clamped.
MAX_DAYS_THRESHOLD = 36_500


def parse_days_threshold(value: Any, default: int) -> int:
    """Lenient threshold parsing for request bodies.

    Numbers and numeric strings are truncated to whole days and clamped to
    MAX_DAYS_THRESHOLD. Anything missing, non-numeric, non-finite, zero or
    negative yields ``default``.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        days = value
    elif isinstance(value, (float, str)):
        try:
            number = float(value.strip()) if isinstance(value, str) else value
        except (ValueError, OverflowError):
            return default
        if not math.isfinite(number):
            return default
        days = int(number)
    else:
        return default
    if days <= 0:
        return default
    return min(days, MAX_DAYS_THRESHOLD)


class AutomationService:
    """Run the CRM automations against one store."""

    def __init__(self, store: AutomationStore, settings: Settings | None = None) -> None:
        self._store = store
        self._settings = settings or get_settings()

    @property
    def default_deadline_days(self) -> int:
        return self._settings.DEADLINE_ALERT_DAYS

    @property
    def default_stale_days(self) -> int:
        return self._settings.STALE_CONTACT_DAYS

    async def recalculate_waffling(self) -> WafflingRecalcResult:
        async with track_automation("recalc-waffling"):
            return await recalculate_waffling(self._store)

    async def detect_at_risk(self) -> AtRiskDetectionResult:
        async with track_automation("detect-at-risk"):
            return await detect_at_risk(self._store)

    async def deadline_alerts(self, days_threshold: Any = None) -> DeadlineAlertsResult:
        days = parse_days_threshold(days_threshold, self.default_deadline_days)
        async with track_automation("deadline-alerts"):
            return await deadline_alerts(self._store, days_threshold=days)

    async def stale_contacts(self, days_threshold: Any = None) -> StaleContactsResult:
        days = parse_days_threshold(days_threshold, self.default_stale_days)
        async with track_automation("stale-contacts"):
            return await stale_contacts(self._store, days_threshold=days)

    async def daily_digest(self) -> DailyDigestResult:
        async with track_automation("daily-digest"):
            return await daily_digest(self._store)

    async def run_all(self) -> RunAllResult:
        async with track_automation("run-all"):
            report = await run_all(
                self._store,
                deadline_days=self.default_deadline_days,
                stale_days=self.default_stale_days,
                step_timeout=self._settings.AUTOMATION_STEP_TIMEOUT_SECONDS,
                parallel=self._settings.AUTOMATION_PARALLEL_STEPS,
            )
        if not report.success:
            logger.warning("run_all_partial_failure", errors=report.errors)
        return report


__all__ = ["AutomationService", "parse_days_threshold", "MAX_DAYS_THRESHOLD"]
