"""Tests for the run-all orchestrator.

Verifies step isolation (a failing or timed-out step never aborts the
others), the aggregate report shape, summary defaults and that parallel
mode aggregates identically.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from src.crm.automations import orchestrator
from src.crm.automations.exceptions import StoreReadError
from src.crm.automations.orchestrator import (
    AutomationStep,
    StepOutcome,
    fold_outcomes,
    run_all,
    run_step,
    run_steps,
)
from src.crm.automations.schemas import DecisionCertainty, WafflingRecalcResult
from tests.doubles import NOW, InMemoryAutomationStore, days_ago, make_account, make_deal


def _busy_store() -> InMemoryAutomationStore:
    """One account whose score moves (0 -> 30) and one deal that turns at risk."""
    return InMemoryAutomationStore(
        accounts=[
            make_account(certainty=DecisionCertainty.FIRM, last_contact=NOW, waffling_score=0)
        ],
        deals=[make_deal(last_activity=days_ago(20))],
    )


class TestRunAll:
    @pytest.mark.asyncio
    async def test_all_steps_succeed(self):
        store = _busy_store()

        report = await run_all(store, now=NOW)

        assert report.success is True
        assert report.errors is None
        assert report.ran_at == NOW
        assert report.duration_ms >= 0
        assert set(report.results) == {
            "waffling",
            "at_risk",
            "deadlines",
            "stale_contacts",
            "digest",
        }
        assert report.summary.waffling_updated == 1
        assert report.summary.at_risk_detected == 1
        assert report.summary.deadline_alerts == 0
        assert report.summary.stale_contacts == 0

    @pytest.mark.asyncio
    async def test_deadline_step_failure_is_isolated(self, monkeypatch):
        monkeypatch.setattr(
            orchestrator,
            "deadline_alerts",
            AsyncMock(side_effect=StoreReadError("titles unavailable")),
        )
        store = _busy_store()

        report = await run_all(store, now=NOW)

        assert report.success is False
        assert report.errors == ["deadline-alerts: titles unavailable"]
        assert "deadlines" not in report.results
        assert report.summary.waffling_updated == 1
        assert report.summary.at_risk_detected == 1
        assert report.summary.deadline_alerts == 0
        assert "digest" in report.results

    @pytest.mark.asyncio
    async def test_parallel_aggregates_identically(self):
        sequential = await run_all(_busy_store(), now=NOW)
        parallel = await run_all(_busy_store(), now=NOW, parallel=True)

        assert parallel.success is True
        assert parallel.summary == sequential.summary
        assert set(parallel.results) == set(sequential.results)

    @pytest.mark.asyncio
    async def test_thresholds_forwarded(self):
        report = await run_all(_busy_store(), deadline_days=10, stale_days=3, now=NOW)

        assert report.results["deadlines"]["threshold_days"] == 10
        assert report.results["stale_contacts"]["threshold_days"] == 3


class TestSteps:
    @pytest.mark.asyncio
    async def test_timeout_becomes_error(self):
        async def slow():
            await asyncio.sleep(1)
            return WafflingRecalcResult()

        outcome = await run_step(AutomationStep("waffling", "slow-step", slow), timeout=0.01)

        assert outcome.ok is False
        assert outcome.error == "slow-step: timed out after 0.01s"

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_error(self):
        async def broken():
            raise RuntimeError("boom")

        outcome = await run_step(AutomationStep("waffling", "broken-step", broken), timeout=None)

        assert outcome.error == "broken-step: boom"

    @pytest.mark.asyncio
    async def test_every_step_failing(self):
        async def broken():
            raise RuntimeError("down")

        steps = [AutomationStep(key, key, broken) for key in ("a", "b", "c")]

        report = await run_steps(steps, step_timeout=None, now=NOW)

        assert report.success is False
        assert report.errors == ["a: down", "b: down", "c: down"]
        assert report.results == {}
        assert report.summary.model_dump() == {
            "waffling_updated": 0,
            "at_risk_detected": 0,
            "deadline_alerts": 0,
            "stale_contacts": 0,
        }


def test_fold_keeps_successes_and_errors():
    ran_at = datetime(2026, 3, 10, tzinfo=timezone.utc)
    ok_step = AutomationStep("waffling", "recalculate-waffling", AsyncMock())
    bad_step = AutomationStep("at_risk", "detect-at-risk", AsyncMock())

    report = fold_outcomes(
        [
            StepOutcome(step=ok_step, value=WafflingRecalcResult(accounts_updated=4)),
            StepOutcome(step=bad_step, error="detect-at-risk: nope"),
        ],
        duration_ms=12,
        ran_at=ran_at,
    )

    assert report.results["waffling"]["accounts_updated"] == 4
    assert report.errors == ["detect-at-risk: nope"]
    assert report.summary.waffling_updated == 4
    assert report.summary.at_risk_detected == 0
    assert report.duration_ms == 12
