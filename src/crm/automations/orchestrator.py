"""Run every automation once and aggregate a single report.

Each step is isolated: its result, or the error it raised (including a
per-step timeout), becomes a StepOutcome value and never aborts the
remaining steps. The report is a fold over those outcomes.

Step order: waffling -> at-risk -> deadlines -> stale contacts -> digest.
Waffling runs before at-risk so rule B sees the fresh scores; in parallel
mode that ordering is given up and at-risk may read the previous scores.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog
from pydantic import BaseModel

from src.crm.automations.at_risk import detect_at_risk
from src.crm.automations.deadlines import DEFAULT_DEADLINE_DAYS, deadline_alerts
from src.crm.automations.digest import daily_digest
from src.crm.automations.ports import AutomationStore
from src.crm.automations.schemas import RunAllResult, RunSummary
from src.crm.automations.stale_contacts import DEFAULT_STALE_DAYS, stale_contacts
from src.crm.automations.waffling import recalculate_waffling

logger = structlog.get_logger(__name__)

DEFAULT_STEP_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class AutomationStep:
    """One orchestrated job.

    ``key`` names the entry in the report's results, ``operation`` prefixes
    any error message.
    """

    key: str
    operation: str
    run: Callable[[], Awaitable[BaseModel]]


@dataclass(frozen=True)
class StepOutcome:
    """Either the value a step returned or the error it failed with."""

    step: AutomationStep
    value: BaseModel | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_step(step: AutomationStep, timeout: float | None) -> StepOutcome:
    """Await a step, converting any failure into an error outcome."""
    try:
        value = await asyncio.wait_for(step.run(), timeout=timeout)
    except asyncio.TimeoutError:
        message = f"{step.operation}: timed out after {timeout}s"
        logger.error("automation_step_timeout", step=step.operation, timeout=timeout)
        return StepOutcome(step=step, error=message)
    except Exception as exc:
        message = f"{step.operation}: {str(exc) or type(exc).__name__}"
        logger.error("automation_step_failed", step=step.operation, error=str(exc))
        return StepOutcome(step=step, error=message)
    return StepOutcome(step=step, value=value)


def _summarize(results: dict[str, Any]) -> RunSummary:
    """Headline counts from whichever steps succeeded."""
    return RunSummary(
        waffling_updated=results.get("waffling", {}).get("accounts_updated", 0),
        at_risk_detected=results.get("at_risk", {}).get("deals_updated", 0),
        deadline_alerts=results.get("deadlines", {}).get("alerts_count", 0),
        stale_contacts=results.get("stale_contacts", {}).get("stale_contacts_count", 0),
    )


def fold_outcomes(
    outcomes: list[StepOutcome],
    *,
    duration_ms: int,
    ran_at: datetime,
) -> RunAllResult:
    """Aggregate step outcomes into the run report.

    Failed steps are absent from ``results``; ``errors`` is None when every
    step succeeded.
    """
    results: dict[str, Any] = {}
    errors: list[str] = []
    for outcome in outcomes:
        if outcome.ok and outcome.value is not None:
            results[outcome.step.key] = outcome.value.model_dump(mode="json")
        elif outcome.error is not None:
            errors.append(outcome.error)

    return RunAllResult(
        success=not errors,
        duration_ms=duration_ms,
        ran_at=ran_at,
        results=results,
        errors=errors or None,
        summary=_summarize(results),
    )


def default_steps(
    store: AutomationStore,
    *,
    deadline_days: int = DEFAULT_DEADLINE_DAYS,
    stale_days: int = DEFAULT_STALE_DAYS,
    now: datetime | None = None,
) -> list[AutomationStep]:
    """The five automations in run order, bound to ``store``."""
    return [
        AutomationStep(
            "waffling",
            "recalculate-waffling",
            lambda: recalculate_waffling(store, now=now),
        ),
        AutomationStep(
            "at_risk",
            "detect-at-risk",
            lambda: detect_at_risk(store, now=now),
        ),
        AutomationStep(
            "deadlines",
            "deadline-alerts",
            lambda: deadline_alerts(store, days_threshold=deadline_days, now=now),
        ),
        AutomationStep(
            "stale_contacts",
            "stale-contacts",
            lambda: stale_contacts(store, days_threshold=stale_days, now=now),
        ),
        AutomationStep(
            "digest",
            "daily-digest",
            lambda: daily_digest(store, now=now),
        ),
    ]


async def run_steps(
    steps: list[AutomationStep],
    *,
    step_timeout: float | None = DEFAULT_STEP_TIMEOUT_SECONDS,
    parallel: bool = False,
    now: datetime | None = None,
) -> RunAllResult:
    """Run ``steps`` and fold their outcomes. Never raises for a step failure."""
    ran_at = now or datetime.now(timezone.utc)
    start = time.perf_counter()

    logger.info("run_all_started", steps=[s.key for s in steps], parallel=parallel)

    if parallel:
        outcomes = list(await asyncio.gather(*(run_step(s, step_timeout) for s in steps)))
    else:
        outcomes = [await run_step(s, step_timeout) for s in steps]

    duration_ms = int((time.perf_counter() - start) * 1000)
    report = fold_outcomes(outcomes, duration_ms=duration_ms, ran_at=ran_at)

    logger.info(
        "run_all_complete",
        success=report.success,
        duration_ms=duration_ms,
        failed_steps=len(report.errors or []),
        **report.summary.model_dump(),
    )
    return report


async def run_all(
    store: AutomationStore,
    *,
    deadline_days: int = DEFAULT_DEADLINE_DAYS,
    stale_days: int = DEFAULT_STALE_DAYS,
    step_timeout: float | None = DEFAULT_STEP_TIMEOUT_SECONDS,
    parallel: bool = False,
    now: datetime | None = None,
) -> RunAllResult:
    """Run every automation against ``store`` and return the aggregate report."""
    steps = default_steps(store, deadline_days=deadline_days, stale_days=stale_days, now=now)
    return await run_steps(steps, step_timeout=step_timeout, parallel=parallel, now=now)


__all__ = [
    "AutomationStep",
    "StepOutcome",
    "run_step",
    "fold_outcomes",
    "default_steps",
    "run_steps",
    "run_all",
]
