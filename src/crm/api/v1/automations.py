"""REST API endpoints for the CRM automations.

One POST endpoint per automation plus ``/run-all``. Bodies are optional
JSON objects; the threshold endpoints read a loosely typed
``days_threshold`` and fall back to the configured default when it is
missing or unusable. A body that is not a JSON object (invalid JSON, an
array, a bare string) is treated as empty rather than rejected.

A failure inside an automation is answered with HTTP 500 and
``{"error": "<message>"}``. ``/run-all`` reports per-step failures in its
own body and answers 200.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from src.crm.api.deps import get_automation_service
from src.crm.automations.exceptions import StoreError
from src.crm.automations.service import AutomationService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/automations", tags=["automations"])


# ── Helpers ──────────────────────────────────────────────────────────────────


def _error_response(operation: str, exc: Exception) -> JSONResponse:
    if isinstance(exc, StoreError):
        logger.error("automation_failed", operation=operation, error=str(exc))
    else:
        logger.exception("automation_crashed", operation=operation)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": str(exc) or type(exc).__name__},
    )


async def _threshold(request: Request) -> Any:
    """``days_threshold`` from the body, or None when the body has none."""
    try:
        payload = await request.json()
    except ValueError:
        # Empty body, invalid JSON or invalid UTF-8.
        return None
    if not isinstance(payload, dict):
        return None
    return payload.get("days_threshold")


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.post("/recalc-waffling")
async def recalc_waffling(
    service: AutomationService = Depends(get_automation_service),
) -> Any:
    """Recompute every account's waffling score and persist moved scores."""
    try:
        result = await service.recalculate_waffling()
    except Exception as exc:
        return _error_response("recalc-waffling", exc)
    return result.model_dump(mode="json")


@router.post("/detect-at-risk")
async def detect_at_risk(
    service: AutomationService = Depends(get_automation_service),
) -> Any:
    """Reclassify every active deal and persist changed at-risk flags."""
    try:
        result = await service.detect_at_risk()
    except Exception as exc:
        return _error_response("detect-at-risk", exc)
    return result.model_dump(mode="json")


@router.post("/deadline-alerts")
async def deadline_alerts(
    request: Request,
    service: AutomationService = Depends(get_automation_service),
) -> Any:
    """Titles with a deadline inside the window, soonest first."""
    try:
        result = await service.deadline_alerts(await _threshold(request))
    except Exception as exc:
        return _error_response("deadline-alerts", exc)
    return result.model_dump(mode="json")


@router.post("/stale-contacts")
async def stale_contacts(
    request: Request,
    service: AutomationService = Depends(get_automation_service),
) -> Any:
    """Accounts overdue for follow-up, highest priority first."""
    try:
        result = await service.stale_contacts(await _threshold(request))
    except Exception as exc:
        return _error_response("stale-contacts", exc)
    return result.model_dump(mode="json")


@router.post("/daily-digest")
async def daily_digest(
    service: AutomationService = Depends(get_automation_service),
) -> Any:
    """Pipeline and goal summary."""
    try:
        result = await service.daily_digest()
    except Exception as exc:
        return _error_response("daily-digest", exc)
    return result.model_dump(mode="json")


@router.post("/run-all")
async def run_all(
    service: AutomationService = Depends(get_automation_service),
) -> Any:
    """Run every automation; step failures are listed under ``errors``."""
    try:
        report = await service.run_all()
    except Exception as exc:
        return _error_response("run-all", exc)
    exclude = {"errors"} if report.errors is None else None
    return report.model_dump(mode="json", exclude=exclude)
