"""FastAPI dependencies for the automation endpoints."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from src.crm.automations.service import AutomationService


def get_automation_service(request: Request) -> AutomationService:
    """Retrieve AutomationService from app.state, 503 if not available."""
    service = getattr(request.app.state, "automation_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Automations not initialized",
        )
    return service
