"""Tests for the application factory wiring.

ASGITransport does not run the lifespan, so the automation service is never
created here: the automation routes must answer 503 while the
infrastructure routes keep working.
"""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from src.crm.main import create_app


@pytest.mark.asyncio
async def test_routes_and_middleware():
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        health = await client.get("/api/v1/health", headers={"X-Request-ID": "cron-42"})
        not_ready = await client.post("/api/v1/automations/run-all", json={})
        metrics = await client.get("/metrics")

    assert health.status_code == 200
    assert health.headers["X-Request-ID"] == "cron-42"
    assert not_ready.status_code == 503
    assert metrics.status_code == 200
    assert "http_requests_total" in metrics.text


@pytest.mark.asyncio
async def test_generates_request_id():
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/health")

    assert len(response.headers["X-Request-ID"]) == 36
