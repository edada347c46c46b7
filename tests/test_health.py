"""Tests for the health check endpoint."""

import pytest
from fastapi import FastAPI
from httpx import AsyncClient

from lifesync import __version__


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Health endpoint returns ok status and version."""
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == __version__
    assert data["jobs"] == []


@pytest.mark.asyncio
async def test_health_lists_scheduled_jobs(client: AsyncClient, app: FastAPI):
    """Scheduled polling jobs are reported by name."""

    async def noop():
        return None

    scheduler = app.state.scheduler
    scheduler.schedule("letterboxd", 86_400_000, noop)
    scheduler.schedule("steam", 0, noop)
    try:
        response = await client.get("/health")
        assert response.json()["jobs"] == ["letterboxd"]
    finally:
        await scheduler.stop()


@pytest.mark.asyncio
async def test_health_requires_no_auth(client: AsyncClient):
    response = await client.get("/health", headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 200
