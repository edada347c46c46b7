"""Tests for POST /v1/timetracking."""

import pytest
from fastapi import FastAPI
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.models.time_tracking import TimeTracking
ADMIN_HEADERS = {"Authorization": "Bearer change-me"}


async def _switch(client: AsyncClient, **body):
    return await client.post("/v1/timetracking", json=body, headers=ADMIN_HEADERS)


class TestSwitchCategory:
    @pytest.mark.asyncio
    async def test_requires_admin_key(self, client: AsyncClient):
        resp = await client.post(
            "/v1/timetracking",
            json={"category": "WORK"},
            headers={"Authorization": "Bearer wrong"},
        )
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_start_then_switch_closes_previous(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        first = await _switch(client, category="WORK", started_at="2026-03-01T09:00:00Z")
        assert first.status_code == 201
        assert first.json()["stopped"] is False
        assert first.json()["block"]["category"] == "WORK"
        assert first.json()["block"]["ended_at"] is None

        second = await _switch(client, category="COOKING", started_at="2026-03-01T12:30:00Z")
        assert second.status_code == 201

        blocks = (
            await db_session.execute(select(TimeTracking).order_by(TimeTracking.created_at))
        ).scalars().all()
        assert [b.category for b in blocks] == ["WORK", "COOKING"]
        assert blocks[0].ended_at.isoformat() == "2026-03-01T12:30:00+00:00"
        assert blocks[1].ended_at is None

    @pytest.mark.asyncio
    async def test_stop_closes_without_new_block(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        await _switch(client, category="WORK", started_at="2026-03-01T09:00:00Z")
        resp = await _switch(client, category="STOP", started_at="2026-03-01T10:00:00Z")

        assert resp.status_code == 201
        assert resp.json() == {"block": None, "stopped": True}
        blocks = (await db_session.execute(select(TimeTracking))).scalars().all()
        assert len(blocks) == 1
        assert blocks[0].ended_at is not None

    @pytest.mark.asyncio
    async def test_device_id_defaults_to_configured(self, client: AsyncClient):
        resp = await _switch(client, category="WORK")
        assert resp.json()["block"]["device_id"] == "default"

    @pytest.mark.asyncio
    async def test_ended_at_without_started_at_returns_422(self, client: AsyncClient):
        resp = await _switch(client, category="WORK", ended_at="2026-03-01T10:00:00Z")
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_ended_before_started_returns_422(self, client: AsyncClient):
        resp = await _switch(
            client,
            category="WORK",
            started_at="2026-03-01T10:00:00Z",
            ended_at="2026-03-01T09:00:00Z",
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_empty_category_returns_422(self, client: AsyncClient):
        resp = await _switch(client, category="")
        assert resp.status_code == 422


class TestListingInvalidation:
    @pytest.mark.asyncio
    async def test_switch_invalidates_cached_listing(self, client: AsyncClient, app: FastAPI):
        await client.get("/v1/activity/timetracking")
        await client.get("/v1/activity/games")
        assert "/v1/activity/timetracking" in app.state.page_cache

        await _switch(client, category="WORK")

        assert "/v1/activity/timetracking" not in app.state.page_cache
        assert "/v1/activity/games" in app.state.page_cache
        resp = await client.get("/v1/activity/timetracking")
        assert resp.headers["x-page-cache"] == "miss"
        assert [b["category"] for b in resp.json()] == ["WORK"]
