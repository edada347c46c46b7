"""Tests for lifesync.adapters.base and the adapter registry."""

import httpx
import pytest
import respx
from httpx import Response
from sqlalchemy import select

from lifesync.adapters import ADAPTER_CLASSES, build_adapters
from lifesync.adapters.base import PollingAdapter, read_json
from lifesync.config import Settings
from lifesync.exceptions import AuthenticationError, RemoteFetchError
from lifesync.models.time_tracking import TimeTracking

STATUS_URL = "https://example.test/status"


class RecordingAdapter(PollingAdapter):
    """Writes one row per cycle and returns the remote status as the baseline."""

    name = "recording"

    async def sync(self, db, client, credentials):
        data = await self.get_json(client, STATUS_URL)
        db.add(TimeTracking(category=data["category"], device_id=self.device_id))
        await db.flush()
        if data.get("explode"):
            raise RemoteFetchError("remote changed its mind")
        return [data]


@pytest.fixture
def adapter(settings, session_factory) -> RecordingAdapter:
    return RecordingAdapter(settings, session_factory, interval_minutes=5)


# ---------------------------------------------------------------------------
# read_json
# ---------------------------------------------------------------------------


class TestReadJson:
    def _response(self, status_code: int, **kwargs) -> Response:
        return Response(status_code, request=httpx.Request("GET", STATUS_URL), **kwargs)

    def test_decodes_body(self):
        assert read_json(self._response(200, json={"ok": True})) == {"ok": True}

    @pytest.mark.parametrize("status_code", [401, 403])
    def test_auth_failures(self, status_code):
        with pytest.raises(AuthenticationError):
            read_json(self._response(status_code))

    def test_server_error_raises_http_error(self):
        with pytest.raises(httpx.HTTPStatusError):
            read_json(self._response(503))

    def test_non_json_body(self):
        with pytest.raises(RemoteFetchError):
            read_json(self._response(200, text="<html>maintenance</html>"))


# ---------------------------------------------------------------------------
# poll()
# ---------------------------------------------------------------------------


class TestPoll:
    @pytest.mark.asyncio
    async def test_success_commits_and_saves_snapshot(self, adapter, db_session):
        with respx.mock:
            respx.get(STATUS_URL).mock(return_value=Response(200, json={"category": "WORK"}))
            assert await adapter.poll() is True

        rows = (await db_session.execute(select(TimeTracking))).scalars().all()
        assert [row.category for row in rows] == ["WORK"]
        assert adapter.store.load().items == [{"category": "WORK"}]

    @pytest.mark.asyncio
    async def test_failure_mid_sync_rolls_back(self, adapter, db_session):
        adapter.snapshot.items = [{"category": "OLD"}]

        with respx.mock:
            respx.get(STATUS_URL).mock(
                return_value=Response(200, json={"category": "WORK", "explode": True})
            )
            assert await adapter.poll() is False

        assert (await db_session.execute(select(TimeTracking))).scalars().all() == []
        assert adapter.snapshot.items == [{"category": "OLD"}]
        assert not adapter.store.path.exists()

    @pytest.mark.asyncio
    async def test_network_error_is_transient(self, adapter):
        with respx.mock:
            respx.get(STATUS_URL).mock(side_effect=httpx.ConnectError("down"))
            assert await adapter.poll() is False

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates(self, adapter):
        with respx.mock:
            respx.get(STATUS_URL).mock(return_value=Response(200, json={}))
            with pytest.raises(KeyError):
                await adapter.poll()

    @pytest.mark.asyncio
    async def test_requires_auth_without_credentials_skips(self, settings, session_factory):
        class NeedsToken(RecordingAdapter):
            requires_auth = True

        adapter = NeedsToken(settings, session_factory, interval_minutes=5)
        # respx would fail the test on any unmocked request
        with respx.mock:
            assert await adapter.poll() is False


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestBuildAdapters:
    def test_every_source_is_built(self, settings, session_factory):
        adapters = build_adapters(settings, session_factory)
        assert [a.name for a in adapters] == [
            "steam",
            "psn",
            "retroachievements",
            "youtube",
            "letterboxd",
            "bluesky",
        ]
        assert all(a.interval_ms > 0 for a in adapters)

    def test_unconfigured_adapters_are_disabled(self, tmp_path, session_factory):
        settings = Settings(_env_file=None, snapshot_dir=str(tmp_path))
        adapters = build_adapters(settings, session_factory)
        assert len(adapters) == len(ADAPTER_CLASSES)
        assert all(a.interval_ms == 0 for a in adapters)

    def test_zero_interval_disables(self, settings, session_factory):
        settings.steam_poll_interval_minutes = 0
        steam = build_adapters(settings, session_factory)[0]
        assert steam.interval_ms == 0

    def test_device_override(self, settings, session_factory):
        settings.steam_device_id = "steam-deck"
        steam, psn, *_ = build_adapters(settings, session_factory)
        assert steam.device_id == "steam-deck"
        assert psn.device_id == "test-device"

    def test_client_sends_user_agent(self, adapter):
        client = adapter.http_client()
        assert client.headers["user-agent"] == "lifesync/0.1"
