"""Tests for lifesync.adapters.youtube."""

from datetime import datetime, timedelta, timezone

import pytest
import respx
from httpx import Response
from sqlalchemy import select

from lifesync.adapters.youtube import TOKEN_URL, VIDEOS_URL, YouTubeAdapter
from lifesync.models.activity import YouTubeLike
from lifesync.services.snapshot_store import Credentials


def _video(video_id: str, title: str = "A video", channel: str = "A channel") -> dict:
    return {
        "kind": "youtube#video",
        "id": video_id,
        "snippet": {"title": title, "channelTitle": channel},
    }


@pytest.fixture
def adapter(settings, session_factory) -> YouTubeAdapter:
    adapter = YouTubeAdapter(settings, session_factory)
    adapter.snapshot.auth_state = Credentials(
        access_token="access",
        refresh_token="refresh",
        access_token_expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )
    return adapter


class TestYouTubePoll:
    @pytest.mark.asyncio
    async def test_new_likes_inserted_oldest_first(self, adapter, db_session):
        adapter.snapshot.items = [_video("old")]

        with respx.mock:
            route = respx.get(VIDEOS_URL).mock(
                return_value=Response(
                    200,
                    json={
                        "items": [
                            _video("newest", "Newest"),
                            _video("newer", "Newer"),
                            _video("old"),
                        ]
                    },
                )
            )
            assert await adapter.poll() is True

        request = route.calls.last.request
        assert request.headers["authorization"] == "Bearer access"
        assert request.url.params["myRating"] == "like"

        rows = (await db_session.execute(select(YouTubeLike))).scalars().all()
        assert sorted(row.title for row in rows) == ["Newer", "Newest"]
        assert [item["id"] for item in adapter.snapshot.items] == ["newest", "newer", "old"]

    @pytest.mark.asyncio
    async def test_first_poll_seeds_without_inserting(self, adapter, db_session):
        with respx.mock:
            respx.get(VIDEOS_URL).mock(
                return_value=Response(200, json={"items": [_video("a"), _video("b")]})
            )
            await adapter.poll()

        assert (await db_session.execute(select(YouTubeLike))).scalars().all() == []
        assert len(adapter.snapshot.items) == 2

    @pytest.mark.asyncio
    async def test_video_without_snippet_is_skipped(self, adapter, db_session):
        adapter.snapshot.items = [_video("old")]

        with respx.mock:
            respx.get(VIDEOS_URL).mock(
                return_value=Response(
                    200, json={"items": [{"id": "private"}, _video("ok", "Fine"), _video("old")]}
                )
            )
            await adapter.poll()

        rows = (await db_session.execute(select(YouTubeLike))).scalars().all()
        assert [row.video_id for row in rows] == ["ok"]

    @pytest.mark.asyncio
    async def test_unauthorized_clears_credentials(self, adapter):
        adapter.snapshot.items = [_video("old")]

        with respx.mock:
            respx.get(VIDEOS_URL).mock(return_value=Response(401))
            assert await adapter.poll() is False

        assert adapter.snapshot.auth_state is None
        assert adapter.snapshot.items == [_video("old")]


class TestYouTubeCredentials:
    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed_and_persisted(self, settings, session_factory):
        adapter = YouTubeAdapter(settings, session_factory)

        with respx.mock:
            token = respx.post(TOKEN_URL).mock(
                return_value=Response(
                    200, json={"access_token": "fresh", "expires_in": 3599, "token_type": "Bearer"}
                )
            )
            async with adapter.http_client() as client:
                credentials = await adapter.refresh_credentials(client)

        assert credentials.access_token == "fresh"
        # configured refresh token is kept when Google does not rotate it
        assert credentials.refresh_token == "yt-refresh"
        assert b"refresh_token=yt-refresh" in token.calls.last.request.content
        assert adapter.store.load().auth_state.access_token == "fresh"

    @pytest.mark.asyncio
    async def test_rejected_refresh_token_clears_credentials(self, settings, session_factory):
        adapter = YouTubeAdapter(settings, session_factory)

        with respx.mock:
            respx.post(TOKEN_URL).mock(
                return_value=Response(400, json={"error": "invalid_grant"})
            )
            assert await adapter.poll() is False

        assert adapter.snapshot.auth_state is None

    @pytest.mark.asyncio
    async def test_no_refresh_token_skips_cycle(self, settings, session_factory):
        settings.youtube_refresh_token = None
        adapter = YouTubeAdapter(settings, session_factory)
        assert await adapter.poll() is False
