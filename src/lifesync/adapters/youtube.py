"""YouTube - liked videos."""

import logging

import httpx
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.adapters.base import PollingAdapter, read_json
from lifesync.exceptions import AuthenticationError
from lifesync.models.activity import YouTubeLike
from lifesync.services.delta import DeltaDetector, parse_items
from lifesync.services.snapshot_store import Credentials

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"


class VideoSnippet(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str
    channel_title: str = Field(alias="channelTitle")


class LikedVideo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    snippet: VideoSnippet


class YouTubeAdapter(PollingAdapter):
    name = "youtube"
    requires_auth = True

    def __init__(self, settings, session_factory, **kwargs) -> None:
        kwargs.setdefault("interval_minutes", settings.youtube_poll_interval_minutes)
        super().__init__(settings, session_factory, **kwargs)
        self.detector: DeltaDetector[LikedVideo, str] = DeltaDetector(
            identity=lambda video: video.id
        )

    def is_configured(self) -> bool:
        return bool(self.settings.youtube_client_id and self.settings.youtube_client_secret)

    async def refresh_credentials(self, client: httpx.AsyncClient) -> Credentials | None:
        current = self.credentials
        if current is not None and current.access_token_valid():
            return current

        refresh_token = None
        if current is not None and current.refresh_token_valid():
            refresh_token = current.refresh_token
        refresh_token = refresh_token or self.settings.youtube_refresh_token
        if not refresh_token:
            logger.debug("No token provided, skipping")
            return None

        logger.info("Access token has expired, using refresh token")
        response = await client.post(
            TOKEN_URL,
            data={
                "client_id": self.settings.youtube_client_id,
                "client_secret": self.settings.youtube_client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )
        if response.status_code == 400:
            raise AuthenticationError("Google rejected the refresh token")
        body = read_json(response)
        try:
            credentials = Credentials.from_token_response(
                access_token=body["access_token"],
                expires_in=int(body["expires_in"]),
                # Google only rotates the refresh token occasionally
                refresh_token=body.get("refresh_token") or refresh_token,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise AuthenticationError(f"Unexpected token response: {exc}") from exc

        self.update_credentials(credentials)
        return credentials

    async def fetch_liked_videos(
        self, client: httpx.AsyncClient, credentials: Credentials
    ) -> list[LikedVideo]:
        data = await self.get_json(
            client,
            VIDEOS_URL,
            params={"part": "snippet", "myRating": "like", "maxResults": 10},
            headers={"Authorization": f"Bearer {credentials.access_token}"},
        )
        return parse_items(LikedVideo, data.get("items") or [], self.name)

    async def sync(
        self,
        db: AsyncSession,
        client: httpx.AsyncClient,
        credentials: Credentials | None,
    ) -> list[dict]:
        videos = await self.fetch_liked_videos(client, credentials)
        previous = self.previous_items(LikedVideo)
        new_videos = self.detector.detect_new(previous, videos)

        if new_videos:
            logger.debug("Found %d new videos", len(new_videos))
        for video in new_videos:
            db.add(
                YouTubeLike(
                    video_id=video.id,
                    title=video.snippet.title,
                    channel=video.snippet.channel_title,
                    device_id=self.device_id,
                )
            )
        await db.flush()

        return [video.model_dump(by_alias=True) for video in videos]
