"""Bluesky - copy the author's public posts into notes."""

import logging
import re
from datetime import datetime
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.adapters.base import PollingAdapter
from lifesync.models.activity import Note
from lifesync.services.delta import DeltaDetector, parse_items
from lifesync.services.snapshot_store import Credentials

logger = logging.getLogger(__name__)

AUTHOR_FEED_URL = "https://public.api.bsky.app/xrpc/app.bsky.feed.getAuthorFeed"
BLOB_URL = "https://bsky.social/xrpc/com.atproto.sync.getBlob?did={did}&cid={cid}"
POST_URL = "https://bsky.app/profile/{did}/post/{id}"

_AT_URI = re.compile(r"at://(?P<did>did:plc:[a-z0-9]+)/app\.bsky\.feed\.post/(?P<id>[a-z0-9]+)")


class PostRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    text: str = ""
    created_at: datetime = Field(alias="createdAt")
    embed: dict[str, Any] | None = None
    facets: list[dict[str, Any]] = Field(default_factory=list)


class PostAuthor(BaseModel):
    model_config = ConfigDict(extra="ignore")

    did: str
    handle: str | None = None


class Post(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uri: str
    cid: str
    record: PostRecord
    author: PostAuthor


class FeedItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    post: Post
    reply: dict[str, Any] | None = None

    @property
    def is_reply(self) -> bool:
        return self.reply is not None


def _link(href: str, text: str) -> str:
    return f"<a href='{href}' target='_blank' rel='noopener'>{text}</a>"


def _facet_href(feature: dict[str, Any]) -> str | None:
    kind = feature.get("$type")
    if kind == "app.bsky.richtext.facet#link":
        return feature.get("uri")
    if kind == "app.bsky.richtext.facet#tag":
        return f"https://bsky.app/hashtag/{feature.get('tag')}"
    if kind == "app.bsky.richtext.facet#mention":
        return f"https://bsky.app/profile/{feature.get('did')}"
    return None


def render_post(record: PostRecord) -> str:
    """Render post text as HTML paragraphs with facets turned into links.

    Facet offsets are UTF-8 byte offsets, so facets are applied from the end
    of the text backwards to keep earlier offsets valid.
    """
    contents = record.text.encode("utf-8")
    facets = sorted(
        record.facets,
        key=lambda facet: facet.get("index", {}).get("byteEnd", 0),
        reverse=True,
    )
    for facet in facets:
        index = facet.get("index") or {}
        features = facet.get("features") or []
        start, end = index.get("byteStart"), index.get("byteEnd")
        if start is None or end is None or not features:
            continue
        href = _facet_href(features[0])
        if href is None:
            continue
        middle = contents[start:end].decode("utf-8", errors="replace")
        contents = contents[:start] + _link(href, middle).encode("utf-8") + contents[end:]

    text = contents.decode("utf-8", errors="replace").replace("\n\n", "</p><p>")
    return f"<p>{text}</p>"


def post_url(post: Post) -> str | None:
    """Public web URL for an AT-URI, or None if the URI is not a post."""
    match = _AT_URI.match(post.uri)
    if match is None:
        return None
    return POST_URL.format(did=match.group("did"), id=match.group("id"))


def embedded_media(post: Post) -> tuple[str | None, str]:
    """Return (blob URL, note type) for the post's first video or image."""
    embed = post.record.embed or {}
    kind = embed.get("$type")
    cid = None
    note_type = "note"

    if kind == "app.bsky.embed.video":
        cid = ((embed.get("video") or {}).get("ref") or {}).get("$link")
        note_type = "video"
    elif kind == "app.bsky.embed.images" and embed.get("images"):
        image = embed["images"][0].get("image") or {}
        cid = (image.get("ref") or {}).get("$link")
        note_type = "photo"

    if cid is None:
        return None, "note"
    return BLOB_URL.format(did=post.author.did, cid=cid), note_type


class BlueskyAdapter(PollingAdapter):
    name = "bluesky"

    def __init__(self, settings, session_factory, **kwargs) -> None:
        kwargs.setdefault("interval_minutes", settings.bluesky_poll_interval_minutes)
        super().__init__(settings, session_factory, **kwargs)
        self.detector: DeltaDetector[FeedItem, str] = DeltaDetector(
            identity=lambda item: item.post.cid,
            order_key=lambda item: item.post.record.created_at,
        )

    def is_configured(self) -> bool:
        return bool(self.settings.bluesky_username)

    async def fetch_feed(self, client: httpx.AsyncClient) -> list[FeedItem]:
        data = await self.get_json(
            client, AUTHOR_FEED_URL, params={"actor": self.settings.bluesky_username}
        )
        return parse_items(FeedItem, data.get("feed") or [], self.name)

    async def sync(
        self,
        db: AsyncSession,
        client: httpx.AsyncClient,
        credentials: Credentials | None,
    ) -> list[dict]:
        feed = await self.fetch_feed(client)
        previous = self.previous_items(FeedItem)
        new_posts = self.detector.detect_new(previous, feed)
        logger.info("Detected %d new posts", len(new_posts))

        for item in new_posts:
            if item.is_reply and not self.settings.bluesky_include_replies:
                continue

            syndication_url = post_url(item.post)
            if syndication_url is None:
                logger.warning("Invalid bluesky post detected: %s", item.post.uri)
                continue

            url, note_type = embedded_media(item.post)
            note = Note(
                title=None,
                description=render_post(item.post.record),
                type=note_type,
                status="public",
                url=url,
                syndication=[{"name": "bluesky", "url": syndication_url}],
                device_id=self.device_id,
                created_at=item.post.record.created_at,
            )
            db.add(note)
            logger.debug("Inserted new post: '%s...'", note.description[:40])
        await db.flush()

        return [item.model_dump(mode="json", by_alias=True) for item in feed]
