"""Letterboxd - watched films from the public RSS feed."""

import logging
import re
import xml.etree.ElementTree as ET
from datetime import date, datetime, time, timedelta, timezone
from email.utils import parsedate_to_datetime

import httpx
from pydantic import BaseModel, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.adapters.base import PollingAdapter
from lifesync.exceptions import RemoteFetchError
from lifesync.models.activity import Film
from lifesync.services.delta import DeltaDetector, parse_items
from lifesync.services.snapshot_store import Credentials

logger = logging.getLogger(__name__)

FEED_URL = "https://letterboxd.com/{username}/rss/"

# Descriptions always start with the poster image paragraph
_POSTER_PARAGRAPH = re.compile(r"<p>.*?</p>", re.DOTALL)


class FilmEntry(BaseModel):
    guid: str
    link: str | None = None
    film_title: str
    film_year: int | None = None
    member_rating: float | None = None
    watched_date: date
    pub_date: datetime
    description: str = ""

    @field_validator("pub_date", mode="before")
    @classmethod
    def parse_pub_date(cls, value):
        # RSS dates are RFC 822, snapshot dates are ISO 8601
        if isinstance(value, str) and not value[:4].isdigit():
            return parsedate_to_datetime(value)
        return value

    @property
    def is_review(self) -> bool:
        return "letterboxd-review" in self.guid

    @property
    def review(self) -> str | None:
        if not self.is_review:
            return None
        return _POSTER_PARAGRAPH.sub("", self.description, count=1).strip() or None

    @property
    def rating(self) -> int | None:
        """Rating out of ten; Letterboxd uses half stars out of five."""
        if not self.member_rating:
            return None
        return round(self.member_rating * 2)

    @property
    def watched_at(self) -> datetime:
        return datetime.combine(self.watched_date, time.min, tzinfo=timezone.utc)


_FIELDS = {
    "guid": "guid",
    "link": "link",
    "filmTitle": "film_title",
    "filmYear": "film_year",
    "memberRating": "member_rating",
    "watchedDate": "watched_date",
    "pubDate": "pub_date",
    "description": "description",
}


def parse_feed(body: str) -> list[dict]:
    """Return one raw dict per ``<item>``, namespaces stripped from tag names."""
    try:
        root = ET.fromstring(body)
    except ET.ParseError as exc:
        raise RemoteFetchError(f"Letterboxd feed is not valid XML: {exc}") from exc

    items = []
    for element in root.iter("item"):
        raw = {}
        for child in element:
            tag = child.tag.rsplit("}", 1)[-1]
            field = _FIELDS.get(tag)
            if field is not None and child.text is not None:
                raw[field] = child.text.strip()
        items.append(raw)
    return items


class LetterboxdAdapter(PollingAdapter):
    name = "letterboxd"

    def __init__(self, settings, session_factory, **kwargs) -> None:
        kwargs.setdefault("interval_minutes", settings.letterboxd_poll_interval_minutes)
        super().__init__(settings, session_factory, **kwargs)
        self.detector: DeltaDetector[FilmEntry, str] = DeltaDetector(
            identity=lambda film: film.guid,
            order_key=lambda film: film.pub_date,
        )

    def is_configured(self) -> bool:
        return bool(self.settings.letterboxd_username)

    async def fetch_feed(self, client: httpx.AsyncClient) -> list[FilmEntry]:
        response = await client.get(
            FEED_URL.format(username=self.settings.letterboxd_username)
        )
        response.raise_for_status()
        return parse_items(FilmEntry, parse_feed(response.text), self.name)

    async def sync(
        self,
        db: AsyncSession,
        client: httpx.AsyncClient,
        credentials: Credentials | None,
        now: datetime | None = None,
    ) -> list[dict]:
        now = now or datetime.now(timezone.utc)
        films = await self.fetch_feed(client)
        previous = self.previous_items(FilmEntry)
        oldest = now - timedelta(milliseconds=self.interval_ms * 2)

        for film in self.detector.detect_new(previous, films):
            if film.watched_at < oldest:
                continue
            logger.info("Adding new film '%s (%s)'", film.film_title, film.film_year)
            db.add(
                Film(
                    title=film.film_title,
                    year=film.film_year,
                    rating=film.rating,
                    review=film.review,
                    url=film.link,
                    watched_at=film.watched_at,
                    device_id=self.device_id,
                    created_at=film.pub_date,
                )
            )
        await db.flush()

        return [film.model_dump(mode="json") for film in films]
