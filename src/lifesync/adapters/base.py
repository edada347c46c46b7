"""Base class for polling adapters.

An adapter owns one snapshot, talks to one remote service and writes new
facts through a database session. ``poll()`` is the scheduler entry point
and maps every failure onto the error taxonomy:

* transient remote failures roll back and leave the snapshot untouched, so
  the next poll retries the same delta;
* authentication failures clear the stored credentials so the next cycle
  authenticates from scratch;
* anything else propagates to the scheduler, which logs it.
"""

import logging
from pathlib import Path
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifesync.config import Settings
from lifesync.exceptions import AuthenticationError, RemoteFetchError
from lifesync.services.delta import Model, parse_items
from lifesync.services.snapshot_store import Credentials, SnapshotStore
from lifesync.services.sessions import MINUTE_MS

logger = logging.getLogger(__name__)


def read_json(response: httpx.Response) -> Any:
    """Decode a JSON response, mapping auth and status failures."""
    if response.status_code in (401, 403):
        raise AuthenticationError(
            f"{response.request.url.host} rejected credentials ({response.status_code})"
        )
    response.raise_for_status()
    try:
        return response.json()
    except ValueError as exc:
        raise RemoteFetchError(
            f"{response.request.url.host} returned a non-JSON body"
        ) from exc


class PollingAdapter:
    """Template for one remote source.

    Subclasses set ``name`` and implement :meth:`sync`. Sources that need an
    access token set ``requires_auth`` and implement
    :meth:`refresh_credentials`.
    """

    name: str = ""
    requires_auth: bool = False

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        interval_minutes: int,
        device_id: str | None = None,
        snapshot_path: str | Path | None = None,
    ) -> None:
        self.settings = settings
        self.session_factory = session_factory
        self.interval_minutes = interval_minutes
        self.device_id = settings.device_id_for(device_id)
        self.store = SnapshotStore(snapshot_path or settings.snapshot_path(self.name))
        self.snapshot = self.store.load()

    def is_configured(self) -> bool:
        return True

    @property
    def interval_ms(self) -> int:
        """Poll interval; 0 when disabled or missing credentials."""
        if self.interval_minutes <= 0 or not self.is_configured():
            return 0
        return self.interval_minutes * MINUTE_MS

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.http_timeout_seconds,
            headers={"User-Agent": self.settings.user_agent},
        )

    async def get_json(self, client: httpx.AsyncClient, url: str, **kwargs: Any) -> Any:
        response = await client.get(url, **kwargs)
        return read_json(response)

    @property
    def credentials(self) -> Credentials | None:
        return self.snapshot.auth_state

    def update_credentials(self, credentials: Credentials) -> None:
        """Store freshly exchanged credentials and persist them immediately."""
        self.snapshot.auth_state = credentials
        self.save()

    def clear_credentials(self) -> None:
        self.snapshot.auth_state = None
        self.save()

    def save(self) -> bool:
        return self.store.save(self.snapshot)

    def previous_items(self, model: type[Model]) -> list[Model] | None:
        """The stored baseline as typed records, or None if never seeded."""
        if self.snapshot.items is None:
            return None
        return parse_items(model, self.snapshot.items, "snapshot")

    async def refresh_credentials(self, client: httpx.AsyncClient) -> Credentials | None:
        """Return usable credentials, or None to skip this cycle.

        Raises AuthenticationError when the remote rejects the exchange.
        """
        return None

    async def sync(
        self,
        db: AsyncSession,
        client: httpx.AsyncClient,
        credentials: Credentials | None,
    ) -> list[dict] | None:
        """Fetch, classify and insert new facts.

        Returns the new baseline for ``snapshot.items``, or None to keep the
        current one.
        """
        raise NotImplementedError

    async def poll(self) -> bool:
        """Run one synchronization cycle. Returns True if it completed."""
        logger.info("Polling %s for new activity", self.name)
        try:
            async with self.http_client() as client:
                credentials = None
                if self.requires_auth:
                    credentials = await self.refresh_credentials(client)
                    if credentials is None:
                        logger.warning("No %s credentials available, skipping", self.name)
                        return False

                async with self.session_factory() as db:
                    try:
                        items = await self.sync(db, client, credentials)
                        await db.commit()
                    except Exception:
                        await db.rollback()
                        raise
        except AuthenticationError as exc:
            logger.error("%s authentication failed, clearing credentials: %s", self.name, exc)
            self.clear_credentials()
            return False
        except (httpx.HTTPError, RemoteFetchError) as exc:
            logger.warning("Could not poll %s: %s", self.name, exc)
            return False

        if items is not None:
            self.snapshot.items = items
        self.save()
        return True
