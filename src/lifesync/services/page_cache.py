"""In-memory page cache for public listing endpoints.

Stores the full response of common pages so bursts of traffic do not hit
the database. An entry is served while it is younger than the cache
duration; a periodic sweep removes expired entries so memory stays bounded
even when nobody requests the page again.
"""

import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from starlette.requests import Request
from starlette.responses import Response

from lifesync.exceptions import CacheEntryNotFound

logger = logging.getLogger(__name__)

CACHE_STATUS_HEADER = "x-page-cache"

CallNext = Callable[[Request], Awaitable[Response]]


def _now_ms() -> float:
    return time.time() * 1000


@dataclass
class CacheEntry:
    key: str
    body: bytes
    status_code: int
    headers: list[tuple[str, str]]
    stored_at_ms: float

    def age_ms(self, now_ms: float) -> float:
        return now_ms - self.stored_at_ms


class PageCache:
    """Keyed store of response bodies with time-based expiry.

    Caching is disabled when either the duration or the sweep interval is
    zero or negative.
    """

    def __init__(
        self,
        duration_secs: int,
        interval_secs: int,
        cacheable_prefixes: Sequence[str] = ("/v1/activity",),
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.duration_ms = duration_secs * 1000
        self.interval_ms = interval_secs * 1000
        self.cacheable_prefixes = tuple(cacheable_prefixes)
        self._clock = clock or _now_ms
        self._entries: dict[str, CacheEntry] = {}

    @property
    def enabled(self) -> bool:
        return self.duration_ms > 0 and self.interval_ms > 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def now_ms(self) -> float:
        return self._clock()

    def is_fresh(self, entry: CacheEntry, now_ms: float | None = None) -> bool:
        now_ms = self._clock() if now_ms is None else now_ms
        return entry.age_ms(now_ms) < self.duration_ms

    def get(self, key: str) -> CacheEntry | None:
        """Return the entry for ``key`` if it can still be served."""
        entry = self._entries.get(key)
        if entry is None or not self.is_fresh(entry):
            return None
        return entry

    def put(
        self,
        key: str,
        body: bytes,
        status_code: int = 200,
        headers: list[tuple[str, str]] | None = None,
    ) -> CacheEntry:
        entry = CacheEntry(
            key=key,
            body=body,
            status_code=status_code,
            headers=list(headers or []),
            stored_at_ms=self._clock(),
        )
        self._entries[key] = entry
        return entry

    def entries(self) -> list[CacheEntry]:
        return sorted(self._entries.values(), key=lambda entry: entry.key)

    def invalidate(self, key: str) -> None:
        """Remove ``key``; raises CacheEntryNotFound if it was not cached."""
        if key not in self._entries:
            raise CacheEntryNotFound(key)
        del self._entries[key]
        logger.info("Cache for '%s' invalidated", key)

    def invalidate_prefix(self, prefix: str) -> int:
        """Remove every entry whose key starts with ``prefix``. Never fails."""
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            self.invalidate(key)
        return len(keys)

    def purge_all(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        logger.info("Purged %d cached pages", count)
        return count

    def sweep(self) -> int:
        """Evict every entry that is no longer fresh. Returns the number evicted."""
        now_ms = self._clock()
        expired = [
            key for key, entry in self._entries.items() if not self.is_fresh(entry, now_ms)
        ]
        for key in expired:
            logger.info("Cache for '%s' expired. Deleting", key)
            del self._entries[key]
        return len(expired)

    async def run_sweep(self) -> int:
        """Scheduler-friendly wrapper around :meth:`sweep`."""
        return self.sweep()

    def cache_key(self, request: Request) -> str:
        query = request.url.query
        return f"{request.url.path}?{query}" if query else request.url.path

    def is_cacheable(self, request: Request) -> bool:
        return (
            self.enabled
            and request.method == "GET"
            and request.url.path.startswith(self.cacheable_prefixes)
        )

    def middleware(self) -> Callable[[Request, CallNext], Awaitable[Response]]:
        """Return an HTTP middleware serving and populating this cache."""

        async def page_cache_middleware(request: Request, call_next: CallNext) -> Response:
            if not self.is_cacheable(request):
                return await call_next(request)

            key = self.cache_key(request)
            entry = self.get(key)
            if entry is not None:
                response = Response(content=entry.body, status_code=entry.status_code)
                response.raw_headers = [
                    (name.encode("latin-1"), value.encode("latin-1"))
                    for name, value in entry.headers
                ]
                response.headers[CACHE_STATUS_HEADER] = "hit"
                return response

            response = await call_next(request)
            body = b"".join([chunk async for chunk in response.body_iterator])
            headers = [
                (name.decode("latin-1"), value.decode("latin-1"))
                for name, value in response.raw_headers
            ]

            if response.status_code == 200:
                logger.info("Caching '%s' for %d seconds", key, self.duration_ms // 1000)
                self.put(key, body, response.status_code, headers)

            fresh = Response(content=body, status_code=response.status_code)
            fresh.raw_headers = list(response.raw_headers)
            fresh.headers[CACHE_STATUS_HEADER] = "miss"
            return fresh

        return page_cache_middleware
