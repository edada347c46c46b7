"""Page cache administration (admin only)."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from lifesync.dependencies import get_page_cache, verify_admin_key
from lifesync.exceptions import CacheEntryNotFound
from lifesync.schemas.cache import (
    CacheEntryResponse,
    CacheListResponse,
    CachePurgeResponse,
)
from lifesync.services.page_cache import PageCache

router = APIRouter(
    prefix="/v1/cache", tags=["cache"], dependencies=[Depends(verify_admin_key)]
)


@router.get("", response_model=CacheListResponse)
async def list_cache(cache: PageCache = Depends(get_page_cache)) -> CacheListResponse:
    """List cached pages with their age."""
    now_ms = cache.now_ms()
    return CacheListResponse(
        enabled=cache.enabled,
        duration_secs=cache.duration_ms // 1000,
        entries=[
            CacheEntryResponse(
                key=entry.key,
                status_code=entry.status_code,
                size_bytes=len(entry.body),
                age_secs=entry.age_ms(now_ms) / 1000,
                fresh=cache.is_fresh(entry, now_ms),
            )
            for entry in cache.entries()
        ],
    )


@router.delete("", response_model=CachePurgeResponse)
async def delete_cache_entry(
    key: str = Query(..., min_length=1, description="Cache key, e.g. /v1/activity/games"),
    cache: PageCache = Depends(get_page_cache),
) -> CachePurgeResponse:
    """Invalidate a single cached page."""
    try:
        cache.invalidate(key)
    except CacheEntryNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No cache entry for '{key}'",
        )
    return CachePurgeResponse(purged=1)


@router.delete("/all", response_model=CachePurgeResponse)
async def purge_cache(cache: PageCache = Depends(get_page_cache)) -> CachePurgeResponse:
    """Invalidate every cached page."""
    return CachePurgeResponse(purged=cache.purge_all())
