"""Schemas for page cache administration."""

from pydantic import BaseModel


class CacheEntryResponse(BaseModel):
    key: str
    status_code: int
    size_bytes: int
    age_secs: float
    fresh: bool


class CacheListResponse(BaseModel):
    enabled: bool
    duration_secs: int
    entries: list[CacheEntryResponse]


class CachePurgeResponse(BaseModel):
    purged: int
