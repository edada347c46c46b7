"""FastAPI dependency injection functions."""

import hmac
from collections.abc import AsyncGenerator

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.config import Settings, get_settings
from lifesync.db.engine import get_session
from lifesync.services.page_cache import PageCache
from lifesync.services.scheduler import PollScheduler


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    async for session in get_session():
        yield session


def get_app_settings() -> Settings:
    """Return application settings."""
    return get_settings()


def get_page_cache(request: Request) -> PageCache:
    return request.app.state.page_cache


def get_scheduler(request: Request) -> PollScheduler:
    return request.app.state.scheduler


async def verify_admin_key(
    authorization: str = Header(..., description="Bearer <api_secret_key>"),
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Verify Bearer token auth for admin endpoints.

    The token is the configured API_SECRET_KEY.
    """
    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header must use Bearer scheme",
        )

    raw_key = authorization[7:].strip()
    if not raw_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key is required",
        )

    # Timing-safe comparison to prevent timing side-channel attacks
    if not hmac.compare_digest(raw_key.encode(), settings.api_secret_key.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )
