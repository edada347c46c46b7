"""Test fixtures and configuration."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from lifesync.config import Settings
from lifesync.dependencies import get_db
from lifesync.main import create_app
from lifesync.models import Base


@pytest_asyncio.fixture
async def db_engine():
    """Create an in-memory SQLite engine for tests."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine, as handed to adapters."""
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with every adapter configured and snapshots under tmp_path."""
    return Settings(
        _env_file=None,
        snapshot_dir=str(tmp_path),
        default_device_id="test-device",
        steam_api_key="steam-key",
        steam_user_id="76561190000000000",
        psn_npsso="npsso-token",
        retroachievements_username="ra-user",
        retroachievements_api_key="ra-key",
        youtube_client_id="yt-client",
        youtube_client_secret="yt-secret",
        youtube_refresh_token="yt-refresh",
        letterboxd_username="filmfan",
        bluesky_username="me.bsky.social",
    )


@pytest_asyncio.fixture
async def app(session_factory) -> FastAPI:
    """Application with the DB dependency bound to the test engine."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = create_app()
    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client with overridden DB dependency."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
