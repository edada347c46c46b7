"""Tests for lifesync.db.engine."""

from datetime import datetime

import pytest
from sqlalchemy import text

from lifesync.config import get_settings
from lifesync.db import engine as db_engine
from lifesync.db.types import UTCDateTime
from lifesync.models import Base
from lifesync.models.game import GameSession


@pytest.fixture
def memory_database(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("DATABASE_ECHO", "true")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestEngine:
    @pytest.mark.asyncio
    async def test_sqlite_enforces_foreign_keys(self, memory_database):
        try:
            engine = db_engine.get_engine()
            assert engine.sync_engine.echo is True
            async with engine.connect() as conn:
                result = await conn.execute(text("PRAGMA foreign_keys"))
                assert result.scalar() == 1
        finally:
            await db_engine.dispose_engine()

    @pytest.mark.asyncio
    async def test_session_factory_is_cached_until_dispose(self, memory_database):
        try:
            first = db_engine.get_session_factory()
            assert db_engine.get_session_factory() is first
        finally:
            await db_engine.dispose_engine()
        assert db_engine._engine is None


class TestBase:
    def test_datetime_annotations_map_to_utc_type(self):
        assert Base.registry.type_annotation_map[datetime] is UTCDateTime

    def test_session_timestamps_are_utc_aware(self):
        assert isinstance(GameSession.__table__.c.updated_at.type, UTCDateTime)
