"""Declarative base for all ORM models."""

from datetime import datetime

from sqlalchemy.orm import DeclarativeBase

from lifesync.db.types import UTCDateTime


class Base(DeclarativeBase):
    """Base class for all lifesync tables.

    Any ``Mapped[datetime]`` column without an explicit type is stored as
    timezone-aware UTC.
    """

    type_annotation_map = {datetime: UTCDateTime}
