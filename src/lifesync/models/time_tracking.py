"""TimeTracking model - category blocks with an optional end."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from lifesync.db.types import UTCDateTime
from lifesync.models.base import Base


class TimeTracking(Base):
    __tablename__ = "time_tracking"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    ended_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    device_id: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        Index("ix_time_tracking_created_at", "created_at"),
    )
