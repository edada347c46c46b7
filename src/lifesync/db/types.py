"""Custom SQLAlchemy column types."""

import json
from datetime import timezone

from sqlalchemy import DateTime, Text, TypeDecorator


class JSONType(TypeDecorator):
    """Platform-agnostic JSON column type.

    Uses native JSON on PostgreSQL, stores as TEXT with json
    serialization on SQLite.
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return json.dumps(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return json.loads(value)
        return None


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime column.

    SQLite drops tzinfo on storage, so values are normalised to UTC on the
    way in and re-tagged as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
