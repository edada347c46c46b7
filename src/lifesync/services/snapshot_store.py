"""Snapshot store - per-adapter JSON baseline that survives restarts.

A snapshot holds the last-synchronized view of a remote collection plus any
credentials the adapter needs. Losing it only means the next poll re-seeds
its baseline, so reads degrade to an empty snapshot and write failures are
logged rather than raised.
"""

import contextlib
import json
import logging
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class Credentials(BaseModel):
    """Bearer/refresh tokens with absolute expiry timestamps."""

    access_token: str | None = None
    refresh_token: str | None = None
    access_token_expires_at: datetime | None = None
    refresh_token_expires_at: datetime | None = None

    @classmethod
    def from_token_response(
        cls,
        access_token: str,
        expires_in: int,
        refresh_token: str | None = None,
        refresh_expires_in: int | None = None,
        now: datetime | None = None,
    ) -> "Credentials":
        """Build credentials from relative expiry seconds."""
        now = now or datetime.now(timezone.utc)
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            access_token_expires_at=now + timedelta(seconds=expires_in),
            refresh_token_expires_at=(
                now + timedelta(seconds=refresh_expires_in)
                if refresh_expires_in is not None
                else None
            ),
        )

    def access_token_valid(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        if not self.access_token or self.access_token_expires_at is None:
            return False
        return self.access_token_expires_at > now

    def refresh_token_valid(self, now: datetime | None = None) -> bool:
        """A refresh token without a known expiry is assumed to be valid."""
        now = now or datetime.now(timezone.utc)
        if not self.refresh_token:
            return False
        if self.refresh_token_expires_at is None:
            return True
        return self.refresh_token_expires_at > now


class Snapshot(BaseModel):
    """Last-known remote state owned by a single adapter."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # None until the first successful poll; an empty list is a real baseline
    items: list[dict[str, Any]] | None = None
    auth_state: Credentials | None = Field(default=None, alias="authState")
    state: dict[str, Any] = Field(default_factory=dict)

    @property
    def seeded(self) -> bool:
        return self.items is not None


def load_snapshot(path: str | Path) -> Snapshot:
    """Load a snapshot from disk, returning an empty one on any problem."""
    path = Path(path)
    if not path.exists():
        logger.debug("Snapshot %s does not exist, providing defaults", path)
        return Snapshot()

    try:
        raw = path.read_text(encoding="utf-8")
        return Snapshot.model_validate(json.loads(raw))
    except OSError as exc:
        logger.error("Could not read snapshot %s: %s", path, exc)
    except (ValueError, ValidationError) as exc:
        # json.JSONDecodeError is a ValueError
        logger.warning("Snapshot %s is corrupt, re-seeding baseline: %s", path, exc)
    return Snapshot()


def save_snapshot(path: str | Path, snapshot: Snapshot) -> bool:
    """Atomically write the snapshot as pretty-printed JSON.

    Returns False (after logging) if the write failed.
    """
    path = Path(path)
    tmp_name = None
    try:
        body = json.dumps(
            snapshot.model_dump(mode="json", by_alias=True, exclude_none=True),
            indent=2,
        )
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as fh:
            tmp_name = fh.name
            fh.write(body)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
        return True
    except (OSError, TypeError, ValueError) as exc:
        logger.error("Could not save snapshot %s: %s", path, exc)
        return False
    finally:
        if tmp_name is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)


class SnapshotStore:
    """Binds a snapshot file path for one adapter."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> Snapshot:
        logger.info("Loading snapshot from %s", self.path)
        return load_snapshot(self.path)

    def save(self, snapshot: Snapshot) -> bool:
        logger.debug("Saving snapshot to %s", self.path)
        return save_snapshot(self.path, snapshot)
