"""Delta detection - find the genuinely new items in a freshly polled list."""

import logging
from collections.abc import Callable, Hashable, Iterable, Sequence
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

Item = TypeVar("Item")
Key = TypeVar("Key", bound=Hashable)
Model = TypeVar("Model", bound=BaseModel)


def _absent_before(previous: Any, current: Any) -> bool:
    return previous is None


class DeltaDetector(Generic[Item, Key]):
    """Compare a previous snapshot with a fresh remote list.

    ``identity`` extracts the stable per-item key. ``is_newly_true`` receives
    the previous item with the same key (or None) and the current item and
    decides whether the current item counts as new; by default an item is new
    when its key was not seen before. ``order_key`` sorts the result oldest
    first; without it the remote list is assumed to be newest first and is
    reversed.
    """

    def __init__(
        self,
        identity: Callable[[Item], Key],
        is_newly_true: Callable[[Item | None, Item], bool] | None = None,
        order_key: Callable[[Item], Any] | None = None,
    ) -> None:
        self.identity = identity
        self.is_newly_true = is_newly_true or _absent_before
        self.order_key = order_key

    def index(self, items: Iterable[Item]) -> dict[Key, Item]:
        """Map items by identity, skipping items whose key cannot be read."""
        lookup: dict[Key, Item] = {}
        for item in items:
            try:
                lookup[self.identity(item)] = item
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed item %r: %s", item, exc)
        return lookup

    def detect_new(
        self,
        previous: Sequence[Item] | None,
        current: Sequence[Item],
        *,
        first_poll: bool | None = None,
    ) -> list[Item]:
        """Return the items of ``current`` that are new relative to ``previous``.

        On the first poll (by default: when ``previous`` is None, i.e. no
        baseline was ever stored) nothing is reported, so years of remote
        history are not backfilled; the caller still stores ``current`` as the
        new baseline. An empty ``previous`` is a real baseline and every
        current item counts as new against it.
        """
        if first_poll is None:
            first_poll = previous is None
        if first_poll:
            logger.debug("First poll, seeding baseline with %d items", len(current))
            return []

        lookup = self.index(previous or [])
        new_items: list[Item] = []
        for item in current:
            try:
                prev = lookup.get(self.identity(item))
                if self.is_newly_true(prev, item):
                    new_items.append(item)
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed item %r: %s", item, exc)

        if self.order_key is None:
            new_items.reverse()
            return new_items

        try:
            return sorted(new_items, key=self.order_key)
        except TypeError as exc:
            logger.warning("Could not order new items, keeping remote order: %s", exc)
            new_items.reverse()
            return new_items


def parse_items(
    model: type[Model], raw_items: Iterable[Any], source: str = "remote"
) -> list[Model]:
    """Validate raw dicts into typed records, dropping malformed ones."""
    parsed: list[Model] = []
    for raw in raw_items:
        try:
            parsed.append(model.model_validate(raw))
        except ValidationError as exc:
            logger.warning(
                "Skipping malformed %s item from %s: %s",
                model.__name__,
                source,
                exc.errors(include_url=False),
            )
    return parsed
