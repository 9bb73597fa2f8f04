"""Media items known to the demo player and the registry used to resolve them.

Remote participants only ever exchange media ids, so every item that can be
shared must be registered in a catalog that all participants agree on.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field


@dataclass(frozen=True)
class MediaItem:
    """Immutable description of one playable media item."""

    id: str
    duration_s: float
    title: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("media id must be non-empty")
        if not math.isfinite(self.duration_s) or self.duration_s < 0:
            raise ValueError("duration_s must be a finite value >= 0")
        if not self.title:
            object.__setattr__(self, "title", self.id)


class MediaCatalog:
    """Fixed lookup table of media items keyed by id."""

    def __init__(self, items: Iterable[MediaItem]) -> None:
        self._items: dict[str, MediaItem] = {}
        for item in items:
            if item.id in self._items:
                raise ValueError(f"duplicate media id: {item.id}")
            self._items[item.id] = item

    def get(self, media_id: str | None) -> MediaItem | None:
        """Return the item for `media_id`, or `None` when it is not registered."""
        if media_id is None:
            return None
        return self._items.get(media_id)

    def ids(self) -> tuple[str, ...]:
        return tuple(self._items)

    def __iter__(self) -> Iterator[MediaItem]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, media_id: object) -> bool:
        return media_id in self._items


MEDIA_1 = MediaItem(id="media_1", duration_s=100.0, title="Media 1")
MEDIA_2 = MediaItem(id="media_2", duration_s=10.0, title="Media 2")
DEFAULT_CATALOG = MediaCatalog([MEDIA_1, MEDIA_2])
