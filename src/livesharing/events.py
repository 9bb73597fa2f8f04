"""Change notifications emitted by the local player and theme models.

Listeners receive these synchronously, in emission order, on the event loop
thread that performed the mutation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from livesharing.media import MediaItem
    from livesharing.services.media_player import PlaybackState


@dataclass(frozen=True)
class ItemChanged:
    """A different media item (or no item) was selected."""

    item: MediaItem | None
    position_s: float


@dataclass(frozen=True)
class PositionChanged:
    """Playback position was moved explicitly (seek or restart, never a tick)."""

    position_s: float


@dataclass(frozen=True)
class PlaybackStateChanged:
    """Playback state transition together with the position it happened at."""

    state: PlaybackState
    position_s: float


@dataclass(frozen=True)
class PlayoutRateChanged:
    """Playout rate change together with the position it happened at."""

    rate: float
    position_s: float


@dataclass(frozen=True)
class ThemeChanged:
    """The shared theme toggle flipped."""

    is_alternate: bool


PlayerEvent = Union[
    ItemChanged, PositionChanged, PlaybackStateChanged, PlayoutRateChanged
]
