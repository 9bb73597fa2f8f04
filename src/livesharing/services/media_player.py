"""Clock-driven media playback simulation.

`MediaPlayer` owns the authoritative local playback snapshot. While playing it
advances the position on a fixed tick scheduled on the running event loop.
It knows nothing about sharing: every externally meaningful change is emitted
to registered listeners, and duplicate assignments never emit.

All mutating methods must be called on the event loop thread. The snapshot is
replaced atomically on each mutation, so `snapshot` may be read from anywhere.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import math
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass, replace

from livesharing.events import (
    ItemChanged,
    PlaybackStateChanged,
    PlayerEvent,
    PlayoutRateChanged,
    PositionChanged,
)
from livesharing.media import MediaItem

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL_S = 0.1
DEFAULT_MAX_PROGRESS_S = 0.1

PlayerListener = Callable[[PlayerEvent], None]


class PlaybackState(str, enum.Enum):
    """Possible states of the simulated playback."""

    PLAYING = "playing"
    PAUSED = "paused"
    BUFFERING = "buffering"
    ENDED = "ended"


@dataclass(frozen=True)
class PlayerSnapshot:
    """Live playback state of the local player."""

    selected_item: MediaItem | None = None
    position_s: float = 0.0
    max_progress_s: float = DEFAULT_MAX_PROGRESS_S
    playback_state: PlaybackState = PlaybackState.PAUSED
    playout_rate: float = 1.0
    is_seeking: bool = False


class MediaPlayer:
    """Local playback engine emitting change notifications to listeners."""

    def __init__(
        self,
        *,
        tick_interval_s: float = DEFAULT_TICK_INTERVAL_S,
        default_max_progress_s: float = DEFAULT_MAX_PROGRESS_S,
    ) -> None:
        if tick_interval_s <= 0:
            raise ValueError("tick_interval_s must be > 0")
        if default_max_progress_s <= 0:
            raise ValueError("default_max_progress_s must be > 0")
        self._tick_interval_s = tick_interval_s
        self._default_max_progress_s = default_max_progress_s
        self._state = PlayerSnapshot(max_progress_s=default_max_progress_s)
        self._listeners: list[PlayerListener] = []
        self._tick_task: asyncio.Task[None] | None = None
        self._seeking_state: PlaybackState | None = None

    @property
    def snapshot(self) -> PlayerSnapshot:
        return self._state

    @property
    def tick_interval_s(self) -> float:
        return self._tick_interval_s

    @property
    def is_ticking(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    def add_listener(self, listener: PlayerListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: PlayerListener) -> None:
        with suppress(ValueError):
            self._listeners.remove(listener)

    def select_item(self, item: MediaItem | None) -> None:
        """Switch to `item`, restarting it from the beginning.

        Selecting the current item again is a no-op. Selecting `None` clears
        the selection and pauses.
        """
        if item == self._state.selected_item:
            return
        if item is None:
            self._state = replace(
                self._state,
                selected_item=None,
                position_s=0.0,
                max_progress_s=self._default_max_progress_s,
            )
            self._apply_state(PlaybackState.PAUSED)
        else:
            self._state = replace(
                self._state,
                selected_item=item,
                position_s=0.0,
                max_progress_s=item.duration_s,
            )
            self._apply_state(PlaybackState.PLAYING)
        logger.debug("Selected media %s", item.id if item else "<none>")
        self._emit(ItemChanged(item, 0.0))

    def seek(self, position_s: float) -> None:
        """Move to `position_s`.

        Ignored without a selected item, for positions outside
        `0..max_progress_s` (or not finite), and while the seek gesture is
        active.
        """
        state = self._state
        if (
            state.selected_item is None
            or state.is_seeking
            or not math.isfinite(position_s)
            or position_s > state.max_progress_s
            or position_s < 0
        ):
            return
        if position_s == state.position_s:
            return
        self._state = replace(state, position_s=position_s)
        self._emit(PositionChanged(position_s))
        self._leave_ended(position_s)

    def play(self) -> None:
        state = self._state
        if (
            state.playback_state is PlaybackState.PLAYING
            or state.selected_item is None
        ):
            return
        if state.playback_state is PlaybackState.ENDED:
            self._state = replace(state, position_s=0.0)
        self.set_playback_state(PlaybackState.PLAYING)

    def pause(self) -> None:
        if self._state.playback_state is not PlaybackState.PLAYING:
            return
        self.set_playback_state(PlaybackState.PAUSED)

    def simulate_buffering(self) -> None:
        """Stall playback as if the media were buffering."""
        if self._state.playback_state is not PlaybackState.PLAYING:
            return
        self.set_playback_state(PlaybackState.BUFFERING)

    def restart(self) -> None:
        """Jump back to the beginning.

        The playback state is kept, except that ENDED becomes PAUSED once the
        position has left the end.
        """
        if self._state.selected_item is None:
            return
        if self._state.position_s == 0.0:
            return
        self._state = replace(self._state, position_s=0.0)
        self._emit(PositionChanged(0.0))
        self._leave_ended(0.0)

    def set_playback_state(self, playback_state: PlaybackState) -> None:
        """Assign the playback state directly and notify listeners.

        Unlike `play()`/`pause()` this reaches every state, including
        BUFFERING and ENDED. Assigning the current state does nothing.
        """
        if not self._apply_state(playback_state):
            return
        self._emit(PlaybackStateChanged(playback_state, self._state.position_s))

    def set_playout_rate(self, rate: float) -> None:
        if not math.isfinite(rate) or rate <= 0 or rate == self._state.playout_rate:
            return
        self._state = replace(self._state, playout_rate=rate)
        self._emit(PlayoutRateChanged(rate, self._state.position_s))

    def set_seeking(
        self, seeking: bool, *, final_position: float | None = None
    ) -> None:
        """Enter or leave the local seek gesture.

        Entering remembers the playback state and pauses. Leaving restores it;
        when `final_position` is given the seek to it is applied in the same
        call, after seek mode has been cleared.
        """
        if seeking == self._state.is_seeking:
            if not seeking and final_position is not None:
                self.seek(final_position)
            return
        if seeking:
            self._seeking_state = self._state.playback_state
            self._state = replace(self._state, is_seeking=True)
            self._apply_state(PlaybackState.PAUSED)
            return
        self._state = replace(self._state, is_seeking=False)
        previous = self._seeking_state
        self._seeking_state = None
        if previous is not None:
            self._apply_state(previous)
        if final_position is not None:
            self.seek(final_position)

    def tick(self) -> None:
        """Advance the simulated clock by one tick."""
        state = self._state
        if (
            state.playback_state is not PlaybackState.PLAYING
            or state.is_seeking
            or state.selected_item is None
        ):
            return
        if state.position_s >= state.max_progress_s:
            self._state = replace(state, position_s=state.max_progress_s)
            self.set_playback_state(PlaybackState.ENDED)
            return
        advanced = state.position_s + self._tick_interval_s * state.playout_rate
        self._state = replace(state, position_s=min(advanced, state.max_progress_s))

    async def shutdown(self) -> None:
        """Cancel the tick task if it is running."""
        task = self._tick_task
        self._tick_task = None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    def _leave_ended(self, position_s: float) -> None:
        if (
            position_s != self._state.max_progress_s
            and self._state.playback_state is PlaybackState.ENDED
        ):
            self._apply_state(PlaybackState.PAUSED)
            self._emit(PlaybackStateChanged(PlaybackState.PAUSED, position_s))

    def _apply_state(self, playback_state: PlaybackState) -> bool:
        """Assign playback state and start/stop ticking without notifying."""
        if playback_state is self._state.playback_state:
            return False
        if playback_state is PlaybackState.ENDED:
            self._state = replace(
                self._state,
                playback_state=playback_state,
                position_s=self._state.max_progress_s,
            )
        else:
            self._state = replace(self._state, playback_state=playback_state)
        if playback_state is PlaybackState.PLAYING:
            self._start_ticking()
        else:
            self._stop_ticking()
        return True

    def _start_ticking(self) -> None:
        if self.is_ticking:
            return
        loop = asyncio.get_running_loop()
        self._tick_task = loop.create_task(self._tick_loop())

    def _stop_ticking(self) -> None:
        task = self._tick_task
        self._tick_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _tick_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._tick_interval_s)
                if self._tick_task is not asyncio.current_task():
                    return
                self.tick()
        except asyncio.CancelledError:
            return

    def _emit(self, event: PlayerEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

