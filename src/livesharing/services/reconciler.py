"""Bidirectional reconciliation between local models and the shared channel.

`LiveSharingReconciler` listens to `MediaPlayer` and `ThemeToggle` changes and
forwards them to the bound co-watching/co-doing clients. Inbound shared state
is applied back onto the same models. Two rules keep participants from
echoing each other:

- outbound sends are only produced for local changes; notifications raised
  while an inbound update is being applied are dropped, and
- inbound positions within `position_tolerance_s` of the local position are
  left alone so normal playback drift does not cause seek churn.

Nothing raised by the transport or by malformed payloads escapes this class;
such events are logged and dropped with local state left as it is.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from livesharing.events import (
    ItemChanged,
    PlaybackStateChanged,
    PlayerEvent,
    PlayoutRateChanged,
    PositionChanged,
    ThemeChanged,
)
from livesharing.logging_utils import participant_logger
from livesharing.media import MediaCatalog
from livesharing.services.media_player import MediaPlayer, PlaybackState
from livesharing.services.sharing_channel import (
    CoDoingBlob,
    CoDoingClient,
    CoWatchingClient,
    CoWatchingRecord,
    MalformedPayloadError,
    decode_theme,
    encode_theme,
)
from livesharing.services.theme_toggle import ThemeToggle
from livesharing.utils.async_utils import call_on_loop, current_thread_name

POSITION_TOLERANCE_S = 0.25


class LiveSharingReconciler:
    """Glue between the local player/theme and a shared-state transport."""

    def __init__(
        self,
        *,
        player: MediaPlayer,
        theme: ThemeToggle,
        catalog: MediaCatalog,
        loop: asyncio.AbstractEventLoop | None = None,
        co_watching: CoWatchingClient | None = None,
        co_doing: CoDoingClient | None = None,
        position_tolerance_s: float = POSITION_TOLERANCE_S,
        participant_id: str = "local",
    ) -> None:
        if position_tolerance_s < 0:
            raise ValueError("position_tolerance_s must be >= 0")
        self._player = player
        self._theme = theme
        self._catalog = catalog
        self._loop = loop or asyncio.get_running_loop()
        self._co_watching = co_watching
        self._co_doing = co_doing
        self._position_tolerance_s = position_tolerance_s
        self._applying_remote = False
        self._session_active = False
        self._attached = False
        self._log = participant_logger(__name__, participant_id)

    @property
    def session_active(self) -> bool:
        return self._session_active

    @property
    def is_applying_remote(self) -> bool:
        return self._applying_remote

    def attach(self) -> None:
        """Start listening to local player and theme changes."""
        if self._attached:
            return
        self._player.add_listener(self._handle_player_event)
        self._theme.add_listener(self._handle_theme_event)
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        self._player.remove_listener(self._handle_player_event)
        self._theme.remove_listener(self._handle_theme_event)
        self._attached = False

    def bind_session(
        self,
        *,
        co_watching: CoWatchingClient | None = None,
        co_doing: CoDoingClient | None = None,
    ) -> None:
        """Route outbound notifications to the given session clients."""
        self._co_watching = co_watching
        self._co_doing = co_doing

    def unbind_session(self) -> None:
        self._co_watching = None
        self._co_doing = None
        self._session_active = False

    # Outbound path

    def _handle_player_event(self, event: PlayerEvent) -> None:
        if self._applying_remote:
            self._log.debug("Suppressed echo of applied remote update: %s", event)
            return
        client = self._co_watching
        if client is None:
            return
        if isinstance(event, ItemChanged):
            if event.item is None:
                self._log.debug("Media selection cleared; nothing to announce.")
                return
            item = event.item
            self._send(
                "media switch",
                event,
                lambda: client.notify_switched_to_media(
                    title=item.title, media_id=item.id, position_s=event.position_s
                ),
            )
        elif isinstance(event, PlaybackStateChanged):
            notify = _state_notifier(client, event.state)
            self._send(
                "new playback state", event, lambda: notify(event.position_s)
            )
        elif isinstance(event, PositionChanged):
            self._send(
                "new playback position",
                event,
                lambda: client.notify_seek(event.position_s),
            )
        elif isinstance(event, PlayoutRateChanged):
            self._send(
                "new playout rate",
                event,
                lambda: client.notify_playout_rate(event.rate, event.position_s),
            )

    def _handle_theme_event(self, event: ThemeChanged) -> None:
        if self._applying_remote:
            self._log.debug("Suppressed echo of applied remote theme: %s", event)
            return
        client = self._co_doing
        if client is None:
            return
        blob = encode_theme(event.is_alternate)
        self._send("update to theme", event, lambda: client.broadcast(blob))

    def _send(self, what: str, event: object, send: Callable[[], None]) -> None:
        try:
            send()
        except Exception as exc:
            self._log.warning(
                "Error while broadcasting %s -> %s (event=%s)",
                what,
                exc,
                event,
                exc_info=True,
            )

    # Inbound path

    def on_co_watching_received(self, record: CoWatchingRecord) -> None:
        """Transport entrypoint; safe to call from any thread."""
        self._dispatch("co-watching update", self.apply_co_watching, record)

    def on_co_doing_received(self, blob: CoDoingBlob) -> None:
        """Transport entrypoint; safe to call from any thread."""
        self._dispatch("co-doing update", self.apply_co_doing, blob)

    def apply_co_watching(self, record: CoWatchingRecord) -> None:
        """Apply shared playback state to the local player (loop thread only)."""
        self._log.info(
            "%s -> CoWatchingRecord(media_id: %s, position_s: %s, rate: %s, "
            "playback_state: %s).",
            self._inbound_framing("co-watching"),
            record.media_id,
            record.position_s,
            record.rate,
            getattr(record.playback_state, "value", record.playback_state),
        )
        try:
            playback_state = PlaybackState(record.playback_state)
        except ValueError:
            self._log.warning(
                "Dropped co-watching update with unknown playback state %r.",
                record.playback_state,
            )
            return
        if not (math.isfinite(record.position_s) and math.isfinite(record.rate)):
            self._log.warning(
                "Dropped co-watching update with non-finite position %r or rate %r.",
                record.position_s,
                record.rate,
            )
            return
        with self._remote_application():
            player = self._player
            current = player.snapshot.selected_item
            if current is None or current.id != record.media_id:
                item = self._catalog.get(record.media_id)
                player.select_item(item)
                if item is None:
                    self._log.info(
                        "Remote media id %r is not in the catalog; cleared selection.",
                        record.media_id,
                    )
                    return
            if not self._within_tolerance(record.position_s):
                player.seek(record.position_s)
            if player.snapshot.playback_state is not playback_state:
                player.set_playback_state(playback_state)
            if player.snapshot.playout_rate != record.rate:
                player.set_playout_rate(record.rate)

    def apply_co_doing(self, blob: CoDoingBlob) -> None:
        """Apply shared theme state (loop thread only)."""
        self._log.info(
            "%s -> CoDoingBlob(payload: %s).",
            self._inbound_framing("co-doing"),
            blob.as_text(),
        )
        try:
            is_alternate = decode_theme(blob)
        except MalformedPayloadError as exc:
            self._log.warning(
                "Received malformed co-doing state %r: %s", blob.payload, exc
            )
            return
        if is_alternate == self._theme.is_alternate:
            return
        with self._remote_application():
            self._theme.set_theme(is_alternate)

    # Local state queries

    def query_local_co_watching_state(self) -> CoWatchingRecord | None:
        """Current shareable playback state, or `None` with nothing selected."""
        snapshot = self._player.snapshot
        if snapshot.selected_item is None:
            return None
        return CoWatchingRecord(
            media_id=snapshot.selected_item.id,
            position_s=snapshot.position_s,
            rate=snapshot.playout_rate,
            playback_state=snapshot.playback_state,
        )

    def query_local_co_doing_state(self) -> CoDoingBlob:
        return encode_theme(self._theme.is_alternate)

    # Session lifecycle

    def on_session_began(self) -> None:
        self._dispatch("session begin", self._set_session_active, True, "began")

    def on_session_ended(self, reason: str) -> None:
        self._dispatch(
            "session end", self._set_session_active, False, f"ended ({reason})"
        )

    def on_session_error(self, error: BaseException) -> None:
        self._dispatch(
            "session error",
            self._set_session_active,
            False,
            f"encountered runtime error: {error!r}",
        )

    def _set_session_active(self, active: bool, description: str) -> None:
        self._session_active = active
        self._log.info("Live sharing session %s.", description)

    def _inbound_framing(self, kind: str) -> str:
        if self._session_active:
            return f"Received {kind} update"
        return f"Received initial {kind} state"

    def _within_tolerance(self, position_s: float) -> bool:
        current = self._player.snapshot.position_s
        lower = current - self._position_tolerance_s
        upper = current + self._position_tolerance_s
        return lower <= position_s <= upper

    def _dispatch(self, what: str, func: Callable[..., None], *args: object) -> None:
        handle = call_on_loop(self._loop, self._run_guarded, what, func, *args)
        if handle is None:
            self._log.warning(
                "Dropped %s received on %s: event loop is closed.",
                what,
                current_thread_name(),
            )

    def _run_guarded(self, what: str, func: Callable[..., None], *args: object) -> None:
        try:
            func(*args)
        except Exception:
            self._log.exception("Failed to apply %s (args=%r).", what, args)

    @contextmanager
    def _remote_application(self) -> Iterator[None]:
        previous = self._applying_remote
        self._applying_remote = True
        try:
            yield
        finally:
            self._applying_remote = previous


def _state_notifier(
    client: CoWatchingClient, state: PlaybackState
) -> Callable[[float], None]:
    if state is PlaybackState.PLAYING:
        return client.notify_playing
    if state is PlaybackState.PAUSED:
        return client.notify_paused
    if state is PlaybackState.BUFFERING:
        return client.notify_buffering
    return client.notify_ended
