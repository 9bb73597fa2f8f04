"""In-memory shared-state transport for demos and deterministic testing.

`LoopbackSession` plays the role of the meeting backend: it keeps the shared
co-watching record and co-doing blob, and fans every notification out to all
other joined participants through their `SharingHandler`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from livesharing.services.media_player import PlaybackState
from livesharing.services.sharing_channel import (
    ChannelUnavailableError,
    CoDoingBlob,
    CoWatchingRecord,
    SharingHandler,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SentMessage:
    """One outbound notification as recorded by the loopback session."""

    participant_id: str
    kind: str
    position_s: float | None = None
    media_id: str | None = None
    rate: float | None = None
    payload: bytes | None = None


@dataclass
class _SharedState:
    co_watching: CoWatchingRecord | None = None
    co_doing: CoDoingBlob | None = None
    participants: dict[str, SharingHandler] = field(default_factory=dict)


class LoopbackSession:
    """Shared session relaying state between in-process participants."""

    def __init__(self) -> None:
        self._state = _SharedState()
        self.fail_sends = False
        self.sent: list[SentMessage] = []

    @property
    def co_watching_state(self) -> CoWatchingRecord | None:
        return self._state.co_watching

    @property
    def co_doing_state(self) -> CoDoingBlob | None:
        return self._state.co_doing

    @property
    def participant_ids(self) -> tuple[str, ...]:
        return tuple(self._state.participants)

    def join(self, participant_id: str, handler: SharingHandler) -> LoopbackLink:
        """Add a participant, hand it the current shared state, then begin.

        When nothing has been shared yet, the joiner's local state seeds the
        session instead.
        """
        if participant_id in self._state.participants:
            raise ValueError(f"participant already joined: {participant_id}")
        self._state.participants[participant_id] = handler
        logger.info("Participant %s joined the loopback session.", participant_id)
        if self._state.co_watching is None:
            self._state.co_watching = handler.query_local_co_watching_state()
        else:
            handler.on_co_watching_received(self._state.co_watching)
        if self._state.co_doing is None:
            self._state.co_doing = handler.query_local_co_doing_state()
        else:
            handler.on_co_doing_received(self._state.co_doing)
        handler.on_session_began()
        return LoopbackLink(self, participant_id)

    def leave(self, participant_id: str, reason: str = "left") -> None:
        handler = self._state.participants.pop(participant_id, None)
        if handler is None:
            return
        logger.info("Participant %s left the loopback session.", participant_id)
        handler.on_session_ended(reason)

    def close(self) -> None:
        for participant_id in list(self._state.participants):
            self.leave(participant_id, reason="session closed")

    def update_co_watching(
        self,
        message: SentMessage,
        update: Callable[[CoWatchingRecord | None], CoWatchingRecord | None],
    ) -> None:
        """Apply `update` to the shared record and relay the result."""
        self._check_available(message)
        self.sent.append(message)
        record = update(self._state.co_watching)
        if record is None:
            logger.debug(
                "Ignored %s from %s: no media has been shared yet.",
                message.kind,
                message.participant_id,
            )
            return
        self._state.co_watching = record
        for participant_id, handler in list(self._state.participants.items()):
            if participant_id != message.participant_id:
                handler.on_co_watching_received(record)

    def update_co_doing(self, message: SentMessage, blob: CoDoingBlob) -> None:
        self._check_available(message)
        self.sent.append(message)
        self._state.co_doing = blob
        for participant_id, handler in list(self._state.participants.items()):
            if participant_id != message.participant_id:
                handler.on_co_doing_received(blob)

    def _check_available(self, message: SentMessage) -> None:
        if self.fail_sends:
            raise ChannelUnavailableError(
                f"loopback session unavailable for {message.kind}"
            )
        if message.participant_id not in self._state.participants:
            raise ChannelUnavailableError(
                f"participant {message.participant_id} is not in the session"
            )


class LoopbackLink:
    """Co-watching and co-doing client of one participant in a `LoopbackSession`."""

    def __init__(self, session: LoopbackSession, participant_id: str) -> None:
        self._session = session
        self._participant_id = participant_id

    @property
    def participant_id(self) -> str:
        return self._participant_id

    def notify_switched_to_media(
        self, *, title: str, media_id: str, position_s: float
    ) -> None:
        def update(previous: CoWatchingRecord | None) -> CoWatchingRecord:
            return CoWatchingRecord(
                media_id=media_id,
                position_s=position_s,
                rate=previous.rate if previous is not None else 1.0,
                playback_state=PlaybackState.PLAYING,
            )

        logger.debug("Participant %s switched to %s.", self._participant_id, title)
        self._session.update_co_watching(
            SentMessage(
                self._participant_id,
                "switch",
                position_s=position_s,
                media_id=media_id,
            ),
            update,
        )

    def notify_playing(self, position_s: float) -> None:
        self._notify_state(PlaybackState.PLAYING, position_s)

    def notify_paused(self, position_s: float) -> None:
        self._notify_state(PlaybackState.PAUSED, position_s)

    def notify_buffering(self, position_s: float) -> None:
        self._notify_state(PlaybackState.BUFFERING, position_s)

    def notify_ended(self, position_s: float) -> None:
        self._notify_state(PlaybackState.ENDED, position_s)

    def notify_seek(self, position_s: float) -> None:
        self._session.update_co_watching(
            SentMessage(self._participant_id, "seek", position_s=position_s),
            lambda record: replace(record, position_s=position_s) if record else None,
        )

    def notify_playout_rate(self, rate: float, position_s: float) -> None:
        self._session.update_co_watching(
            SentMessage(self._participant_id, "rate", position_s=position_s, rate=rate),
            lambda record: (
                replace(record, rate=rate, position_s=position_s) if record else None
            ),
        )

    def broadcast(self, blob: CoDoingBlob) -> None:
        self._session.update_co_doing(
            SentMessage(self._participant_id, "co-doing", payload=blob.payload), blob
        )

    def _notify_state(self, state: PlaybackState, position_s: float) -> None:
        self._session.update_co_watching(
            SentMessage(self._participant_id, state.value, position_s=position_s),
            lambda record: (
                replace(record, playback_state=state, position_s=position_s)
                if record
                else None
            ),
        )
