"""Shared-state channel contracts and wire payloads.

The transport that replicates state between participants is an external
collaborator. `LiveSharingReconciler` talks to it only through the client
protocols below, and the transport calls back through `SharingHandler`.
Concrete transports (the in-memory loopback, a real meeting SDK adapter)
translate their own session objects into these calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from livesharing.services.media_player import PlaybackState

_THEME_TRUE = "true"
_THEME_FALSE = "false"


class SharingError(Exception):
    """Base error for shared-state channel failures."""


class ChannelUnavailableError(SharingError):
    """Outbound send failed because the transport could not deliver it."""


class MalformedPayloadError(SharingError):
    """Inbound payload could not be decoded."""


@dataclass(frozen=True)
class CoWatchingRecord:
    """Shared playback state as replicated between participants."""

    media_id: str
    position_s: float
    rate: float
    playback_state: PlaybackState


@dataclass(frozen=True)
class CoDoingBlob:
    """Opaque shared co-doing payload."""

    payload: bytes

    def as_text(self) -> str:
        """Best-effort text rendering for diagnostics."""
        return self.payload.decode("utf-8", errors="replace")


def encode_theme(is_alternate: bool) -> CoDoingBlob:
    """Encode the theme flag as its textual boolean representation."""
    return CoDoingBlob((_THEME_TRUE if is_alternate else _THEME_FALSE).encode("utf-8"))


def decode_theme(blob: CoDoingBlob) -> bool:
    """Decode a theme flag; only the exact texts `true` and `false` are accepted."""
    try:
        text = blob.payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedPayloadError(f"co-doing payload is not UTF-8: {exc}") from exc
    if text == _THEME_TRUE:
        return True
    if text == _THEME_FALSE:
        return False
    raise MalformedPayloadError(f"co-doing payload is not a boolean: {text!r}")


class CoWatchingClient(Protocol):
    """Outbound co-watching notifications; each may raise `SharingError`."""

    def notify_switched_to_media(
        self, *, title: str, media_id: str, position_s: float
    ) -> None: ...

    def notify_playing(self, position_s: float) -> None: ...

    def notify_paused(self, position_s: float) -> None: ...

    def notify_buffering(self, position_s: float) -> None: ...

    def notify_ended(self, position_s: float) -> None: ...

    def notify_seek(self, position_s: float) -> None: ...

    def notify_playout_rate(self, rate: float, position_s: float) -> None: ...


class CoDoingClient(Protocol):
    """Outbound co-doing updates; `broadcast` may raise `SharingError`."""

    def broadcast(self, blob: CoDoingBlob) -> None: ...


@runtime_checkable
class SharingHandler(Protocol):
    """Callbacks a transport invokes; inbound calls may arrive on any thread."""

    def on_co_watching_received(self, record: CoWatchingRecord) -> None: ...

    def on_co_doing_received(self, blob: CoDoingBlob) -> None: ...

    def query_local_co_watching_state(self) -> CoWatchingRecord | None: ...

    def query_local_co_doing_state(self) -> CoDoingBlob: ...

    def on_session_began(self) -> None: ...

    def on_session_ended(self, reason: str) -> None: ...

    def on_session_error(self, error: BaseException) -> None: ...
