"""Test configuration."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from livesharing.services.sharing_channel import (  # noqa: E402
    ChannelUnavailableError,
    CoDoingBlob,
)


class RecordingClient:
    """Co-watching/co-doing client double recording every outbound call."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[object, ...]] = []

    def _record(self, *call: object) -> None:
        self.calls.append(call)
        if self.fail:
            raise ChannelUnavailableError(f"channel unavailable for {call[0]}")

    def notify_switched_to_media(
        self, *, title: str, media_id: str, position_s: float
    ) -> None:
        self._record("switch", media_id, position_s)

    def notify_playing(self, position_s: float) -> None:
        self._record("playing", position_s)

    def notify_paused(self, position_s: float) -> None:
        self._record("paused", position_s)

    def notify_buffering(self, position_s: float) -> None:
        self._record("buffering", position_s)

    def notify_ended(self, position_s: float) -> None:
        self._record("ended", position_s)

    def notify_seek(self, position_s: float) -> None:
        self._record("seek", position_s)

    def notify_playout_rate(self, rate: float, position_s: float) -> None:
        self._record("rate", rate, position_s)

    def broadcast(self, blob: CoDoingBlob) -> None:
        self._record("co-doing", blob.payload)


@pytest.fixture
def recording_client() -> RecordingClient:
    return RecordingClient()


@pytest.fixture
def failing_client() -> RecordingClient:
    return RecordingClient(fail=True)


@pytest.fixture(autouse=True)
def ensure_current_event_loop():
    """Provide a current event loop for sync tests that pass one explicitly."""
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        yield loop
    finally:
        loop.close()
        asyncio.set_event_loop(None)


@pytest.fixture
def loop(ensure_current_event_loop) -> asyncio.AbstractEventLoop:
    """Current (not running) loop for reconcilers built outside a coroutine."""
    return ensure_current_event_loop
