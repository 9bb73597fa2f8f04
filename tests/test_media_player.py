"""Tests for the clock-driven MediaPlayer engine."""

from __future__ import annotations

import asyncio
import random

import pytest

from livesharing.events import (
    ItemChanged,
    PlaybackStateChanged,
    PlayoutRateChanged,
    PositionChanged,
)
from livesharing.media import MEDIA_1, MediaItem
from livesharing.services.media_player import MediaPlayer, PlaybackState

TEST_MEDIA_1 = MediaItem(id="Test Media 1", duration_s=15.0)
TEST_MEDIA_2 = MediaItem(id="Test Media 2", duration_s=100.0)


def _run(coro):
    """Run async engine scenario from sync test functions."""
    return asyncio.run(coro)


def _recorded(player: MediaPlayer) -> list[object]:
    events: list[object] = []
    player.add_listener(events.append)
    return events


def _assert_position_bounds(player: MediaPlayer) -> None:
    snapshot = player.snapshot
    assert 0.0 <= snapshot.position_s <= snapshot.max_progress_s
    if snapshot.playback_state is PlaybackState.ENDED:
        assert snapshot.position_s == snapshot.max_progress_s


def test_initial_snapshot_is_paused_without_item() -> None:
    player = MediaPlayer()
    snapshot = player.snapshot
    assert snapshot.selected_item is None
    assert snapshot.position_s == 0.0
    assert snapshot.max_progress_s == 0.1
    assert snapshot.playback_state is PlaybackState.PAUSED
    assert snapshot.playout_rate == 1.0
    assert snapshot.is_seeking is False
    assert player.is_ticking is False


def test_constructor_rejects_non_positive_intervals() -> None:
    with pytest.raises(ValueError):
        MediaPlayer(tick_interval_s=0)
    with pytest.raises(ValueError):
        MediaPlayer(default_max_progress_s=-1.0)


def test_select_item_switches_media_and_starts_playing() -> None:
    async def run() -> None:
        player = MediaPlayer()
        events = _recorded(player)
        player.select_item(TEST_MEDIA_1)
        snapshot = player.snapshot
        assert snapshot.selected_item == TEST_MEDIA_1
        assert snapshot.position_s == 0.0
        assert snapshot.max_progress_s == 15.0
        assert snapshot.playback_state is PlaybackState.PLAYING
        assert player.is_ticking

        player.seek(8.0)
        player.select_item(TEST_MEDIA_2)
        assert player.snapshot.max_progress_s == 100.0
        assert player.snapshot.position_s == 0.0
        assert events == [
            ItemChanged(TEST_MEDIA_1, 0.0),
            PositionChanged(8.0),
            ItemChanged(TEST_MEDIA_2, 0.0),
        ]
        await player.shutdown()

    _run(run())


def test_select_same_item_twice_emits_once() -> None:
    async def run() -> None:
        player = MediaPlayer()
        events = _recorded(player)
        player.select_item(TEST_MEDIA_1)
        player.select_item(TEST_MEDIA_1)
        assert events == [ItemChanged(TEST_MEDIA_1, 0.0)]
        await player.shutdown()

    _run(run())


def test_select_none_clears_selection_and_pauses() -> None:
    async def run() -> None:
        player = MediaPlayer()
        player.select_item(TEST_MEDIA_1)
        player.seek(5.0)
        events = _recorded(player)
        player.select_item(None)
        snapshot = player.snapshot
        assert snapshot.selected_item is None
        assert snapshot.position_s == 0.0
        assert snapshot.max_progress_s == 0.1
        assert snapshot.playback_state is PlaybackState.PAUSED
        assert player.is_ticking is False
        assert events == [ItemChanged(None, 0.0)]

    _run(run())


def test_seek_without_item_is_ignored() -> None:
    player = MediaPlayer()
    events = _recorded(player)
    player.seek(3.0)
    assert player.snapshot.position_s == 0.0
    assert events == []


def test_seek_beyond_max_is_ignored() -> None:
    async def run() -> None:
        player = MediaPlayer()
        player.select_item(TEST_MEDIA_1)
        events = _recorded(player)
        player.seek(16.0)
        player.seek(-1.0)
        assert player.snapshot.position_s == 0.0
        assert events == []
        await player.shutdown()

    _run(run())


def test_seek_to_same_position_emits_once() -> None:
    async def run() -> None:
        player = MediaPlayer()
        player.select_item(TEST_MEDIA_1)
        events = _recorded(player)
        player.seek(4.0)
        player.seek(4.0)
        assert events == [PositionChanged(4.0)]
        await player.shutdown()

    _run(run())


def test_seek_while_seeking_is_ignored() -> None:
    async def run() -> None:
        player = MediaPlayer()
        player.select_item(TEST_MEDIA_1)
        player.seek(8.0)
        player.set_seeking(True)
        player.seek(10.0)
        assert player.snapshot.position_s == 8.0
        await player.shutdown()

    _run(run())


def test_seek_when_ended_moves_to_paused() -> None:
    async def run() -> None:
        player = MediaPlayer()
        player.select_item(TEST_MEDIA_1)
        player.set_playback_state(PlaybackState.ENDED)
        assert player.snapshot.position_s == 15.0
        events = _recorded(player)
        player.seek(10.0)
        assert player.snapshot.position_s == 10.0
        assert player.snapshot.playback_state is PlaybackState.PAUSED
        assert events == [
            PositionChanged(10.0),
            PlaybackStateChanged(PlaybackState.PAUSED, 10.0),
        ]

    _run(run())


def test_play_without_item_does_nothing() -> None:
    player = MediaPlayer()
    events = _recorded(player)
    player.play()
    assert player.snapshot.playback_state is PlaybackState.PAUSED
    assert events == []


def test_play_resumes_paused_media() -> None:
    async def run() -> None:
        player = MediaPlayer()
        player.select_item(TEST_MEDIA_1)
        player.pause()
        events = _recorded(player)
        player.play()
        player.play()
        assert player.snapshot.playback_state is PlaybackState.PLAYING
        assert events == [PlaybackStateChanged(PlaybackState.PLAYING, 0.0)]
        await player.shutdown()

    _run(run())


def test_play_when_ended_restarts_from_beginning() -> None:
    async def run() -> None:
        player = MediaPlayer()
        player.select_item(TEST_MEDIA_1)
        player.seek(10.0)
        player.set_playback_state(PlaybackState.ENDED)
        player.play()
        assert player.snapshot.position_s == 0.0
        assert player.snapshot.playback_state is PlaybackState.PLAYING
        await player.shutdown()

    _run(run())


def test_pause_stops_playing_media() -> None:
    async def run() -> None:
        player = MediaPlayer()
        player.select_item(TEST_MEDIA_1)
        events = _recorded(player)
        player.pause()
        assert player.snapshot.playback_state is PlaybackState.PAUSED
        assert player.is_ticking is False
        assert events == [PlaybackStateChanged(PlaybackState.PAUSED, 0.0)]

    _run(run())


def test_pause_when_ended_keeps_ended() -> None:
    async def run() -> None:
        player = MediaPlayer()
        player.select_item(TEST_MEDIA_1)
        player.set_playback_state(PlaybackState.ENDED)
        events = _recorded(player)
        player.pause()
        assert player.snapshot.playback_state is PlaybackState.ENDED
        assert events == []

    _run(run())


def test_simulate_buffering_only_from_playing() -> None:
    async def run() -> None:
        player = MediaPlayer()
        player.simulate_buffering()
        assert player.snapshot.playback_state is PlaybackState.PAUSED
        player.select_item(TEST_MEDIA_1)
        player.simulate_buffering()
        assert player.snapshot.playback_state is PlaybackState.BUFFERING
        assert player.is_ticking is False

    _run(run())


def test_restart_returns_to_beginning() -> None:
    async def run() -> None:
        player = MediaPlayer()
        player.select_item(TEST_MEDIA_1)
        player.seek(10.0)
        events = _recorded(player)
        player.restart()
        player.restart()
        assert player.snapshot.position_s == 0.0
        assert player.snapshot.playback_state is PlaybackState.PLAYING
        assert events == [PositionChanged(0.0)]
        await player.shutdown()

    _run(run())


def test_restart_without_item_does_nothing() -> None:
    player = MediaPlayer()
    events = _recorded(player)
    player.restart()
    assert events == []


def test_restart_when_ended_leaves_ended_state() -> None:
    async def run() -> None:
        player = MediaPlayer()
        player.select_item(TEST_MEDIA_1)
        player.set_playback_state(PlaybackState.ENDED)
        player.restart()
        assert player.snapshot.position_s == 0.0
        assert player.snapshot.playback_state is PlaybackState.PAUSED

    _run(run())


def test_set_playback_state_is_idempotent() -> None:
    async def run() -> None:
        player = MediaPlayer()
        player.select_item(TEST_MEDIA_1)
        events = _recorded(player)
        player.set_playback_state(PlaybackState.BUFFERING)
        player.set_playback_state(PlaybackState.BUFFERING)
        assert events == [PlaybackStateChanged(PlaybackState.BUFFERING, 0.0)]

    _run(run())


def test_set_playout_rate_emits_and_ignores_invalid_values() -> None:
    player = MediaPlayer()
    events = _recorded(player)
    player.set_playout_rate(1.5)
    player.set_playout_rate(1.5)
    player.set_playout_rate(0.0)
    player.set_playout_rate(-2.0)
    assert player.snapshot.playout_rate == 1.5
    assert events == [PlayoutRateChanged(1.5, 0.0)]


def test_ticks_advance_position_by_interval() -> None:
    async def run() -> None:
        player = MediaPlayer(tick_interval_s=0.1)
        player.select_item(TEST_MEDIA_1)
        events = _recorded(player)
        for _ in range(20):
            player.tick()
        assert player.snapshot.position_s == pytest.approx(2.0, abs=0.15)
        assert events == []
        await player.shutdown()

    _run(run())


def test_ticks_scale_with_playout_rate() -> None:
    async def run() -> None:
        player = MediaPlayer(tick_interval_s=0.1)
        player.select_item(TEST_MEDIA_1)
        player.set_playout_rate(2.0)
        for _ in range(10):
            player.tick()
        assert player.snapshot.position_s == pytest.approx(2.0, abs=0.15)
        await player.shutdown()

    _run(run())


def test_tick_task_advances_position_in_real_time() -> None:
    async def run() -> None:
        player = MediaPlayer(tick_interval_s=0.02)
        player.select_item(TEST_MEDIA_2)
        await asyncio.sleep(0.5)
        position = player.snapshot.position_s
        assert 0.2 < position <= 0.55
        player.pause()
        await asyncio.sleep(0.1)
        assert player.snapshot.position_s == position
        await player.shutdown()

    _run(run())


def test_seeking_suspends_ticks_and_restores_state() -> None:
    async def run() -> None:
        player = MediaPlayer(tick_interval_s=0.02)
        player.select_item(TEST_MEDIA_1)
        events = _recorded(player)
        player.set_seeking(True)
        assert player.snapshot.is_seeking is True
        assert player.snapshot.playback_state is PlaybackState.PAUSED
        await asyncio.sleep(0.1)
        for _ in range(20):
            player.tick()
        assert player.snapshot.position_s == 0.0

        player.set_seeking(False)
        assert player.snapshot.is_seeking is False
        assert player.snapshot.playback_state is PlaybackState.PLAYING
        assert player.is_ticking
        assert events == []
        await player.shutdown()

    _run(run())


def test_leaving_seek_with_final_position_applies_it() -> None:
    async def run() -> None:
        player = MediaPlayer()
        player.select_item(TEST_MEDIA_1)
        player.set_seeking(True)
        events = _recorded(player)
        player.set_seeking(False, final_position=12.0)
        assert player.snapshot.position_s == 12.0
        assert player.snapshot.playback_state is PlaybackState.PLAYING
        assert events == [PositionChanged(12.0)]
        await player.shutdown()

    _run(run())


def test_leaving_seek_then_seeking_separately_applies_position() -> None:
    async def run() -> None:
        player = MediaPlayer()
        player.select_item(TEST_MEDIA_1)
        player.set_seeking(True)
        player.seek(12.0)
        assert player.snapshot.position_s == 0.0
        player.set_seeking(False)
        player.seek(12.0)
        assert player.snapshot.position_s == 12.0
        await player.shutdown()

    _run(run())


def test_playback_reaches_end_and_stops_exactly_at_max() -> None:
    async def run() -> None:
        player = MediaPlayer(tick_interval_s=0.1)
        player.select_item(TEST_MEDIA_1)
        player.seek(14.0)
        events = _recorded(player)
        for _ in range(12):
            player.tick()
        snapshot = player.snapshot
        assert snapshot.playback_state is PlaybackState.ENDED
        assert snapshot.position_s == 15.0
        assert events == [PlaybackStateChanged(PlaybackState.ENDED, 15.0)]
        assert player.is_ticking is False

        player.tick()
        assert player.snapshot.position_s == 15.0

    _run(run())


def test_tick_task_stops_itself_at_end() -> None:
    async def run() -> None:
        player = MediaPlayer(tick_interval_s=0.01)
        player.select_item(MediaItem(id="short", duration_s=0.05))
        await asyncio.sleep(0.3)
        assert player.snapshot.playback_state is PlaybackState.ENDED
        assert player.snapshot.position_s == 0.05
        assert player.is_ticking is False

    _run(run())


def test_removed_listener_receives_nothing() -> None:
    player = MediaPlayer()
    events: list[object] = []
    player.add_listener(events.append)
    player.add_listener(events.append)
    player.set_playout_rate(2.0)
    player.remove_listener(events.append)
    player.remove_listener(events.append)
    player.set_playout_rate(1.0)
    assert events == [PlayoutRateChanged(2.0, 0.0)]


def test_random_operation_sequences_keep_position_bounded() -> None:
    async def run() -> None:
        rng = random.Random(1234)
        player = MediaPlayer(tick_interval_s=0.5)
        items = [None, TEST_MEDIA_1, MEDIA_1, MediaItem(id="empty", duration_s=0.0)]
        operations = [
            lambda: player.select_item(rng.choice(items)),
            lambda: player.seek(rng.uniform(-5.0, 120.0)),
            player.play,
            player.pause,
            player.restart,
            player.simulate_buffering,
            player.tick,
            player.tick,
            player.tick,
            lambda: player.set_seeking(rng.random() < 0.5),
            lambda: player.set_seeking(False, final_position=rng.uniform(0.0, 20.0)),
            lambda: player.set_playback_state(rng.choice(list(PlaybackState))),
            lambda: player.set_playout_rate(rng.choice([0.5, 1.0, 2.0, 40.0])),
        ]
        for _ in range(2000):
            rng.choice(operations)()
            _assert_position_bounds(player)
        await player.shutdown()

    _run(run())


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_positions_and_rates_are_ignored(value: float) -> None:
    async def run() -> None:
        player = MediaPlayer()
        player.select_item(TEST_MEDIA_1)
        player.seek(4.0)
        events = _recorded(player)
        player.seek(value)
        player.set_playout_rate(value)
        assert player.snapshot.position_s == 4.0
        assert player.snapshot.playout_rate == 1.0
        assert events == []
        for _ in range(120):
            player.tick()
        assert player.snapshot.playback_state is PlaybackState.ENDED
        assert player.snapshot.position_s == 15.0

    _run(run())
