"""Scripted two-participant co-watching demo over the loopback transport."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from livesharing.media import DEFAULT_CATALOG, MediaCatalog
from livesharing.runtime_config import SyncSettings
from livesharing.services.loopback_channel import LoopbackLink, LoopbackSession
from livesharing.services.media_player import MediaPlayer, PlayerSnapshot
from livesharing.services.reconciler import LiveSharingReconciler
from livesharing.services.theme_toggle import ThemeToggle

logger = logging.getLogger(__name__)


@dataclass
class Participant:
    """One simulated participant: local models, reconciler and session link."""

    participant_id: str
    player: MediaPlayer
    theme: ThemeToggle
    reconciler: LiveSharingReconciler
    link: LoopbackLink | None = None

    def join(self, session: LoopbackSession) -> None:
        self.link = session.join(self.participant_id, self.reconciler)
        self.reconciler.bind_session(co_watching=self.link, co_doing=self.link)

    def leave(self, session: LoopbackSession) -> None:
        session.leave(self.participant_id)
        self.reconciler.unbind_session()
        self.link = None

    async def shutdown(self) -> None:
        self.reconciler.detach()
        await self.player.shutdown()


@dataclass(frozen=True)
class ParticipantStatus:
    participant_id: str
    snapshot: PlayerSnapshot
    theme_name: str


def build_participant(
    participant_id: str,
    *,
    settings: SyncSettings,
    catalog: MediaCatalog = DEFAULT_CATALOG,
) -> Participant:
    """Wire player, theme and reconciler for one participant (loop thread)."""
    player = MediaPlayer(
        tick_interval_s=settings.tick_interval_s,
        default_max_progress_s=settings.default_max_progress_s,
    )
    theme = ThemeToggle()
    reconciler = LiveSharingReconciler(
        player=player,
        theme=theme,
        catalog=catalog,
        position_tolerance_s=settings.position_tolerance_s,
        participant_id=participant_id,
    )
    reconciler.attach()
    return Participant(participant_id, player, theme, reconciler)


async def settle() -> None:
    """Let redispatched transport callbacks run on the loop."""
    for _ in range(3):
        await asyncio.sleep(0)


async def run_demo(
    *,
    media_id: str,
    rate: float,
    seconds: float,
    settings: SyncSettings | None = None,
    catalog: MediaCatalog = DEFAULT_CATALOG,
    on_status: Callable[[list[ParticipantStatus]], None] | None = None,
) -> list[ParticipantStatus]:
    """Run the scripted session and return each participant's final status."""
    settings = settings or SyncSettings()
    item = catalog.get(media_id)
    if item is None:
        raise ValueError(f"unknown media id: {media_id}")
    session = LoopbackSession()
    host = build_participant("host", settings=settings, catalog=catalog)
    guest = build_participant("guest", settings=settings, catalog=catalog)
    participants = [host, guest]

    def report() -> list[ParticipantStatus]:
        statuses = [
            ParticipantStatus(p.participant_id, p.player.snapshot, p.theme.theme_name)
            for p in participants
        ]
        if on_status is not None:
            on_status(statuses)
        return statuses

    try:
        host.join(session)
        guest.join(session)
        await settle()

        host.player.select_item(item)
        host.player.set_playout_rate(rate)
        await settle()
        report()

        host.player.seek(item.duration_s / 2)
        host.theme.switch_theme()
        await settle()
        report()

        await asyncio.sleep(max(0.0, seconds))
        host.player.pause()
        await settle()
        return report()
    finally:
        for participant in participants:
            participant.leave(session)
            await participant.shutdown()
        logger.info("Demo finished with %d messages sent.", len(session.sent))
