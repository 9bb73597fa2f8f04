"""Command-line interface for the live sharing demo."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.text import Text

from . import __version__
from .demo import ParticipantStatus, run_demo
from .logging_utils import setup_logging
from .media import DEFAULT_CATALOG
from .paths import log_dir
from .runtime_config import (
    PLAYOUT_RATES,
    format_rate_label,
    normalize_playout_rate,
    parse_rate_label,
    resolve_log_level,
)
from .utils.time_format import format_progress
from .version import build_help_epilog

_STATE_STYLES = {
    "playing": "bold green",
    "paused": "yellow",
    "buffering": "magenta",
    "ended": "dim",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="livesharing-demo",
        description="Co-watching and co-doing reconciliation demo.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=build_help_epilog(),
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--quiet", action="store_true", help="Only show warnings and errors"
    )
    parser.add_argument("--log-file", help="Write logs to a file path")
    parser.add_argument(
        "--media",
        choices=DEFAULT_CATALOG.ids(),
        default=DEFAULT_CATALOG.ids()[0],
        help="Media item the host switches to.",
    )
    parser.add_argument(
        "--rate",
        type=parse_rate_label,
        default=1.0,
        help=(
            "Playout rate, snapped to one of "
            + ", ".join(format_rate_label(rate) for rate in PLAYOUT_RATES)
            + "."
        ),
    )
    parser.add_argument(
        "--seconds",
        type=float,
        default=2.0,
        help="How long playback runs before the host pauses.",
    )
    return parser


def render_status(statuses: list[ParticipantStatus]) -> Text:
    """Render one status line per participant."""
    text = Text()
    for index, status in enumerate(statuses):
        if index:
            text.append("\n")
        snapshot = status.snapshot
        item = snapshot.selected_item
        text.append(f"{status.participant_id:<6} ", style="bold")
        text.append(item.title if item else "<no media>", style="cyan")
        text.append(" ")
        state = snapshot.playback_state.value
        text.append(f"{state:<9}", style=_STATE_STYLES.get(state, ""))
        text.append(
            f" {format_progress(snapshot.position_s, snapshot.max_progress_s)}"
            f" @ {format_rate_label(snapshot.playout_rate)}"
        )
        text.append(f"  theme={status.theme_name}", style="dim")
    return text


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    logger = logging.getLogger(__name__)
    console = Console()
    try:
        level = resolve_log_level(verbose=args.verbose, quiet=args.quiet)
        setup_logging(
            log_dir=log_dir(),
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
        )
        logger.info("Starting livesharing demo")
        statuses = asyncio.run(
            run_demo(
                media_id=args.media,
                rate=normalize_playout_rate(args.rate),
                seconds=args.seconds,
                on_status=lambda current: console.print(render_status(current)),
            )
        )
        console.print(Text("Final state:", style="bold underline"))
        console.print(render_status(statuses))
        return 0
    except Exception as exc:  # pragma: no cover - top-level safety net
        logger.exception("Unhandled error: %s", exc)
        print("Unexpected error. Re-run with --verbose for details.", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
