"""Runtime configuration normalization helpers.

These helpers keep CLI flag interpretation deterministic across entrypoints.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

PLAYOUT_RATES = (0.5, 1.0, 1.25, 1.5, 1.75, 2.0)
DEFAULT_PLAYOUT_RATE = 1.0


@dataclass(frozen=True)
class SyncSettings:
    """Timing knobs for the playback simulation and reconciliation."""

    tick_interval_s: float = 0.1
    position_tolerance_s: float = 0.25
    default_max_progress_s: float = 0.1


def resolve_log_level(*, verbose: bool, quiet: bool) -> str:
    """Resolve effective log level from CLI flags.

    Precedence is deterministic: --quiet overrides --verbose.
    """
    if quiet:
        return "WARNING"
    if verbose:
        return "DEBUG"
    return "INFO"


def normalize_playout_rate(value: float) -> float:
    """Snap `value` to the nearest supported playout rate."""
    if not math.isfinite(value) or value <= 0:
        return DEFAULT_PLAYOUT_RATE
    return min(PLAYOUT_RATES, key=lambda rate: (abs(rate - value), rate))


def parse_rate_label(label: str) -> float:
    """Parse a rate label such as `1.5x` (or a bare `1.5`).

    Raises `ValueError` for text that is not a positive number.
    """
    text = label.strip().lower()
    if text.endswith("x"):
        text = text[:-1]
    rate = float(text)
    if not math.isfinite(rate) or rate <= 0:
        raise ValueError(f"playout rate must be a positive number: {label!r}")
    return rate


def format_rate_label(rate: float) -> str:
    return f"{rate}x"
