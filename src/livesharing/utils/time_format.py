"""Time formatting helpers for console status output."""

from __future__ import annotations

import math


def format_position(seconds: float) -> str:
    """Format seconds as MM:SS.t, or H:MM:SS.t from one hour on."""
    tenths = _coerce_tenths(seconds)
    total_seconds, fraction = divmod(tenths, 10)
    hours = total_seconds // 3600
    minutes = (total_seconds // 60) % 60
    secs = total_seconds % 60
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}.{fraction}"
    return f"{minutes:02d}:{secs:02d}.{fraction}"


def format_progress(position_s: float, max_progress_s: float) -> str:
    """Format `position / max` for a status line."""
    return f"{format_position(position_s)} / {format_position(max_progress_s)}"


def _coerce_tenths(value: float) -> int:
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(numeric):
        return 0
    return max(0, int(round(numeric * 10)))
