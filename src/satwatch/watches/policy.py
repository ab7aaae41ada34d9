"""Dedup and decay rules for notification history.

Pure functions, no I/O. The prediction source returns slightly different
second-level timestamps for the same physical pass on repeated queries, so
windows are compared with a tolerance rather than for equality.
"""

from collections.abc import Iterable

from satwatch.predictions.types import SatellitePass
from satwatch.state.types import Window

# Start/end timestamps closer than this are the same pass
DEDUP_TOLERANCE_SECONDS = 10

# History entries older than this are forgotten
HISTORY_RETENTION_SECONDS = 24 * 60 * 60


def is_duplicate(history: Iterable[Window], window: Window) -> bool:
    """Whether ``window`` was already notified according to ``history``."""
    start, end = window
    return any(
        abs(seen_start - start) < DEDUP_TOLERANCE_SECONDS
        and abs(seen_end - end) < DEDUP_TOLERANCE_SECONDS
        for seen_start, seen_end in history
    )


def prune(history: Iterable[Window], now: int) -> list[Window]:
    """Drop entries whose start or end is at least the retention age old."""
    return [
        (start, end)
        for start, end in history
        if now - start < HISTORY_RETENTION_SECONDS
        and now - end < HISTORY_RETENTION_SECONDS
    ]


def qualifies(satellite_pass: SatellitePass, min_elevation: float) -> bool:
    return satellite_pass.max_elevation >= min_elevation
