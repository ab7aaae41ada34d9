"""Watch & notification engine."""

from satwatch.watches.cycle import PollCycle
from satwatch.watches.policy import (
    DEDUP_TOLERANCE_SECONDS,
    HISTORY_RETENTION_SECONDS,
    is_duplicate,
    prune,
    qualifies,
)
from satwatch.watches.scheduler import WatchScheduler
from satwatch.watches.service import NOAA_SATELLITES, WatchService
from satwatch.watches.types import CycleReport, NotificationSink, PassNotification

__all__ = [
    "DEDUP_TOLERANCE_SECONDS",
    "HISTORY_RETENTION_SECONDS",
    "NOAA_SATELLITES",
    "CycleReport",
    "NotificationSink",
    "PassNotification",
    "PollCycle",
    "WatchScheduler",
    "WatchService",
    "is_duplicate",
    "prune",
    "qualifies",
]
