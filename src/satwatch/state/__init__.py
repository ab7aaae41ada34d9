"""State subsystem: locations and watch subscriptions.

Public API:
- StateStore: Owner of the live snapshot with scoped read/write access
- JsonFilePersistence / MemoryPersistence: Snapshot storage strategies
- StateOwnerLock: One cycle-running process per state file

Types:
- Location, WatchSubscription, StateSnapshot
"""

from satwatch.state.persistence import (
    JsonFilePersistence,
    MemoryPersistence,
    SnapshotPersistence,
    StateOwnerLock,
)
from satwatch.state.store import ReadHandle, StateStore, WriteHandle
from satwatch.state.types import (
    SCHEMA_VERSION,
    Location,
    StateSnapshot,
    WatchSubscription,
    Window,
)

__all__ = [
    "SCHEMA_VERSION",
    "JsonFilePersistence",
    "Location",
    "MemoryPersistence",
    "ReadHandle",
    "SnapshotPersistence",
    "StateOwnerLock",
    "StateSnapshot",
    "StateStore",
    "WatchSubscription",
    "Window",
    "WriteHandle",
]
