"""State store owning the live snapshot.

Readers share the live snapshot; a writer works on a private copy which is
persisted and then published on commit. Nothing a writer does is visible to
anyone else until the snapshot is safely on disk.

Example:
    store = await StateStore.open(JsonFilePersistence(path))

    async with store.acquire_read() as view:
        names = [loc.name for loc in view.locations]

    async with store.acquire_write() as tx:
        tx.add_location(location)
    # committed on clean exit, discarded on exception
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from satwatch.errors import ConflictError, NotFoundError, PersistenceError
from satwatch.state.persistence import SnapshotPersistence
from satwatch.state.types import Location, StateSnapshot, WatchSubscription

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Writer-preferring asyncio reader/writer lock.

    New readers queue behind a waiting writer so a steady stream of list
    commands cannot starve the poll cycle's commit.
    """

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0
        self._wakeups: set[asyncio.Future[None]] = set()

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def writer_active(self) -> bool:
        return self._writer

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(self._can_read)
            self._readers += 1
        try:
            yield
        finally:
            self._readers -= 1
            if self._readers == 0:
                await self._wake_waiters()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            self._writers_waiting += 1
            try:
                await self._cond.wait_for(self._can_write)
            except BaseException:
                self._writers_waiting -= 1
                self._cond.notify_all()
                raise
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            self._writer = False
            await self._wake_waiters()

    async def _wake_waiters(self) -> None:
        # Counters are already updated; the wakeup survives caller cancellation.
        task = asyncio.ensure_future(self._notify_all())
        self._wakeups.add(task)
        task.add_done_callback(self._wakeups.discard)
        await asyncio.shield(task)

    async def _notify_all(self) -> None:
        async with self._cond:
            self._cond.notify_all()

    def _can_read(self) -> bool:
        return not self._writer and self._writers_waiting == 0

    def _can_write(self) -> bool:
        return not self._writer and self._readers == 0


class ReadHandle:
    """Shared view of the live snapshot.

    Valid only inside the ``acquire_read()`` block. Callers must not mutate
    anything reachable from it; copy what you need to keep.
    """

    def __init__(self, snapshot: StateSnapshot) -> None:
        self._snapshot = snapshot

    @property
    def snapshot(self) -> StateSnapshot:
        return self._snapshot

    @property
    def locations(self) -> list[Location]:
        return self._snapshot.locations

    @property
    def subscriptions(self) -> list[WatchSubscription]:
        return self._snapshot.subscriptions

    def find_location(self, name: str) -> Location | None:
        return self._snapshot.find_location(name)


class WriteHandle:
    """Exclusive, transactional access to a working copy of the snapshot.

    The helpers enforce structural invariants only (unique location names,
    unique subscription creation keys). Authorization is the caller's job.
    """

    def __init__(self, store: StateStore, working: StateSnapshot) -> None:
        self._store = store
        self._working = working
        self._dirty = False
        self._closed = False

    @property
    def snapshot(self) -> StateSnapshot:
        return self._working

    @property
    def dirty(self) -> bool:
        return self._dirty

    def mark_dirty(self) -> None:
        """Flag direct edits to ``snapshot`` so release commits them."""
        self._dirty = True

    def find_location(self, name: str) -> Location | None:
        return self._working.find_location(name)

    def add_location(self, location: Location) -> None:
        if self._working.find_location(location.name) is not None:
            raise ConflictError(f"Location {location.name!r} already exists")
        self._working.locations.append(location)
        self._dirty = True

    def remove_location(self, name: str) -> Location:
        location = self._working.find_location(name)
        if location is None:
            raise NotFoundError(f"No such location: {name!r}")
        self._working.locations.remove(location)
        self._dirty = True
        return location

    def find_subscription(
        self, tracked_object_id: int, channel_id: str, location_name: str
    ) -> WatchSubscription | None:
        return next(
            (
                sub
                for sub in self._working.subscriptions
                if sub.matches(tracked_object_id, channel_id, location_name)
            ),
            None,
        )

    def add_subscription(self, subscription: WatchSubscription) -> None:
        key = subscription.creation_key
        if any(s.creation_key == key for s in self._working.subscriptions):
            raise ConflictError(
                "Satellite already being watched in this chat with these parameters"
            )
        self._working.subscriptions.append(subscription)
        self._dirty = True

    def remove_subscription(self, subscription_id: str) -> WatchSubscription:
        subscription = self._working.find_subscription(subscription_id)
        if subscription is None:
            raise NotFoundError(f"No such watched satellite: {subscription_id}")
        self._working.subscriptions.remove(subscription)
        self._dirty = True
        return subscription

    async def commit(self) -> None:
        """Persist the working copy, then publish it as the live snapshot.

        Raises:
            PersistenceError: If the write fails. The live snapshot is left
                as it was.
        """
        if self._closed:
            raise RuntimeError("write handle used after release")
        await self._store._persist_and_publish(self._working)
        self._dirty = False


class StateStore:
    """Owner of the live state snapshot."""

    def __init__(
        self,
        persistence: SnapshotPersistence,
        snapshot: StateSnapshot | None = None,
    ) -> None:
        self._persistence = persistence
        self._snapshot = snapshot or StateSnapshot()
        self._lock = ReadWriteLock()

    @classmethod
    async def open(cls, persistence: SnapshotPersistence) -> StateStore:
        """Load the stored snapshot, creating and persisting an empty one if
        nothing was stored yet.

        Raises:
            CorruptStateError: If the stored snapshot cannot be deserialized.
            PersistenceError: If storage cannot be read or written.
        """
        snapshot = await asyncio.to_thread(persistence.load)
        if snapshot is None:
            snapshot = StateSnapshot()
            await asyncio.to_thread(_save, persistence, snapshot)
            logger.info("snapshot_created")
        else:
            logger.info(
                "snapshot_loaded",
                extra={
                    "state.locations": len(snapshot.locations),
                    "state.subscriptions": len(snapshot.subscriptions),
                },
            )
        return cls(persistence, snapshot)

    @property
    def lock(self) -> ReadWriteLock:
        return self._lock

    @asynccontextmanager
    async def acquire_read(self) -> AsyncIterator[ReadHandle]:
        async with self._lock.read():
            yield ReadHandle(self._snapshot)

    @asynccontextmanager
    async def acquire_write(self) -> AsyncIterator[WriteHandle]:
        async with self._lock.write():
            handle = WriteHandle(self, self._snapshot.copy())
            try:
                yield handle
                if handle.dirty:
                    await handle.commit()
            finally:
                handle._closed = True

    async def _persist_and_publish(self, working: StateSnapshot) -> None:
        await asyncio.to_thread(_save, self._persistence, working)
        # Publish a copy so later edits through the same handle stay private.
        self._snapshot = working.copy()
        logger.debug(
            "snapshot_committed",
            extra={
                "state.locations": len(working.locations),
                "state.subscriptions": len(working.subscriptions),
            },
        )


def _save(persistence: SnapshotPersistence, snapshot: StateSnapshot) -> None:
    try:
        persistence.save(snapshot)
    except PersistenceError:
        raise
    except Exception as e:
        raise PersistenceError(f"Failed to persist snapshot: {e}") from e
