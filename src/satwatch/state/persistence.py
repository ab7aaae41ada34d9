"""Snapshot persistence strategies.

The store writes the whole snapshot on every commit. ``JsonFilePersistence``
uses tempfile + fsync + os.replace() so a crash mid-write never leaves a
truncated document behind, and a sidecar ``FileLock`` so two processes never
interleave writes.

``StateOwnerLock`` is held for the lifetime of a process that runs watch
cycles. Each such process keeps the snapshot in memory, so a second one
would overwrite the first one's history with a stale copy.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

from filelock import FileLock, Timeout

from satwatch.errors import CorruptStateError, PersistenceError
from satwatch.state.types import StateSnapshot

logger = logging.getLogger(__name__)


class SnapshotPersistence(Protocol):
    """Durable storage for a full state snapshot."""

    def load(self) -> StateSnapshot | None:
        """Return the stored snapshot, or None if nothing was stored yet."""
        ...

    def save(self, snapshot: StateSnapshot) -> None:
        """Replace the stored snapshot."""
        ...


class JsonFilePersistence:
    """Stores the snapshot as a single JSON document."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = FileLock(str(path) + ".lock")

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> StateSnapshot | None:
        """Load the snapshot from disk.

        Raises:
            CorruptStateError: If the file exists but cannot be parsed.
            PersistenceError: If the file cannot be read.
        """
        try:
            with self._lock:
                if not self._path.exists():
                    return None
                text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Failed to read {self._path}: {e}") from e

        try:
            data = json.loads(text)
            snapshot = StateSnapshot.from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise CorruptStateError(f"Corrupt state file {self._path}: {e}") from e

        logger.debug(
            "snapshot_file_read",
            extra={
                "file.path": str(self._path),
                "state.locations": len(snapshot.locations),
                "state.subscriptions": len(snapshot.subscriptions),
            },
        )
        return snapshot

    def save(self, snapshot: StateSnapshot) -> None:
        """Write the snapshot atomically.

        Raises:
            PersistenceError: If the write fails.
        """
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._lock:
                _write_json_atomic(self._path, snapshot.to_dict())
        except OSError as e:
            raise PersistenceError(f"Failed to write {self._path}: {e}") from e


class MemoryPersistence:
    """Keeps the serialized snapshot in memory.

    Stores the serialized form rather than the object so callers can never
    alias the persisted copy.
    """

    def __init__(self, initial: StateSnapshot | None = None) -> None:
        self.data: dict[str, Any] | None = initial.to_dict() if initial else None
        self.save_count = 0

    def load(self) -> StateSnapshot | None:
        if self.data is None:
            return None
        return StateSnapshot.from_dict(json.loads(json.dumps(self.data)))

    def save(self, snapshot: StateSnapshot) -> None:
        self.data = json.loads(json.dumps(snapshot.to_dict()))
        self.save_count += 1


def _write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Write JSON atomically via tempfile + fsync + os.replace()."""
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(json.dumps(data, separators=(",", ":")))
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        Path(tmp).replace(path)
    except BaseException:
        try:
            Path(tmp).unlink()
        except OSError:
            pass
        raise


class StateOwnerLock:
    """Exclusive, non-blocking claim on a state file for one process."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = FileLock(str(path) + ".owner", timeout=0)

    @property
    def held(self) -> bool:
        return self._lock.is_locked

    def acquire(self) -> None:
        """Claim the state file.

        Raises:
            PersistenceError: If another process already owns it, or the
                lock file cannot be created.
        """
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._lock.acquire()
        except Timeout:
            raise PersistenceError(
                f"State file {self._path} is in use by another satwatch process "
                "(stop `satwatch serve` first)"
            ) from None
        except OSError as e:
            raise PersistenceError(f"Failed to lock {self._path}: {e}") from e
        logger.debug("state_owner_acquired", extra={"file.path": str(self._path)})

    def release(self) -> None:
        if self._lock.is_locked:
            self._lock.release()
