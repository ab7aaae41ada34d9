"""Tests for snapshot persistence and the on-disk layout."""

import json

import pytest

from satwatch.errors import CorruptStateError, PersistenceError
from satwatch.state import (
    SCHEMA_VERSION,
    JsonFilePersistence,
    MemoryPersistence,
    StateOwnerLock,
    StateSnapshot,
    StateStore,
    WatchSubscription,
)
from tests.conftest import make_location, make_subscription

LEGACY_DOCUMENT = {
    "locations": [
        {
            "name": "Backyard",
            "creator": 123456789,
            "latitude": 51.5,
            "longitude": -0.1,
            "altitude": 20.0,
        }
    ],
    "watched_satellites": [
        {
            "satellite_id": 25338,
            "name": "NOAA 15",
            "location": "Backyard",
            "channel": 987654321,
            "watcher": 123456789,
            "locale": "en-US",
            "min_max_elevation": 30.0,
            "previous_notifications": [[1000, 1300]],
        }
    ],
}


class TestJsonFilePersistence:
    def test_missing_file_loads_none(self, state_file):
        assert JsonFilePersistence(state_file).load() is None

    def test_save_then_load(self, state_file):
        persistence = JsonFilePersistence(state_file)
        subscription = make_subscription(history=[(1000, 1300)])
        persistence.save(
            StateSnapshot(locations=[make_location()], subscriptions=[subscription])
        )

        loaded = persistence.load()
        assert loaded is not None
        assert loaded.locations == [make_location()]
        assert loaded.subscriptions[0].id == subscription.id
        assert loaded.subscriptions[0].history == [(1000, 1300)]

    def test_writes_versioned_document(self, state_file):
        JsonFilePersistence(state_file).save(StateSnapshot())
        data = json.loads(state_file.read_text())
        assert data["version"] == SCHEMA_VERSION

    def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "state.json"
        JsonFilePersistence(path).save(StateSnapshot())
        assert path.exists()

    def test_leaves_no_temp_files(self, state_file):
        persistence = JsonFilePersistence(state_file)
        for _ in range(3):
            persistence.save(StateSnapshot(locations=[make_location()]))
        leftovers = [p for p in state_file.parent.iterdir() if p.suffix == ".tmp"]
        assert leftovers == []

    def test_invalid_json_is_corrupt(self, state_file):
        state_file.write_text("{not json")
        with pytest.raises(CorruptStateError):
            JsonFilePersistence(state_file).load()

    def test_missing_fields_are_corrupt(self, state_file):
        state_file.write_text(json.dumps({"version": 1, "locations": [{"name": "x"}]}))
        with pytest.raises(CorruptStateError):
            JsonFilePersistence(state_file).load()

    def test_unknown_version_is_corrupt(self, state_file):
        state_file.write_text(json.dumps({"version": 99}))
        with pytest.raises(CorruptStateError):
            JsonFilePersistence(state_file).load()

    def test_corrupt_is_a_persistence_error(self, state_file):
        state_file.write_text("[]")
        with pytest.raises(PersistenceError):
            JsonFilePersistence(state_file).load()

    def test_unwritable_path(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        with pytest.raises(PersistenceError):
            JsonFilePersistence(blocker / "state.json").save(StateSnapshot())


class TestLegacyLayout:
    def test_reads_unversioned_document(self, state_file):
        state_file.write_text(json.dumps(LEGACY_DOCUMENT))
        snapshot = JsonFilePersistence(state_file).load()

        assert snapshot is not None
        assert snapshot.locations[0].creator == "123456789"
        sub = snapshot.subscriptions[0]
        assert sub.tracked_object_id == 25338
        assert sub.display_name == "NOAA 15"
        assert sub.location_name == "Backyard"
        assert sub.channel_id == "987654321"
        assert sub.watcher_id == "123456789"
        assert sub.locale == "en-US"
        assert sub.min_elevation == 30.0
        assert sub.history == [(1000, 1300)]
        assert len(sub.id) == 8

    async def test_upgraded_on_next_write(self, state_file):
        state_file.write_text(json.dumps(LEGACY_DOCUMENT))
        store = await StateStore.open(JsonFilePersistence(state_file))

        async with store.acquire_write() as tx:
            tx.mark_dirty()

        data = json.loads(state_file.read_text())
        assert data["version"] == SCHEMA_VERSION
        assert "watched_satellites" not in data
        assert data["subscriptions"][0]["tracked_object_id"] == 25338


class TestMemoryPersistence:
    def test_empty(self):
        assert MemoryPersistence().load() is None

    def test_loads_are_independent_copies(self):
        persistence = MemoryPersistence(StateSnapshot(subscriptions=[make_subscription()]))
        first = persistence.load()
        first.subscriptions[0].history.append((1, 2))
        assert persistence.load().subscriptions[0].history == []

    def test_counts_saves(self):
        persistence = MemoryPersistence()
        persistence.save(StateSnapshot())
        persistence.save(StateSnapshot())
        assert persistence.save_count == 2


class TestStateOwnerLock:
    def test_second_owner_is_refused(self, state_file):
        first = StateOwnerLock(state_file)
        first.acquire()
        try:
            with pytest.raises(PersistenceError, match="in use by another"):
                StateOwnerLock(state_file).acquire()
        finally:
            first.release()
        assert not first.held

    def test_released_lock_can_be_taken_again(self, state_file):
        first = StateOwnerLock(state_file)
        first.acquire()
        first.release()

        second = StateOwnerLock(state_file)
        second.acquire()
        assert second.held
        second.release()

    def test_creates_missing_directory(self, tmp_path):
        lock = StateOwnerLock(tmp_path / "nested" / "state.json")
        lock.acquire()
        assert lock.held
        lock.release()

    def test_release_without_acquire(self, state_file):
        StateOwnerLock(state_file).release()


class TestSubscriptionRecord:
    def test_missing_id_gets_one(self):
        data = make_subscription().to_dict()
        del data["id"]
        assert len(WatchSubscription.from_dict(data).id) == 8

    def test_default_locale(self):
        data = make_subscription().to_dict()
        del data["locale"]
        assert WatchSubscription.from_dict(data).locale == "en-GB"
