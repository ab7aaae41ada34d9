"""Shared test fixtures and factories."""

from pathlib import Path

import pytest

from satwatch.errors import DeliveryError, PersistenceError, UpstreamFetchError
from satwatch.predictions.types import SatellitePass, SatellitePasses
from satwatch.state import (
    Location,
    MemoryPersistence,
    StateSnapshot,
    StateStore,
    WatchSubscription,
)
from satwatch.watches.types import PassNotification

# =============================================================================
# Factories
# =============================================================================


def make_pass(start: int, end: int, max_elevation: float = 45.0) -> SatellitePass:
    return SatellitePass(start=start, end=end, max_elevation=max_elevation)


def make_location(name: str = "Backyard", creator: str = "alice") -> Location:
    return Location(
        name=name, creator=creator, latitude=51.5, longitude=-0.1, altitude=20.0
    )


def make_subscription(
    object_id: int = 25338,
    location_name: str = "Backyard",
    channel_id: str = "100",
    watcher_id: str = "alice",
    min_elevation: float = 10.0,
    history: list[tuple[int, int]] | None = None,
) -> WatchSubscription:
    return WatchSubscription(
        tracked_object_id=object_id,
        display_name=f"SAT {object_id}",
        location_name=location_name,
        channel_id=channel_id,
        watcher_id=watcher_id,
        min_elevation=min_elevation,
        history=list(history or []),
    )


# =============================================================================
# Fakes
# =============================================================================


class FakePredictionSource:
    """Prediction source returning canned passes."""

    def __init__(self) -> None:
        self.passes: dict[int, list[SatellitePass]] = {}
        self.names: dict[int, str] = {}
        self.failing: set[int] = set()
        self.calls: list[tuple[int, str, int, float]] = []
        self.name_calls: list[int] = []

    async def fetch_passes(
        self, object_id: int, location: Location, days: int, min_elevation: float
    ) -> SatellitePasses:
        self.calls.append((object_id, location.name, days, min_elevation))
        if object_id in self.failing:
            raise UpstreamFetchError(f"prediction source down for {object_id}")
        return SatellitePasses(
            object_id=object_id,
            object_name=self.names.get(object_id, f"SAT {object_id}"),
            passes=list(self.passes.get(object_id, [])),
        )

    async def fetch_object_name(self, object_id: int) -> str:
        self.name_calls.append(object_id)
        if object_id in self.failing:
            raise UpstreamFetchError(f"unknown satellite {object_id}")
        return self.names.get(object_id, f"SAT {object_id}")


class FakeSink:
    """Notification sink recording every delivered batch."""

    def __init__(self) -> None:
        self.delivered: list[tuple[str, list[PassNotification]]] = []
        self.fail = False
        self.failing_channels: set[str] = set()

    async def deliver(self, channel_id: str, batch: list[PassNotification]) -> None:
        if self.fail or channel_id in self.failing_channels:
            raise DeliveryError(f"cannot reach {channel_id}")
        self.delivered.append((channel_id, list(batch)))


class FlakyPersistence(MemoryPersistence):
    """In-memory persistence whose writes can be made to fail."""

    def __init__(self, initial: StateSnapshot | None = None) -> None:
        super().__init__(initial)
        self.fail = False

    def save(self, snapshot: StateSnapshot) -> None:
        if self.fail:
            raise PersistenceError("disk full")
        super().save(snapshot)


class Clock:
    """Settable replacement for time.time."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def persistence() -> FlakyPersistence:
    return FlakyPersistence()


@pytest.fixture
async def store(persistence: FlakyPersistence) -> StateStore:
    return await StateStore.open(persistence)


@pytest.fixture
def source() -> FakePredictionSource:
    return FakePredictionSource()


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def state_file(tmp_path: Path) -> Path:
    return tmp_path / "state.json"
