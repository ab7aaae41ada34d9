"""State snapshot types.

Public types:
- Location: A named observer position
- WatchSubscription: A standing request to be notified of passes
- StateSnapshot: All locations and subscriptions, the unit of persistence
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from typing import Any

# Persisted snapshot layout version. Documents without a version field are
# the legacy layout written by the first deployment of the bot.
SCHEMA_VERSION = 1

# (start, end) in UNIX seconds
Window = tuple[int, int]


def new_subscription_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass
class Location:
    """A named observer position."""

    name: str
    creator: str
    latitude: float
    longitude: float
    altitude: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "creator": self.creator,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "altitude": self.altitude,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Location:
        return cls(
            name=str(data["name"]),
            creator=str(data["creator"]),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            altitude=float(data.get("altitude", 0.0)),
        )


@dataclass
class WatchSubscription:
    """A standing request to be notified of qualifying passes.

    ``display_name`` is resolved once when the subscription is created and
    never refreshed. ``history`` holds the windows already announced.
    """

    tracked_object_id: int
    display_name: str
    location_name: str
    channel_id: str
    watcher_id: str
    min_elevation: float
    locale: str = "en-GB"
    history: list[Window] = field(default_factory=list)
    id: str = field(default_factory=new_subscription_id)

    @property
    def creation_key(self) -> tuple[int, str, float, str]:
        """No two subscriptions may share this key."""
        return (
            self.tracked_object_id,
            self.location_name,
            self.min_elevation,
            self.channel_id,
        )

    def matches(self, tracked_object_id: int, channel_id: str, location_name: str) -> bool:
        """Whether this is the subscription an unwatch request refers to."""
        return (
            self.tracked_object_id == tracked_object_id
            and self.channel_id == channel_id
            and self.location_name == location_name
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tracked_object_id": self.tracked_object_id,
            "display_name": self.display_name,
            "location_name": self.location_name,
            "channel_id": self.channel_id,
            "watcher_id": self.watcher_id,
            "locale": self.locale,
            "min_elevation": self.min_elevation,
            "history": [[start, end] for start, end in self.history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WatchSubscription:
        return cls(
            id=str(data.get("id") or new_subscription_id()),
            tracked_object_id=int(data["tracked_object_id"]),
            display_name=str(data["display_name"]),
            location_name=str(data["location_name"]),
            channel_id=str(data["channel_id"]),
            watcher_id=str(data["watcher_id"]),
            locale=str(data.get("locale") or "en-GB"),
            min_elevation=float(data["min_elevation"]),
            history=_parse_history(data.get("history", [])),
        )

    @classmethod
    def from_legacy_dict(cls, data: dict[str, Any]) -> WatchSubscription:
        """Parse an entry of the unversioned ``watched_satellites`` list."""
        return cls(
            tracked_object_id=int(data["satellite_id"]),
            display_name=str(data["name"]),
            location_name=str(data["location"]),
            channel_id=str(data["channel"]),
            watcher_id=str(data["watcher"]),
            locale=str(data.get("locale") or "en-GB"),
            min_elevation=float(data["min_max_elevation"]),
            history=_parse_history(data.get("previous_notifications", [])),
        )


def _parse_history(raw: list[Any]) -> list[Window]:
    return [(int(start), int(end)) for start, end in raw]


@dataclass
class StateSnapshot:
    """All locations and watch subscriptions."""

    locations: list[Location] = field(default_factory=list)
    subscriptions: list[WatchSubscription] = field(default_factory=list)

    def find_location(self, name: str) -> Location | None:
        return next((loc for loc in self.locations if loc.name == name), None)

    def find_subscription(self, subscription_id: str) -> WatchSubscription | None:
        return next((s for s in self.subscriptions if s.id == subscription_id), None)

    def copy(self) -> StateSnapshot:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": SCHEMA_VERSION,
            "locations": [loc.to_dict() for loc in self.locations],
            "subscriptions": [sub.to_dict() for sub in self.subscriptions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StateSnapshot:
        """Parse a snapshot document.

        Raises:
            ValueError: If the document has an unknown version or is missing
                required fields.
        """
        if not isinstance(data, dict):
            raise ValueError("snapshot must be a JSON object")

        version = data.get("version")
        if version is None:
            return cls(
                locations=[Location.from_dict(d) for d in data.get("locations", [])],
                subscriptions=[
                    WatchSubscription.from_legacy_dict(d)
                    for d in data.get("watched_satellites", [])
                ],
            )
        if version != SCHEMA_VERSION:
            raise ValueError(f"unsupported snapshot version: {version}")

        return cls(
            locations=[Location.from_dict(d) for d in data.get("locations", [])],
            subscriptions=[
                WatchSubscription.from_dict(d) for d in data.get("subscriptions", [])
            ],
        )
