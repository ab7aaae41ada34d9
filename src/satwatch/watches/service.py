"""Command service: validated mutations and queries behind every front end.

Telegram handlers and the CLI call into ``WatchService`` with an actor id.
Every mutation goes through the store's write acquisition, so it interleaves
safely with a running poll cycle. Network lookups never happen under a lock.
"""

import logging
import math

from satwatch.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from satwatch.predictions.types import PredictionSource, SatellitePasses
from satwatch.state.store import StateStore
from satwatch.state.types import Location, WatchSubscription

logger = logging.getLogger(__name__)

MIN_FORECAST_DAYS = 1
MAX_FORECAST_DAYS = 10

# NORAD id -> common name of the NOAA APT weather satellites
NOAA_SATELLITES: dict[int, str] = {
    25338: "NOAA 15",
    28654: "NOAA 18",
    33591: "NOAA 19",
}


def validate_min_elevation(min_elevation: float) -> float:
    if not math.isfinite(min_elevation) or not 0 < min_elevation <= 90:
        raise ValidationError("Minimum elevation must be above 0 and at most 90")
    return min_elevation


def validate_days(days: int) -> int:
    if not MIN_FORECAST_DAYS <= days <= MAX_FORECAST_DAYS:
        raise ValidationError(
            f"Days must be between {MIN_FORECAST_DAYS} and {MAX_FORECAST_DAYS}"
        )
    return days


class WatchService:
    """Locations, watch subscriptions and ad-hoc pass lookups."""

    def __init__(
        self,
        store: StateStore,
        source: PredictionSource,
        *,
        default_locale: str = "en-GB",
    ):
        self._store = store
        self._source = source
        self._default_locale = default_locale

    @property
    def default_locale(self) -> str:
        return self._default_locale

    # -- locations ---------------------------------------------------------

    async def add_location(
        self,
        actor: str,
        name: str,
        latitude: float,
        longitude: float,
        altitude: float = 0.0,
    ) -> Location:
        """Create a named observer location owned by ``actor``.

        Raises:
            ValidationError: On an empty name or out-of-range coordinates.
            ConflictError: If the name is taken.
        """
        name = name.strip()
        if not name:
            raise ValidationError("Location name must not be empty")
        if not all(math.isfinite(v) for v in (latitude, longitude, altitude)):
            raise ValidationError("Coordinates must be finite numbers")
        if not -90 <= latitude <= 90:
            raise ValidationError("Latitude must be between -90 and 90")
        if not -180 <= longitude <= 180:
            raise ValidationError("Longitude must be between -180 and 180")

        location = Location(
            name=name,
            creator=actor,
            latitude=latitude,
            longitude=longitude,
            altitude=altitude,
        )
        async with self._store.acquire_write() as tx:
            tx.add_location(location)

        logger.info(
            "location_added",
            extra={"location.name": name, "actor.id": actor},
        )
        return location

    async def remove_location(self, actor: str, name: str) -> Location:
        """Delete a location. Only its creator may do this.

        Subscriptions referencing the location are left in place.
        """
        async with self._store.acquire_write() as tx:
            location = tx.find_location(name)
            if location is None:
                raise NotFoundError(f"No such location: {name}")
            if location.creator != actor:
                raise AuthorizationError(
                    f"Only the creator of {name} can remove it"
                )
            tx.remove_location(name)

        logger.info(
            "location_removed",
            extra={"location.name": name, "actor.id": actor},
        )
        return location

    async def list_locations(self) -> list[Location]:
        async with self._store.acquire_read() as view:
            return [
                Location.from_dict(loc.to_dict()) for loc in view.locations
            ]

    # -- subscriptions -----------------------------------------------------

    async def watch(
        self,
        actor: str,
        channel_id: str,
        object_id: int,
        location_name: str,
        min_elevation: float,
        locale: str | None = None,
    ) -> WatchSubscription:
        """Subscribe ``channel_id`` to passes of ``object_id``.

        The object's display name is looked up once, here, with no lock held.

        Raises:
            ValidationError: If ``min_elevation`` is outside (0, 90].
            NotFoundError: If the location does not exist.
            ConflictError: If an identical subscription exists in the channel.
            UpstreamFetchError: If the name lookup fails.
        """
        validate_min_elevation(min_elevation)

        candidate = WatchSubscription(
            tracked_object_id=object_id,
            display_name="",
            location_name=location_name,
            channel_id=channel_id,
            watcher_id=actor,
            min_elevation=min_elevation,
            locale=locale or self._default_locale,
        )

        # Fail fast before spending a network call.
        async with self._store.acquire_read() as view:
            self._check_watchable(view.snapshot.subscriptions, view.find_location, candidate)

        candidate.display_name = await self._source.fetch_object_name(object_id)

        async with self._store.acquire_write() as tx:
            self._check_watchable(tx.snapshot.subscriptions, tx.find_location, candidate)
            tx.add_subscription(candidate)

        logger.info(
            "watch_added",
            extra={
                "watch.subscription_id": candidate.id,
                "watch.object_id": object_id,
                "watch.location": location_name,
                "actor.id": actor,
            },
        )
        return candidate

    async def unwatch(
        self,
        actor: str,
        object_id: int,
        location_name: str,
        channel_id: str,
    ) -> WatchSubscription:
        """Remove a subscription. Only its watcher may do this."""
        async with self._store.acquire_write() as tx:
            subscription = tx.find_subscription(object_id, channel_id, location_name)
            if subscription is None:
                raise NotFoundError(
                    f"Satellite {object_id} is not being watched from "
                    f"{location_name} in this chat"
                )
            if subscription.watcher_id != actor:
                raise AuthorizationError(
                    "Only the user who watched this satellite can unwatch it"
                )
            tx.remove_subscription(subscription.id)

        logger.info(
            "watch_removed",
            extra={"watch.subscription_id": subscription.id, "actor.id": actor},
        )
        return subscription

    async def list_subscriptions(
        self, channel_id: str | None = None
    ) -> list[WatchSubscription]:
        async with self._store.acquire_read() as view:
            return [
                WatchSubscription.from_dict(sub.to_dict())
                for sub in view.subscriptions
                if channel_id is None or sub.channel_id == channel_id
            ]

    # -- ad-hoc lookups ----------------------------------------------------

    async def upcoming_passes(
        self,
        object_id: int,
        location_name: str,
        days: int,
        min_elevation: float,
    ) -> SatellitePasses:
        validate_days(days)
        validate_min_elevation(min_elevation)
        location = await self._get_location(location_name)
        return await self._source.fetch_passes(object_id, location, days, min_elevation)

    async def noaa_passes(
        self,
        location_name: str,
        days: int,
        min_elevation: float,
    ) -> list[SatellitePasses]:
        """Upcoming passes of every NOAA APT satellite, in catalogue order."""
        validate_days(days)
        validate_min_elevation(min_elevation)
        location = await self._get_location(location_name)
        return [
            await self._source.fetch_passes(object_id, location, days, min_elevation)
            for object_id in NOAA_SATELLITES
        ]

    async def _get_location(self, name: str) -> Location:
        async with self._store.acquire_read() as view:
            location = view.find_location(name)
            if location is None:
                raise NotFoundError(f"No such location: {name}")
            return Location.from_dict(location.to_dict())

    @staticmethod
    def _check_watchable(subscriptions, find_location, candidate: WatchSubscription) -> None:
        if find_location(candidate.location_name) is None:
            raise NotFoundError(f"No such location: {candidate.location_name}")
        if any(s.creation_key == candidate.creation_key for s in subscriptions):
            raise ConflictError(
                "Satellite already being watched in this chat with these parameters"
            )
