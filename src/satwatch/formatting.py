"""Plain-text rendering of passes, locations and subscriptions for chat replies."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from satwatch.predictions.types import SatellitePass, SatellitePasses
    from satwatch.state.types import Location, WatchSubscription
    from satwatch.watches.types import PassNotification

TIME_FORMAT = "%d/%m/%Y %H:%M"

# Fixed offsets per locale; anything else renders in UTC
_LOCALE_OFFSETS = {
    "en-US": timedelta(hours=5),
    "en-GB": timedelta(0),
    "en-AU": timedelta(hours=10),
}


def is_known_locale(locale: str) -> bool:
    return locale in _LOCALE_OFFSETS


def locale_timezone(locale: str) -> timezone:
    return timezone(_LOCALE_OFFSETS.get(locale, timedelta(0)))


def utc_to_local(locale: str, timestamp: int) -> str:
    """Render a UNIX timestamp in the locale's fixed offset."""
    moment = datetime.fromtimestamp(timestamp, tz=UTC)
    return moment.astimezone(locale_timezone(locale)).strftime(TIME_FORMAT)


def duration_between(start: int, end: int) -> str:
    """Render ``end - start`` as ``Nm Ns`` (whole hours are dropped)."""
    total = end - start
    minutes = (total % 3600) // 60
    seconds = total % 60
    return f"{minutes}m {seconds}s"


def format_pass(satellite_pass: SatellitePass, locale: str) -> str:
    start = utc_to_local(locale, satellite_pass.start)
    end = utc_to_local(locale, satellite_pass.end)
    duration = duration_between(satellite_pass.start, satellite_pass.end)
    return (
        f"{start} - {end} ({duration})\n"
        f"Max Elevation: {satellite_pass.max_elevation:g}°"
    )


def format_notification(batch: list[PassNotification]) -> str:
    """One message announcing every pass in ``batch``."""
    sections = []
    for notification in batch:
        sections.append(
            f"Upcoming pass for {notification.object_name} at "
            f"{notification.location_name}\n"
            + format_pass(notification.satellite_pass, notification.locale)
        )
    return "\n\n".join(sections)


def format_passes(passes: SatellitePasses, location_name: str, days: int, locale: str) -> str:
    if not passes.passes:
        return f"No passes found for {passes.object_name} at {location_name}"
    header = (
        f"Upcoming passes for {passes.object_name} at {location_name} "
        f"over the next {days} day(s)"
    )
    body = "\n\n".join(format_pass(p, locale) for p in passes.passes)
    return f"{header}\n\n{body}"


def format_pass_groups(
    groups: Iterable[SatellitePasses], location_name: str, days: int, locale: str
) -> str:
    groups = list(groups)
    if not any(group.passes for group in groups):
        return "No passes found"
    return "\n\n".join(
        format_passes(group, location_name, days, locale)
        for group in groups
        if group.passes
    )


def format_locations(locations: list[Location]) -> str:
    if not locations:
        return "No locations"
    lines = ["Locations"]
    for loc in locations:
        lines.append(
            f"- {loc.name}: {loc.latitude:g}, {loc.longitude:g}, {loc.altitude:g}m"
        )
    return "\n".join(lines)


def format_subscriptions(subscriptions: list[WatchSubscription]) -> str:
    if not subscriptions:
        return "No watched satellites"
    lines = ["Watched satellites"]
    for sub in subscriptions:
        lines.append(
            f"- {sub.display_name} ({sub.tracked_object_id}) at {sub.location_name}, "
            f"minimum elevation {sub.min_elevation:g}°, chat {sub.channel_id}"
        )
    return "\n".join(lines)
