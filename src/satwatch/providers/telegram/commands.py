"""Bot command implementations.

Each command takes the caller, the chat and the raw argument string, and
returns the reply text. Arguments are shell-split so quoted location names
with spaces work: ``/add_location "Back yard" 51.5 -0.1 20``.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from typing import TYPE_CHECKING

from satwatch.errors import ValidationError
from satwatch.formatting import (
    format_locations,
    format_pass_groups,
    format_passes,
    format_subscriptions,
    is_known_locale,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from satwatch.watches.scheduler import WatchScheduler
    from satwatch.watches.service import WatchService

logger = logging.getLogger("telegram")


@dataclass(frozen=True)
class CommandContext:
    """Who issued a command, and where."""

    user_id: str
    chat_id: str
    language_code: str | None = None

    @property
    def locale(self) -> str | None:
        if self.language_code and is_known_locale(self.language_code):
            return self.language_code
        return None


@dataclass(frozen=True)
class CommandSpec:
    name: str
    usage: str
    description: str


COMMANDS: list[CommandSpec] = [
    CommandSpec("add_location", "<name> <lat> <lon> <alt>", "Add an observer location"),
    CommandSpec("locations", "", "List locations"),
    CommandSpec("remove_location", "<name>", "Remove a location you created"),
    CommandSpec("watch", "<norad_id> <location> <min_elevation>", "Watch a satellite in this chat"),
    CommandSpec("unwatch", "<norad_id> <location> [chat_id]", "Stop watching a satellite"),
    CommandSpec("watches", "", "List watched satellites"),
    CommandSpec("update_watches", "", "Check watched satellites now"),
    CommandSpec("passes", "<norad_id> <location> <days> <min_elevation>", "Upcoming passes"),
    CommandSpec("noaa_passes", "<location> <days> <min_elevation>", "Upcoming NOAA 15/18/19 passes"),
]


def split_args(raw: str | None) -> list[str]:
    try:
        return shlex.split(raw or "")
    except ValueError as e:
        raise ValidationError(f"Could not parse arguments: {e}") from e


def _usage(name: str) -> str:
    spec = next(c for c in COMMANDS if c.name == name)
    return f"Usage: /{spec.name} {spec.usage}".rstrip()


def _expect(args: list[str], name: str, required: int, optional: int = 0) -> None:
    if not required <= len(args) <= required + optional:
        raise ValidationError(_usage(name))


def _int(value: str, label: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{label} must be a whole number, got {value!r}") from None


def _float(value: str, label: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ValidationError(f"{label} must be a number, got {value!r}") from None


class WatchCommands:
    """Dispatches bot commands to the watch service."""

    def __init__(self, service: WatchService, scheduler: WatchScheduler | None = None):
        self._service = service
        self._scheduler = scheduler
        self._handlers: dict[str, Callable[[CommandContext, list[str]], Awaitable[str]]] = {
            "add_location": self.add_location,
            "locations": self.locations,
            "remove_location": self.remove_location,
            "watch": self.watch,
            "unwatch": self.unwatch,
            "watches": self.watches,
            "update_watches": self.update_watches,
            "passes": self.passes,
            "noaa_passes": self.noaa_passes,
        }

    @property
    def names(self) -> list[str]:
        return list(self._handlers)

    async def dispatch(self, name: str, ctx: CommandContext, raw_args: str | None) -> str:
        """Run command ``name``.

        Raises:
            SatwatchError: For any user-facing failure.
        """
        handler = self._handlers.get(name)
        if handler is None:
            raise ValidationError(f"Unknown command: /{name}")
        args = split_args(raw_args)
        logger.debug(
            "command_received",
            extra={
                "command.name": name,
                "command.args": len(args),
                "user_id": ctx.user_id,
                "chat_id": ctx.chat_id,
            },
        )
        return await handler(ctx, args)

    async def add_location(self, ctx: CommandContext, args: list[str]) -> str:
        _expect(args, "add_location", 4)
        name, lat, lon, alt = args
        location = await self._service.add_location(
            ctx.user_id,
            name,
            _float(lat, "Latitude"),
            _float(lon, "Longitude"),
            _float(alt, "Altitude"),
        )
        return f"Location added: {location.name}"

    async def locations(self, ctx: CommandContext, args: list[str]) -> str:
        _expect(args, "locations", 0)
        return format_locations(await self._service.list_locations())

    async def remove_location(self, ctx: CommandContext, args: list[str]) -> str:
        _expect(args, "remove_location", 1)
        location = await self._service.remove_location(ctx.user_id, args[0])
        return f"Location removed: {location.name}"

    async def watch(self, ctx: CommandContext, args: list[str]) -> str:
        _expect(args, "watch", 3)
        object_id, location_name, min_elevation = args
        subscription = await self._service.watch(
            ctx.user_id,
            ctx.chat_id,
            _int(object_id, "NORAD id"),
            location_name,
            _float(min_elevation, "Minimum elevation"),
            locale=ctx.locale,
        )
        return (
            f"Satellite watched: {subscription.display_name} with a minimum "
            f"elevation of {subscription.min_elevation:g}° at {subscription.location_name}"
        )

    async def unwatch(self, ctx: CommandContext, args: list[str]) -> str:
        _expect(args, "unwatch", 2, optional=1)
        object_id, location_name = args[0], args[1]
        chat_id = args[2] if len(args) == 3 else ctx.chat_id
        subscription = await self._service.unwatch(
            ctx.user_id, _int(object_id, "NORAD id"), location_name, chat_id
        )
        return f"Watched satellite removed: {subscription.display_name}"

    async def watches(self, ctx: CommandContext, args: list[str]) -> str:
        _expect(args, "watches", 0)
        return format_subscriptions(await self._service.list_subscriptions())

    async def update_watches(self, ctx: CommandContext, args: list[str]) -> str:
        _expect(args, "update_watches", 0)
        if self._scheduler is None:
            raise ValidationError("Watch updates are not available")
        report = await self._scheduler.run_now()
        return f"Updated watched satellites: {report.summary()}"

    async def passes(self, ctx: CommandContext, args: list[str]) -> str:
        _expect(args, "passes", 4)
        object_id, location_name, days, min_elevation = args
        day_count = _int(days, "Days")
        passes = await self._service.upcoming_passes(
            _int(object_id, "NORAD id"),
            location_name,
            day_count,
            _float(min_elevation, "Minimum elevation"),
        )
        return format_passes(passes, location_name, day_count, self._reply_locale(ctx))

    async def noaa_passes(self, ctx: CommandContext, args: list[str]) -> str:
        _expect(args, "noaa_passes", 3)
        location_name, days, min_elevation = args
        day_count = _int(days, "Days")
        groups = await self._service.noaa_passes(
            location_name, day_count, _float(min_elevation, "Minimum elevation")
        )
        return format_pass_groups(groups, location_name, day_count, self._reply_locale(ctx))

    def _reply_locale(self, ctx: CommandContext) -> str:
        return ctx.locale or self._service.default_locale
