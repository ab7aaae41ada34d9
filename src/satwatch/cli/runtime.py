"""Shared runtime bootstrap helpers for CLI entrypoints."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import typer

from satwatch.config import SatwatchConfig
from satwatch.predictions import N2YOClient
from satwatch.state import (
    JsonFilePersistence,
    StateOwnerLock,
    StateSnapshot,
    StateStore,
)
from satwatch.watches import NotificationSink, PollCycle, WatchService

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration file",
    ),
]


@dataclass(slots=True)
class WatchRuntime:
    """Composed dependencies shared by the bot and one-shot commands."""

    config: SatwatchConfig
    store: StateStore
    client: N2YOClient
    service: WatchService
    owner: StateOwnerLock

    def create_cycle(self, sink: NotificationSink) -> PollCycle:
        return PollCycle(
            self.store,
            self.client,
            sink,
            forecast_days=self.config.watch.forecast_days,
        )

    async def close(self) -> None:
        try:
            await self.client.close()
        finally:
            self.owner.release()


async def bootstrap_runtime(config: SatwatchConfig) -> WatchRuntime:
    """Claim and open the state store and create the prediction client.

    The returned runtime owns the state file until ``close()``.

    Raises:
        ConfigError: If the N2YO key is missing.
        PersistenceError: If another process owns the state file, or it cannot
            be read or created.
    """
    client = N2YOClient.from_config(config.require_n2yo())
    owner = StateOwnerLock(config.state_path)
    try:
        owner.acquire()
        store = await StateStore.open(JsonFilePersistence(config.state_path))
    except BaseException:
        owner.release()
        await client.close()
        raise
    service = WatchService(store, client, default_locale=config.default_locale)
    return WatchRuntime(
        config=config, store=store, client=client, service=service, owner=owner
    )


def read_snapshot(config: SatwatchConfig) -> StateSnapshot:
    """Read the stored snapshot without creating a state file."""
    return JsonFilePersistence(config.state_path).load() or StateSnapshot()
