"""Read-only views of the stored locations and watches."""

import typer

from satwatch.cli.console import error, print_table
from satwatch.cli.runtime import ConfigOption, read_snapshot
from satwatch.config import ConfigError, load_config
from satwatch.errors import PersistenceError
from satwatch.state import StateSnapshot


def _load(config_path) -> StateSnapshot:
    try:
        return read_snapshot(load_config(config_path))
    except (ConfigError, PersistenceError) as e:
        error(str(e))
        raise typer.Exit(1) from None


def register(app: typer.Typer) -> None:
    """Register the locations and watches commands."""

    @app.command()
    def locations(config: ConfigOption = None) -> None:
        """List stored observer locations."""
        snapshot = _load(config)
        print_table(
            "Locations",
            [
                ("Name", "cyan"),
                ("Latitude", ""),
                ("Longitude", ""),
                ("Altitude (m)", ""),
                ("Creator", "dim"),
            ],
            [
                (loc.name, loc.latitude, loc.longitude, loc.altitude, loc.creator)
                for loc in snapshot.locations
            ],
            empty="No locations",
        )

    @app.command()
    def watches(config: ConfigOption = None) -> None:
        """List watched satellites."""
        snapshot = _load(config)
        known = {loc.name for loc in snapshot.locations}
        print_table(
            "Watched satellites",
            [
                ("ID", "dim"),
                ("Satellite", "cyan"),
                ("NORAD", ""),
                ("Location", ""),
                ("Min El", ""),
                ("Chat", ""),
                ("Notified", ""),
            ],
            [
                (
                    sub.id,
                    sub.display_name,
                    sub.tracked_object_id,
                    sub.location_name
                    if sub.location_name in known
                    else f"[red]{sub.location_name} (missing)[/red]",
                    f"{sub.min_elevation:g}°",
                    sub.channel_id,
                    len(sub.history),
                )
                for sub in snapshot.subscriptions
            ],
            empty="No watched satellites",
        )
