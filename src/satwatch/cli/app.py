"""Main CLI application."""

import typer

from satwatch.cli.commands import serve, state, update

app = typer.Typer(
    name="satwatch",
    help="satwatch - satellite pass notifications for Telegram",
    no_args_is_help=True,
)

serve.register(app)
update.register(app)
state.register(app)
