"""CLI command modules."""

from satwatch.cli.commands import serve, state, update

__all__ = [
    "serve",
    "state",
    "update",
]
