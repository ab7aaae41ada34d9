"""Console output for CLI commands."""

from collections.abc import Iterable, Sequence

from rich.console import Console
from rich.table import Table

console = Console()

# Column spec: header plus an optional style; numeric columns are right-aligned.
Column = tuple[str, str]


def error(msg: str) -> None:
    console.print(f"[red]{msg}[/red]")


def warning(msg: str) -> None:
    console.print(f"[yellow]{msg}[/yellow]")


def success(msg: str) -> None:
    console.print(f"[green]{msg}[/green]")


def dim(msg: str) -> None:
    console.print(f"[dim]{msg}[/dim]")


def _cell(value: object) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def print_table(
    title: str,
    columns: Sequence[Column],
    rows: Iterable[Sequence[object]],
    *,
    empty: str,
) -> None:
    """Print ``rows`` as a table, or ``empty`` dimmed when there are none.

    Floats render compactly (``51.5``, ``20``) and right-aligned.
    """
    rows = list(rows)
    if not rows:
        dim(empty)
        return

    numeric = [
        any(isinstance(row[i], int | float) for row in rows) for i in range(len(columns))
    ]
    table = Table(title=title)
    for (name, style), right in zip(columns, numeric, strict=True):
        table.add_column(name, style=style or None, justify="right" if right else "left")
    for row in rows:
        table.add_row(*(_cell(value) for value in row))
    console.print(table)
