"""One-shot watch cycle command."""

import asyncio
from pathlib import Path

import typer

from satwatch.cli.console import dim, error, print_table, success, warning
from satwatch.cli.runtime import ConfigOption
from satwatch.config import ConfigError
from satwatch.errors import PersistenceError
from satwatch.watches import CycleReport


def register(app: typer.Typer) -> None:
    """Register the update command."""

    @app.command()
    def update(config: ConfigOption = None) -> None:
        """Check every watched satellite once and send notifications now.

        Refuses to run while `satwatch serve` owns the same state file.
        """
        from satwatch.logging import configure_logging

        configure_logging()
        try:
            report = asyncio.run(_run_update(config))
        except (ConfigError, PersistenceError) as e:
            error(str(e))
            raise typer.Exit(1) from None
        _print_report(report)


async def _run_update(config_path: Path | None) -> CycleReport:
    from aiogram import Bot

    from satwatch.cli.runtime import bootstrap_runtime
    from satwatch.config import load_config
    from satwatch.logging import register_secrets
    from satwatch.providers.telegram import TelegramNotificationSink

    config = load_config(config_path)
    telegram_config = config.require_telegram()
    n2yo_config = config.require_n2yo()
    register_secrets(
        telegram_config.bot_token.get_secret_value(),  # type: ignore[union-attr]
        n2yo_config.api_key.get_secret_value(),  # type: ignore[union-attr]
    )

    runtime = await bootstrap_runtime(config)
    try:
        bot = Bot(token=telegram_config.bot_token.get_secret_value())  # type: ignore[union-attr]
        try:
            cycle = runtime.create_cycle(TelegramNotificationSink(bot))
            return await cycle.run()
        finally:
            await bot.session.close()
    finally:
        await runtime.close()


def _print_report(report: CycleReport) -> None:
    if report.failed or report.missing_location:
        warning(f"Updated watched satellites: {report.summary()}")
    else:
        success(f"Updated watched satellites: {report.summary()}")

    failures = [
        ("fetch", sub_id, message) for sub_id, message in report.fetch_failures.items()
    ] + [
        ("delivery", sub_id, message)
        for sub_id, message in report.delivery_failures.items()
    ]
    print_table(
        "Failures",
        [("Stage", "yellow"), ("Watch", "cyan"), ("Error", "")],
        failures,
        empty="No failures",
    )

    if report.missing_location:
        dim(f"Missing location: {', '.join(report.missing_location)}")
