"""oprelay entry point: wires everything together and runs the relay."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import click

from oprelay import __version__
from oprelay.config import Settings, load_settings
from oprelay.core.directory import UserDirectory
from oprelay.core.notifier import DiscordNotifier
from oprelay.core.scheduler import Scheduler
from oprelay.core.summary import SummaryAggregator
from oprelay.openproject.client import OpenProjectClient
from oprelay.utils.logging import get_logger, setup_logging
from oprelay.webhooks.router import EventRouter
from oprelay.webhooks.server import RelayServer

log = get_logger(__name__)


class Relay:
    """Main application orchestrator."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

        self.client = OpenProjectClient(settings.openproject)
        self.notifier = DiscordNotifier(settings.discord, timeout=settings.openproject.http_timeout)
        self.directory = UserDirectory(settings.directory)
        self.aggregator = SummaryAggregator(settings, self.client, self.notifier, self.directory)
        self.router = EventRouter(settings, self.client, self.notifier)
        self.server = RelayServer(settings, self.router, self.aggregator)
        self.scheduler = Scheduler()

    def _register_jobs(self) -> None:
        self.scheduler.add_daily(
            "daily_summary",
            self.settings.scheduler.daily_summary_times,
            self.aggregator.send_daily_summary,
        )
        self.scheduler.add_daily(
            "due_users",
            self.settings.scheduler.due_users_times,
            self.aggregator.send_due_reminders,
        )

    async def start(self) -> None:
        log.info("relay_starting", version=__version__)
        if not self.settings.openproject.configured:
            log.error("openproject_not_configured",
                      msg="OPENPROJECT_BASE_URL / OPENPROJECT_API_KEY missing; OpenProject calls will be skipped")

        await self.server.start()

        if self.settings.scheduler.enabled:
            self._register_jobs()
            await self.scheduler.start()

        log.info("relay_ready")

    async def stop(self) -> None:
        log.info("relay_stopping")
        await self.scheduler.stop()
        await self.server.stop()
        await self.client.close()
        await self.notifier.close()
        log.info("relay_stopped")


async def run(settings: Settings) -> None:
    app = Relay(settings)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _signal_handler(signame: str) -> None:
        log.info("shutdown_signal", signal=signame)
        stop_event.set()

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _signal_handler, sig.name)

    await app.start()

    try:
        if sys.platform == "win32":
            while not stop_event.is_set():
                await asyncio.sleep(1)
        else:
            await stop_event.wait()
    except KeyboardInterrupt:
        pass
    finally:
        await app.stop()


@click.command()
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.option("--port", type=int, default=None, help="Port to listen on (overrides PORT)")
def cli(config_path: str | None, log_level: str | None, port: int | None) -> None:
    """Start the GitHub <-> OpenProject relay."""
    settings = load_settings(config_path)
    if log_level:
        settings.log_level = log_level
    if port is not None:
        settings.server.port = port
    setup_logging(
        level=settings.log_level,
        json_output=settings.log_json,
        log_file=settings.log_file or None,
    )
    try:
        asyncio.run(run(settings))
    finally:
        # Flush the log file before exiting
        logging.shutdown()


if __name__ == "__main__":
    cli()
