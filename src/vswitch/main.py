"""
vswitch Daemon - Main Entry Point
"""
import asyncio
import logging
import signal
import sys
from typing import Optional, Set

import structlog
import uvicorn
from fastapi import FastAPI

from vswitch.config import Settings, get_settings
from vswitch.api import attach_bridge, create_app, set_daemon_instance
from vswitch.api.websocket import broadcast_switches_reloaded
from vswitch.control.config_loader import ConfigLoader
from vswitch.control.timer_store import TimerStore
from vswitch.exceptions import BridgeIntegrationError, ConfigurationError
from vswitch.logging_config import get_file_handler, setup_logging
from vswitch.logic.registry import ReconcileSummary, SwitchRegistry

logger = structlog.get_logger(__name__)


class VSwitchDaemon:
    """Main daemon controller for the virtual switch service"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.store: Optional[TimerStore] = None
        self.registry: Optional[SwitchRegistry] = None
        self.config_loader = ConfigLoader(self.settings.config_file)
        self.app: Optional[FastAPI] = None
        self.should_exit = False
        self.reload_failures = 0
        self._background_tasks: Set[asyncio.Task] = set()

    async def startup(self):
        """Initialize all daemon components"""
        logger.info("vswitch_daemon_starting", version=self.settings.api_version)

        self.store = TimerStore(self.settings.storage_path)
        self.registry = SwitchRegistry(self.store, self.settings)

        try:
            attach_bridge(self.registry)
        except BridgeIntegrationError as e:
            logger.error("bridge_attach_failed", error=str(e))

        set_daemon_instance(self)
        self.app = create_app(self.settings)

        try:
            await self.reload()
        except ConfigurationError as e:
            # Keep serving the API so a fixed configuration can be reloaded
            logger.error("initial_configuration_failed", error=str(e))

        logger.info(
            "vswitch_daemon_ready",
            port=self.settings.daemon_port,
            switches=len(self.registry.controllers),
        )

    async def reload(self) -> ReconcileSummary:
        """
        Re-read the configuration file and reconcile the registry

        Returns:
            Reconciliation summary including per-record load errors

        Raises:
            ConfigurationError: The configuration file cannot be read
        """
        result = self.config_loader.load()
        summary = await self.registry.reconcile(result.switches)
        summary.errors = [str(e) for e in result.errors] + summary.errors
        self.registry.last_errors = summary.errors

        await broadcast_switches_reloaded(summary.to_dict())
        return summary

    def handle_reload_signal(self):
        """SIGHUP handler"""
        logger.info("signal_received", signal="SIGHUP")
        task = asyncio.ensure_future(self.reload())
        self._background_tasks.add(task)
        task.add_done_callback(self._reload_done)

    def _reload_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.reload_failures += 1
            logger.error(
                "configuration_reload_failed",
                error=str(error),
                exc_info=(type(error), error, error.__traceback__),
            )

    async def shutdown(self):
        """Gracefully shutdown all components"""
        logger.info("vswitch_daemon_shutting_down")

        for task in list(self._background_tasks):
            task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

        if self.registry is not None:
            await self.registry.shutdown()

        set_daemon_instance(None)
        logger.info("vswitch_daemon_stopped")


async def main_async():
    """Async main function"""
    daemon = VSwitchDaemon()

    try:
        await daemon.startup()

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGHUP, daemon.handle_reload_signal)
        except (NotImplementedError, AttributeError):
            logger.warning("reload_signal_unavailable")

        # uvicorn installs its own SIGINT/SIGTERM handlers
        config = uvicorn.Config(
            daemon.app,
            host=daemon.settings.daemon_host,
            port=daemon.settings.daemon_port,
            log_level=daemon.settings.log_level.lower(),
            access_log=True,
        )
        server = uvicorn.Server(config)
        await server.serve()

    except Exception as e:
        logger.error("daemon_error", error=str(e), exc_info=True)
        sys.exit(1)
    finally:
        await daemon.shutdown()


def main():
    """Entry point for the daemon"""
    # Initialize logging first
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

    if settings.log_file:
        logging.getLogger().addHandler(
            get_file_handler(settings.log_file, settings.log_level, json_format=settings.json_logs)
        )

    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        logger.info("interrupted_by_user")
        sys.exit(0)


if __name__ == "__main__":
    main()
