"""Main application entry point."""

import asyncio
import signal
import sys
from typing import Optional

from aiohttp import web_runner

from .auth import TokenStore
from .commands import DriveCommands
from .config import ConfigManager, DriveConfig, get_settings
from .core import SyncEngine
from .scheduler import SyncScheduler
from .server import create_web_app
from .utils.logging import setup_logging, get_logger
from .watcher import ChangeWatcher


class DriveSyncApp:
    """Background agent wiring the engine, watcher, scheduler and HTTP surface."""

    def __init__(self):
        """Initialize the application."""
        self.settings = get_settings()
        self.logger = get_logger("DriveSync")
        self.running = False
        self.web_runner: Optional[web_runner.AppRunner] = None

        self.config_manager = ConfigManager(self.settings.storage.config_file)
        self.token_store = TokenStore(self.settings.storage.token_file)
        self.engine = SyncEngine(
            rclone_path=self.settings.rclone.path,
            timeout_seconds=self.settings.rclone.timeout_seconds
        )
        self.watcher = ChangeWatcher(poll_interval=self.settings.watcher.poll_interval_seconds)
        self.commands = DriveCommands(
            engine=self.engine,
            config_manager=self.config_manager,
            token_store=self.token_store,
            watcher=self.watcher,
            on_config_change=self._on_config_change
        )
        self.scheduler = SyncScheduler(
            sync_callback=self.commands.run_scheduled_sync,
            watcher=self.watcher,
            watch_check_interval=self.settings.watcher.check_interval_seconds
        )

    async def startup(self):
        """Application startup."""
        self.logger.info(
            "Starting Drive Sync",
            version=self.settings.version,
            environment=self.settings.environment
        )

        config = self.config_manager.load_config()
        self.engine.set_configured(config.is_configured())

        if config.is_configured() and config.watch_local_changes:
            self.watcher.start(config.watch_paths())

        self.scheduler.start(config, initial_sync=True)

        await self._setup_web_server()

        self.running = True
        self.logger.info("Drive Sync started successfully")

    async def shutdown(self):
        """Application shutdown."""
        self.logger.info("Shutting down Drive Sync")
        self.running = False

        self.scheduler.stop()
        self.watcher.stop()
        await self._stop_web_server()

        self.logger.info("Drive Sync stopped")

    async def run(self):
        """Run until a shutdown signal arrives."""
        await self.startup()

        try:
            while self.running:
                await asyncio.sleep(1)
        finally:
            await self.shutdown()

    async def _on_config_change(self, config: DriveConfig):
        if self.scheduler.running:
            self.scheduler.reload_jobs(config)

    async def _setup_web_server(self):
        """Serve the command surface over HTTP."""
        host = self.settings.server.host
        port = self.settings.server.port

        self.web_runner = web_runner.AppRunner(create_web_app(self.commands))
        await self.web_runner.setup()

        site = web_runner.TCPSite(self.web_runner, host, port)
        await site.start()

        self.logger.info(f"Web server started on http://{host}:{port}")

    async def _stop_web_server(self):
        if self.web_runner:
            await self.web_runner.cleanup()
            self.web_runner = None
            self.logger.info("Web server stopped")


def setup_signal_handlers(app: DriveSyncApp):
    """Set up signal handlers for graceful shutdown."""
    def signal_handler(signum, frame):
        app.logger.info(f"Received signal {signum}")
        app.running = False

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


async def main():
    """Main entry point."""
    setup_logging()

    app = DriveSyncApp()
    setup_signal_handlers(app)

    await app.run()


def run():
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        sys.exit(0)
    except Exception as e:
        print(f"Drive Sync failed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
