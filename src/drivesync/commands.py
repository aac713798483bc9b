"""Command surface exposed to the UI layer."""

from typing import Awaitable, Callable, List, Optional

from .auth import AuthToken, LoginUser, TokenStore, TokenType, login
from .config import ConfigManager, DriveConfig
from .core import (
    ActivityEntry,
    NotConfiguredError,
    NotLoggedInError,
    SyncEngine,
    SyncReport,
    SyncStatus,
)
from .core.sync_engine import DEFAULT_ACTIVITY_LIMIT
from .watcher import ChangeWatcher
from .utils.logging import get_logger


ConfigListener = Callable[[DriveConfig], Awaitable[None]]


class DriveCommands:
    """Entry points used by the HTTP server and the scheduler.

    Holds the collaborators of the sync engine (configuration, token store,
    watcher) and turns them into sync_all arguments.
    """

    def __init__(
        self,
        engine: SyncEngine,
        config_manager: ConfigManager,
        token_store: TokenStore,
        watcher: Optional[ChangeWatcher] = None,
        on_config_change: Optional[ConfigListener] = None
    ):
        self.engine = engine
        self.config_manager = config_manager
        self.token_store = token_store
        self.watcher = watcher
        self.on_config_change = on_config_change
        self.logger = get_logger(self.__class__.__name__)

    async def login(self, server_url: str, email: str, password: str) -> LoginUser:
        """Log in, store the token and record the account in the config."""
        response = await login(server_url, email, password)

        self.token_store.store_token(
            email,
            AuthToken(token=response.token, token_type=TokenType.SANCTUM, expires_at=None)
        )
        config = self.config_manager.update_account(
            server_url=server_url,
            user_email=email,
            tenant_id=response.user.tenant_id
        )
        self.engine.set_configured(True)
        await self._config_changed(config)

        return response.user

    async def logout(self) -> None:
        """Forget the token, stop watching and reset the configuration."""
        email = self.config_manager.get_config().user_email
        if email:
            self.token_store.remove_token(email)

        config = self.config_manager.reset()
        self.engine.set_configured(False)
        await self._config_changed(config)

        self.logger.info("Logged out", email=email)

    def get_status(self) -> SyncStatus:
        return self.engine.get_status()

    def get_config(self) -> DriveConfig:
        return self.config_manager.get_config()

    async def update_config(self, config: DriveConfig) -> DriveConfig:
        config = self.config_manager.update_config(config)
        await self._config_changed(config)
        return config

    def get_activity(self, limit: Optional[int] = None) -> List[ActivityEntry]:
        return self.engine.get_activity(DEFAULT_ACTIVITY_LIMIT if limit is None else limit)

    async def trigger_sync(self) -> SyncReport:
        """Run one sync with the current configuration and stored token.

        Raises:
            NotConfiguredError: If no account is configured
            NotLoggedInError: If no valid token is stored
            ObscureError: If rclone cannot obscure the token
        """
        config = self.config_manager.get_config()
        if not config.is_configured():
            raise NotConfiguredError("Not configured")

        token = self.token_store.get_token(config.user_email)
        if token is None:
            raise NotLoggedInError("Not logged in")

        report = await self.engine.sync_all(config, token.token)
        if not report.skipped:
            self._refresh_watcher(config)
        return report

    async def run_scheduled_sync(self, trigger: str) -> Optional[SyncReport]:
        """Scheduler entry point: like trigger_sync, but expected failures are logged."""
        try:
            return await self.trigger_sync()
        except (NotConfiguredError, NotLoggedInError) as e:
            self.logger.warning("Scheduled sync skipped", trigger=trigger, reason=str(e))
            return None

    def _refresh_watcher(self, config: DriveConfig) -> None:
        """Pick up sync roots created by the first sync and drop the sync's own writes."""
        if self.watcher is None or not self.watcher.is_watching:
            return

        existing = [path for path in config.watch_paths() if path.exists()]
        if set(existing) != set(self.watcher.watched_paths):
            self.watcher.start(existing)

        self.watcher.discard_pending()

    async def _config_changed(self, config: DriveConfig) -> None:
        if self.watcher is not None:
            if config.is_configured() and config.watch_local_changes:
                self.watcher.start(config.watch_paths())
            else:
                self.watcher.stop()

        if self.on_config_change is not None:
            await self.on_config_change(config)
