"""Tests for the command surface and its HTTP routes."""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest
from aiohttp.test_utils import TestClient, TestServer

from drivesync.auth import AuthToken, LoginError, LoginResponse, LoginUser, TokenStore, TokenStoreError
from drivesync.commands import DriveCommands
from drivesync.config import ConfigManager, DriveConfig
from drivesync.core import (
    INIT_MARKER_NAME,
    NotConfiguredError,
    NotLoggedInError,
    SyncEngine,
    SyncReport,
    SyncState,
)
from drivesync.server import create_web_app
from drivesync.watcher import ChangeWatcher

from conftest import FakeRclone


LOGIN_RESPONSE = LoginResponse(
    token="1|plain-token",
    user=LoginUser(id="42", email="user@example.com", name="Test User", tenant_id="tenant-1")
)


@pytest.fixture
def commands(tmp_path):
    manager = ConfigManager(tmp_path / "config.yaml")
    manager.update_config(DriveConfig(
        personal_sync_path=tmp_path / "p",
        shared_sync_path=tmp_path / "s"
    ))
    return DriveCommands(
        engine=SyncEngine(),
        config_manager=manager,
        token_store=TokenStore(tmp_path / "tokens.json"),
        on_config_change=AsyncMock()
    )


@pytest.fixture
def logged_in(commands, drive_config):
    commands.config_manager.update_config(drive_config)
    commands.token_store.store_token(drive_config.user_email, AuthToken(token="1|plain-token"))
    commands.engine.set_configured(True)
    return commands


class TestDriveCommands:

    @pytest.mark.asyncio
    async def test_login_configures_account(self, commands):
        with patch("drivesync.commands.login", new=AsyncMock(return_value=LOGIN_RESPONSE)):
            user = await commands.login("https://docs.example.com", "user@example.com", "secret")

        assert user.tenant_id == "tenant-1"
        config = commands.get_config()
        assert config.is_configured()
        assert config.tenant_id == "tenant-1"
        assert commands.token_store.get_token("user@example.com").token == "1|plain-token"
        assert commands.get_status().state == SyncState.IDLE
        commands.on_config_change.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_login_changes_nothing(self, commands):
        with patch("drivesync.commands.login", new=AsyncMock(side_effect=LoginError("Login failed (401): no"))):
            with pytest.raises(LoginError):
                await commands.login("https://docs.example.com", "user@example.com", "wrong")

        assert not commands.get_config().is_configured()
        assert commands.token_store.get_token("user@example.com") is None
        assert commands.get_status().state == SyncState.NOT_CONFIGURED

    @pytest.mark.asyncio
    async def test_logout_forgets_everything(self, logged_in):
        await logged_in.logout()

        assert not logged_in.get_config().is_configured()
        assert logged_in.token_store.get_token("user@example.com") is None
        assert logged_in.get_status().state == SyncState.NOT_CONFIGURED

    @pytest.mark.asyncio
    async def test_logout_while_syncing_ends_not_configured(self, logged_in):
        gate = asyncio.Event()
        fake = FakeRclone(gate=gate)

        with patch("asyncio.create_subprocess_exec", new=fake):
            run = asyncio.create_task(logged_in.trigger_sync())
            while not fake.bisync_calls:
                await asyncio.sleep(0)

            await logged_in.logout()
            gate.set()
            await run

        assert not logged_in.get_config().is_configured()
        assert logged_in.get_status().state == SyncState.NOT_CONFIGURED

    @pytest.mark.asyncio
    async def test_trigger_sync_requires_account(self, commands):
        with pytest.raises(NotConfiguredError):
            await commands.trigger_sync()

    @pytest.mark.asyncio
    async def test_trigger_sync_requires_token(self, logged_in):
        logged_in.token_store.remove_token("user@example.com")

        with pytest.raises(NotLoggedInError):
            await logged_in.trigger_sync()

    @pytest.mark.asyncio
    async def test_scheduled_sync_skips_quietly(self, commands):
        assert await commands.run_scheduled_sync("timer") is None

    @pytest.mark.asyncio
    async def test_trigger_sync_uses_stored_token(self, logged_in):
        fake = FakeRclone()
        with patch("asyncio.create_subprocess_exec", new=fake):
            report = await logged_in.trigger_sync()

        assert report.success
        assert fake.obscure_calls[0][0][-1] == "1|plain-token"

    @pytest.mark.asyncio
    async def test_sync_restarts_watcher_on_new_roots(self, logged_in, drive_config):
        watcher = Mock()
        watcher.is_watching = True
        watcher.watched_paths = []
        logged_in.watcher = watcher

        with patch("asyncio.create_subprocess_exec", new=FakeRclone()):
            await logged_in.trigger_sync()

        watcher.start.assert_called_once_with(drive_config.watch_paths())
        watcher.discard_pending.assert_called_once()

    @pytest.mark.asyncio
    async def test_sync_own_writes_are_not_local_changes(self, logged_in, drive_config):
        drive_config.personal_sync_path.mkdir()
        drive_config.shared_sync_path.mkdir()
        watcher = ChangeWatcher(poll_interval=0.1)
        logged_in.watcher = watcher
        watcher.start(drive_config.watch_paths())
        try:
            await asyncio.sleep(0.3)
            with patch("asyncio.create_subprocess_exec", new=FakeRclone()):
                await logged_in.trigger_sync()

            # First run wrote both init markers
            assert (drive_config.personal_sync_path / INIT_MARKER_NAME).exists()
            await asyncio.sleep(0.5)
            assert watcher.has_changes() is False

            (drive_config.shared_sync_path / "notes.txt").write_text("edited by user")
            for _ in range(50):
                if watcher.has_changes():
                    break
                await asyncio.sleep(0.1)
            else:
                pytest.fail("user change was not reported")
        finally:
            watcher.stop()

    @pytest.mark.asyncio
    async def test_skipped_sync_keeps_local_changes(self, logged_in, drive_config):
        watcher = Mock()
        watcher.is_watching = True
        logged_in.watcher = watcher

        with patch.object(logged_in.engine, "sync_all", new=AsyncMock(return_value=SyncReport(skipped=True))):
            report = await logged_in.trigger_sync()

        assert report.skipped
        watcher.discard_pending.assert_not_called()

    @pytest.mark.asyncio
    async def test_config_change_toggles_watcher(self, logged_in, drive_config):
        watcher = Mock()
        logged_in.watcher = watcher

        await logged_in.update_config(drive_config.model_copy(update={"watch_local_changes": False}))
        watcher.stop.assert_called_once()

        await logged_in.update_config(drive_config)
        watcher.start.assert_called_once_with(drive_config.watch_paths())

    def test_activity_default_limit(self, commands):
        for _ in range(60):
            commands.engine.activity_log.record("sync_personal", "success")

        assert len(commands.get_activity()) == 50
        assert len(commands.get_activity(5)) == 5


class TestHttpRoutes:

    @pytest.mark.asyncio
    async def test_health(self, commands):
        async with TestClient(TestServer(create_web_app(commands))) as client:
            response = await client.get("/health")
            assert response.status == 200
            assert (await response.json())["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_status_and_activity(self, logged_in):
        async with TestClient(TestServer(create_web_app(logged_in))) as client:
            with patch("asyncio.create_subprocess_exec", new=FakeRclone()):
                response = await client.post("/sync")
            assert response.status == 200
            assert (await response.json())["success"] is True

            response = await client.get("/status")
            assert await response.json() == {"state": "idle", "message": None}

            response = await client.get("/activity", params={"limit": "1"})
            entries = await response.json()
            assert [entry["action"] for entry in entries] == ["sync_shared"]
            assert entries[0]["status"] == "success"

    @pytest.mark.asyncio
    async def test_bad_activity_limit(self, commands):
        async with TestClient(TestServer(create_web_app(commands))) as client:
            assert (await client.get("/activity", params={"limit": "x"})).status == 400
            assert (await client.get("/activity", params={"limit": "-1"})).status == 400

    @pytest.mark.asyncio
    async def test_sync_not_configured(self, commands):
        async with TestClient(TestServer(create_web_app(commands))) as client:
            response = await client.post("/sync")
            assert response.status == 409
            assert (await response.json())["error"] == "Not configured"

    @pytest.mark.asyncio
    async def test_sync_obscure_failure(self, logged_in):
        async with TestClient(TestServer(create_web_app(logged_in))) as client:
            with patch("asyncio.create_subprocess_exec", new=FakeRclone(obscure_returncode=1)):
                response = await client.post("/sync")
            assert response.status == 502
            assert (await response.json())["error"] == "Failed to obscure password"

    @pytest.mark.asyncio
    async def test_corrupt_token_file_is_json_error(self, logged_in):
        logged_in.token_store.token_storage_path.write_text("{not json")

        async with TestClient(TestServer(create_web_app(logged_in))) as client:
            response = await client.post("/sync")
            assert response.status == 500
            assert (await response.json())["error"].startswith("Failed to load tokens")

            response = await client.post("/logout")
            assert response.status == 500
            assert "error" in await response.json()

    @pytest.mark.asyncio
    async def test_unwritable_token_store_on_login(self, commands):
        failing = Mock(side_effect=TokenStoreError("Failed to save tokens: read-only"))
        async with TestClient(TestServer(create_web_app(commands))) as client:
            with patch("drivesync.commands.login", new=AsyncMock(return_value=LOGIN_RESPONSE)), \
                    patch.object(commands.token_store, "store_token", new=failing):
                response = await client.post("/login", json={
                    "server_url": "https://docs.example.com",
                    "email": "user@example.com",
                    "password": "secret",
                })

            assert response.status == 500
            assert await response.json() == {"error": "Failed to save tokens: read-only"}
            assert not commands.get_config().is_configured()

    @pytest.mark.asyncio
    async def test_config_round_trip(self, commands, tmp_path):
        async with TestClient(TestServer(create_web_app(commands))) as client:
            config = await (await client.get("/config")).json()
            config["sync_interval_secs"] = 120

            response = await client.put("/config", json=config)
            assert response.status == 200
            assert (await response.json())["sync_interval_secs"] == 120
            assert commands.get_config().sync_interval_secs == 120

    @pytest.mark.asyncio
    async def test_invalid_config(self, commands):
        async with TestClient(TestServer(create_web_app(commands))) as client:
            response = await client.put("/config", json={"sync_interval_secs": 1})
            assert response.status == 400

            response = await client.put("/config", data="not json")
            assert response.status == 400

    @pytest.mark.asyncio
    async def test_login_routes(self, commands):
        async with TestClient(TestServer(create_web_app(commands))) as client:
            response = await client.post("/login", json={"email": "user@example.com"})
            assert response.status == 400

            with patch("drivesync.commands.login", new=AsyncMock(side_effect=LoginError("Login failed (401): no"))):
                response = await client.post("/login", json={
                    "server_url": "https://docs.example.com",
                    "email": "user@example.com",
                    "password": "wrong",
                })
            assert response.status == 401

            with patch("drivesync.commands.login", new=AsyncMock(return_value=LOGIN_RESPONSE)):
                response = await client.post("/login", json={
                    "server_url": "https://docs.example.com",
                    "email": "user@example.com",
                    "password": "secret",
                })
            assert response.status == 200
            assert (await response.json())["email"] == "user@example.com"

            response = await client.post("/logout")
            assert response.status == 200
            assert not commands.get_config().is_configured()
