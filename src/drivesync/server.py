"""HTTP routes exposing the command surface."""

from datetime import datetime, timezone

from aiohttp import web
from pydantic import ValidationError

from .auth import LoginError, TokenStoreError
from .commands import DriveCommands
from .config import ConfigurationError, DriveConfig
from .core import NotConfiguredError, NotLoggedInError, ObscureError
from .utils.logging import get_logger


COMMANDS_KEY = web.AppKey("commands", DriveCommands)

logger = get_logger(__name__)


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _read_json(request: web.Request) -> dict:
    try:
        data = await request.json()
    except ValueError:
        raise web.HTTPBadRequest(
            text='{"error": "Request body must be JSON"}',
            content_type="application/json"
        )
    if not isinstance(data, dict):
        raise web.HTTPBadRequest(
            text='{"error": "Request body must be a JSON object"}',
            content_type="application/json"
        )
    return data


async def health_handler(request: web.Request) -> web.Response:
    return web.json_response({
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat()
    })


async def status_handler(request: web.Request) -> web.Response:
    commands = request.app[COMMANDS_KEY]
    return web.json_response(commands.get_status().model_dump(mode="json"))


async def activity_handler(request: web.Request) -> web.Response:
    commands = request.app[COMMANDS_KEY]

    limit = None
    if "limit" in request.query:
        try:
            limit = int(request.query["limit"])
        except ValueError:
            return _error("limit must be an integer", 400)
        if limit < 0:
            return _error("limit must not be negative", 400)

    entries = commands.get_activity(limit)
    return web.json_response([entry.model_dump(mode="json") for entry in entries])


async def sync_handler(request: web.Request) -> web.Response:
    commands = request.app[COMMANDS_KEY]

    try:
        report = await commands.trigger_sync()
    except (NotConfiguredError, NotLoggedInError) as e:
        return _error(str(e), 409)
    except ObscureError as e:
        logger.error("Manual sync aborted", error=str(e))
        return _error(str(e), 502)
    except TokenStoreError as e:
        logger.error("Token store unavailable", error=str(e))
        return _error(str(e), 500)

    if report.skipped:
        return web.json_response(report.to_dict(), status=409)
    return web.json_response(report.to_dict())


async def get_config_handler(request: web.Request) -> web.Response:
    commands = request.app[COMMANDS_KEY]
    return web.json_response(commands.get_config().to_dict())


async def update_config_handler(request: web.Request) -> web.Response:
    commands = request.app[COMMANDS_KEY]
    data = await _read_json(request)

    try:
        config = DriveConfig(**data)
    except ValidationError as e:
        return _error(f"Invalid configuration: {e}", 400)

    try:
        config = await commands.update_config(config)
    except ConfigurationError as e:
        return _error(str(e), 500)

    return web.json_response(config.to_dict())


async def login_handler(request: web.Request) -> web.Response:
    commands = request.app[COMMANDS_KEY]
    data = await _read_json(request)

    missing = [key for key in ("server_url", "email", "password") if not data.get(key)]
    if missing:
        return _error(f"Missing fields: {', '.join(missing)}", 400)

    try:
        user = await commands.login(data["server_url"], data["email"], data["password"])
    except LoginError as e:
        return _error(str(e), 401)
    except ConfigurationError as e:
        return _error(str(e), 400)
    except TokenStoreError as e:
        logger.error("Token store unavailable", error=str(e))
        return _error(str(e), 500)

    return web.json_response(user.model_dump(mode="json"))


async def logout_handler(request: web.Request) -> web.Response:
    commands = request.app[COMMANDS_KEY]
    try:
        await commands.logout()
    except TokenStoreError as e:
        logger.error("Token store unavailable", error=str(e))
        return _error(str(e), 500)
    return web.json_response({"status": "logged_out"})


def create_web_app(commands: DriveCommands) -> web.Application:
    """Build the aiohttp application serving ``commands``."""
    app = web.Application()
    app[COMMANDS_KEY] = commands

    app.router.add_get('/health', health_handler)
    app.router.add_get('/status', status_handler)
    app.router.add_get('/activity', activity_handler)
    app.router.add_post('/sync', sync_handler)
    app.router.add_get('/config', get_config_handler)
    app.router.add_put('/config', update_config_handler)
    app.router.add_post('/login', login_handler)
    app.router.add_post('/logout', logout_handler)

    return app
