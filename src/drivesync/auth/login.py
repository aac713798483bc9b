"""Email/password login against the document server."""

import asyncio

import aiohttp
from pydantic import BaseModel, ValidationError

from ..utils.logging import get_logger


DEVICE_NAME = "Drive Sync"

logger = get_logger(__name__)


class LoginError(Exception):
    """Raised when the server rejects a login or cannot be reached."""
    pass


class LoginUser(BaseModel):
    id: str
    email: str
    name: str
    tenant_id: str


class LoginResponse(BaseModel):
    token: str
    user: LoginUser


async def login(
    server_url: str,
    email: str,
    password: str,
    timeout_seconds: float = 30.0
) -> LoginResponse:
    """Log in with email and password and return the issued API token.

    Raises:
        LoginError: On connection failure, non-2xx status or malformed body
    """
    url = f"{server_url.rstrip('/')}/api/v1/auth/login"
    payload = {
        "email": email,
        "password": password,
        "device_name": DEVICE_NAME,
    }

    logger.info("Logging in", url=url, email=email)

    timeout = aiohttp.ClientTimeout(total=timeout_seconds)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=payload) as response:
                if response.status < 200 or response.status >= 300:
                    body = await response.text()
                    raise LoginError(f"Login failed ({response.status}): {body}")

                data = await response.json(content_type=None)
    except aiohttp.ClientError as e:
        raise LoginError(f"Connection error: {e}")
    except asyncio.TimeoutError:
        raise LoginError(f"Connection error: no response within {timeout_seconds:g} seconds")
    except ValueError as e:
        raise LoginError(f"Invalid response: {e}")

    try:
        result = LoginResponse(**data)
    except (TypeError, ValidationError) as e:
        raise LoginError(f"Invalid response: {e}")

    logger.info("Login succeeded", email=result.user.email, tenant_id=result.user.tenant_id)
    return result
