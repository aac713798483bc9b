"""File-backed storage for API tokens, keyed by user email."""

import json
import os
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import BaseModel, ValidationError

from ..utils.logging import get_logger


class TokenType(str, Enum):
    SANCTUM = "sanctum"
    JWT = "jwt"


class AuthToken(BaseModel):
    """Token issued by the server at login."""

    token: str
    token_type: TokenType = TokenType.SANCTUM
    expires_at: Optional[datetime] = None

    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) >= expires_at


class TokenStoreError(Exception):
    """Raised when the token file cannot be read or written."""
    pass


class TokenStore:
    """Stores tokens as JSON in a file readable only by the owner."""

    def __init__(self, token_storage_path: Union[str, Path]):
        self.token_storage_path = Path(token_storage_path).expanduser()
        self.logger = get_logger(self.__class__.__name__)
        self._lock = threading.Lock()

    def store_token(self, email: str, token: AuthToken) -> None:
        with self._lock:
            tokens = self._load()
            tokens[email] = token.model_dump(mode="json")
            self._save(tokens)
        self.logger.info("Token stored", email=email, token_type=token.token_type.value)

    def get_token(self, email: str) -> Optional[AuthToken]:
        """Return the stored token, or None if missing or expired.

        Expired tokens are removed as a side effect.
        """
        with self._lock:
            tokens = self._load()
            data = tokens.get(email)
            if data is None:
                return None

            try:
                token = AuthToken(**data)
            except ValidationError as e:
                raise TokenStoreError(f"Stored token for {email} is invalid: {e}")

            if token.is_expired():
                del tokens[email]
                self._save(tokens)
                self.logger.info("Removed expired token", email=email)
                return None

            return token

    def remove_token(self, email: str) -> None:
        """Delete the token for ``email``; missing tokens are not an error."""
        with self._lock:
            tokens = self._load()
            if tokens.pop(email, None) is not None:
                self._save(tokens)
                self.logger.info("Token removed", email=email)

    def _load(self) -> Dict[str, dict]:
        if not self.token_storage_path.exists():
            return {}
        try:
            with open(self.token_storage_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise TokenStoreError(f"Failed to load tokens: {e}")

    def _save(self, tokens: Dict[str, dict]) -> None:
        try:
            self.token_storage_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.token_storage_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(tokens, f, indent=2)
        except OSError as e:
            raise TokenStoreError(f"Failed to save tokens: {e}")
