"""User configuration schema for the two synced directories."""

from pathlib import Path
from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator


DEFAULT_BASE_DIR = Path.home() / "DriveSync"

MIN_SYNC_INTERVAL_SECS = 30


class DriveConfig(BaseModel):
    """Configuration for the personal and shared directory pairs.

    ``server_url`` and ``user_email`` are filled in by a successful login;
    until both are set the agent is considered not configured.
    """

    # Account
    server_url: str = Field(default="", description="Server base URL, e.g. https://docs.example.com")
    user_email: str = Field(default="", description="User email, also the WebDAV username")
    tenant_id: str = Field(default="", description="Tenant identifier returned by login")

    # Local roots
    personal_sync_path: Path = Field(
        default_factory=lambda: DEFAULT_BASE_DIR / "Personal",
        description="Local directory mirrored against the personal WebDAV tree"
    )
    shared_sync_path: Path = Field(
        default_factory=lambda: DEFAULT_BASE_DIR / "Shared",
        description="Local directory mirrored against the shared WebDAV tree"
    )

    # Behaviour
    sync_interval_secs: int = Field(default=300, description="Seconds between scheduled syncs")
    watch_local_changes: bool = Field(default=True, description="Sync early when local files change")
    sync_on_startup: bool = Field(default=True, description="Run one sync when the agent starts")
    max_file_size_bytes: int = Field(default=0, description="Skip files larger than this (0 = unlimited)")

    @field_validator('server_url')
    @classmethod
    def validate_server_url(cls, v):
        v = v.strip()
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("Server URL must start with http:// or https://")
        return v

    @field_validator('personal_sync_path', 'shared_sync_path')
    @classmethod
    def validate_sync_path(cls, v):
        v = Path(v).expanduser()
        if not v.is_absolute():
            raise ValueError(f"Sync path must be absolute: {v}")
        return v

    @field_validator('sync_interval_secs')
    @classmethod
    def validate_interval(cls, v):
        if v < MIN_SYNC_INTERVAL_SECS:
            raise ValueError(f"Sync interval must be at least {MIN_SYNC_INTERVAL_SECS} seconds")
        return v

    @field_validator('max_file_size_bytes')
    @classmethod
    def validate_max_file_size(cls, v):
        if v < 0:
            raise ValueError("Maximum file size cannot be negative")
        return v

    def is_configured(self) -> bool:
        """Check if the configuration is complete (user logged in)."""
        return bool(self.server_url) and bool(self.user_email)

    def personal_webdav_url(self) -> str:
        """WebDAV URL of the personal tree."""
        return f"{self.server_url.rstrip('/')}/dav/personal"

    def shared_webdav_url(self) -> str:
        """WebDAV URL of the shared tree."""
        return f"{self.server_url.rstrip('/')}/dav/shared"

    def watch_paths(self) -> list[Path]:
        return [self.personal_sync_path, self.shared_sync_path]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to plain JSON/YAML compatible data."""
        return self.model_dump(mode="json")
