"""Background agent mirroring local directories against a WebDAV server with rclone bisync."""

__version__ = "0.1.0"
