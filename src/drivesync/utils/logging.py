"""Logging setup for the agent.

structlog renders every record, including records from aiohttp and
APScheduler, through ``ProcessorFormatter``: coloured key/value lines on the
console and one JSON object per line in the rotating log file.
"""

import functools
import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import List, Optional

import structlog
from colorlog.escape_codes import parse_colors
from structlog.typing import Processor


LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3

# Same palette the console used before structlog took over rendering
LOG_COLORS = {
    "debug": "cyan",
    "info": "green",
    "warning": "yellow",
    "error": "red",
    "critical": "red,bg_white",
}

# Per-run chatter from the watch-check job every few seconds
QUIET_LOGGERS = ("apscheduler.executors.default", "apscheduler.scheduler")


def _shared_processors() -> List[Processor]:
    return [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _console_renderer(format_type: str) -> Processor:
    if format_type == "json":
        return structlog.processors.JSONRenderer()

    if not sys.stdout.isatty():
        return structlog.dev.ConsoleRenderer(colors=False)

    level_styles = {level: parse_colors(colors) for level, colors in LOG_COLORS.items()}
    level_styles["exception"] = level_styles["error"]
    return structlog.dev.ConsoleRenderer(colors=True, level_styles=level_styles)


def _formatter(renderer: Processor, extra: Optional[List[Processor]] = None) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_processors(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *(extra or []),
            renderer,
        ],
    )


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None
) -> None:
    """Configure structlog and the root logger.

    Safe to call more than once; handlers installed by an earlier call are
    replaced, so each record is written once per destination.

    Args:
        log_level: Level name, defaults to ``LOG_LEVEL``
        log_format: ``console`` or ``json`` for stdout, defaults to ``LOG_FORMAT``
        log_file: Rotating JSON log path, defaults to ``LOG_FILE_PATH``
    """
    from ..config.settings import get_settings

    settings = get_settings()

    level = getattr(logging, (log_level or settings.logging.level).upper())
    format_type = log_format or settings.logging.format
    file_path = log_file or settings.logging.file_path

    handlers: List[logging.Handler] = [create_console_handler(format_type)]
    if file_path:
        handlers.append(create_file_handler(Path(file_path).expanduser()))

    logging.basicConfig(level=level, handlers=handlers, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def create_console_handler(format_type: str) -> logging.Handler:
    """stdout handler; coloured only when attached to a terminal."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_formatter(_console_renderer(format_type)))
    return handler


def create_file_handler(file_path: Path) -> logging.Handler:
    """Size-rotated handler writing one JSON object per record."""
    file_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        file_path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8"
    )
    handler.setFormatter(_formatter(
        structlog.processors.JSONRenderer(),
        extra=[structlog.processors.format_exc_info]
    ))
    return handler


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_async_execution_time(func):
    """Log how long a coroutine took, and whether it raised."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        logger = get_logger(func.__module__)
        start_time = time.monotonic()

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            logger.error(
                "Coroutine failed",
                function=func.__qualname__,
                execution_time=f"{time.monotonic() - start_time:.4f}s",
                error=str(e)
            )
            raise

        logger.debug(
            "Coroutine finished",
            function=func.__qualname__,
            execution_time=f"{time.monotonic() - start_time:.4f}s"
        )
        return result

    return wrapper
