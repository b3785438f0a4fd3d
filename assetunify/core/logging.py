"""Structured logging setup.

Modules log through ``logging.getLogger(__name__)``; this routes those records
through structlog's processor chain so console and JSON output share one format.
"""

import logging
import sys
from pathlib import Path
from typing import Any

import structlog

from assetunify.config import get_config

LOG_FILE = Path("logs/assetunify.log")


def _processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Log level name (``LOG_LEVEL`` from config when omitted)
        json_logs: Render JSON instead of console output (``JSON_LOGS`` when omitted)
    """
    config = get_config()
    level = (level or config.log_level).upper()
    if json_logs is None:
        json_logs = config.json_logs

    renderer: Any = (
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )
    shared = _processors()

    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # stdlib records (logging.getLogger) go through the same chain
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if LOG_FILE.parent.exists():
        handlers.append(logging.FileHandler(LOG_FILE))

    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(handlers=handlers, level=level)

    # Quiet noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
