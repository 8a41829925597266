"""Structured logging setup."""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

import structlog

from ..config import settings


def setup_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None,
) -> None:
    """Configure structlog and route stdlib logging through the same renderer.

    Console output is always enabled. When a log file is configured it is
    written through a size-based rotating handler.
    """
    config = settings.logging
    level = (level or config.log_level).upper()
    log_format = log_format or config.log_format
    log_file = log_file if log_file is not None else config.log_file

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=config.log_max_size_mb * 1024 * 1024,
                backupCount=config.log_backup_count,
                encoding="utf-8",
            )
        )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # The docker SDK logs every HTTP call at DEBUG through urllib3
    logging.getLogger("urllib3").setLevel(max(logging.INFO, root_logger.level))
    logging.getLogger("docker").setLevel(max(logging.INFO, root_logger.level))
