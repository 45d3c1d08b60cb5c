"""
observability/logger.py — delayline logging

Library code only calls get_logger(). Unconfigured, structlog prints to
stderr with its defaults, which is what embedding applications and tests get.

The CLI calls setup_logging(settings.logging) once. After that:
  - every record lands in <log_dir>/delayline.log as one JSON object per line
  - console_output adds a stdout handler (JSON, or coloured key=value text
    when json_format is false)
  - log_context() tags every record of a plan run with the plan path

    log = get_logger(__name__)
    log.warning("scheduler.cancel.unknown", alias="ghost")
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator, Optional

import structlog

if TYPE_CHECKING:
    from delayline.config.settings import LoggingConfig

LOG_FILE_NAME = "delayline.log"

# Applied to structlog events and to plain stdlib records alike.
_PRE_CHAIN: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.format_exc_info,
]


def _formatter(renderer: Any) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=_PRE_CHAIN,
    )


def setup_logging(config: "LoggingConfig", level: Optional[str] = None) -> Path:
    """
    Route structlog through stdlib logging according to a LoggingConfig.

    `level` overrides config.level (the CLI's --log-level). Returns the path
    of the log file. Safe to call again; handlers are replaced, not added.
    """
    numeric_level = logging.getLevelName((level or config.level).upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    log_dir = Path(config.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))
    handlers: list[logging.Handler] = [file_handler]

    if config.console_output:
        console_renderer = (
            structlog.processors.JSONRenderer()
            if config.json_format
            else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
        )
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(_formatter(console_renderer))
        handlers.append(console_handler)

    logging.basicConfig(level=numeric_level, handlers=handlers, force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_PRE_CHAIN,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return log_file


def get_logger(name: str = "delayline", **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """Logger for `name` with `initial_values` bound to every record."""
    logger = structlog.get_logger(name)
    return logger.bind(**initial_values) if initial_values else logger


@contextmanager
def log_context(**values: Any) -> Iterator[None]:
    """Bind `values` to every record logged inside the block."""
    with structlog.contextvars.bound_contextvars(**values):
        yield
