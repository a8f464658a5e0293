"""
Structured Logging.

One logging setup for the whole backend: structlog processors feeding the
stdlib root logger, so records from uvicorn, SQLAlchemy and our own modules
share a format. Settings come from config/settings/logging.yaml; arguments
to setup_logging() override them.

Every record carries timestamp, level, logger, event, func_name and lineno.
Inside an HTTP request the middleware also binds request_id, source, method
and path. Anything else goes in `extra`:

    logger = get_logger(__name__)
    logger.info("Node moved", extra={"node_id": node_id, "to_parent": parent_id})

The file handler always writes JSON lines (logs/system.jsonl by default),
whatever the console format is.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.typing import Processor

from outliner.backend.core.config import find_project_root, load_yaml_config
from outliner.backend.core.config_schema import FileHandlerSchema, LoggingSchema

VALID_SOURCES = frozenset({
    "web",
    "cli",
    "api",
    "internal",
    "unknown",
})
"""Values accepted for the `source` field. Set by the caller, never inferred."""

_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")

_logging_config: LoggingSchema | None = None


def _load_logging_config() -> LoggingSchema:
    """Read and validate logging.yaml once per process."""
    global _logging_config
    if _logging_config is None:
        _logging_config = LoggingSchema(**load_yaml_config("logging.yaml"))
    return _logging_config


def _resolve_log_path(configured_path: str) -> Path:
    return find_project_root() / configured_path


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ],
        ),
    ]


def _file_handler(file_config: FileHandlerSchema, formatter: logging.Formatter) -> logging.Handler:
    log_path = _resolve_log_path(file_config.path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=str(log_path),
        maxBytes=file_config.max_bytes,
        backupCount=file_config.backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
    enable_console: bool | None = None,
    enable_file_logging: bool | None = None,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Safe to call more than once; existing root handlers are replaced.

    Args:
        level: Level name such as "DEBUG". Defaults to logging.yaml.
        format_type: "json" or "console" for the console handler.
        enable_console: Write to stdout.
        enable_file_logging: Write JSON lines to the rotating file.
    """
    config = _load_logging_config()
    handlers = config.handlers

    level_name = (level or config.level).upper()
    console_format = format_type or config.format
    use_console = handlers.console.enabled if enable_console is None else enable_console
    use_file = handlers.file.enabled if enable_file_logging is None else enable_file_logging

    processors = _shared_processors()
    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    json_formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=processors,
    )
    if console_format == "console":
        console_formatter = structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=True),
            foreign_pre_chain=processors,
        )
    else:
        console_formatter = json_formatter

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name))
    for existing in root.handlers[:]:
        root.removeHandler(existing)

    if use_console:
        stream = logging.StreamHandler(sys.stdout)
        stream.setFormatter(console_formatter)
        root.addHandler(stream)
    if use_file:
        root.addHandler(_file_handler(handlers.file, json_formatter))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> Any:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)


def log_with_source(logger: Any, source: str, level: str, message: str, **kwargs: Any) -> None:
    """
    Log with an explicit `source` outside of a request.

    Raises AttributeError for an unknown level name.

    Example:
        log_with_source(logger, "cli", "info", "Outline exported", path="out.md")
    """
    getattr(logger, level.lower())(message, source=source, **kwargs)
