"""JSON logging for signature-builder commands.

structlog events are handed to stdlib handlers that write one JSON object per
line to the console, `logs/signature_builder.log` and `logs/error.log`.
"""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path

import structlog

from .config import ConfigLocator

LOGGER_NAME = "signature_builder"

_LOGGING_INITIALISED = False


def _default_log_dir() -> Path:
    logs_dir = ConfigLocator().logs_dir
    assert logs_dir is not None
    return logs_dir


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> structlog.BoundLogger:
    """Install the handlers once per process and return the `signature_builder` logger.

    Without *log_dir* the files go to the project logs directory, which follows
    `SIGNATURE_BUILDER_HOME`.
    """

    global _LOGGING_INITIALISED
    log_dir = log_dir or _default_log_dir()
    app_log = log_dir / "signature_builder.log"
    error_log = log_dir / "error.log"

    if not _LOGGING_INITIALISED:
        log_dir.mkdir(parents=True, exist_ok=True)
        level = "DEBUG" if verbose else "INFO"
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "json": {
                        "()": "pythonjsonlogger.json.JsonFormatter",
                        "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                    }
                },
                "handlers": {
                    "console": {
                        "class": "logging.StreamHandler",
                        "level": level,
                        "formatter": "json",
                    },
                    "app_file": {
                        "class": "logging.FileHandler",
                        "level": "INFO",
                        "filename": str(app_log),
                        "formatter": "json",
                        "encoding": "utf-8",
                    },
                    "error_file": {
                        "class": "logging.FileHandler",
                        "level": "ERROR",
                        "filename": str(error_log),
                        "formatter": "json",
                        "encoding": "utf-8",
                    },
                },
                "loggers": {
                    LOGGER_NAME: {
                        "handlers": ["console", "app_file", "error_file"],
                        "level": level,
                        "propagate": False,
                    },
                },
            }
        )

        # Events travel as dicts to the stdlib handlers, which render JSON.
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.filter_by_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger(LOGGER_NAME)


def bind_command(command: str | None) -> None:
    """Tag every following log event with the running CLI command."""
    structlog.contextvars.clear_contextvars()
    if command:
        structlog.contextvars.bind_contextvars(command=command)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last *line_count* lines of a JSON log file, oldest first."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


__all__ = ["LOGGER_NAME", "bind_command", "configure_logging", "tail_log"]
