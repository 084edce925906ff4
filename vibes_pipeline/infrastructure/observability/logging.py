"""
Structured logging setup for the vibes backfill jobs.
Provides JSON-formatted logs with consistent fields for unattended batch runs.
"""

import logging
import sys
from pathlib import Path
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _drop_secrets,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


_SECRET_KEYS = frozenset({"api_key", "authorization", "headers", "messages", "body"})


def _drop_secrets(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Never let credentials or request payloads reach a log line."""
    for key in _SECRET_KEYS & event_dict.keys():
        event_dict[key] = "[redacted]"
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class RunLogFile:
    """
    Scoped file sink for one backfill run.

    Mirrors every log line into ``path`` while the run is active. ``close`` is
    idempotent so the forced-exit path can call it before the context manager
    gets the chance to.
    """

    def __init__(self, path: str | Path, level: int = logging.INFO):
        self.path = Path(path)
        self.level = level
        self._handler: logging.FileHandler | None = None

    def open(self) -> "RunLogFile":
        if self._handler is not None:
            return self
        self.path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(self.path, mode="a", encoding="utf-8")
        handler.setLevel(self.level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logging.getLogger().addHandler(handler)
        self._handler = handler
        return self

    def close(self) -> None:
        handler, self._handler = self._handler, None
        if handler is None:
            return
        handler.flush()
        logging.getLogger().removeHandler(handler)
        handler.close()

    @property
    def is_open(self) -> bool:
        return self._handler is not None

    def __enter__(self) -> "RunLogFile":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def log_run_summary(job: str, summary: dict[str, Any], canceled: bool = False) -> None:
    """Log a run summary with consistent fields."""
    logger = get_logger("backfill")

    log_data = {**summary, "job": job, "canceled": canceled}

    if summary.get("failed") and not summary.get("success"):
        logger.warning("Backfill run finished without successes", **log_data)
    else:
        logger.info("Backfill run finished", **log_data)
