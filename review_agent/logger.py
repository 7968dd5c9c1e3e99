"""Loguru setup for the review agent plus helpers for binding review context."""

from __future__ import annotations

import os
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger as _logger

_CONFIGURED = False
DEFAULT_LOG_DIR = Path(__file__).resolve().parent / "logs"
LOG_DIR_ENV = "APP_LOG_DIR"
LOG_LEVEL_ENV = "APP_LOG_LEVEL"

# every record carries the agent conversation it belongs to, "-" outside one
CONVERSATION_DEFAULTS = {"thread_id": "-", "run_id": "-"}

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[thread_id]}/{extra[run_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def _resolve_log_dir(explicit: str | Path | None) -> Path:
    if explicit is not None:
        return Path(explicit).expanduser().resolve()
    env_value = os.getenv(LOG_DIR_ENV)
    if env_value:
        return Path(env_value).expanduser().resolve()
    return DEFAULT_LOG_DIR


def configure_logger(
    *, log_dir: str | Path | None = None, level: str | None = None, force: bool = False
) -> None:
    """Install the stdout and rotating-file sinks; ``force`` replaces sinks installed earlier."""

    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    _logger.remove()
    _logger.configure(extra=CONVERSATION_DEFAULTS)
    _logger.add(
        sys.stdout,
        level=level or os.getenv(LOG_LEVEL_ENV, "INFO"),
        format=LOG_FORMAT,
        colorize=sys.stdout.isatty(),
    )
    _logger.add(
        target_dir / "review-agent-{time:YYYY-MM-DD}.log",
        rotation="50 MB",
        retention="10 days",
        level="DEBUG",
        format=LOG_FORMAT,
        enqueue=True,
        backtrace=True,
        diagnose=False,
    )

    _CONFIGURED = True


def get_logger(*, log_dir: str | Path | None = None, level: str | None = None):
    configure_logger(log_dir=log_dir, level=level)
    return _logger


def log_with_context(logger_instance, **context: str | int | None) -> Any:
    """Bind the non-None context fields (delivery_id, repository, tool, ...) to later records."""
    return logger_instance.bind(**{k: v for k, v in context.items() if v is not None})


def conversation_logger(logger_instance, thread_id: str, run_id: str | None = None) -> Any:
    """Logger for one agent thread, and for one of its runs once ``run_id`` is known.

    ``run_id`` is left at its default while the thread has no run yet.
    """
    return log_with_context(logger_instance, thread_id=thread_id, run_id=run_id)


@contextmanager
def log_timing(logger_instance, operation: str, **context: str | int | None) -> Iterator[Any]:
    """Time ``operation`` at DEBUG level.

    An exception is re-raised after a DEBUG note with the elapsed time; the
    caller owns reporting the error itself.
    """
    ctx_logger = log_with_context(logger_instance, **context)
    started = time.monotonic()
    ctx_logger.debug(f"Starting {operation}")
    try:
        yield ctx_logger
    except Exception:
        ctx_logger.debug(f"Aborted {operation} after {time.monotonic() - started:.3f}s")
        raise
    ctx_logger.debug(f"Completed {operation} in {time.monotonic() - started:.3f}s")


def log_success(logger_instance, message: str, **context: str | int | None) -> None:
    log_with_context(logger_instance, **context).info(f"=== SUCCESS: {message} ===")


def log_failure(logger_instance, message: str, error: Exception | None = None, **context: str | int | None) -> None:
    ctx_logger = log_with_context(logger_instance, **context)
    if error:
        ctx_logger.error(f"=== FAILURE: {message} | {type(error).__name__}: {error} ===")
    else:
        ctx_logger.error(f"=== FAILURE: {message} ===")
