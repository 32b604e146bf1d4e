"""Loguru setup for pipeline runs, with job and stage context in every line."""

import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger

CONTEXT_KEYS = ("job_id", "stage")

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>{extra[context]} | <level>{message}</level>\n{exception}"
)


def format_context(extra: dict) -> str:
    """Render bound job context as `` [job_id=... stage=...]`` (empty when nothing is bound)."""
    parts = [f"{key}={extra[key]}" for key in CONTEXT_KEYS if extra.get(key) is not None]
    return f" [{' '.join(parts)}]" if parts else ""


def _console_format(record: dict) -> str:
    record["extra"]["context"] = format_context(record["extra"])
    return CONSOLE_FORMAT


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
    serialize: bool = False,
) -> None:
    """
    Configure console logging and an optional rotating file sink.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path to log file
        rotation: Log rotation size
        retention: Log retention period
        serialize: Write the file sink as JSON lines
    """
    logger.remove()
    logger.add(sys.stderr, format=_console_format, level=log_level, colorize=True)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message} | {extra}",
            level=log_level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            serialize=serialize,
            enqueue=True,
        )


def get_logger(name: str, **context: Any) -> Any:
    """
    Get a logger bound to a component name and optional job context.

    Args:
        name: Logger name (typically __name__)
        **context: Context fields such as job_id or stage

    Returns:
        Bound logger
    """
    return logger.bind(name=name, **context)


logger.configure(extra={"name": "scriptcast"})
