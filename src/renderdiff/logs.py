"""Logging setup for the render-diff CLI."""

from __future__ import annotations

import sys
from collections.abc import Callable
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from pathlib import Path

STDERR_FORMAT = "<level>{level: <8}</level> {message}"
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {thread.name} | "
    "{name}:{function}:{line} - {message} | {extra}"
)


def setup_logging(
    log_file: Path | None = None, verbose: bool = False
) -> Callable[[], None]:
    """Configure loguru sinks for a CLI run.

    Replaces the default sink with a stderr sink (INFO, DEBUG when verbose)
    and, when log_file is given, adds a DEBUG file sink.

    Returns:
        A callable that removes the sinks added here
    """
    logger.remove()
    handler_ids: list[int] = [
        logger.add(
            sys.stderr,
            level="DEBUG" if verbose else "INFO",
            format=STDERR_FORMAT,
            colorize=None,
        )
    ]

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler_ids.append(
            logger.add(
                log_file,
                level="DEBUG",
                format=FILE_FORMAT,
                enqueue=True,
                encoding="utf-8",
            )
        )

    def cleanup() -> None:
        for handler_id in handler_ids:
            try:
                logger.remove(handler_id)
            except ValueError:
                # already removed
                pass

    return cleanup
