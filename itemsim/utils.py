from __future__ import annotations

import logging
from typing import Callable


def setup_logging(level: int | str = "INFO") -> None:
    """Configure stdlib logging with a consistent, project-wide format."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        # Avoid duplicate handlers if called multiple times (e.g., tests + CLI).
        root_logger.setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def progress_logger(logger: logging.Logger, noun: str = "records") -> Callable[[int], None]:
    """Return an `on_progress` callback that logs "processed N <noun>"."""

    def _log(n: int) -> None:
        logger.info("processed %d %s", n, noun)

    return _log
