"""Logging setup."""

import logging
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(
    level: Union[int, str] = logging.INFO,
    console: Optional[Console] = None,
) -> None:
    """Route all package loggers through a Rich handler."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        log_time_format="[%X]",
    )
    logging.basicConfig(
        level=level,
        format="%(threadName)s: %(message)s",
        handlers=[handler],
        force=True,
    )
    # SQLAlchemy echo is controlled by config, not by our level
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
