"""Logging configuration"""

import logging

from rich.console import Console
from rich.logging import RichHandler

from watchtime.core.config import Settings


def setup_logging(settings: Settings) -> None:
    """Configure root logging with a Rich handler.

    Safe to call more than once; ``force=True`` replaces handlers installed
    earlier (uvicorn configures the root logger before the app imports).
    """
    level = getattr(logging, settings.LOG_LEVEL, logging.INFO)

    handler = RichHandler(
        console=Console(width=120),
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
    )
    handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%Y-%m-%d %H:%M:%S]"))

    logging.basicConfig(level=level, handlers=[handler], force=True)

    # One line per platform request is too chatty at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging: %s | Env: %s", settings.LOG_LEVEL, settings.APP_ENV
    )
