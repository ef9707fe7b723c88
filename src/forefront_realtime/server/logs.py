"""Logging setup for the server process."""

import logging
import sys

from rich.logging import RichHandler

from .config import LoggingSettings


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Install a root handler. Called once at startup."""
    settings = settings or LoggingSettings()
    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    if settings.rich and sys.stderr.isatty():
        handler: logging.Handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(settings.format))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
