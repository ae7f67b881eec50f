"""Root logger setup for the command-line entry points."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

from wdkforge.config import settings


def configure_logging(verbose: bool = False, console: Console | None = None) -> None:
    """Route log records through Rich at ``settings.log_level``, or DEBUG if *verbose*."""
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=False)],
        force=True,
    )
