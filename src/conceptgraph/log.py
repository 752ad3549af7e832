"""Logging setup for the CLI and the web server.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed here, once, by the entry points.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


log = logging.getLogger("conceptgraph")
log.addHandler(logging.NullHandler())

_configured = False


def setup(level: str = "WARNING", *, console: Console | None = None) -> None:
    """Attach a rich handler to the package logger. Safe to call multiple times."""
    global _configured
    lvl = logging.getLevelName(str(level).upper())
    if not isinstance(lvl, int):
        lvl = logging.WARNING
    log.setLevel(lvl)
    if _configured:
        return
    _configured = True

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
    log.addHandler(handler)
