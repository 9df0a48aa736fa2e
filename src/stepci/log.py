from __future__ import annotations

import logging

from rich.console import Console as RichConsole
from rich.logging import RichHandler

from . import settings

LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
DEFAULT_LEVEL = "WARNING"


def setup_logging(level: str | None = None) -> None:
    """Route stepci's library loggers to stderr through rich.

    stdout stays reserved for the console's job/step report, so log
    records never interleave with captured step output.

    The level is `level`, else $STEPCI_LOG_LEVEL, else WARNING. Unknown
    names fall back to WARNING. Existing root handlers are replaced, so
    each CLI invocation starts from a clean slate.
    """
    name = str(level or settings.LOG_LEVEL or DEFAULT_LEVEL).upper().strip()
    if name not in LEVELS:
        name = DEFAULT_LEVEL

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = RichHandler(
        console=RichConsole(stderr=True),
        rich_tracebacks=True,
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%H:%M:%S]"))
    root.addHandler(handler)
    root.setLevel(name)
