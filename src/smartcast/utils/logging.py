from __future__ import annotations

import logging
import os
from typing import Literal

import coloredlogs  # type: ignore[import]

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]

# Milliseconds make request/reply timing visible in debug traces.
DEFAULT_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-7s [%(name)s] %(message)s"
DEFAULT_DATE_FORMAT = "%H:%M:%S"

# Libraries that log every request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: LogLevel | None = None, *, trace_http: bool = False) -> None:
    """Colored console logging; ``LOGLEVEL`` applies when no level is given.

    ``trace_http`` keeps the httpx/httpcore loggers at the chosen level so
    their connection traffic shows up next to the SmartCast messages.
    """
    resolved = (level or os.environ.get("LOGLEVEL", "INFO")).upper()

    coloredlogs.install(
        level=resolved,
        fmt=DEFAULT_FORMAT,
        datefmt=DEFAULT_DATE_FORMAT,
        field_styles={**coloredlogs.DEFAULT_FIELD_STYLES, "name": {"color": "cyan"}},
    )

    noisy_level = logging.getLevelName(resolved) if trace_http else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)
