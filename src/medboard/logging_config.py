"""Centralized structlog configuration for the dashboard launcher.

Log lines go to stderr (or a file) so they never interleave with the
report written to stdout.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional, TextIO

import structlog

_file_handle: Optional[TextIO] = None


def configure_logging(
    *,
    level: str = "",
    json_output: bool = False,
    file_path: str = "",
) -> None:
    """Configure structlog processors, level filter and output stream.

    Priority for the level: level param > MEDBOARD_LOG_LEVEL env > INFO.
    """
    global _file_handle

    level_name = (level or os.environ.get("MEDBOARD_LOG_LEVEL", "INFO")).upper()
    effective = getattr(logging, level_name, logging.INFO)

    if _file_handle is not None:
        _file_handle.close()
        _file_handle = None

    stream: TextIO = sys.stderr
    if file_path:
        path = Path(file_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        _file_handle = open(path, "a", encoding="utf-8")
        stream = _file_handle

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=stream.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(effective),
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )
