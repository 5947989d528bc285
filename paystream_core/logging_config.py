"""
Log output for Paystream.

``setup_logging`` installs one console handler on the root logger, in one
of two shapes:

  - ``human``: one short line per record, level coloured on a terminal
  - ``json``: one JSON object per line

and optionally a log file, which is always JSON.

Channel activity is logged with ``extra={"channel_id": ...}`` (and, from
the scheduler side, ``tick``); both shapes carry those fields.

    from paystream_core.logging_config import setup_logging
    setup_logging(level="DEBUG", fmt="json", log_file="logs/paystream.log")
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Record attributes copied into every line when present.
CONTEXT_FIELDS = ("channel_id", "tick")

# Libraries that log per request; kept at WARNING below DEBUG.
NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")

_LEVEL_COLOURS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}
_RESET = "\033[0m"


def _context(record: logging.LogRecord) -> dict:
    found = {}
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            found[name] = value
    return found


class _JSONFormatter(logging.Formatter):
    """Newline-delimited JSON, one object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            **_context(record),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class _HumanFormatter(logging.Formatter):
    """``HH:MM:SS [LEVEL  ] logger: message (channel_id=...)``"""

    def __init__(self, colour: bool = True):
        super().__init__()
        self.colour = colour

    def _level(self, record: logging.LogRecord) -> str:
        tag = f"[{record.levelname:<7}]"
        if not self.colour:
            return tag
        return f"{_LEVEL_COLOURS.get(record.levelno, '')}{tag}{_RESET}"

    def format(self, record: logging.LogRecord) -> str:
        when = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{when} {self._level(record)} {record.name}: {record.getMessage()}"
        ctx = _context(record)
        if ctx:
            # channel ids are 64 hex chars; the head is enough to tell them apart
            line += " (" + ", ".join(f"{k}={str(v)[:12]}" for k, v in ctx.items()) + ")"
        if record.exc_info and record.exc_info[1]:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = "INFO",
    fmt: str = "human",
    log_file: Optional[str] = None,
    colour: Optional[bool] = None,
) -> None:
    """
    Point the root logger at stderr (and optionally a file).

    Parameters
    ----------
    level : str
        Level name; unknown names fall back to INFO.
    fmt : str
        ``"human"`` or ``"json"`` for the console.
    log_file : str, optional
        Extra JSON log file; parent directories are created.
    colour : bool, optional
        Colour the human level tag. Defaults to whether stderr is a terminal.
    """
    root = logging.getLogger()
    root_level = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(root_level)

    # Calling twice must not double every line
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        console.setFormatter(_JSONFormatter())
    else:
        if colour is None:
            colour = sys.stderr.isatty()
        console.setFormatter(_HumanFormatter(colour=colour))
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(path))
        file_handler.setFormatter(_JSONFormatter())
        root.addHandler(file_handler)

    library_level = logging.DEBUG if root_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
