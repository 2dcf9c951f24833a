"""Logging configuration for toolweave.

Modules log through plain `logging.getLogger("toolweave.<area>")`. This
module installs a single handler on the `toolweave` logger that renders
records either for humans or as JSON lines for log aggregation.

Quick Start:
    >>> from toolweave.observability import configure_logging
    >>> configure_logging("DEBUG", "text")   # local development
    >>> configure_logging("INFO", "json")    # production
"""

from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TextIO

import orjson

if TYPE_CHECKING:
    from toolweave.foundation.config import LoggingSettings

ROOT_LOGGER = "toolweave"

_COLORS = {
    "reset": "\033[0m", "dim": "\033[2m", "bold": "\033[1m",
    "red": "\033[31m", "green": "\033[32m", "yellow": "\033[33m", "cyan": "\033[36m",
}
_NO_COLORS = dict.fromkeys(_COLORS, "")
_LEVEL_COLORS = {
    "DEBUG": _COLORS["dim"], "INFO": _COLORS["green"], "WARNING": _COLORS["yellow"],
    "ERROR": _COLORS["red"], "CRITICAL": _COLORS["red"],
}

# Attributes every LogRecord carries; anything else came from `extra=`
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime", "taskName"}


def _extras(record: logging.LogRecord) -> dict[str, object]:
    return {k: v for k, v in vars(record).items() if k not in _RESERVED and not k.startswith("_")}


# ─────────────────────────────────────────────────────────────────────────────
# Formatters
# ─────────────────────────────────────────────────────────────────────────────


class ConsoleFormatter(logging.Formatter):
    """Format: HH:MM:SS.mmm [LEVEL] logger: message key=value ..."""

    def __init__(self, colors: bool = False) -> None:
        super().__init__()
        self._c = _COLORS if colors else _NO_COLORS
        self._colors = colors

    def format(self, record: logging.LogRecord) -> str:
        c = self._c
        ts = datetime.fromtimestamp(record.created, tz=UTC).strftime("%H:%M:%S.%f")[:-3]
        level = f"{_LEVEL_COLORS.get(record.levelname, '') if self._colors else ''}[{record.levelname}]{c['reset']}"
        parts = [f"{c['dim']}{ts}{c['reset']}", level, f"{c['dim']}{record.name}:{c['reset']}", record.getMessage()]
        parts += [f"{c['cyan']}{k}{c['reset']}={v!r}" for k, v in sorted(_extras(record).items())]
        line = " ".join(parts)
        if record.exc_info:
            line += f"\n{c['red']}{self.formatException(record.exc_info)}{c['reset']}"
        return line


class JsonFormatter(logging.Formatter):
    """JSON Lines output for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
            **_extras(record),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(entry, option=orjson.OPT_NON_STR_KEYS, default=str).decode()


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────


def configure_logging(
    level: str = "INFO",
    format: str = "text",  # noqa: A002 - matches the settings field
    *,
    stream: TextIO | None = None,
    colors: bool | None = None,
) -> logging.Handler:
    """Install one handler on the `toolweave` logger. Format: "text" or "json".

    Calling again replaces the previously installed handler.
    """
    match format:
        case "text":
            output = stream or sys.stderr
            use_colors = getattr(output, "isatty", lambda: False)() if colors is None else colors
            formatter: logging.Formatter = ConsoleFormatter(colors=use_colors)
        case "json":
            output = stream or sys.stdout
            formatter = JsonFormatter()
        case _:
            raise ValueError(f"Unknown format: {format}. Use 'text' or 'json'")

    handler = logging.StreamHandler(output)
    handler.setFormatter(formatter)
    handler.set_name("toolweave")

    logger = logging.getLogger(ROOT_LOGGER)
    for existing in [h for h in logger.handlers if h.get_name() == "toolweave"]:
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False
    return handler


def configure_from_settings(settings: LoggingSettings) -> logging.Handler:
    return configure_logging(settings.level, settings.format)
