"""
LiveStylist Logging — readable console lines in dev, one JSON object per line in production.

Per-session context (session_id, device_id, trigger, ...) travels in
`extra=` and is rendered by both formatters.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone

# Extras rendered by the formatters, in display order
CONTEXT_FIELDS = (
    "session_id",
    "device_id",
    "trigger",
    "reason",
    "status",
    "duration_ms",
)

# Third-party loggers held at WARNING
QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "google_genai",
    "websockets",
    "aiosqlite",
    "uvicorn.access",
)

_LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}
_DIM = "\033[2m"
_RESET = "\033[0m"


def _context(record: logging.LogRecord) -> dict:
    return {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}


class ColorFormatter(logging.Formatter):
    """`12:00:01 INFO  livestylist.relay.session: msg  session_id=... trigger=...`"""

    def __init__(self, use_color: bool = True):
        super().__init__(datefmt="%H:%M:%S")
        self.use_color = use_color

    def _paint(self, text: str, color: str) -> str:
        return f"{color}{text}{_RESET}" if self.use_color else text

    def format(self, record: logging.LogRecord) -> str:
        level = self._paint(f"{record.levelname:<5}", _LEVEL_COLORS.get(record.levelno, ""))
        line = (
            f"{self.formatTime(record, self.datefmt)} {level} "
            f"{self._paint(record.name, _DIM)}: {record.getMessage()}"
        )
        context = _context(record)
        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            line = f"{line}  {self._paint(pairs, _DIM)}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class StructuredFormatter(logging.Formatter):
    """One JSON object per record; context extras sit at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


@dataclass(frozen=True)
class LogSettings:
    level: str = "INFO"
    format: str = "text"
    color: str = "auto"

    @classmethod
    def from_env(cls) -> LogSettings:
        return cls(
            level=os.getenv("LIVESTYLIST_LOG_LEVEL", "INFO").upper(),
            format=os.getenv("LIVESTYLIST_LOG_FORMAT", "text").lower(),
            color=os.getenv("LIVESTYLIST_LOG_COLOR", "auto").lower(),
        )

    def use_color(self) -> bool:
        if self.color in ("true", "false"):
            return self.color == "true"
        return sys.stdout.isatty()

    def formatter(self) -> logging.Formatter:
        if self.format == "json":
            return StructuredFormatter()
        return ColorFormatter(use_color=self.use_color())


def setup_logging(settings: LogSettings | None = None) -> None:
    """Install a single stdout handler on the root logger. Call once at startup."""
    settings = settings or LogSettings.from_env()
    level = logging.getLevelName(settings.level)
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(settings.formatter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(level)

    logging.getLogger("livestylist").debug(
        "Logging configured (level=%s, format=%s)", settings.level, settings.format
    )
