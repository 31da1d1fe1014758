"""
Lumen Logging: colorized text for terminals, JSON lines for production.

Features:
- Color formatter for dev mode (auto-detects TTY)
- JSON structured formatter (LUMEN_LOG_FORMAT=json)
- Suppresses noisy third-party loggers (httpx, httpcore, openai, aiosqlite)
- TurnTimer for per-stage latency of one conversational turn

Structured log extra fields (pass via logger.info(..., extra={...})):
    turn_id, provider, tool, tier, duration_ms, status
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from datetime import datetime, timezone

COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[1;31m",
    "RESET": "\033[0m",
    "DIM": "\033[2m",
}


class ColorFormatter(logging.Formatter):
    """Colorized log formatter for terminal output."""

    def __init__(self, use_color: bool = True):
        super().__init__(
            fmt="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
            datefmt="%H:%M:%S",
        )
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_color:
            return super().format(record)

        reset = COLORS["RESET"]
        orig_levelname = record.levelname
        orig_name = record.name

        record.levelname = f"{COLORS.get(record.levelname, '')}{record.levelname}{reset}"
        record.name = f"{COLORS['DIM']}{record.name}{reset}"
        try:
            return super().format(record)
        finally:
            record.levelname = orig_levelname
            record.name = orig_name


_STRUCTURED_FIELDS = (
    "turn_id",
    "provider",
    "tool",
    "tier",
    "duration_ms",
    "status",
)


class StructuredFormatter(logging.Formatter):
    """JSON log formatter, one object per line.

    Extra fields passed via ``logger.info("msg", extra={"provider": "claude"})``
    are lifted to the top level for easy querying.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in _STRUCTURED_FIELDS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TurnTimer:
    """Tracks stage timings for a single turn.

    Usage:
        timer = TurnTimer()
        timer.mark("memory")
        timer.mark("llm")
        timer.summary()  # -> "memory: 0.2s | llm: 1.9s | Total: 2.1s"
    """

    def __init__(self):
        self._marks: list[tuple[str, float]] = []
        self._start = time.monotonic()

    def mark(self, stage: str) -> None:
        self._marks.append((stage, time.monotonic()))

    def elapsed(self, stage: str) -> float | None:
        """Time between the previous mark and ``stage``."""
        for i, (name, ts) in enumerate(self._marks):
            if name == stage:
                prev_ts = self._marks[i - 1][1] if i > 0 else self._start
                return ts - prev_ts
        return None

    def total(self) -> float:
        return time.monotonic() - self._start

    def summary(self) -> str:
        parts = []
        for i, (name, ts) in enumerate(self._marks):
            prev_ts = self._marks[i - 1][1] if i > 0 else self._start
            parts.append(f"{name}: {ts - prev_ts:.1f}s")
        parts.append(f"Total: {self.total():.1f}s")
        return " | ".join(parts)


def _should_use_color() -> bool:
    env_val = os.getenv("LUMEN_LOG_COLOR", "auto").lower()
    if env_val == "true":
        return True
    if env_val == "false":
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def setup_logging() -> None:
    """Configure logging for the whole process. Call once at startup.

    Env vars:
        LUMEN_LOG_LEVEL  -- DEBUG / INFO / WARNING / ERROR (default: INFO)
        LUMEN_LOG_COLOR  -- true / false / auto (default: auto)
        LUMEN_LOG_FORMAT -- text / json (default: text)
    """
    level_name = os.getenv("LUMEN_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    log_format = os.getenv("LUMEN_LOG_FORMAT", "text").lower()

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    if log_format == "json":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = ColorFormatter(use_color=_should_use_color())

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    for noisy_logger in ["httpx", "httpcore", "openai", "openai._base_client", "aiosqlite"]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    logging.getLogger("lumen").debug(
        "Logging configured (level=%s, format=%s)", level_name, log_format
    )
