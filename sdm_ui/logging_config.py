from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "SDM_UI_LOG_LEVEL"
_QUIET_FORMAT = "[%(levelname)s] %(message)s"
_VERBOSE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_LEVEL_COLORS = {
    logging.DEBUG: "\x1b[36m",
    logging.WARNING: "\x1b[33m",
    logging.ERROR: "\x1b[31m",
    logging.CRITICAL: "\x1b[1;31m",
}


class _ColorFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = _LEVEL_COLORS.get(record.levelno)
        return f"{color}{message}\x1b[0m" if color else message


def _level_from_env() -> int:
    level = logging.getLevelName(os.getenv(LOG_LEVEL_ENV, "WARNING").upper())
    return level if isinstance(level, int) else logging.WARNING


def configure_logging(*, verbose: bool = False) -> None:
    """Quiet by default; ``verbose`` turns on DEBUG with timestamps."""
    level = logging.DEBUG if verbose else _level_from_env()
    root = logging.getLogger()
    root.setLevel(level)

    # Keep handlers someone else installed (pytest capture, a second call).
    if root.handlers:
        for handler in root.handlers:
            handler.setLevel(level)
        return

    fmt = _VERBOSE_FORMAT if verbose else _QUIET_FORMAT
    use_color = not os.getenv("NO_COLOR") and sys.stderr.isatty()
    formatter_cls = _ColorFormatter if use_color else logging.Formatter
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(formatter_cls(fmt, "%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)
