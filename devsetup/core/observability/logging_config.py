"""
Logging setup for a devsetup run.

main.py configures logging before the profile is read and again once
``settings.log_level`` is known; modules only ever call
``logging.getLogger(__name__)``.

Two destinations:

    console  → stderr, at the requested level
    run log  → <logs>/devsetup-<run_id>.log, always DEBUG
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# ── Formats ─────────────────────────────────────────────────────

# (max level, format, datefmt); first row whose level is >= the console level wins
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d | %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(levelname)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(levelname)s: %(message)s", None),
)

_RUN_LOG_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d | %(message)s"
_RUN_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("urllib3", "charset_normalizer")

LOG_LEVELS = ("DEBUG", "INFO", "WARN", "WARNING", "ERROR")


def run_log_path(log_dir: Path, run_id: str) -> Path:
    """``<log_dir>/devsetup-<run_id>.log``."""
    return log_dir / f"devsetup-{run_id}.log"


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = next((f, d) for limit, f, d in _CONSOLE_FORMATS if level <= limit)
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _run_log_handler(path: Path, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_RUN_LOG_FORMAT, datefmt=_RUN_LOG_DATEFMT))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: str | Path | None = None,
    log_file_level: str | None = "DEBUG",
    quiet_third_party: bool = True,
) -> None:
    """(Re)configure the root logger.

    Handlers from a previous call are closed and replaced, so this is
    safe to call more than once per process.

    Args:
        level: Console level name; ``WARN`` means ``WARNING``.
        log_file: Run log path. Its directory is created.
        log_file_level: Run log level; None means the console level.
        quiet_third_party: Hold urllib3 and friends at WARNING unless
            the console is at DEBUG.
    """
    console_level = _parse_level(level)
    handlers = [_console_handler(console_level)]
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handlers.append(_run_log_handler(Path(log_file), file_level))

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(min(h.level for h in handlers))

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    # A closed console stream must never abort a run
    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Level name → number; unknown or empty names mean INFO."""
    value = getattr(logging, level.upper(), None) if level else None
    return value if isinstance(value, int) else logging.INFO
