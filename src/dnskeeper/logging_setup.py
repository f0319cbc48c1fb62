# src/dnskeeper/logging_setup.py

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

LOG_FILE_NAME = "dnskeeper.log"

# Minimum console level per logger prefix (longest prefix wins).
# The monitor and the OS collaborators run every poll cycle; their INFO/DEBUG
# lines belong in the file, not between REPL prompts.
_CONSOLE_FLOORS: dict[str, int] = {
    "dnskeeper": logging.DEBUG,
    "dnskeeper.tasks.task_monitor": logging.WARNING,
    "dnskeeper.net": logging.WARNING,
    "py.warnings": logging.ERROR,
}
_DEFAULT_FLOOR = logging.ERROR


def _console_floor(name: str) -> int:
    best, best_len = _DEFAULT_FLOOR, -1
    for prefix, level in _CONSOLE_FLOORS.items():
        if (name == prefix or name.startswith(prefix + ".")) and len(prefix) > best_len:
            best, best_len = level, len(prefix)
    return best


class _ConsoleNoiseFilter(logging.Filter):
    """Drop per-cycle monitor chatter and third-party noise from the console."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= _console_floor(record.name)


def setup_logging(
    *,
    log_dir: str | Path = ".local/dnskeeper",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console handler (filtered, stderr) + file handler (everything, appended).

    Call once at startup. Each run starts with a banner line in the file so
    sessions of a long-lived monitor are easy to tell apart. Returns the log
    file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    with log_file.open("a", encoding="utf-8") as f:
        f.write(f"\n=== dnskeeper session started {datetime.now():%Y-%m-%d %H:%M:%S} ===\n")

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    return log_file
