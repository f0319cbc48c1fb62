# src/dnskeeper/config.py

"""dnskeeper settings: DNSKEEPER_* environment variables, optionally from a .env file.

One frozen Settings object is built at import time and shared by the whole
app. Every timing knob of the monitor can be overridden (tests pass tiny
values through a SimpleNamespace instead).
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

from dotenv import load_dotenv

ENV_PREFIX = "DNSKEEPER"

N = TypeVar("N", int, float)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_number(name: str, default: N, cast: Callable[[str], N], *, minimum: N | None = None) -> N:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        return default
    if minimum is not None and value < minimum:
        return minimum
    return value


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool

    # ---- Local data paths ----
    data_dir: Path
    tasks_db_path: Path

    # ---- Monitor timing ----
    poll_interval_seconds: float
    error_backoff_seconds: float
    restore_delay_seconds: float
    lock_timeout_seconds: float

    # ---- Enforcement ----
    log_buffer_size: int
    flush_dns_cache: bool
    command_timeout_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "dnskeeper").strip() or "dnskeeper"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/dnskeeper"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        poll_interval_seconds = _env_number(_k("POLL_INTERVAL"), 0.5, float, minimum=0.0)
        error_backoff_seconds = _env_number(_k("ERROR_BACKOFF"), 0.5, float, minimum=0.0)
        restore_delay_seconds = _env_number(_k("RESTORE_DELAY"), 0.1, float, minimum=0.0)
        lock_timeout_seconds = _env_number(_k("LOCK_TIMEOUT"), 5.0, float, minimum=0.01)

        log_buffer_size = _env_number(_k("LOG_BUFFER_SIZE"), 100, int, minimum=1)
        flush_dns_cache = _env_bool(_k("FLUSH_DNS_CACHE"), True)
        command_timeout_seconds = _env_number(_k("COMMAND_TIMEOUT"), 10.0, float, minimum=1.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            poll_interval_seconds=poll_interval_seconds,
            error_backoff_seconds=error_backoff_seconds,
            restore_delay_seconds=restore_delay_seconds,
            lock_timeout_seconds=lock_timeout_seconds,
            log_buffer_size=log_buffer_size,
            flush_dns_cache=flush_dns_cache,
            command_timeout_seconds=command_timeout_seconds,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
