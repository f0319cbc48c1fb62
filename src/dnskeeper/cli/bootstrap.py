# src/dnskeeper/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations (SQLite store, OS network collaborators)
  into the registry / monitor / service and stores them on AppState.

Nothing here is a global singleton: tests build their own AppState with fakes.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import AdapterSource, DnsApplier
from ..core.state import AppState
from ..net.system import SystemAdapterSource, SystemDnsApplier
from ..tasks.registry import TaskRegistry
from ..tasks.task_api import DnsTaskService
from ..tasks.task_monitor import MonitorController
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(
    *,
    settings=None,
    adapters: AdapterSource | None = None,
    applier: DnsApplier | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings and collaborators injectable makes the app easier to test
    and avoids hidden global config reads. If settings is None, falls back to
    get_settings(). The store is opened later, by DnsTaskService.init().
    """
    if settings is None:
        settings = get_settings()

    try:
        _ensure_local_dirs(settings)
    except OSError:
        # The store open will fail too; init() downgrades that to empty state.
        logger.exception("Failed to create data directories under %s", settings.data_dir)

    timeout = float(getattr(settings, "command_timeout_seconds", 10.0))
    if adapters is None:
        adapters = SystemAdapterSource(command_timeout=timeout)
    if applier is None:
        applier = SystemDnsApplier(command_timeout=timeout)

    lock_timeout = float(getattr(settings, "lock_timeout_seconds", 5.0))
    registry = TaskRegistry(
        log_limit=int(getattr(settings, "log_buffer_size", 100)),
        lock_timeout=lock_timeout,
    )
    monitor = MonitorController(
        registry,
        adapters,
        applier,
        poll_interval_seconds=float(getattr(settings, "poll_interval_seconds", 0.5)),
        error_backoff_seconds=float(getattr(settings, "error_backoff_seconds", 0.5)),
        restore_delay_seconds=float(getattr(settings, "restore_delay_seconds", 0.1)),
        lock_timeout=lock_timeout,
        flush_cache=bool(getattr(settings, "flush_dns_cache", True)),
    )

    db_path = settings.tasks_db_path
    service = DnsTaskService(registry, monitor, open_store=lambda: TaskStore(db_path))

    return AppState(settings=settings, service=service, adapters=adapters)
