# src/dnskeeper/tasks/task_api.py

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import replace

from ..core.errors import AlreadyRunningError, TaskNotFoundError
from ..core.ports import TaskPersistence
from .registry import TaskRegistry
from .task_models import DnsTask, LogEntry, TaskStatus
from .task_monitor import MonitorController

logger = logging.getLogger(__name__)


def _clean_dns(dns: Sequence[str]) -> list[str]:
    # dns_equal compares as sets: a repeated server could never match.
    return list(dict.fromkeys(d.strip() for d in dns if d and d.strip()))


class DnsTaskService:
    """
    Operations exposed to the command layer.

    Every method is synchronous and safe to call while the monitor loop runs.
    Failures are raised as DnsTaskError subclasses; str(error) is the reason
    shown to the user.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        monitor: MonitorController,
        open_store: Callable[[], TaskPersistence] | None = None,
    ) -> None:
        self.registry = registry
        self.monitor = monitor
        self._open_store = open_store

    # ---- startup ----

    def init(self) -> bool:
        """
        Load persisted tasks + monitoring flag, then restore monitoring.

        Never raises for a missing/broken store. Returns True if monitoring
        was (re)started.
        """
        if self._open_store is not None:
            self.registry.load_from_persistence(self._open_store)
        try:
            return self.restore_monitoring()
        except AlreadyRunningError:
            return True

    # ---- tasks ----

    def add_task(
        self,
        *,
        name: str,
        interface_pattern: str,
        target_dns: Sequence[str],
        interval: int = 1,
        enabled: bool = True,
    ) -> DnsTask:
        if not name or not name.strip():
            raise ValueError("name is required")
        if not interface_pattern or not interface_pattern.strip():
            raise ValueError("interface_pattern is required")
        dns = _clean_dns(target_dns)
        if not dns:
            raise ValueError("at least one DNS server is required")

        task = DnsTask(
            id=str(uuid.uuid4()),
            name=name.strip(),
            interface_pattern=interface_pattern.strip(),
            target_dns=dns,
            enabled=bool(enabled),
            created_at=int(time.time()),
            interval=max(1, int(interval)),
        )
        self.registry.add(task)
        return task

    def remove_task(self, task_id: str) -> None:
        self.registry.remove(task_id)

    def update_task(self, task: DnsTask) -> None:
        dns = _clean_dns(task.target_dns)
        if not dns:
            raise ValueError("at least one DNS server is required")
        self.registry.update(replace(task, target_dns=dns))

    def _require(self, task_id: str) -> DnsTask:
        task = self.registry.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def set_task_enabled(self, task_id: str, enabled: bool) -> DnsTask:
        task = replace(self._require(task_id), enabled=bool(enabled))
        self.registry.update(task)
        return task

    def set_task_interval(self, task_id: str, interval: int) -> DnsTask:
        task = replace(self._require(task_id), interval=max(1, int(interval)))
        self.registry.update(task)
        return task

    def find_task(self, prefix: str) -> DnsTask | None:
        """Resolve a full id or a unique id prefix (console convenience)."""
        prefix = prefix.strip()
        if not prefix:
            return None
        hits = [t for t in self.registry.list() if t.id == prefix or t.id.startswith(prefix)]
        exact = [t for t in hits if t.id == prefix]
        if exact:
            return exact[0]
        return hits[0] if len(hits) == 1 else None

    def list_tasks(self) -> list[DnsTask]:
        return self.registry.list()

    # ---- statuses / logs ----

    def list_statuses(self) -> list[TaskStatus]:
        return self.registry.list_statuses()

    def list_logs(self) -> list[LogEntry]:
        return self.registry.list_logs()

    def clear_logs(self) -> None:
        self.registry.clear_logs()

    # ---- monitoring ----

    def start_monitoring(self) -> None:
        self.monitor.start()

    def stop_monitoring(self, *, wait: bool = False, timeout: float | None = None) -> None:
        self.monitor.stop(wait=wait, timeout=timeout)

    def restore_monitoring(self) -> bool:
        return self.monitor.restore()

    def is_running(self) -> bool:
        return self.monitor.is_running()
