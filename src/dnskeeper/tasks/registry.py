# src/dnskeeper/tasks/registry.py

from __future__ import annotations

"""
In-memory task registry.

Owns the authoritative task list, the last computed status list, the bounded
enforcement log and the "monitoring enabled" flag. The persistence handle is a
durable mirror only: reads at runtime never touch it.

Locking:
- one lock per container (tasks, statuses, logs, monitoring flag, store handle)
- no method holds two of them at the same time
- acquisition is bounded by lock_timeout; a timeout is reported as LockFailure
"""

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import replace

from ..core.errors import DuplicateTaskError, LockFailure, PersistenceError, TaskNotFoundError
from ..core.ports import TaskPersistence
from .task_models import LOG_BUFFER_LIMIT, DnsTask, LogEntry, TaskStatus

logger = logging.getLogger(__name__)


@contextmanager
def hold_lock(lock: threading.Lock, resource: str, timeout: float) -> Iterator[None]:
    """Acquire `lock` within `timeout` seconds or raise LockFailure(resource)."""
    if not lock.acquire(timeout=timeout):
        raise LockFailure(resource)
    try:
        yield
    finally:
        lock.release()


def _copy_task(task: DnsTask) -> DnsTask:
    return replace(task, target_dns=list(task.target_dns))


class TaskRegistry:
    def __init__(
        self,
        *,
        log_limit: int = LOG_BUFFER_LIMIT,
        lock_timeout: float = 5.0,
        store: TaskPersistence | None = None,
    ) -> None:
        self._log_limit = max(1, int(log_limit))
        self._lock_timeout = float(lock_timeout)

        self._tasks: list[DnsTask] = []
        self._statuses: list[TaskStatus] = []
        self._logs: list[LogEntry] = []
        self._monitoring_enabled = False
        self._store: TaskPersistence | None = store

        self._tasks_lock = threading.Lock()
        self._statuses_lock = threading.Lock()
        self._logs_lock = threading.Lock()
        self._monitoring_lock = threading.Lock()
        self._store_lock = threading.Lock()

    def _locked(self, lock: threading.Lock, resource: str) -> AbstractContextManager[None]:
        return hold_lock(lock, resource, self._lock_timeout)

    # ---- persistence ----

    @property
    def has_store(self) -> bool:
        with self._locked(self._store_lock, "store"):
            return self._store is not None

    def load_from_persistence(self, open_store: Callable[[], TaskPersistence]) -> bool:
        """
        Open the durable store and load tasks + monitoring flag into memory.

        Never raises: if the store cannot be opened or read, the registry keeps
        running with no tasks, monitoring disabled and no durable mirror.
        Returns True when the store was loaded.
        """
        try:
            store = open_store()
            tasks = store.load_tasks()
            enabled = bool(store.load_monitoring_flag())
        except Exception:
            logger.exception("Failed to open task store; continuing with empty state.")
            return False

        with self._locked(self._tasks_lock, "tasks"):
            self._tasks = [_copy_task(t) for t in tasks]
        with self._locked(self._monitoring_lock, "monitoring"):
            self._monitoring_enabled = enabled
        with self._locked(self._store_lock, "store"):
            self._store = store

        logger.info("Loaded %d task(s) from store, monitoring_enabled=%s", len(tasks), enabled)
        return True

    def _persist(self, op: str, *args: object) -> PersistenceError | None:
        """Run one store call; return the failure instead of raising it."""
        with self._locked(self._store_lock, "store"):
            store = self._store
            if store is None:
                return None
            try:
                getattr(store, op)(*args)
            except Exception as e:
                logger.warning("Task store %s failed: %r", op, e)
                err = PersistenceError(f"Failed to persist ({op}): {e}")
                err.__cause__ = e
                return err
        return None

    # ---- tasks ----

    def add(self, task: DnsTask) -> None:
        """
        Add a task. Duplicate ids are rejected.

        If the durable write fails the task is still added in memory (usable
        until restart) and PersistenceError is raised afterwards.
        """
        with self._locked(self._tasks_lock, "tasks"):
            if any(t.id == task.id for t in self._tasks):
                raise DuplicateTaskError(task.id)

        persist_error = self._persist("save_task", task)

        with self._locked(self._tasks_lock, "tasks"):
            # Re-check: a concurrent add may have won between the two sections.
            if any(t.id == task.id for t in self._tasks):
                raise DuplicateTaskError(task.id)
            self._tasks.append(_copy_task(task))

        logger.info("Task added id=%s name=%s pattern=%s", task.id, task.name, task.interface_pattern)
        if persist_error is not None:
            raise persist_error

    def remove(self, task_id: str) -> None:
        persist_error = self._persist("delete_task", task_id)

        with self._locked(self._tasks_lock, "tasks"):
            self._tasks = [t for t in self._tasks if t.id != task_id]

        logger.info("Task removed id=%s", task_id)
        if persist_error is not None:
            raise persist_error

    def update(self, task: DnsTask) -> None:
        persist_error = self._persist("update_task", task)

        with self._locked(self._tasks_lock, "tasks"):
            for i, existing in enumerate(self._tasks):
                if existing.id == task.id:
                    self._tasks[i] = _copy_task(task)
                    break
            else:
                raise TaskNotFoundError(task.id)

        logger.info("Task updated id=%s enabled=%s interval=%s", task.id, task.enabled, task.interval)
        if persist_error is not None:
            raise persist_error

    def get(self, task_id: str) -> DnsTask | None:
        with self._locked(self._tasks_lock, "tasks"):
            for t in self._tasks:
                if t.id == task_id:
                    return _copy_task(t)
        return None

    def list(self) -> list[DnsTask]:
        with self._locked(self._tasks_lock, "tasks"):
            return [_copy_task(t) for t in self._tasks]

    # ---- statuses ----

    def list_statuses(self) -> list[TaskStatus]:
        with self._locked(self._statuses_lock, "statuses"):
            return list(self._statuses)

    def replace_statuses(self, statuses: list[TaskStatus]) -> None:
        with self._locked(self._statuses_lock, "statuses"):
            self._statuses = list(statuses)

    # ---- logs ----

    def append_log(self, entry: LogEntry) -> None:
        with self._locked(self._logs_lock, "logs"):
            self._logs.insert(0, entry)
            del self._logs[self._log_limit :]

    def list_logs(self) -> list[LogEntry]:
        with self._locked(self._logs_lock, "logs"):
            return list(self._logs)

    def clear_logs(self) -> None:
        with self._locked(self._logs_lock, "logs"):
            self._logs.clear()

    # ---- monitoring flag ----

    def monitoring_enabled(self) -> bool:
        with self._locked(self._monitoring_lock, "monitoring"):
            return self._monitoring_enabled

    def set_monitoring_enabled(self, enabled: bool) -> None:
        """Update the flag in memory and mirror it to the store (best-effort)."""
        with self._locked(self._monitoring_lock, "monitoring"):
            self._monitoring_enabled = bool(enabled)

        try:
            persist_error = self._persist("save_monitoring_flag", bool(enabled))
        except LockFailure:
            logger.warning("Could not persist monitoring flag: store lock unavailable")
            return
        if persist_error is not None:
            logger.debug("Monitoring flag not persisted: %s", persist_error)
