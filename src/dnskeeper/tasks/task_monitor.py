# src/dnskeeper/tasks/task_monitor.py

from __future__ import annotations

"""
DNS task monitor.

A small polling loop running in one background thread that:
- enumerates adapters via an injected AdapterSource,
- evaluates every task against the adapters whose names match its pattern,
- applies the target DNS via an injected DnsApplier (throttled per task),
- publishes the fresh status list and enforcement log into the TaskRegistry.

How adapters are read and how DNS is written belongs to the collaborators,
not the monitor.
"""

import logging
import threading
import time
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import TypeVar

from ..core.errors import (
    AlreadyRunningError,
    CollaboratorError,
    CollaboratorPanic,
    DnsTaskError,
    LockFailure,
)
from ..core.ports import AdapterSource, DnsApplier
from .matching import dns_equal, matches_pattern
from .registry import TaskRegistry, hold_lock
from .task_models import NEVER_CHECKED, DnsTask, LogEntry, NetworkInterface, StatusKind, TaskStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")

MSG_DISABLED = "task disabled"
MSG_WAITING = "waiting for next check"
MSG_MATCHED = "DNS configuration correct"
MSG_APPLIED = "DNS auto-configured"
MSG_APPLY_CRASHED = "error while applying DNS"

# Loop-local: task_id -> monotonic time of the last enforcement attempt.
ThrottleMap = dict[str, float]


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def call_guarded(operation: str, fn: Callable[..., T], *args: object) -> T:
    """
    Call a collaborator and normalize its failures.

    - CollaboratorError (a reported failure) passes through unchanged
    - anything else is logged with traceback and re-raised as CollaboratorPanic
    """
    try:
        return fn(*args)
    except CollaboratorError:
        raise
    except Exception as e:
        logger.exception("Collaborator %s crashed", operation)
        raise CollaboratorPanic(operation, e) from e


def _due_for_check(task: DnsTask, throttle: ThrottleMap, now: float) -> bool:
    last = throttle.get(task.id)
    if last is None:
        return True
    return int(now - last) >= task.effective_interval()


def _append_log(registry: TaskRegistry, entry: LogEntry) -> None:
    try:
        registry.append_log(entry)
    except LockFailure:
        logger.warning("Log buffer unavailable; dropped entry for task %s", entry.task_id)


def reconcile_once(
    registry: TaskRegistry,
    applier: DnsApplier,
    tasks: Sequence[DnsTask],
    adapters: Sequence[NetworkInterface],
    throttle: ThrottleMap,
    *,
    now: float,
    timestamp: str,
    flush_cache: bool = True,
) -> list[TaskStatus]:
    """
    Evaluate every task against the adapter snapshot (one reconciliation cycle).

    Order of the returned statuses follows task order, then adapter order.
    Enforcement log entries are appended to the registry as a side effect;
    the caller is responsible for publishing the returned statuses.
    """
    statuses: list[TaskStatus] = []

    for task in tasks:
        if not task.enabled:
            statuses.append(
                TaskStatus(
                    task_id=task.id,
                    task_name=task.name,
                    interface_name=task.interface_pattern,
                    current_dns=[],
                    target_dns=list(task.target_dns),
                    status=StatusKind.STOPPED,
                    last_check=NEVER_CHECKED,
                    message=MSG_DISABLED,
                )
            )
            continue

        should_check = _due_for_check(task, throttle, now)

        for iface in adapters:
            if not iface.enabled:
                continue
            if not matches_pattern(iface.name, task.interface_pattern):
                continue

            current_dns = list(iface.dns_servers)
            target_dns = list(task.target_dns)

            if not should_check:
                kind, message = StatusKind.RUNNING, MSG_WAITING
            elif dns_equal(current_dns, target_dns):
                kind, message = StatusKind.MATCHED, MSG_MATCHED
            else:
                # Throttle is per task: every matching adapter shares this entry.
                throttle[task.id] = now
                kind, message = _enforce(
                    registry,
                    applier,
                    task,
                    iface.name,
                    target_dns,
                    timestamp=timestamp,
                    flush_cache=flush_cache,
                )

            statuses.append(
                TaskStatus(
                    task_id=task.id,
                    task_name=task.name,
                    interface_name=iface.name,
                    current_dns=current_dns,
                    target_dns=target_dns,
                    status=kind,
                    last_check=timestamp,
                    message=message,
                )
            )

    return statuses


def _enforce(
    registry: TaskRegistry,
    applier: DnsApplier,
    task: DnsTask,
    adapter_name: str,
    target_dns: list[str],
    *,
    timestamp: str,
    flush_cache: bool,
) -> tuple[StatusKind, str]:
    try:
        call_guarded("apply_dns", applier.apply_dns, adapter_name, target_dns)
    except CollaboratorPanic:
        return StatusKind.DNS_MISMATCH, MSG_APPLY_CRASHED
    except CollaboratorError as e:
        logger.warning("Task %s: failed to set DNS on %s: %s", task.id, adapter_name, e)
        _append_log(
            registry,
            LogEntry(
                time=timestamp,
                task_id=task.id,
                task_name=task.name,
                message=f"Failed to set DNS: {e}",
            ),
        )
        return StatusKind.DNS_MISMATCH, f"Failed to apply: {e}"

    logger.info("Task %s: DNS set on %s -> %s", task.id, adapter_name, target_dns)
    _append_log(
        registry,
        LogEntry(
            time=timestamp,
            task_id=task.id,
            task_name=task.name,
            message=f"DNS set: {adapter_name} -> {', '.join(target_dns)}",
        ),
    )

    if flush_cache:
        try:
            call_guarded("flush_cache", applier.flush_cache)
        except DnsTaskError as e:
            logger.debug("DNS cache flush failed: %s", e)

    return StatusKind.APPLIED, MSG_APPLIED


def run_monitor_loop(
    registry: TaskRegistry,
    source: AdapterSource,
    applier: DnsApplier,
    *,
    should_run: Callable[[], bool],
    cancel: threading.Event,
    poll_interval_seconds: float = 0.5,
    error_backoff_seconds: float = 0.5,
    flush_cache: bool = True,
    clock: Callable[[], float] = time.monotonic,
    timestamp: Callable[[], str] = _ts_local,
) -> None:
    """
    Blocking reconciliation loop (run it in a dedicated thread).

    Every poll_interval_seconds:
    - stop if the run flag is cleared, this loop's cancel event is set,
      or the run flag cannot be read
    - list adapters (on failure: back off and retry, statuses untouched)
    - snapshot tasks, evaluate them (reconcile_once)
    - replace the registry's status list wholesale

    Throttle history lives only in this call and is lost when the loop exits.
    """
    sleep_s = max(0.0, float(poll_interval_seconds))
    backoff_s = max(0.0, float(error_backoff_seconds))
    throttle: ThrottleMap = {}

    logger.info("DNS monitor loop started")

    while True:
        try:
            if cancel.is_set() or not should_run():
                break
        except LockFailure:
            logger.error("Run flag unreadable; stopping monitor loop")
            break

        try:
            adapters = call_guarded("list_adapters", source.list_adapters)
        except DnsTaskError as e:
            logger.warning("Adapter enumeration failed: %s", e)
            cancel.wait(backoff_s)
            continue

        try:
            tasks = registry.list()
        except LockFailure:
            logger.warning("Task list unavailable; retrying")
            cancel.wait(backoff_s)
            continue

        try:
            statuses = reconcile_once(
                registry,
                applier,
                tasks,
                adapters,
                throttle,
                now=clock(),
                timestamp=timestamp(),
                flush_cache=flush_cache,
            )
            registry.replace_statuses(statuses)
        except LockFailure:
            logger.warning("Status list unavailable; cycle results dropped")
        except Exception:
            logger.exception("Reconciliation cycle crashed")
            cancel.wait(backoff_s)
            continue

        cancel.wait(sleep_s)

    logger.info("DNS monitor loop stopped")


class MonitorController:
    """
    Start/stop/restore for the reconciliation loop.

    At most one loop runs at a time: "check flag, set flag, spawn worker"
    happens inside one critical section on the run lock. Each spawned loop
    gets its own cancel event, so a loop from a previous start() can never
    keep running after a stop()/start() pair.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        source: AdapterSource,
        applier: DnsApplier,
        *,
        poll_interval_seconds: float = 0.5,
        error_backoff_seconds: float = 0.5,
        restore_delay_seconds: float = 0.1,
        lock_timeout: float = 5.0,
        flush_cache: bool = True,
        clock: Callable[[], float] = time.monotonic,
        timestamp: Callable[[], str] = _ts_local,
    ) -> None:
        self._registry = registry
        self._source = source
        self._applier = applier
        self._poll_interval = poll_interval_seconds
        self._error_backoff = error_backoff_seconds
        self._restore_delay = restore_delay_seconds
        self._lock_timeout = lock_timeout
        self._flush_cache = flush_cache
        self._clock = clock
        self._timestamp = timestamp

        self._run_lock = threading.Lock()
        self._running = False
        self._cancel: threading.Event | None = None
        self._worker: threading.Thread | None = None

    def _should_run(self) -> bool:
        with hold_lock(self._run_lock, "run flag", self._lock_timeout):
            return self._running

    def _run(self, cancel: threading.Event) -> None:
        try:
            run_monitor_loop(
                self._registry,
                self._source,
                self._applier,
                should_run=self._should_run,
                cancel=cancel,
                poll_interval_seconds=self._poll_interval,
                error_backoff_seconds=self._error_backoff,
                flush_cache=self._flush_cache,
                clock=self._clock,
                timestamp=self._timestamp,
            )
        finally:
            self._loop_exited(cancel)

    def is_running(self) -> bool:
        with hold_lock(self._run_lock, "run flag", self._lock_timeout):
            return self._running

    def start(self) -> None:
        with hold_lock(self._run_lock, "run flag", self._lock_timeout):
            if self._running:
                raise AlreadyRunningError()

            cancel = threading.Event()
            worker = threading.Thread(
                target=self._run,
                args=(cancel,),
                name="dns-monitor",
                daemon=True,
            )
            self._running = True
            try:
                worker.start()
            except Exception:
                self._running = False
                raise
            self._cancel = cancel
            self._worker = worker
            # Written under the run lock so concurrent start/stop persist in order.
            self._persist_flag(True)

        logger.info("Monitoring started")

    def stop(self, *, wait: bool = False, timeout: float | None = None) -> None:
        """
        Clear the run flag and signal the loop.

        By default this does not wait: the loop finishes at most its current
        cycle (including a blocking collaborator call) and exits.
        With wait=True the worker thread is joined.
        """
        worker = self._signal_stop(persist=True)
        logger.info("Monitoring stopped")

        if wait:
            self._join(worker, timeout)

    def halt(self, *, timeout: float | None = None) -> None:
        """Stop and join the worker for process shutdown; the persisted flag is kept."""
        self._join(self._signal_stop(persist=False), timeout)

    def _signal_stop(self, *, persist: bool) -> threading.Thread | None:
        with hold_lock(self._run_lock, "run flag", self._lock_timeout):
            self._running = False
            cancel, self._cancel = self._cancel, None
            worker, self._worker = self._worker, None
            if persist:
                self._persist_flag(False)

        if cancel is not None:
            cancel.set()
        return worker

    def _loop_exited(self, cancel: threading.Event) -> None:
        """
        Clear the run state if the loop ended on its own (unreadable run flag).

        A loop that was stopped or replaced no longer owns the state: its
        cancel event is not the current one, so nothing is touched.
        """
        if not self._run_lock.acquire(timeout=self._lock_timeout):
            logger.error("Monitor loop exited but the run flag could not be cleared")
            return
        try:
            if self._cancel is not cancel:
                return
            self._running = False
            self._cancel = None
            self._worker = None
        finally:
            self._run_lock.release()
        logger.warning("Monitor loop exited unexpectedly; monitoring marked as stopped")

    @staticmethod
    def _join(worker: threading.Thread | None, timeout: float | None) -> None:
        if worker is None or worker is threading.current_thread():
            return
        worker.join(timeout=timeout)
        if worker.is_alive():
            logger.warning("Monitor loop did not exit within %ss", timeout)

    def restore(self) -> bool:
        """
        Re-start monitoring if it was enabled before the last shutdown.

        Call once after TaskRegistry.load_from_persistence(). Returns True if
        monitoring was started.
        """
        time.sleep(max(0.0, float(self._restore_delay)))

        if not self._registry.monitoring_enabled():
            return False

        self.start()
        return True

    def _persist_flag(self, enabled: bool) -> None:
        try:
            self._registry.set_monitoring_enabled(enabled)
        except LockFailure:
            logger.warning("Monitoring flag not updated (lock unavailable)")
