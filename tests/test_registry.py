# tests/test_registry.py

from __future__ import annotations

import threading

import pytest

from dnskeeper.core.errors import DuplicateTaskError, LockFailure, PersistenceError, TaskNotFoundError
from dnskeeper.tasks.registry import TaskRegistry, hold_lock
from dnskeeper.tasks.task_models import LogEntry, StatusKind, TaskStatus

from .fakes import FakeStore, make_task


def _entry(i: int) -> LogEntry:
    return LogEntry(time=f"t{i}", task_id="t1", task_name="task-t1", message=f"msg {i}")


def _loaded(store: FakeStore) -> TaskRegistry:
    reg = TaskRegistry(lock_timeout=1.0)
    assert reg.load_from_persistence(lambda: store) is True
    return reg


def test_add_and_list_keep_insertion_order(registry: TaskRegistry) -> None:
    registry.add(make_task("a"))
    registry.add(make_task("b"))
    registry.add(make_task("c"))

    assert [t.id for t in registry.list()] == ["a", "b", "c"]


def test_list_returns_copies(registry: TaskRegistry) -> None:
    registry.add(make_task("a", dns=["1.1.1.1"]))

    snapshot = registry.list()
    snapshot[0].target_dns.append("9.9.9.9")
    snapshot[0].enabled = False

    fresh = registry.get("a")
    assert fresh is not None
    assert fresh.target_dns == ["1.1.1.1"]
    assert fresh.enabled is True


def test_duplicate_id_is_rejected(registry: TaskRegistry) -> None:
    registry.add(make_task("a", name="first"))

    with pytest.raises(DuplicateTaskError) as exc:
        registry.add(make_task("a", name="second"))

    assert "a" in str(exc.value)
    tasks = registry.list()
    assert len(tasks) == 1
    assert tasks[0].name == "first"


def test_duplicate_id_is_not_written_to_store() -> None:
    store = FakeStore()
    reg = _loaded(store)
    reg.add(make_task("a", name="first"))

    with pytest.raises(DuplicateTaskError):
        reg.add(make_task("a", name="second"))

    assert store.tasks["a"].name == "first"


def test_add_mirrors_to_store() -> None:
    store = FakeStore()
    reg = _loaded(store)

    reg.add(make_task("a"))

    assert list(store.tasks) == ["a"]


def test_add_keeps_task_in_memory_when_persistence_fails() -> None:
    store = FakeStore()
    reg = _loaded(store)
    store.fail = True

    with pytest.raises(PersistenceError) as exc:
        reg.add(make_task("a"))

    assert "disk is full" in str(exc.value)
    assert [t.id for t in reg.list()] == ["a"]
    assert store.tasks == {}


def test_remove_deletes_task(registry: TaskRegistry) -> None:
    registry.add(make_task("a"))
    registry.add(make_task("b"))

    registry.remove("a")

    assert [t.id for t in registry.list()] == ["b"]


def test_remove_unknown_id_is_a_no_op(registry: TaskRegistry) -> None:
    registry.add(make_task("a"))

    registry.remove("missing")

    assert [t.id for t in registry.list()] == ["a"]


def test_remove_persistence_failure_still_removes_in_memory() -> None:
    store = FakeStore()
    reg = _loaded(store)
    reg.add(make_task("a"))
    store.fail = True

    with pytest.raises(PersistenceError):
        reg.remove("a")

    assert reg.list() == []
    assert "a" in store.tasks


def test_update_replaces_task_in_place(registry: TaskRegistry) -> None:
    registry.add(make_task("a"))
    registry.add(make_task("b"))

    registry.update(make_task("a", dns=["9.9.9.9"], enabled=False, interval=30))

    tasks = registry.list()
    assert [t.id for t in tasks] == ["a", "b"]
    assert tasks[0].target_dns == ["9.9.9.9"]
    assert tasks[0].enabled is False
    assert tasks[0].interval == 30


def test_update_unknown_id_raises_not_found(registry: TaskRegistry) -> None:
    registry.add(make_task("a"))

    with pytest.raises(TaskNotFoundError) as exc:
        registry.update(make_task("missing"))

    assert str(exc.value) == "Task not found"
    assert [t.id for t in registry.list()] == ["a"]


def test_get_unknown_returns_none(registry: TaskRegistry) -> None:
    assert registry.get("missing") is None


def test_replace_statuses_is_wholesale(registry: TaskRegistry) -> None:
    first = TaskStatus(
        task_id="a",
        task_name="task-a",
        interface_name="eth0",
        current_dns=["8.8.8.8"],
        target_dns=["1.1.1.1"],
        status=StatusKind.APPLIED,
        last_check="2024-01-01 00:00:00",
        message="DNS auto-configured",
    )
    registry.replace_statuses([first, first])
    assert len(registry.list_statuses()) == 2

    registry.replace_statuses([])
    assert registry.list_statuses() == []


def test_log_buffer_keeps_newest_first_and_is_bounded(registry: TaskRegistry) -> None:
    for i in range(150):
        registry.append_log(_entry(i))

    logs = registry.list_logs()
    assert len(logs) == 100
    assert logs[0].message == "msg 149"
    assert logs[-1].message == "msg 50"


def test_custom_log_limit() -> None:
    reg = TaskRegistry(log_limit=3, lock_timeout=1.0)
    for i in range(5):
        reg.append_log(_entry(i))

    assert [e.message for e in reg.list_logs()] == ["msg 4", "msg 3", "msg 2"]


def test_clear_logs(registry: TaskRegistry) -> None:
    registry.append_log(_entry(1))
    registry.clear_logs()
    assert registry.list_logs() == []


def test_load_from_persistence_populates_tasks_and_flag() -> None:
    store = FakeStore(tasks={"a": make_task("a"), "b": make_task("b")}, monitoring=True)

    reg = _loaded(store)

    assert [t.id for t in reg.list()] == ["a", "b"]
    assert reg.monitoring_enabled() is True
    assert reg.has_store is True


def test_load_failure_is_not_fatal() -> None:
    reg = TaskRegistry(lock_timeout=1.0)

    def broken():
        raise OSError("cannot open database")

    assert reg.load_from_persistence(broken) is False
    assert reg.list() == []
    assert reg.monitoring_enabled() is False
    assert reg.has_store is False

    # No durable mirror: mutations work purely in memory.
    reg.add(make_task("a"))
    assert [t.id for t in reg.list()] == ["a"]


def test_set_monitoring_enabled_persists_best_effort() -> None:
    store = FakeStore()
    reg = _loaded(store)

    reg.set_monitoring_enabled(True)
    assert store.flag_writes == [True]

    store.fail = True
    reg.set_monitoring_enabled(False)
    assert reg.monitoring_enabled() is False
    assert store.monitoring is True


def test_hold_lock_times_out_with_lock_failure() -> None:
    lock = threading.Lock()
    lock.acquire()
    try:
        with pytest.raises(LockFailure) as exc:
            with hold_lock(lock, "tasks", 0.01):
                pass
    finally:
        lock.release()

    assert "tasks" in str(exc.value)


def test_busy_task_lock_surfaces_as_lock_failure() -> None:
    reg = TaskRegistry(lock_timeout=0.01)
    reg._tasks_lock.acquire()
    try:
        with pytest.raises(LockFailure):
            reg.list()
    finally:
        reg._tasks_lock.release()

    assert reg.list() == []
