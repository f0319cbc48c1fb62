# tests/test_task_store.py

from __future__ import annotations

import sqlite3
from pathlib import Path

from dnskeeper.tasks.task_store import TaskStore

from .fakes import make_task


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    store.save_task(make_task("a", pattern="Wi-Fi*", dns=["1.1.1.1", "1.0.0.1"], interval=30))
    store.save_task(make_task("b", enabled=False))

    tasks = store.load_tasks()

    assert [t.id for t in tasks] == ["a", "b"]
    assert tasks[0].interface_pattern == "Wi-Fi*"
    assert tasks[0].target_dns == ["1.1.1.1", "1.0.0.1"]
    assert tasks[0].interval == 30
    assert tasks[0].created_at == 1_700_000_000
    assert tasks[1].enabled is False
    assert store.count_tasks() == 2


def test_data_survives_reopen(tmp_path: Path) -> None:
    db = tmp_path / "nested" / "tasks.sqlite3"
    TaskStore(db).save_task(make_task("a"))

    reopened = TaskStore(db)

    assert [t.id for t in reopened.load_tasks()] == ["a"]
    assert reopened.db_path == db


def test_update_and_delete(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")
    store.save_task(make_task("a"))
    store.save_task(make_task("b"))

    store.update_task(make_task("a", dns=["9.9.9.9"], enabled=False, interval=5))
    store.delete_task("b")

    tasks = store.load_tasks()
    assert [t.id for t in tasks] == ["a"]
    assert tasks[0].target_dns == ["9.9.9.9"]
    assert tasks[0].enabled is False
    assert tasks[0].interval == 5


def test_monitoring_flag_defaults_to_false_and_persists(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    store = TaskStore(db)
    assert store.load_monitoring_flag() is False

    store.save_monitoring_flag(True)

    assert TaskStore(db).load_monitoring_flag() is True


def test_migration_adds_interval_column(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(str(db))
    conn.execute(
        """
        CREATE TABLE dns_tasks (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            interface_pattern TEXT NOT NULL,
            target_dns TEXT NOT NULL,
            enabled INTEGER NOT NULL,
            created_at INTEGER NOT NULL
        )
        """
    )
    conn.execute(
        "INSERT INTO dns_tasks VALUES (?, ?, ?, ?, ?, ?)",
        ("legacy", "old task", "eth*", '["8.8.8.8"]', 1, 1600000000),
    )
    conn.commit()
    conn.close()

    tasks = TaskStore(db).load_tasks()

    assert len(tasks) == 1
    assert tasks[0].id == "legacy"
    assert tasks[0].interval == 1
    assert tasks[0].target_dns == ["8.8.8.8"]


def test_unreadable_dns_column_loads_as_empty(tmp_path: Path) -> None:
    db = tmp_path / "tasks.sqlite3"
    store = TaskStore(db)
    store.save_task(make_task("a"))

    conn = sqlite3.connect(str(db))
    conn.execute("UPDATE dns_tasks SET target_dns = ? WHERE id = ?", ("not json", "a"))
    conn.commit()
    conn.close()

    assert store.load_tasks()[0].target_dns == []
