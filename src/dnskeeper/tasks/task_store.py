# src/dnskeeper/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
from pathlib import Path

from .task_models import DnsTask

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite store for DNS tasks and the "monitoring enabled" flag.

    Schema handling:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS dns_tasks (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    interface_pattern TEXT NOT NULL,
                    target_dns TEXT NOT NULL,
                    enabled INTEGER NOT NULL,
                    created_at INTEGER NOT NULL
                )
                """
            )

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS monitoring_state (
                    id INTEGER PRIMARY KEY,
                    enabled INTEGER NOT NULL
                )
                """
            )

            # Migrations (safe): older databases have no interval column.
            cur.execute("PRAGMA table_info(dns_tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE dns_tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("interval", "INTEGER NOT NULL DEFAULT 1")

            # Single-row flag table.
            cur.execute("INSERT OR IGNORE INTO monitoring_state (id, enabled) VALUES (1, 0)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _dns_to_str(dns: list[str] | None) -> str:
        return json.dumps(list(dns or []), ensure_ascii=False)

    @staticmethod
    def _str_to_dns(s: str | None) -> list[str]:
        if not s:
            return []
        try:
            val = json.loads(s)
        except Exception:
            logger.warning("Unreadable target_dns value %r; using []", s)
            return []
        if not isinstance(val, list):
            return []
        return [str(x) for x in val]

    def _row_to_task(self, row: sqlite3.Row) -> DnsTask:
        raw_interval = row["interval"]
        return DnsTask(
            id=str(row["id"]),
            name=str(row["name"] or ""),
            interface_pattern=str(row["interface_pattern"] or ""),
            target_dns=self._str_to_dns(row["target_dns"]),
            enabled=bool(row["enabled"]),
            created_at=int(row["created_at"] or 0),
            interval=int(raw_interval) if raw_interval is not None else 1,
        )

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM dns_tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def load_tasks(self) -> list[DnsTask]:
        """All tasks in insertion order (rowid), which is also the evaluation order."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM dns_tasks ORDER BY rowid ASC")
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def save_task(self, task: DnsTask) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO dns_tasks (
                    id, name, interface_pattern, target_dns, enabled, created_at, interval
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.id,
                    task.name,
                    task.interface_pattern,
                    self._dns_to_str(task.target_dns),
                    1 if task.enabled else 0,
                    int(task.created_at),
                    int(task.interval),
                ),
            )
            conn.commit()
            logger.debug("Task saved id=%s pattern=%s", task.id, task.interface_pattern)
        finally:
            conn.close()

    def delete_task(self, task_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM dns_tasks WHERE id = ?", (task_id,))
            conn.commit()
        finally:
            conn.close()

    def update_task(self, task: DnsTask) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                UPDATE dns_tasks
                SET name = ?,
                    interface_pattern = ?,
                    target_dns = ?,
                    enabled = ?,
                    interval = ?
                WHERE id = ?
                """,
                (
                    task.name,
                    task.interface_pattern,
                    self._dns_to_str(task.target_dns),
                    1 if task.enabled else 0,
                    int(task.interval),
                    task.id,
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def load_monitoring_flag(self) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT enabled FROM monitoring_state WHERE id = 1")
            row = cur.fetchone()
            return bool(row["enabled"]) if row else False
        finally:
            conn.close()

    def save_monitoring_flag(self, enabled: bool) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE monitoring_state SET enabled = ? WHERE id = 1",
                (1 if enabled else 0,),
            )
            conn.commit()
        finally:
            conn.close()
