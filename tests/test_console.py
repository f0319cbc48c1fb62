# tests/test_console.py

from __future__ import annotations

from pathlib import Path

from dnskeeper.config import Settings
from dnskeeper.connectors.console_connector import run_console_loop


def _scripted(lines: list[str]):
    pending = list(lines)

    def read_line(_prompt: str) -> str:
        if not pending:
            raise EOFError
        return pending.pop(0)

    return read_line


def test_console_runs_commands_until_exit(state) -> None:
    out: list[str] = []

    run_console_loop(
        state,
        read_line=_scripted(["", "/add office eth* 1.1.1.1", "hello", "/exit", "/tasks"]),
        write=out.append,
    )

    assert "0 task(s) loaded" in out[0]
    assert any("Task added:" in line for line in out)
    assert any("Commands start with '/'" in line for line in out)
    # Nothing after /exit is read.
    assert not any("DNS tasks (" in line for line in out)
    assert len(state.service.list_tasks()) == 1


def test_console_stops_on_eof(state) -> None:
    out: list[str] = []
    run_console_loop(state, read_line=_scripted([]), write=out.append)
    assert out[-1] == ""


def test_settings_from_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("DNSKEEPER_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("DNSKEEPER_POLL_INTERVAL", "2.5")
    monkeypatch.setenv("DNSKEEPER_LOG_BUFFER_SIZE", "0")
    monkeypatch.setenv("DNSKEEPER_LOCK_TIMEOUT", "not-a-number")
    monkeypatch.setenv("DNSKEEPER_CONSOLE_ENABLED", "off")
    monkeypatch.delenv("DNSKEEPER_TASKS_DB_PATH", raising=False)

    s = Settings.from_env()

    assert s.data_dir == tmp_path
    assert s.tasks_db_path == tmp_path / "tasks.sqlite3"
    assert s.poll_interval_seconds == 2.5
    assert s.log_buffer_size == 1
    assert s.lock_timeout_seconds == 5.0
    assert s.console_enabled is False
