# tests/conftest.py

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from types import SimpleNamespace

import pytest

from dnskeeper.cli.bootstrap import create_initial_state
from dnskeeper.core.state import AppState
from dnskeeper.tasks.registry import TaskRegistry

from .fakes import FakeAdapterSource, FakeDnsApplier, make_adapter


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """Settings stand-in for bootstrap and the monitor (tiny poll intervals, tmp data dir)."""
    return SimpleNamespace(
        app_name="dnskeeper-test",
        log_level="DEBUG",
        console_enabled=False,
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        poll_interval_seconds=0.01,
        error_backoff_seconds=0.01,
        restore_delay_seconds=0.0,
        lock_timeout_seconds=1.0,
        log_buffer_size=100,
        flush_dns_cache=True,
        command_timeout_seconds=1.0,
    )


@pytest.fixture()
def adapters() -> FakeAdapterSource:
    return FakeAdapterSource([make_adapter("eth0", dns=["8.8.8.8"])])


@pytest.fixture()
def applier(adapters: FakeAdapterSource) -> FakeDnsApplier:
    return FakeDnsApplier(adapters)


@pytest.fixture()
def registry() -> TaskRegistry:
    return TaskRegistry(lock_timeout=1.0)


@pytest.fixture()
def state(settings, adapters, applier) -> Iterator[AppState]:
    """AppState with network fakes; the SQLite store is real and opens on service.init()."""
    st = create_initial_state(settings=settings, adapters=adapters, applier=applier)
    yield st
    st.service.monitor.halt(timeout=2.0)

