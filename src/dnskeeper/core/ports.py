# src/dnskeeper/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The monitor depends on Protocols instead of concrete implementations.
This keeps the OS-specific network code and the SQLite store swappable and
makes testing easier (tests drive the monitor with in-memory fakes).
"""

from collections.abc import Sequence
from typing import Protocol

from ..tasks.task_models import DnsTask, NetworkInterface


class AdapterSource(Protocol):
    """
    Read-only adapter enumeration, called once per reconciliation cycle
    from the worker thread.

    Reported failures are raised as CollaboratorError. The returned list must
    not be shared with other threads.
    """

    def list_adapters(self) -> list[NetworkInterface]: ...


class DnsApplier(Protocol):
    """
    Applies a DNS server list to one adapter.

    Not assumed atomic or idempotent: any normal return counts as success,
    a CollaboratorError is a reported failure.
    """

    def apply_dns(self, adapter_name: str, target_dns: Sequence[str]) -> None: ...

    def flush_cache(self) -> None: ...


class TaskPersistence(Protocol):
    # Startup load (failures downgrade to "empty state")
    def load_tasks(self) -> list[DnsTask]: ...
    def load_monitoring_flag(self) -> bool: ...

    # CRUD mirror (failures surface to the caller, memory still changes)
    def save_task(self, task: DnsTask) -> None: ...
    def delete_task(self, task_id: str) -> None: ...
    def update_task(self, task: DnsTask) -> None: ...

    # Best-effort
    def save_monitoring_flag(self, enabled: bool) -> None: ...
