# src/dnskeeper/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

LOG_BUFFER_LIMIT = 100
NEVER_CHECKED = "-"


class StatusKind(StrEnum):
    """
    Evaluated relationship between one task and one matched adapter.

    Notes:
    - "running" means the task is throttled: no enforcement happened this cycle,
      and the DNS comparison result is not reported.
    - "stopped" is only emitted for disabled tasks (no adapter match attempted).
    """

    STOPPED = "stopped"
    RUNNING = "running"
    MATCHED = "matched"
    DNS_MISMATCH = "dns_mismatch"
    APPLIED = "applied"


@dataclass(slots=True)
class DnsTask:
    id: str
    name: str
    interface_pattern: str
    target_dns: list[str]
    enabled: bool
    created_at: int
    interval: int = 1

    def effective_interval(self) -> int:
        # Stored values below 1 (legacy rows, manual edits) still mean "every second".
        try:
            return max(int(self.interval), 1)
        except (TypeError, ValueError):
            return 1


@dataclass(slots=True, frozen=True)
class TaskStatus:
    task_id: str
    task_name: str
    interface_name: str
    current_dns: list[str]
    target_dns: list[str]
    status: StatusKind
    last_check: str
    message: str


@dataclass(slots=True, frozen=True)
class LogEntry:
    time: str
    task_id: str
    task_name: str
    message: str


@dataclass(slots=True)
class NetworkInterface:
    """
    Adapter snapshot handed to the monitor by an AdapterSource.

    Only name/enabled/dns_servers drive reconciliation; the rest is descriptive.
    """

    name: str
    enabled: bool
    dns_servers: list[str] = field(default_factory=list)
    description: str | None = None
    mac_address: str | None = None
    ipv4: list[str] = field(default_factory=list)
    ipv6: list[str] = field(default_factory=list)
    ipv4_netmask: str | None = None
    speed_mbps: int | None = None
    mtu: int | None = None
