# src/dnskeeper/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..tasks.task_api import DnsTaskService
from .ports import AdapterSource


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    service: DnsTaskService
    adapters: AdapterSource
