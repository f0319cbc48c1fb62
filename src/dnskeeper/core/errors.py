# src/dnskeeper/core/errors.py

from __future__ import annotations

"""
Error taxonomy shared by the registry, the monitor and the command layer.

Every error's str() is a user-facing failure reason; the command layer
returns it as-is.
"""


class DnsTaskError(Exception):
    """Base class for all task-monitor failures."""


class LockFailure(DnsTaskError):
    """A guarded resource could not be acquired (treated like a poisoned lock)."""

    def __init__(self, resource: str) -> None:
        super().__init__(f"Lock unavailable: {resource}")
        self.resource = resource


class TaskNotFoundError(DnsTaskError):
    def __init__(self, task_id: str) -> None:
        super().__init__("Task not found")
        self.task_id = task_id


class DuplicateTaskError(DnsTaskError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task already exists: {task_id}")
        self.task_id = task_id


class AlreadyRunningError(DnsTaskError):
    def __init__(self) -> None:
        super().__init__("Already running")


class CollaboratorError(DnsTaskError):
    """An adapter source or DNS applier reported a failure."""


class CollaboratorPanic(DnsTaskError):
    """An adapter source or DNS applier raised something unexpected."""

    def __init__(self, operation: str, cause: BaseException) -> None:
        super().__init__(f"Unexpected failure in {operation}: {cause!r}")
        self.operation = operation


class PersistenceError(DnsTaskError):
    """The durable store could not be opened, read or written."""
