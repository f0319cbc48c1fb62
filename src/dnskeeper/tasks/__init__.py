"""
DNS task subsystem.

Components:
- task_models.py: data structures (DnsTask, TaskStatus, LogEntry, NetworkInterface)
- matching.py: adapter-name wildcard matching + DNS list comparison
- registry.py: in-memory task/status/log registry with a durable mirror
- task_store.py: SQLite-backed persistence
- task_monitor.py: background reconciliation loop + start/stop/restore
- task_api.py: operations exposed to the command layer
"""
