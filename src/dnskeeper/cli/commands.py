# src/dnskeeper/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.errors import DnsTaskError, PersistenceError
from ..core.state import AppState
from ..tasks.task_models import DnsTask
from ..tasks.task_monitor import call_guarded

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

SHORT_ID = 8


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Task-monitor failures never escape: they come back as the reply text.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)

            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except (DnsTaskError, ValueError) as e:
            logger.debug("/%s failed: %s", name, e)
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _short(task_id: str) -> str:
    return task_id[:SHORT_ID]


def _resolve(state: AppState, args: list[str], usage: str) -> DnsTask:
    if not args:
        raise ValueError(usage)
    task = state.service.find_task(args[0])
    if task is None:
        raise ValueError(f"No task (or more than one) matches id '{args[0]}'.")
    return task


def _parse_dns(raw: str) -> list[str]:
    return [p.strip() for p in raw.split(",") if p.strip()]


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_tasks(state: AppState, args: list[str]) -> str:
    tasks = state.service.list_tasks()
    if not tasks:
        return "No DNS tasks. Add one with /add <name> <pattern> <dns,dns> [interval]."
    lines = [f"DNS tasks ({len(tasks)}):"]
    for t in tasks:
        flag = "on " if t.enabled else "off"
        lines.append(
            f"  [{flag}] {_short(t.id)}  {t.name}  pattern={t.interface_pattern}  "
            f"dns={', '.join(t.target_dns)}  every {t.effective_interval()}s"
        )
    return "\n".join(lines)


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <name> <pattern> <dns[,dns...]> [interval]
    """
    if len(args) < 3:
        return "Usage: /add <name> <pattern> <dns[,dns...]> [interval_seconds]"

    name, pattern, raw_dns = args[0], args[1], args[2]
    interval = 1
    if len(args) >= 4:
        try:
            interval = int(args[3])
        except ValueError:
            return f"Interval must be an integer number of seconds, got '{args[3]}'."

    try:
        task = state.service.add_task(
            name=name,
            interface_pattern=pattern,
            target_dns=_parse_dns(raw_dns),
            interval=interval,
        )
    except PersistenceError as e:
        return f"Error: {e} (task is active until restart)"
    return f"Task added: {_short(task.id)} {task.name} ({task.interface_pattern} -> {', '.join(task.target_dns)})"


def cmd_remove(state: AppState, args: list[str]) -> str:
    task = _resolve(state, args, "Usage: /remove <task_id>")
    state.service.remove_task(task.id)
    return f"Task removed: {_short(task.id)} {task.name}"


def cmd_enable(state: AppState, args: list[str]) -> str:
    task = _resolve(state, args, "Usage: /enable <task_id>")
    state.service.set_task_enabled(task.id, True)
    return f"Task enabled: {_short(task.id)} {task.name}"


def cmd_disable(state: AppState, args: list[str]) -> str:
    task = _resolve(state, args, "Usage: /disable <task_id>")
    state.service.set_task_enabled(task.id, False)
    return f"Task disabled: {_short(task.id)} {task.name}"


def cmd_interval(state: AppState, args: list[str]) -> str:
    task = _resolve(state, args, "Usage: /interval <task_id> <seconds>")
    if len(args) < 2:
        return "Usage: /interval <task_id> <seconds>"
    try:
        seconds = int(args[1])
    except ValueError:
        return f"Interval must be an integer number of seconds, got '{args[1]}'."
    updated = state.service.set_task_interval(task.id, seconds)
    return f"Task {_short(updated.id)} now checks every {updated.effective_interval()}s"


def cmd_status(state: AppState, args: list[str]) -> str:
    running = state.service.is_running()
    statuses = state.service.list_statuses()
    lines = [f"Monitoring: {'RUNNING' if running else 'STOPPED'}"]
    if not statuses:
        lines.append("  (no evaluated tasks yet)")
        return "\n".join(lines)
    for s in statuses:
        lines.append(
            f"  {s.task_name} @ {s.interface_name}: {s.status.value}  "
            f"current=[{', '.join(s.current_dns)}] target=[{', '.join(s.target_dns)}]  "
            f"{s.last_check}  {s.message}"
        )
    return "\n".join(lines)


def cmd_logs(state: AppState, args: list[str]) -> str:
    """
    /logs      -> last 20 entries
    /logs <n>  -> last n entries
    """
    limit = 20
    if args:
        try:
            limit = max(1, int(args[0]))
        except ValueError:
            return "Usage: /logs [count]"
    entries = state.service.list_logs()[:limit]
    if not entries:
        return "Enforcement log is empty."
    lines = ["Enforcement log (newest first):"]
    for e in entries:
        lines.append(f"  [{e.time}] {e.task_name}: {e.message}")
    return "\n".join(lines)


def cmd_clearlogs(state: AppState, args: list[str]) -> str:
    state.service.clear_logs()
    return "Enforcement log cleared."


def cmd_start(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        with contextlib.suppress(Exception):
            emit("[MONITOR] Starting... DNS changes need administrator rights.")
    state.service.start_monitoring()
    return "Monitoring started."


def cmd_stop(state: AppState, args: list[str]) -> str:
    state.service.stop_monitoring()
    return "Monitoring stopped."


def cmd_adapters(state: AppState, args: list[str]) -> str:
    adapters = call_guarded("list_adapters", state.adapters.list_adapters)
    if not adapters:
        return "No network adapters found."
    lines = ["Network adapters:"]
    for a in adapters:
        up = "up  " if a.enabled else "down"
        line = f"  [{up}] {a.name}  dns=[{', '.join(a.dns_servers)}]  ipv4=[{', '.join(a.ipv4)}]"
        if a.ipv4_netmask:
            line += f" mask={a.ipv4_netmask}"
        if a.speed_mbps:
            line += f"  {a.speed_mbps} Mb/s"
        if a.mtu:
            line += f"  mtu={a.mtu}"
        lines.append(line)
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("tasks", cmd_tasks, help_text="List DNS tasks.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add <name> <pattern> <dns,dns> [interval].")
registry.register("remove", cmd_remove, help_text="Remove a task: /remove <task_id>.", aliases=["rm"])
registry.register("enable", cmd_enable, help_text="Enable a task: /enable <task_id>.")
registry.register("disable", cmd_disable, help_text="Disable a task: /disable <task_id>.")
registry.register("interval", cmd_interval, help_text="Set check interval: /interval <task_id> <seconds>.")
registry.register("status", cmd_status, help_text="Show monitoring state and per-adapter task status.")
registry.register("logs", cmd_logs, help_text="Show enforcement log: /logs [count].")
registry.register("clearlogs", cmd_clearlogs, help_text="Clear the enforcement log.")
registry.register("start", cmd_start, help_text="Start DNS monitoring.")
registry.register("stop", cmd_stop, help_text="Stop DNS monitoring.")
registry.register("adapters", cmd_adapters, help_text="List network adapters and their DNS servers.")
