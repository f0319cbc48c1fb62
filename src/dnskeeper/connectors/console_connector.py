# src/dnskeeper/connectors/console_connector.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("/exit", "/quit")
PROMPT = "dns> "


def _stamp(text: str) -> str:
    return f"[{datetime.now():%H:%M:%S}] {text}"


def _banner(state: AppState) -> str:
    tasks = state.service.list_tasks()
    monitoring = "running" if state.service.is_running() else "stopped"
    return (
        f"[CONSOLE] {len(tasks)} task(s) loaded, monitoring {monitoring}. "
        "Type /help for commands, /exit to quit."
    )


def run_console_loop(
    state: AppState,
    *,
    read_line: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> None:
    """
    Line-based REPL over the slash-command registry (blocks the calling thread).

    The monitor keeps running in its own thread while the console waits for
    input; /exit, EOF or Ctrl+C end the loop, not the monitor.
    """
    logger.info("Console connector started.")
    write(_stamp(_banner(state)))

    def emit(text: str) -> None:
        write(_stamp(text))

    while True:
        try:
            line = read_line(PROMPT).strip()
        except (EOFError, KeyboardInterrupt):
            logger.info("Console input closed.")
            write("")
            break

        if not line:
            continue
        if line.lower() in EXIT_COMMANDS:
            break

        try:
            reply = command_registry.handle(state, line, emit=emit)
        except Exception:
            logger.exception("Command %r crashed.", line)
            reply = "Internal error while handling the command (see log file)."

        if reply is None:
            reply = "Commands start with '/'. Try /status or /help."
        write(_stamp(reply))

    logger.info("Console connector finished.")
