# src/dnskeeper/cli/main.py

"""
CLI entrypoint.

Startup order:
1. logging (console + file under data_dir),
2. AppState with the OS collaborators,
3. persisted tasks + monitoring flag, monitoring restored if it was on,
4. console REPL in the main thread, or headless until SIGINT/SIGTERM.

Shutdown halts the worker but keeps the persisted monitoring flag, so the
next start resumes enforcement.
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.errors import DnsTaskError
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..net.system import has_admin_rights

logger = logging.getLogger(__name__)

SHUTDOWN_JOIN_SECONDS = 5.0


def _install_signal_handlers(stop: threading.Event) -> None:
    def _handle(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop.set()

    for name in ("SIGINT", "SIGTERM", "SIGBREAK"):
        sig = getattr(signal, name, None)
        if sig is None:
            continue
        try:
            signal.signal(sig, _handle)
        except (OSError, ValueError):
            logger.debug("Cannot install handler for %s", name)


def _startup(state: AppState) -> None:
    try:
        restored = state.service.init()
    except DnsTaskError as e:
        logger.error("Failed to restore monitoring: %s", e)
        return

    tasks = state.service.list_tasks()
    logger.info(
        "%d task(s) loaded, monitoring %s.",
        len(tasks),
        "restored" if restored else "stopped",
    )


def _shutdown(state: AppState) -> None:
    try:
        state.service.monitor.halt(timeout=SHUTDOWN_JOIN_SECONDS)
    except Exception:
        logger.exception("Monitor shutdown failed.")


def main() -> None:
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (log file: %s)", settings.app_name, log_file)
    if not has_admin_rights():
        logger.warning("Not running with administrator rights: DNS changes will likely fail.")

    state = create_initial_state(settings=settings)
    _startup(state)

    try:
        if settings.console_enabled:
            # Default SIGINT handling: Ctrl+C reaches input() as KeyboardInterrupt.
            run_console_loop(state)
        else:
            stop = threading.Event()
            _install_signal_handlers(stop)
            logger.info("Console disabled. Monitoring headless; press Ctrl+C to stop.")
            while not stop.wait(0.5):
                pass
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
