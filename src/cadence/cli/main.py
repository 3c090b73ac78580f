# src/cadence/cli/main.py

"""
`cadence` entrypoint.

Order matters: logging first, then AppState, then the generation thread
(its initial pass tops every active series up), then the console REPL in
the main thread. Without the console the process just keeps generating
until SIGTERM or Ctrl+C.
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..connectors.generation_runner import start_generation_in_background
from ..core.state import AppState
from ..logging_setup import level_from_name, setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state: AppState) -> None:
    runner = state.generation_runner
    if runner is not None:
        runner.stop()
        runner.join(timeout=10.0)
        if runner.thread.is_alive():
            logger.warning("Generation thread still running after 10s; exiting anyway.")

    try:
        state.store.close()
    except Exception:
        logger.debug("Store close failed.", exc_info=True)


def _install_sigterm(stop: threading.Event) -> None:
    def _on_sigterm(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop.set()

    # SIGINT keeps its default so Ctrl+C interrupts input() in the console.
    try:
        signal.signal(signal.SIGTERM, _on_sigterm)
    except (ValueError, OSError, AttributeError):
        logger.debug("SIGTERM handler not installed.", exc_info=True)


def main() -> None:
    settings = get_settings()
    log_file = setup_logging(log_dir=settings.data_dir, console_level=level_from_name(settings.log_level))
    logger.info("Starting %s (log file %s)", settings.app_name, log_file)

    state = create_initial_state(settings=settings)
    state.generation_runner = start_generation_in_background(state)

    stop = threading.Event()
    _install_sigterm(stop)

    try:
        if settings.console_enabled:
            run_console_loop(state)
        else:
            logger.info("Console disabled; generating in the background. Press Ctrl+C to stop.")
            stop.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
