# src/cadence/connectors/console_connector.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)

EXIT_WORDS = ("/exit", "/quit")
NOT_A_COMMAND = "Commands start with '/'. Use /help to list them."


def _stamp(text: str) -> str:
    return f"[{datetime.now().astimezone():%Y-%m-%d %H:%M:%S}] {text}"


def _say(text: str) -> None:
    print(_stamp(text), flush=True)


def dispatch_line(state: AppState, line: str, emit: Callable[[str], None] | None = None) -> str:
    """
    Run one console line through the command registry under the state lock.

    Always returns something printable: handler crashes are logged and turned
    into a generic message so the REPL keeps going.
    """
    try:
        with state.lock:
            reply = command_registry.handle(state, line, emit=emit)
    except Exception:
        logger.exception("Command handler crashed for %r", line)
        return "Internal error while handling a command."
    return NOT_A_COMMAND if reply is None else reply


def run_console_loop(state: AppState) -> None:
    prompt = f"{getattr(state.settings, 'app_name', 'cadence')}> "

    logger.info("Console connector started.")
    _say("Recurring tasks console. /help lists commands, /exit quits.\n")

    while True:
        try:
            line = input(prompt).strip()
        except (EOFError, KeyboardInterrupt) as e:
            logger.info("Console closed (%s).", type(e).__name__)
            print()
            break

        if not line:
            continue
        if line.lower() in EXIT_WORDS:
            break

        _say(dispatch_line(state, line, emit=_say))

    logger.info("Console connector finished.")
