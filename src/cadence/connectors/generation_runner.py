# src/cadence/connectors/generation_runner.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass

from ..core.state import AppState
from ..tasks.task_models import TaskInstance
from ..tasks.task_scheduler import GenerationScheduler, run_generation_loop

logger = logging.getLogger(__name__)


@dataclass
class GenerationBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event
    scheduler: GenerationScheduler

    def notify_change(self) -> None:
        """
        Thread-safe: schedule a generation pass on the runner's loop.

        The scheduler holds on to the task it creates until the pass ends.
        """
        self.loop.call_soon_threadsafe(self.scheduler.notify_change)

    def run_now(self, timeout: float = 30.0) -> list[TaskInstance]:
        """Run one pass from another thread and wait for its result."""
        fut = asyncio.run_coroutine_threadsafe(self.scheduler.run_pass(), self.loop)
        return fut.result(timeout=timeout)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal generation stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_generation_in_background(state: AppState) -> GenerationBackgroundRunner | None:
    """
    Start the generation loop in a background thread with its own event loop.

    The console REPL blocks on input(), so generation gets its own thread.
    """
    interval = float(getattr(state.settings, "generation_interval_seconds", 3600.0))
    scheduler = state.scheduler

    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(
                run_generation_loop(scheduler, interval_seconds=interval, stop_event=stop_event)
            )
        except Exception:
            logger.exception("Generation loop crashed")
        finally:
            with contextlib.suppress(Exception):
                loop.stop()
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="cadence-generation", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Generation thread did not initialize properly.")
        return None

    logger.info("Generation background thread started (interval=%.0fs).", interval)
    return GenerationBackgroundRunner(thread=t, loop=loop, stop_event=stop_event, scheduler=scheduler)
