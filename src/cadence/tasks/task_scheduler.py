# src/cadence/tasks/task_scheduler.py

from __future__ import annotations

"""
Generation scheduler.

Decides when recurring series need more materialized instances and runs the
materializer for just those series:
- once on initial load (after a short settle delay),
- whenever the set of series/instances changes (notify_change),
- periodically, as the generation horizon moves forward (run_generation_loop).

Only one pass runs at a time. A trigger that arrives while a pass is in
flight is dropped; generation is idempotent and the next change retries.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

from ..core.ports import GenerationRepo
from ..recurrence.calculator import DEFAULT_WINDOW_DAYS
from .materializer import materialize_all_due_series
from .task_models import MAX_INSTANCES_PER_SERIES, Series, TaskInstance

logger = logging.getLogger(__name__)

DEFAULT_LOOKAHEAD_DAYS = 7


class GenerationPhase(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"


@dataclass(slots=True)
class GenerationState:
    """Re-entrancy guard owned by one scheduler (injectable for tests)."""

    phase: GenerationPhase = GenerationPhase.IDLE
    has_run_once: bool = False
    passes: int = 0
    last_generated: int = 0


def should_generate_more(
    series: Series,
    instances: Iterable[TaskInstance],
    lookahead_days: int = DEFAULT_LOOKAHEAD_DAYS,
    *,
    today: date | None = None,
) -> bool:
    """
    True when an active series is running short of open instances.

    "Short" means no open (not completed, not skipped) instance at all, or the
    latest open one falls before today + lookahead_days.
    """
    if not series.active:
        return False

    open_days = [
        i.effective_date
        for i in instances
        if i.series_id == series.id and i.is_open and i.effective_date is not None
    ]
    if not open_days:
        return True

    horizon = (today or date.today()) + timedelta(days=lookahead_days)
    return max(open_days) < horizon


class GenerationScheduler:
    def __init__(
        self,
        repo: GenerationRepo,
        *,
        state: GenerationState | None = None,
        window_days: int = DEFAULT_WINDOW_DAYS,
        lookahead_days: int = DEFAULT_LOOKAHEAD_DAYS,
        max_instances_per_series: int = MAX_INSTANCES_PER_SERIES,
        initial_delay_seconds: float = 0.1,
        today_fn: Callable[[], date] = date.today,
    ) -> None:
        self._repo = repo
        self.state = state if state is not None else GenerationState()
        self._window_days = int(window_days)
        self._lookahead_days = int(lookahead_days)
        self._max_per_series = int(max_instances_per_series)
        self._initial_delay = max(0.0, float(initial_delay_seconds))
        self._today_fn = today_fn
        # The loop only holds weak references to tasks.
        self._pending: set[asyncio.Task[list[TaskInstance]]] = set()

    @property
    def is_generating(self) -> bool:
        return self.state.phase is GenerationPhase.GENERATING

    @property
    def pending_passes(self) -> int:
        """Passes scheduled by notify_change that have not finished yet."""
        return len(self._pending)

    def due_series(self, series_list: Sequence[Series], instances: Sequence[TaskInstance]) -> list[Series]:
        today = self._today_fn()
        return [
            s
            for s in series_list
            if should_generate_more(s, instances, self._lookahead_days, today=today)
        ]

    async def run_pass(self) -> list[TaskInstance]:
        """
        One generation pass. Returns the instances handed to the repo.

        The phase flag is set before the first await, so an overlapping call
        (e.g. a change notification while the write below is pending) sees
        GENERATING and returns immediately. The repo may still drop some of
        them if the series changed after the snapshot; state.last_generated
        holds the number actually written.
        """
        if self.is_generating:
            logger.debug("Generation pass already running; trigger dropped")
            return []

        self.state.phase = GenerationPhase.GENERATING
        started = time.monotonic()
        try:
            series_list = self._repo.list_series(active_only=True)
            if not series_list:
                return []

            instances = self._repo.list_instances()
            due = self.due_series(series_list, instances)
            if not due:
                logger.debug("No series need generation (%d active)", len(series_list))
                return []

            new_instances = materialize_all_due_series(
                due,
                instances,
                self._window_days,
                today=self._today_fn(),
                max_instances=self._max_per_series,
            )
            written = 0
            if new_instances:
                written = await asyncio.to_thread(self._repo.add_instances, new_instances)

            self.state.last_generated = written
            logger.info(
                "Generation pass: %d series due, %d of %d instance(s) written in %.1f ms",
                len(due),
                written,
                len(new_instances),
                (time.monotonic() - started) * 1000.0,
            )
            return new_instances

        except Exception:
            logger.exception("Generation pass failed")
            return []
        finally:
            self.state.passes += 1
            self.state.phase = GenerationPhase.IDLE

    async def start(self) -> list[TaskInstance]:
        """
        Initial-load pass, run at most once per scheduler.

        Waits initial_delay_seconds first so dependent state can settle.
        """
        if self.state.has_run_once:
            return []
        self.state.has_run_once = True

        if self._initial_delay:
            await asyncio.sleep(self._initial_delay)
        return await self.run_pass()

    def notify_change(self) -> asyncio.Task[list[TaskInstance]] | None:
        """
        Schedule a pass on the running loop after a data change.

        Returns None (trigger dropped) when a pass is already in flight.
        Must be called from inside the event loop thread. The scheduler keeps
        the task referenced until it finishes, so callers may ignore it.
        """
        if self.is_generating:
            logger.debug("Change notification while generating; dropped")
            return None
        task = asyncio.get_running_loop().create_task(self.run_pass())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task


async def run_generation_loop(
    scheduler: GenerationScheduler,
    *,
    interval_seconds: float = 3600.0,
    stop_event: asyncio.Event | None = None,
) -> None:
    """
    Initial pass, then one pass every interval_seconds.

    The horizon (today + window) moves forward with the calendar, so a
    long-running process keeps topping series up. Cancel the coroutine or set
    stop_event to stop.
    """
    sleep_s = max(0.5, float(interval_seconds))

    await scheduler.start()

    while stop_event is None or not stop_event.is_set():
        if stop_event is None:
            await asyncio.sleep(sleep_s)
        else:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=sleep_s)
                break
            except asyncio.TimeoutError:
                pass

        await scheduler.run_pass()
