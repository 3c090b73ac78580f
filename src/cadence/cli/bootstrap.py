# src/cadence/cli/bootstrap.py

"""
Composition root: turns Settings into a wired AppState.

Settings are injectable (tests pass a SimpleNamespace); only when none is
given do we fall back to the process-wide get_settings().
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import GenerationRepo
from ..core.state import AppState
from ..tasks.task_scheduler import GenerationScheduler
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def build_scheduler(store: GenerationRepo, settings) -> GenerationScheduler:
    return GenerationScheduler(
        store,
        window_days=settings.generation_window_days,
        lookahead_days=settings.lookahead_days,
        max_instances_per_series=settings.max_instances_per_series,
        initial_delay_seconds=settings.initial_generation_delay_seconds,
    )


def create_initial_state(*, settings=None) -> AppState:
    settings = settings if settings is not None else get_settings()

    # data_dir also holds the log file; the db may live elsewhere.
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    store = TaskStore(settings.tasks_db_path)

    logger.debug("AppState wired (db=%s)", settings.tasks_db_path)
    return AppState(settings=settings, store=store, scheduler=build_scheduler(store, settings))
