# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from cadence.core.state import AppState
from cadence.tasks.task_scheduler import GenerationScheduler
from cadence.tasks.task_store import TaskStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="cadence-test",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        generation_window_days=30,
        lookahead_days=7,
        max_instances_per_series=100,
        initial_generation_delay_seconds=0.0,
        generation_interval_seconds=3600.0,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore) -> AppState:
    """
    AppState wired with a real SQLite store and no background runner.

    NOTE: We keep the real TaskStore here because its dedup behaviour is part
    of what we want to test.
    """
    return AppState(
        settings=settings,
        store=store,
        scheduler=GenerationScheduler(store, initial_delay_seconds=0.0),
    )
