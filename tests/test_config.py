# tests/test_config.py

from __future__ import annotations

import logging
from pathlib import Path

from cadence.cli.bootstrap import create_initial_state
from cadence.config import Settings
from cadence.logging_setup import _ConsoleNoiseFilter


def test_settings_defaults(monkeypatch) -> None:
    for name in ("DATA_DIR", "TASKS_DB_PATH", "GENERATION_WINDOW_DAYS", "MAX_INSTANCES_PER_SERIES"):
        monkeypatch.delenv(f"CADENCE_{name}", raising=False)

    s = Settings.from_env()

    assert s.data_dir == Path(".local/cadence")
    assert s.tasks_db_path == Path(".local/cadence/tasks.sqlite3")
    assert s.generation_window_days == 30
    assert s.max_instances_per_series == 100


def test_settings_read_prefixed_env(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("CADENCE_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("CADENCE_GENERATION_WINDOW_DAYS", "14")
    monkeypatch.setenv("CADENCE_MAX_INSTANCES_PER_SERIES", "0")
    monkeypatch.setenv("CADENCE_CONSOLE_ENABLED", "no")

    s = Settings.from_env()

    assert s.tasks_db_path == tmp_path / "tasks.sqlite3"
    assert s.generation_window_days == 14
    # Below the minimum: falls back to the default.
    assert s.max_instances_per_series == 100
    assert s.console_enabled is False


def test_create_initial_state_wires_store(settings) -> None:
    state = create_initial_state(settings=settings)

    assert settings.tasks_db_path.exists()
    assert state.store.count_series() == 0
    assert state.scheduler.state.has_run_once is False
    assert state.generation_runner is None


def test_console_filter_quiets_background_generation() -> None:
    flt = _ConsoleNoiseFilter()

    def rec(name: str, level: int) -> logging.LogRecord:
        return logging.LogRecord(name, level, __file__, 1, "msg", None, None)

    assert flt.filter(rec("cadence.tasks.task_store", logging.INFO)) is True
    assert flt.filter(rec("cadence.tasks.task_scheduler", logging.INFO)) is False
    assert flt.filter(rec("cadence.tasks.task_scheduler", logging.WARNING)) is True
    assert flt.filter(rec("urllib3", logging.WARNING)) is False
