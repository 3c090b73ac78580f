# src/cadence/config.py

"""Settings for the cadence process, read from CADENCE_* environment variables.

A local .env file is loaded first (real environment wins). Every value has a
default, so importing this module never fails; a malformed value falls back
to its default instead of raising. Only the app layer reads Settings: the
recurrence and task modules take plain parameters.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "CADENCE"

load_dotenv(override=False)

_TRUE_WORDS = frozenset({"1", "true", "yes", "y", "on"})


class _EnvReader:
    """Typed lookups of PREFIX_<suffix> variables."""

    def __init__(self, prefix: str) -> None:
        self._prefix = prefix

    def _raw(self, suffix: str) -> str | None:
        value = os.getenv(f"{self._prefix}_{suffix}")
        if value is None or not value.strip():
            return None
        return value.strip()

    def text(self, suffix: str, default: str) -> str:
        return self._raw(suffix) or default

    def flag(self, suffix: str, default: bool) -> bool:
        raw = self._raw(suffix)
        return default if raw is None else raw.lower() in _TRUE_WORDS

    def integer(self, suffix: str, default: int, *, minimum: int | None = None) -> int:
        raw = self._raw(suffix)
        try:
            value = int(raw) if raw is not None else default
        except ValueError:
            return default
        return default if minimum is not None and value < minimum else value

    def seconds(self, suffix: str, default: float) -> float:
        raw = self._raw(suffix)
        try:
            value = float(raw) if raw is not None else default
        except ValueError:
            return default
        return max(0.0, value)

    def path(self, suffix: str, default: Path) -> Path:
        raw = self._raw(suffix)
        return default if raw is None else Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    app_name: str
    log_level: str

    console_enabled: bool

    # Local, gitignored.
    data_dir: Path
    tasks_db_path: Path

    # Generation
    generation_window_days: int
    lookahead_days: int
    max_instances_per_series: int
    initial_generation_delay_seconds: float
    generation_interval_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        env = _EnvReader(ENV_PREFIX)
        data_dir = env.path("DATA_DIR", Path(".local/cadence"))

        return Settings(
            app_name=env.text("APP_NAME", "cadence"),
            log_level=env.text("LOG_LEVEL", "INFO"),
            console_enabled=env.flag("CONSOLE_ENABLED", True),
            data_dir=data_dir,
            tasks_db_path=env.path("TASKS_DB_PATH", data_dir / "tasks.sqlite3"),
            generation_window_days=env.integer("GENERATION_WINDOW_DAYS", 30, minimum=1),
            lookahead_days=env.integer("LOOKAHEAD_DAYS", 7, minimum=0),
            max_instances_per_series=env.integer("MAX_INSTANCES_PER_SERIES", 100, minimum=1),
            initial_generation_delay_seconds=env.seconds("INITIAL_GENERATION_DELAY_SECONDS", 0.1),
            generation_interval_seconds=env.seconds("GENERATION_INTERVAL_SECONDS", 3600.0),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
