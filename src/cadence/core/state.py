# src/cadence/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..connectors.generation_runner import GenerationBackgroundRunner
    from ..tasks.task_scheduler import GenerationScheduler
    from .ports import TaskRepo


@dataclass
class AppState:
    """
    Process-wide wiring shared by connectors and command handlers.

    `settings` is kept loosely typed so tests can pass a SimpleNamespace.
    """

    settings: Any
    store: TaskRepo
    scheduler: GenerationScheduler

    generation_runner: GenerationBackgroundRunner | None = None
    # Serializes console commands against other connectors.
    lock: Any = field(default_factory=threading.RLock)
