# src/cadence/tasks/task_models.py

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any

from ..recurrence.rule_models import RecurrenceRule

# Hard per-series bound for indefinitely-recurring series.
MAX_INSTANCES_PER_SERIES = 100

DEFAULT_CATEGORY = "personal"
DEFAULT_PRIORITY = "medium"

# Template attributes copied onto every instance (and propagated by scoped edits).
TEMPLATE_FIELDS = ("title", "category", "priority", "description", "enable_reminder")


class Scope(StrEnum):
    """Breadth of a scoped edit/delete: one instance, this-and-future, or the whole series."""

    THIS = "this"
    FUTURE = "future"
    ALL = "all"

    @classmethod
    def parse(cls, raw: Any) -> Scope:
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            raise ValueError(f"Unknown scope {raw!r} (expected this, future or all)") from None


class InstanceFilter(StrEnum):
    ALL = "all"
    PENDING = "pending"
    COMPLETED = "completed"
    SKIPPED = "skipped"

    @classmethod
    def from_raw(cls, raw: str | None) -> InstanceFilter:
        if not raw:
            return cls.ALL
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.ALL


def new_series_id() -> str:
    return f"series_{uuid.uuid4().hex}"


def new_instance_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class TaskTemplate:
    title: str
    category: str = DEFAULT_CATEGORY
    priority: str = DEFAULT_PRIORITY
    description: str = ""
    enable_reminder: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TaskTemplate:
        reminder = data.get("enable_reminder", data.get("enableReminder", False))
        return cls(
            title=str(data.get("title") or "").strip(),
            category=str(data.get("category") or DEFAULT_CATEGORY),
            priority=str(data.get("priority") or DEFAULT_PRIORITY),
            description=str(data.get("description") or ""),
            enable_reminder=bool(reminder),
        )

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in TEMPLATE_FIELDS}


@dataclass(frozen=True, slots=True)
class Series:
    """
    A recurrence rule plus the template every instance is stamped from.

    Records are immutable; edits produce a new Series via dataclasses.replace.
    """

    id: str
    rule: RecurrenceRule
    template: TaskTemplate
    created_at: float
    updated_at: float
    active: bool = True
    # Days deleted with scope "this"; never materialized again.
    excluded_dates: frozenset[date] = field(default_factory=frozenset)


@dataclass(frozen=True, slots=True)
class TaskInstance:
    id: str
    series_id: str | None
    instance_date: date | None

    title: str
    category: str = DEFAULT_CATEGORY
    priority: str = DEFAULT_PRIORITY
    description: str = ""
    enable_reminder: bool = False

    completed: bool = False
    skipped: bool = False

    due_date: date | None = None
    created_at: float = 0.0
    updated_at: float = 0.0

    @property
    def effective_date(self) -> date | None:
        """instance_date, falling back to due_date for legacy rows."""
        return self.instance_date or self.due_date

    @property
    def is_open(self) -> bool:
        return not self.completed and not self.skipped

    def template_values(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in TEMPLATE_FIELDS}
