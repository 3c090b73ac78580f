# src/cadence/recurrence/rule_models.py

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Any


class RecurrencePattern(StrEnum):
    """
    Supported repeat patterns.

    Notes:
    - CUSTOM is an N-day interval; it shares the DAILY arithmetic.
    """

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, raw: Any) -> RecurrencePattern | None:
        if isinstance(raw, cls):
            return raw
        if not raw:
            return None
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return None


# ISO weekday numbering: Monday=1 .. Sunday=7.
DAY_NAMES: dict[int, tuple[str, str]] = {
    1: ("Mon", "Monday"),
    2: ("Tue", "Tuesday"),
    3: ("Wed", "Wednesday"),
    4: ("Thu", "Thursday"),
    5: ("Fri", "Friday"),
    6: ("Sat", "Saturday"),
    7: ("Sun", "Sunday"),
}


def as_day(value: date | datetime | str | None) -> date | None:
    """Normalize a date-ish value to a calendar day (time-of-day dropped)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if not raw:
        return None
    # Accept full ISO timestamps ("2024-01-01T08:30:00Z") as well as plain dates.
    return date.fromisoformat(raw[:10])


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for k in keys:
        if k in data and data[k] is not None:
            return data[k]
    return None


def _coerce_int(data: Mapping[str, Any], *keys: str, invalid: list[tuple[str, str]]) -> int | None:
    raw = _first(data, *keys)
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        invalid.append((keys[0], str(raw)))
        return None


def _coerce_day(data: Mapping[str, Any], *keys: str, invalid: list[tuple[str, str]]) -> date | None:
    raw = _first(data, *keys)
    try:
        return as_day(raw)
    except (TypeError, ValueError):
        invalid.append((keys[0], str(raw)))
        return None


@dataclass(frozen=True, slots=True)
class RecurrenceRule:
    """
    Immutable description of how a series repeats.

    `pattern` is usually a RecurrencePattern; an unknown raw string is kept
    as-is so validation can report it instead of failing at parse time.
    """

    pattern: RecurrencePattern | str
    start_date: date | None
    frequency: int = 1
    days_of_week: frozenset[int] = field(default_factory=frozenset)
    day_of_month: int | None = None
    end_date: date | None = None
    end_after_occurrences: int | None = None
    # (field name, raw text) pairs from_dict could not parse.
    invalid_fields: tuple[tuple[str, str], ...] = ()

    def invalid_value(self, name: str) -> str | None:
        for field_name, raw in self.invalid_fields:
            if field_name == name:
                return raw
        return None

    @property
    def known_pattern(self) -> RecurrencePattern | None:
        return RecurrencePattern.parse(self.pattern)

    def sorted_days(self) -> list[int]:
        return sorted(self.days_of_week)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RecurrenceRule:
        """
        Build a rule from a UI/storage payload.

        Accepts both snake_case and the camelCase keys used by the mobile client
        (daysOfWeek, dayOfMonth, startDate, endDate, endAfterOccurrences).
        Values are coerced, not validated: run validate_rule() on the result.
        Unparseable values never raise here; they are recorded in
        invalid_fields and reported by validation.
        """
        invalid: list[tuple[str, str]] = []

        raw_pattern = _first(data, "pattern") or ""
        pattern: RecurrencePattern | str = RecurrencePattern.parse(raw_pattern) or str(raw_pattern)

        raw_freq = _first(data, "frequency", "interval")
        try:
            frequency = int(raw_freq) if raw_freq is not None else 1
        except (TypeError, ValueError):
            frequency = 0

        raw_days = _first(data, "days_of_week", "daysOfWeek") or []
        if isinstance(raw_days, str):
            raw_days = [p for p in raw_days.replace(",", " ").split() if p]
        elif not isinstance(raw_days, Iterable):
            raw_days = [raw_days]
        days: set[int] = set()
        bad_days: list[str] = []
        for d in raw_days:
            try:
                days.add(int(d))
            except (TypeError, ValueError):
                bad_days.append(str(d))
        if bad_days:
            invalid.append(("days_of_week", ", ".join(bad_days)))

        return cls(
            pattern=pattern,
            frequency=frequency,
            days_of_week=frozenset(days),
            day_of_month=_coerce_int(data, "day_of_month", "dayOfMonth", invalid=invalid),
            start_date=_coerce_day(data, "start_date", "startDate", invalid=invalid),
            end_date=_coerce_day(data, "end_date", "endDate", invalid=invalid),
            end_after_occurrences=_coerce_int(
                data, "end_after_occurrences", "endAfterOccurrences", invalid=invalid
            ),
            invalid_fields=tuple(invalid),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern": str(self.pattern),
            "frequency": self.frequency,
            "days_of_week": self.sorted_days(),
            "day_of_month": self.day_of_month,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "end_after_occurrences": self.end_after_occurrences,
        }


def weekly_rule(days: Iterable[int], start: date, *, frequency: int = 1, end: date | None = None) -> RecurrenceRule:
    """Shorthand used by callers that build weekly rules in code."""
    return RecurrenceRule(
        pattern=RecurrencePattern.WEEKLY,
        frequency=frequency,
        days_of_week=frozenset(days),
        start_date=start,
        end_date=end,
    )
