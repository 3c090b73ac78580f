# src/cadence/recurrence/preview.py

from __future__ import annotations

from .rule_models import DAY_NAMES, RecurrencePattern, RecurrenceRule


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}" if n == 1 else f"{n} {unit}s"


def format_recurrence_preview(rule: RecurrenceRule | None) -> str:
    """
    Human-readable summary of a rule, e.g. "Repeats every Mon, Wed, Fri".

    Mirrors the calculator's reading of each pattern: CUSTOM is an N-day
    interval, WEEKLY lists the selected days, MONTHLY names the day of month.
    """
    if rule is None:
        return ""

    pattern = rule.known_pattern
    freq = rule.frequency

    if pattern is RecurrencePattern.DAILY:
        if freq == 1:
            return "Repeats every day"
        return f"Repeats every {_plural(freq, 'day')}"

    if pattern is RecurrencePattern.WEEKLY:
        names = [DAY_NAMES[d][0] for d in rule.sorted_days() if d in DAY_NAMES]
        if not names:
            return "Repeats weekly"
        if freq == 1:
            return f"Repeats every {', '.join(names)}"
        return f"Repeats every {_plural(freq, 'week')} ({', '.join(names)})"

    if pattern is RecurrencePattern.MONTHLY:
        day = f" on day {rule.day_of_month}" if rule.day_of_month else ""
        if freq == 1:
            return f"Repeats monthly{day}"
        return f"Repeats every {_plural(freq, 'month')}{day}"

    if pattern is RecurrencePattern.CUSTOM:
        return f"Repeats every {_plural(freq, 'day')}"

    return "Recurring task"
