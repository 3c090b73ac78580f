# src/cadence/recurrence/calculator.py

"""
Occurrence calculator.

Pure date arithmetic over RecurrenceRule:
- next_occurrence: first occurrence strictly after a given day,
- generate_date_range: every occurrence inside an inclusive window,
- matches_pattern: whether a day is one the rule would produce.

Everything works on calendar days; datetimes are truncated to their date.
Nothing here raises for a malformed or exhausted rule: the answer is simply
"no further occurrence" (None / empty list).
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta

from .rule_models import RecurrencePattern, RecurrenceRule, as_day

DEFAULT_MAX_OCCURRENCES = 100
DEFAULT_WINDOW_DAYS = 30

DayLike = date | datetime | str


def _valid_days(rule: RecurrenceRule) -> list[int]:
    return [d for d in rule.sorted_days() if 1 <= d <= 7]


def is_generatable(rule: RecurrenceRule) -> bool:
    """True when the rule carries enough data to produce dates at all."""
    pattern = rule.known_pattern
    if pattern is None or rule.start_date is None or rule.frequency < 1:
        return False
    if pattern is RecurrencePattern.WEEKLY and not _valid_days(rule):
        return False
    if pattern is RecurrencePattern.MONTHLY and not rule.day_of_month:
        return False
    return True


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(day: date, months: int, day_of_month: int | None = None) -> date:
    """
    Shift `day` by whole months, clamping to the target month's last day.

    With day_of_month set the result lands on min(day_of_month, month length);
    otherwise the original day-of-month is kept (clamped the same way).
    """
    index = day.year * 12 + (day.month - 1) + months
    year, month0 = divmod(index, 12)
    month = month0 + 1
    target = day_of_month or day.day
    return date(year, month, min(target, days_in_month(year, month)))


def next_occurrence(rule: RecurrenceRule, from_date: DayLike) -> date | None:
    """First occurrence strictly after `from_date`, or None when there is none."""
    current = as_day(from_date)
    pattern = rule.known_pattern
    if current is None or pattern is None or rule.frequency < 1:
        return None

    if pattern in (RecurrencePattern.DAILY, RecurrencePattern.CUSTOM):
        nxt = current + timedelta(days=rule.frequency)

    elif pattern is RecurrencePattern.WEEKLY:
        days = _valid_days(rule)
        if not days:
            return None
        dow = current.isoweekday()
        later = [d for d in days if d > dow]
        if later:
            nxt = current + timedelta(days=later[0] - dow)
        else:
            # Wrap to the first selected day, skipping frequency-1 idle weeks.
            nxt = current + timedelta(days=(7 - dow + days[0]) + (rule.frequency - 1) * 7)

    elif pattern is RecurrencePattern.MONTHLY:
        if not rule.day_of_month:
            return None
        nxt = add_months(current, rule.frequency, rule.day_of_month)

    else:
        return None

    if rule.end_date is not None and nxt > rule.end_date:
        return None
    return nxt


def generate_date_range(
    rule: RecurrenceRule,
    range_start: DayLike,
    range_end: DayLike,
    max_count: int = DEFAULT_MAX_OCCURRENCES,
) -> list[date]:
    """
    Every occurrence in [range_start, range_end] (inclusive), oldest first.

    The walk is anchored at rule.start_date so frequency > 1 stays aligned
    with the series; dates before range_start are stepped over, not emitted.
    Stops at range_end, rule.end_date or max_count, whichever comes first.
    """
    start = as_day(range_start)
    end = as_day(range_end)
    if start is None or end is None or max_count <= 0 or not is_generatable(rule):
        return []

    current = rule.start_date
    if current is None:
        return []
    while current < start:
        nxt = next_occurrence(rule, current)
        if nxt is None:
            return []
        current = nxt

    dates: list[date] = []
    in_window = start <= current <= end and (rule.end_date is None or current <= rule.end_date)
    if in_window:
        # A weekly series' start day only counts if it is one of the selected days.
        if rule.known_pattern is not RecurrencePattern.WEEKLY or current.isoweekday() in rule.days_of_week:
            dates.append(current)

    while len(dates) < max_count:
        nxt = next_occurrence(rule, current)
        if nxt is None or nxt > end:
            break
        dates.append(nxt)
        current = nxt

    return dates


def generate_dates_for_next_days(
    rule: RecurrenceRule,
    days: int = DEFAULT_WINDOW_DAYS,
    *,
    today: date | None = None,
    max_count: int = DEFAULT_MAX_OCCURRENCES,
) -> list[date]:
    """Occurrences from today through today + days."""
    base = today or date.today()
    return generate_date_range(rule, base, base + timedelta(days=days), max_count)


def _monday_of(day: date) -> date:
    return day - timedelta(days=day.isoweekday() - 1)


def matches_pattern(rule: RecurrenceRule, day: DayLike) -> bool:
    """
    True iff `day` is a date the rule produces.

    Used for validation and tests, never by generation itself.
    """
    d = as_day(day)
    if d is None or not is_generatable(rule):
        return False

    start = rule.start_date
    if start is None or d < start:
        return False
    if rule.end_date is not None and d > rule.end_date:
        return False

    pattern = rule.known_pattern
    if pattern in (RecurrencePattern.DAILY, RecurrencePattern.CUSTOM):
        return (d - start).days % rule.frequency == 0

    if pattern is RecurrencePattern.WEEKLY:
        if d.isoweekday() not in rule.days_of_week:
            return False
        weeks = (_monday_of(d) - _monday_of(start)).days // 7
        return weeks % rule.frequency == 0

    if pattern is RecurrencePattern.MONTHLY:
        # The start day itself is the series anchor and is always produced.
        if d == start:
            return True
        months = (d.year - start.year) * 12 + (d.month - start.month)
        if months <= 0 or months % rule.frequency != 0:
            return False
        return d.day == min(rule.day_of_month or d.day, days_in_month(d.year, d.month))

    return False
