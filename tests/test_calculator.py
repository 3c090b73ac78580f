# tests/test_calculator.py

from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from cadence.recurrence.calculator import (
    add_months,
    generate_date_range,
    generate_dates_for_next_days,
    matches_pattern,
    next_occurrence,
)
from cadence.recurrence.rule_models import RecurrencePattern, RecurrenceRule, weekly_rule

from .fakes import daily_rule


def _monthly(start: date, dom: int, *, frequency: int = 1) -> RecurrenceRule:
    return RecurrenceRule(
        pattern=RecurrencePattern.MONTHLY,
        frequency=frequency,
        day_of_month=dom,
        start_date=start,
    )


def _days(start: date, end: date):
    d = start
    while d <= end:
        yield d
        d += timedelta(days=1)


def test_weekly_mon_wed_fri_two_weeks() -> None:
    rule = weekly_rule({1, 3, 5}, date(2024, 1, 1))

    got = generate_date_range(rule, date(2024, 1, 1), date(2024, 1, 14))

    assert got == [
        date(2024, 1, 1),
        date(2024, 1, 3),
        date(2024, 1, 5),
        date(2024, 1, 8),
        date(2024, 1, 10),
        date(2024, 1, 12),
    ]


def test_weekly_start_day_not_selected_is_not_emitted() -> None:
    # 2024-01-02 is a Tuesday.
    rule = weekly_rule({1, 3}, date(2024, 1, 2))

    got = generate_date_range(rule, date(2024, 1, 1), date(2024, 1, 10))

    assert got == [date(2024, 1, 3), date(2024, 1, 8), date(2024, 1, 10)]


def test_weekly_every_other_week_stays_aligned_with_start_week() -> None:
    rule = weekly_rule({1, 3}, date(2024, 1, 2), frequency=2)

    got = generate_date_range(rule, date(2024, 1, 1), date(2024, 1, 31))

    assert got == [
        date(2024, 1, 3),
        date(2024, 1, 15),
        date(2024, 1, 17),
        date(2024, 1, 29),
        date(2024, 1, 31),
    ]


@pytest.mark.parametrize(
    "start, days, frequency",
    [
        (date(2024, 1, 1), {1, 5}, 2),
        (date(2024, 1, 6), {1, 3}, 2),
        (date(2024, 1, 3), {2, 4, 7}, 3),
        (date(2024, 2, 29), {4}, 1),
    ],
)
def test_weekly_output_matches_week_offset_model(start: date, days: set[int], frequency: int) -> None:
    rule = weekly_rule(days, start, frequency=frequency)
    end = start + timedelta(days=120)
    start_monday = start - timedelta(days=start.isoweekday() - 1)

    expected = [
        d
        for d in _days(start, end)
        if d.isoweekday() in days
        and ((d - timedelta(days=d.isoweekday() - 1)) - start_monday).days // 7 % frequency == 0
    ]

    assert generate_date_range(rule, start, end, max_count=1000) == expected


@pytest.mark.parametrize(
    "rule",
    [
        daily_rule(date(2024, 1, 1), frequency=3),
        weekly_rule({1, 3, 5}, date(2024, 1, 1)),
        weekly_rule({2, 6}, date(2024, 1, 4), frequency=2),
        _monthly(date(2024, 1, 31), 31),
        _monthly(date(2024, 1, 10), 15, frequency=2),
        RecurrenceRule(pattern=RecurrencePattern.CUSTOM, frequency=5, start_date=date(2024, 1, 2)),
    ],
)
def test_matches_pattern_agrees_with_generation(rule: RecurrenceRule) -> None:
    start, end = date(2023, 12, 1), date(2024, 12, 31)
    produced = set(generate_date_range(rule, start, end, max_count=1000))

    for d in _days(start, end):
        assert matches_pattern(rule, d) == (d in produced), d


def test_monthly_day_31_clamps_to_short_months() -> None:
    rule = _monthly(date(2023, 1, 31), 31)

    got = generate_date_range(rule, date(2023, 1, 1), date(2023, 5, 31))

    assert got == [
        date(2023, 1, 31),
        date(2023, 2, 28),
        date(2023, 3, 31),
        date(2023, 4, 30),
        date(2023, 5, 31),
    ]


def test_monthly_clamps_to_leap_day() -> None:
    rule = _monthly(date(2024, 1, 31), 31)

    assert next_occurrence(rule, date(2024, 1, 31)) == date(2024, 2, 29)


def test_monthly_start_is_anchor_even_off_day_of_month() -> None:
    rule = _monthly(date(2024, 1, 10), 15)

    got = generate_date_range(rule, date(2024, 1, 1), date(2024, 3, 31))

    assert got == [date(2024, 1, 10), date(2024, 2, 15), date(2024, 3, 15)]


def test_daily_walk_is_anchored_at_series_start() -> None:
    rule = daily_rule(date(2024, 1, 1), frequency=3)

    got = generate_date_range(rule, date(2024, 1, 5), date(2024, 1, 15))

    assert got == [date(2024, 1, 7), date(2024, 1, 10), date(2024, 1, 13)]


def test_end_date_cuts_generation() -> None:
    rule = daily_rule(date(2024, 1, 1), end=date(2024, 1, 5))

    got = generate_date_range(rule, date(2024, 1, 1), date(2024, 1, 31))

    assert got[-1] == date(2024, 1, 5)
    assert len(got) == 5
    assert next_occurrence(rule, date(2024, 1, 5)) is None


def test_max_count_bounds_output() -> None:
    rule = daily_rule(date(2024, 1, 1))

    assert len(generate_date_range(rule, date(2024, 1, 1), date(2024, 12, 31), max_count=10)) == 10
    assert len(generate_date_range(rule, date(2024, 1, 1), date(2024, 12, 31))) == 100
    assert generate_date_range(rule, date(2024, 1, 1), date(2024, 12, 31), max_count=0) == []


def test_range_before_series_start_or_inverted_is_empty() -> None:
    rule = daily_rule(date(2024, 6, 1))

    assert generate_date_range(rule, date(2024, 1, 1), date(2024, 5, 31)) == []
    assert generate_date_range(rule, date(2024, 6, 10), date(2024, 6, 1)) == []


@pytest.mark.parametrize(
    "rule",
    [
        RecurrenceRule(pattern=RecurrencePattern.WEEKLY, start_date=date(2024, 1, 1)),
        RecurrenceRule(pattern=RecurrencePattern.MONTHLY, start_date=date(2024, 1, 1)),
        RecurrenceRule(pattern="yearly", start_date=date(2024, 1, 1)),
        RecurrenceRule(pattern=RecurrencePattern.DAILY, start_date=None),
        RecurrenceRule(pattern=RecurrencePattern.DAILY, frequency=0, start_date=date(2024, 1, 1)),
    ],
)
def test_malformed_rules_produce_nothing(rule: RecurrenceRule) -> None:
    assert generate_date_range(rule, date(2024, 1, 1), date(2024, 2, 1)) == []
    assert matches_pattern(rule, date(2024, 1, 1)) is False


def test_next_occurrence_weekly_wraps_to_next_week() -> None:
    rule = weekly_rule({1, 3, 5}, date(2024, 1, 1))

    # Friday -> Monday; Wednesday -> Friday.
    assert next_occurrence(rule, date(2024, 1, 5)) == date(2024, 1, 8)
    assert next_occurrence(rule, date(2024, 1, 3)) == date(2024, 1, 5)


def test_next_occurrence_truncates_time_of_day() -> None:
    rule = daily_rule(date(2024, 1, 1))

    assert next_occurrence(rule, datetime(2024, 1, 1, 23, 59)) == date(2024, 1, 2)
    assert next_occurrence(rule, "2024-01-01T08:30:00Z") == date(2024, 1, 2)


def test_generate_dates_for_next_days_is_inclusive() -> None:
    rule = daily_rule(date(2024, 1, 1))

    got = generate_dates_for_next_days(rule, 7, today=date(2024, 1, 1))

    assert got[0] == date(2024, 1, 1)
    assert got[-1] == date(2024, 1, 8)
    assert len(got) == 8


def test_matches_pattern_respects_bounds() -> None:
    rule = daily_rule(date(2024, 1, 10), end=date(2024, 1, 20))

    assert matches_pattern(rule, date(2024, 1, 9)) is False
    assert matches_pattern(rule, date(2024, 1, 10)) is True
    assert matches_pattern(rule, datetime(2024, 1, 15, 12, 0)) is True
    assert matches_pattern(rule, date(2024, 1, 21)) is False


def test_add_months_clamps_and_rolls_year() -> None:
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2023, 12, 15), 1) == date(2024, 1, 15)
    assert add_months(date(2024, 2, 29), 12, 31) == date(2025, 2, 28)
