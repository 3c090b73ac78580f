# tests/test_validation.py

from __future__ import annotations

from datetime import date

import pytest

from cadence.recurrence.rule_models import RecurrencePattern, RecurrenceRule, weekly_rule
from cadence.recurrence.validation import ValidationError, ensure_valid_rule, validate_rule
from cadence.tasks.series_manager import create_series


def test_valid_weekly_rule_passes() -> None:
    result = validate_rule(weekly_rule({1, 3, 5}, date(2024, 1, 1)))

    assert result.valid is True
    assert result.errors == []


def test_missing_rule_is_invalid() -> None:
    result = validate_rule(None)

    assert result.valid is False
    assert result.errors == ["Recurrence rule is required"]


def test_weekly_without_days_is_rejected() -> None:
    result = validate_rule(RecurrenceRule(pattern=RecurrencePattern.WEEKLY, start_date=date(2024, 1, 1)))

    assert result.valid is False
    assert result.errors == ["At least one day of week must be selected for weekly pattern"]


def test_weekly_day_out_of_range_is_rejected() -> None:
    result = validate_rule(weekly_rule({1, 8}, date(2024, 1, 1)))

    assert result.valid is False
    assert "[8]" in result.errors[0]


@pytest.mark.parametrize("dom", [None, 0, 32])
def test_monthly_day_of_month_bounds(dom: int | None) -> None:
    rule = RecurrenceRule(pattern=RecurrencePattern.MONTHLY, day_of_month=dom, start_date=date(2024, 1, 1))

    assert validate_rule(rule).errors == ["Day of month must be between 1 and 31"]


def test_all_errors_are_collected() -> None:
    rule = RecurrenceRule(pattern="yearly", frequency=0, start_date=None, end_after_occurrences=0)

    errors = validate_rule(rule).errors

    assert len(errors) == 4
    assert errors[0].startswith("Invalid recurrence pattern 'yearly'")
    assert "Frequency must be at least 1" in errors
    assert "Start date is required" in errors
    assert "End after occurrences must be at least 1" in errors


def test_end_before_start_is_rejected() -> None:
    rule = RecurrenceRule(
        pattern=RecurrencePattern.DAILY,
        start_date=date(2024, 2, 1),
        end_date=date(2024, 1, 31),
    )

    assert validate_rule(rule).errors == ["End date must not be before start date"]


def test_ensure_valid_rule_raises_with_every_error() -> None:
    rule = RecurrenceRule(pattern=RecurrencePattern.WEEKLY, frequency=0, start_date=None)

    with pytest.raises(ValidationError) as exc_info:
        ensure_valid_rule(rule)

    assert isinstance(exc_info.value, ValueError)
    assert len(exc_info.value.errors) == 3


def test_ensure_valid_rule_returns_rule() -> None:
    rule = weekly_rule({2}, date(2024, 1, 1))

    assert ensure_valid_rule(rule) is rule


def test_rule_from_dict_accepts_client_payload() -> None:
    rule = RecurrenceRule.from_dict(
        {
            "pattern": "Weekly",
            "frequency": "2",
            "daysOfWeek": [1, 3],
            "startDate": "2024-01-01T08:00:00Z",
            "endDate": "2024-03-01",
        }
    )

    assert rule.pattern is RecurrencePattern.WEEKLY
    assert rule.frequency == 2
    assert rule.days_of_week == frozenset({1, 3})
    assert rule.start_date == date(2024, 1, 1)
    assert rule.end_date == date(2024, 3, 1)
    assert validate_rule(rule).valid is True


def test_rule_from_dict_keeps_bad_values_for_validation() -> None:
    rule = RecurrenceRule.from_dict({"pattern": "fortnightly", "frequency": "often", "start_date": "2024-01-01"})

    assert rule.pattern == "fortnightly"
    assert rule.frequency == 0
    assert validate_rule(rule).valid is False


def test_rule_from_dict_parses_comma_separated_days() -> None:
    rule = RecurrenceRule.from_dict({"pattern": "weekly", "days_of_week": "1,3,5", "start_date": "2024-01-01"})

    assert rule.sorted_days() == [1, 3, 5]
    assert RecurrenceRule.from_dict(rule.to_dict()) == rule


def test_create_series_reports_unparseable_days_with_other_errors() -> None:
    with pytest.raises(ValidationError) as exc_info:
        create_series({"title": ""}, {"pattern": "weekly", "days_of_week": "mon,wed", "frequency": 0})

    assert exc_info.value.errors == [
        "Frequency must be at least 1",
        "Days of week must be between 1 (Monday) and 7 (Sunday), got 'mon, wed'",
        "Start date is required",
        "Title is required",
    ]


def test_rule_from_dict_never_raises_on_bad_values() -> None:
    rule = RecurrenceRule.from_dict(
        {
            "pattern": "monthly",
            "dayOfMonth": "last",
            "startDate": "2024-13-01",
            "endDate": "soon",
            "endAfterOccurrences": "ten",
        }
    )

    assert rule.day_of_month is None
    assert rule.start_date is None
    assert rule.end_date is None
    assert rule.end_after_occurrences is None
    assert validate_rule(rule).errors == [
        "Day of month must be a number between 1 and 31, got 'last'",
        "Start date must be an ISO date (YYYY-MM-DD), got '2024-13-01'",
        "End date must be an ISO date (YYYY-MM-DD), got 'soon'",
        "End after occurrences must be a whole number, got 'ten'",
    ]


def test_mixed_day_tokens_report_only_the_bad_ones() -> None:
    rule = RecurrenceRule.from_dict({"pattern": "weekly", "days_of_week": ["1", "fri"], "start_date": "2024-01-01"})

    assert rule.days_of_week == frozenset({1})
    assert validate_rule(rule).errors == [
        "Days of week must be between 1 (Monday) and 7 (Sunday), got 'fri'",
    ]
