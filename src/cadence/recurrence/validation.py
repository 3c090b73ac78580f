# src/cadence/recurrence/validation.py

from __future__ import annotations

from dataclasses import dataclass, field

from .rule_models import RecurrencePattern, RecurrenceRule


class ValidationError(ValueError):
    """Raised when a rule is rejected. `errors` lists every violated constraint."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "invalid recurrence rule")


@dataclass(frozen=True, slots=True)
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


def validate_rule(rule: RecurrenceRule | None) -> ValidationResult:
    """
    Check a rule before it reaches the calculator.

    Collects all problems instead of stopping at the first one, so the UI can
    show them together.
    """
    if rule is None:
        return ValidationResult(valid=False, errors=["Recurrence rule is required"])

    errors: list[str] = []
    pattern = RecurrencePattern.parse(rule.pattern)

    if pattern is None:
        known = ", ".join(p.value for p in RecurrencePattern)
        errors.append(f"Invalid recurrence pattern {str(rule.pattern)!r} (expected one of: {known})")

    if not isinstance(rule.frequency, int) or rule.frequency < 1:
        errors.append("Frequency must be at least 1")

    bad_days = rule.invalid_value("days_of_week")
    if bad_days is not None:
        errors.append(f"Days of week must be between 1 (Monday) and 7 (Sunday), got {bad_days!r}")
    elif pattern is RecurrencePattern.WEEKLY:
        if not rule.days_of_week:
            errors.append("At least one day of week must be selected for weekly pattern")
        else:
            bad = sorted(d for d in rule.days_of_week if not 1 <= d <= 7)
            if bad:
                errors.append(f"Days of week must be between 1 (Monday) and 7 (Sunday), got {bad}")

    bad_dom = rule.invalid_value("day_of_month")
    if bad_dom is not None:
        errors.append(f"Day of month must be a number between 1 and 31, got {bad_dom!r}")
    elif pattern is RecurrencePattern.MONTHLY:
        if rule.day_of_month is None or not 1 <= rule.day_of_month <= 31:
            errors.append("Day of month must be between 1 and 31")

    bad_start = rule.invalid_value("start_date")
    if bad_start is not None:
        errors.append(f"Start date must be an ISO date (YYYY-MM-DD), got {bad_start!r}")
    elif rule.start_date is None:
        errors.append("Start date is required")

    bad_end = rule.invalid_value("end_date")
    if bad_end is not None:
        errors.append(f"End date must be an ISO date (YYYY-MM-DD), got {bad_end!r}")
    elif rule.end_date is not None and rule.start_date is not None and rule.end_date < rule.start_date:
        errors.append("End date must not be before start date")

    bad_count = rule.invalid_value("end_after_occurrences")
    if bad_count is not None:
        errors.append(f"End after occurrences must be a whole number, got {bad_count!r}")
    elif rule.end_after_occurrences is not None and rule.end_after_occurrences < 1:
        errors.append("End after occurrences must be at least 1")

    return ValidationResult(valid=not errors, errors=errors)


def ensure_valid_rule(rule: RecurrenceRule | None) -> RecurrenceRule:
    """Return the rule unchanged or raise ValidationError with all violations."""
    result = validate_rule(rule)
    if not result.valid or rule is None:
        raise ValidationError(result.errors)
    return rule
