"""
Recurrence subsystem.

Components:
- rule_models.py: RecurrenceRule / RecurrencePattern
- calculator.py: pure occurrence arithmetic (next, range, match)
- validation.py: rule validation (all errors at once)
- preview.py: human-readable rule summary
"""
