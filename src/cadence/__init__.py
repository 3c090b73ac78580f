"""Recurring task engine: rules, occurrence math, materialization and scoped edits."""

__version__ = "0.1.0"
