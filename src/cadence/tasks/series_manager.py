# src/cadence/tasks/series_manager.py

"""
Series manager.

Creation of new series and the scope abstraction ("this" / "future" / "all")
used when a user edits or deletes part of a series. All functions are pure:
they take snapshots and return new records; persistence belongs to the caller.
"""

from __future__ import annotations

import calendar
import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Any

from ..recurrence.calculator import DEFAULT_WINDOW_DAYS
from ..recurrence.rule_models import RecurrenceRule, as_day
from ..recurrence.validation import ValidationError, validate_rule
from .materializer import materialize_for_series
from .task_models import (
    MAX_INSTANCES_PER_SERIES,
    TEMPLATE_FIELDS,
    InstanceFilter,
    Scope,
    Series,
    TaskInstance,
    TaskTemplate,
    new_series_id,
)

logger = logging.getLogger(__name__)


class ScopeError(LookupError):
    """The reference instance for a "this"/"future" scope does not exist in the series."""


@dataclass(frozen=True, slots=True)
class SeriesCreation:
    series: Series
    instances: list[TaskInstance]


@dataclass(frozen=True, slots=True)
class ScopeResolution:
    affected: list[TaskInstance]
    remaining: list[TaskInstance]


@dataclass(frozen=True, slots=True)
class ScopedUpdate:
    instances: list[TaskInstance]
    affected: list[TaskInstance]
    series: Series


@dataclass(frozen=True, slots=True)
class ScopedDelete:
    remaining: list[TaskInstance]
    deleted: list[TaskInstance]
    series: Series


# ---- creation ----


def create_series(
    template_data: TaskTemplate | Mapping[str, Any],
    rule: RecurrenceRule | Mapping[str, Any],
    *,
    today: date | None = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
    max_instances: int = MAX_INSTANCES_PER_SERIES,
    now_ts: float | None = None,
) -> SeriesCreation:
    """
    Validate the rule, build a new Series and materialize its first batch.

    Raises ValidationError listing every problem found (rule and template).
    """
    rule_obj = rule if isinstance(rule, RecurrenceRule) else RecurrenceRule.from_dict(rule)
    template = template_data if isinstance(template_data, TaskTemplate) else TaskTemplate.from_dict(template_data)

    errors = list(validate_rule(rule_obj).errors)
    if not template.title.strip():
        errors.append("Title is required")
    if errors:
        raise ValidationError(errors)

    now = time.time() if now_ts is None else now_ts
    series = Series(
        id=new_series_id(),
        rule=rule_obj,
        template=template,
        created_at=now,
        updated_at=now,
    )

    instances = materialize_for_series(
        series,
        [],
        window_days,
        today=today,
        max_instances=max_instances,
        now_ts=now,
    )
    logger.info(
        "Series created id=%s pattern=%s initial_instances=%d",
        series.id,
        rule_obj.pattern,
        len(instances),
    )
    return SeriesCreation(series=series, instances=instances)


# ---- scope resolution ----


def _sort_key(inst: TaskInstance) -> tuple[bool, date]:
    d = inst.effective_date
    return (d is None, d or date.min)


def series_instances(all_instances: Iterable[TaskInstance], series_id: str) -> list[TaskInstance]:
    """Instances of one series, oldest first; undated instances last."""
    return sorted((i for i in all_instances if i.series_id == series_id), key=_sort_key)


def _find_reference(
    all_instances: Sequence[TaskInstance], series_id: str, reference_instance_id: str | None
) -> TaskInstance:
    if reference_instance_id:
        for inst in all_instances:
            if inst.id == reference_instance_id and inst.series_id == series_id:
                return inst
    raise ScopeError(f"Instance {reference_instance_id!r} not found in series {series_id!r}")


def resolve_scope(
    all_instances: Sequence[TaskInstance],
    series_id: str,
    scope: Scope | str,
    reference_instance_id: str | None = None,
) -> ScopeResolution:
    """
    Partition `all_instances` into those the scope targets and everything else.

    - this:   only the reference instance
    - future: series instances dated on/after the reference (undated never match)
    - all:    every instance of the series

    Other series' instances always land in `remaining`; input order is kept.
    """
    scope = Scope.parse(scope)
    reference: TaskInstance | None = None
    if scope in (Scope.THIS, Scope.FUTURE):
        reference = _find_reference(all_instances, series_id, reference_instance_id)
    ref_day = reference.effective_date if reference is not None else None

    affected: list[TaskInstance] = []
    remaining: list[TaskInstance] = []

    for inst in all_instances:
        if inst.series_id != series_id:
            remaining.append(inst)
            continue

        if scope is Scope.THIS:
            hit = reference is not None and inst.id == reference.id
        elif scope is Scope.FUTURE:
            day = inst.effective_date
            hit = ref_day is not None and day is not None and day >= ref_day
        else:
            hit = True

        (affected if hit else remaining).append(inst)

    return ScopeResolution(affected=affected, remaining=remaining)


def count_affected(
    all_instances: Iterable[TaskInstance],
    series_id: str,
    scope: Scope | str,
    reference_date: date | datetime | str | None = None,
) -> int:
    """How many instances a scoped action would touch ("3 tasks will be deleted")."""
    scope = Scope.parse(scope)
    own = [i for i in all_instances if i.series_id == series_id]

    if scope is Scope.THIS:
        return 1 if own else 0
    if scope is Scope.FUTURE:
        ref = as_day(reference_date)
        if ref is None:
            return len(own)
        return sum(1 for i in own if i.effective_date is not None and i.effective_date >= ref)
    return len(own)


# ---- scoped mutations ----


def apply_scoped_update(
    all_instances: Sequence[TaskInstance],
    series: Series,
    scope: Scope | str,
    reference_instance_id: str | None,
    changes: Mapping[str, Any],
    *,
    now_ts: float | None = None,
) -> ScopedUpdate:
    """
    Apply template field changes to the instances a scope targets.

    For "future" and "all" the series template is updated too, so instances
    materialized later carry the change. "this" leaves the series alone.
    """
    unknown = sorted(set(changes) - set(TEMPLATE_FIELDS))
    if unknown:
        raise ValueError(f"Cannot edit fields {unknown}; editable: {list(TEMPLATE_FIELDS)}")

    scope = Scope.parse(scope)
    now = time.time() if now_ts is None else now_ts
    resolution = resolve_scope(all_instances, series.id, scope, reference_instance_id)

    updated = {i.id: replace(i, **changes, updated_at=now) for i in resolution.affected}
    instances = [updated.get(i.id, i) for i in all_instances]

    new_series = series
    if scope in (Scope.FUTURE, Scope.ALL) and changes:
        new_series = replace(series, template=replace(series.template, **changes), updated_at=now)

    logger.info(
        "Scoped update series=%s scope=%s affected=%d fields=%s",
        series.id,
        scope.value,
        len(updated),
        sorted(changes),
    )
    return ScopedUpdate(instances=instances, affected=list(updated.values()), series=new_series)


def apply_scoped_delete(
    all_instances: Sequence[TaskInstance],
    series: Series,
    scope: Scope | str,
    reference_instance_id: str | None = None,
    *,
    now_ts: float | None = None,
) -> ScopedDelete:
    """
    Remove the targeted instances and stop the series from re-creating them.

    - this:   the reference day is added to excluded_dates
    - future: the rule ends the day before the reference (series deactivated
              when that would precede its start)
    - all:    the series is deactivated
    """
    scope = Scope.parse(scope)
    now = time.time() if now_ts is None else now_ts
    resolution = resolve_scope(all_instances, series.id, scope, reference_instance_id)

    new_series = series
    if scope is Scope.ALL:
        new_series = replace(series, active=False, updated_at=now)

    elif scope is Scope.THIS:
        ref = resolution.affected[0] if resolution.affected else None
        if ref is not None and ref.instance_date is not None:
            new_series = replace(
                series,
                excluded_dates=series.excluded_dates | {ref.instance_date},
                updated_at=now,
            )

    else:
        ref = _find_reference(all_instances, series.id, reference_instance_id)
        ref_day = ref.effective_date
        if ref_day is not None:
            new_end = ref_day - timedelta(days=1)
            start = series.rule.start_date
            if start is not None and new_end < start:
                new_series = replace(series, active=False, updated_at=now)
            else:
                if series.rule.end_date is not None:
                    new_end = min(new_end, series.rule.end_date)
                new_series = replace(series, rule=replace(series.rule, end_date=new_end), updated_at=now)

    logger.info(
        "Scoped delete series=%s scope=%s deleted=%d active=%s",
        series.id,
        scope.value,
        len(resolution.affected),
        new_series.active,
    )
    return ScopedDelete(remaining=resolution.remaining, deleted=resolution.affected, series=new_series)


def set_series_active(series: Series, active: bool, *, now_ts: float | None = None) -> Series:
    """Pause (active=False) or resume a series. Existing instances are untouched."""
    if series.active == active:
        return series
    return replace(series, active=active, updated_at=time.time() if now_ts is None else now_ts)


def toggle_completed(instance: TaskInstance, *, now_ts: float | None = None) -> TaskInstance:
    return replace(
        instance,
        completed=not instance.completed,
        updated_at=time.time() if now_ts is None else now_ts,
    )


def toggle_skipped(instance: TaskInstance, *, now_ts: float | None = None) -> TaskInstance:
    return replace(
        instance,
        skipped=not instance.skipped,
        updated_at=time.time() if now_ts is None else now_ts,
    )


# ---- series detail view helpers ----


def _matches_filter(inst: TaskInstance, flt: InstanceFilter) -> bool:
    if flt is InstanceFilter.PENDING:
        return inst.is_open
    if flt is InstanceFilter.COMPLETED:
        return inst.completed
    if flt is InstanceFilter.SKIPPED:
        return inst.skipped
    return True


def filter_instances(
    all_instances: Iterable[TaskInstance],
    series_id: str,
    flt: InstanceFilter | str = InstanceFilter.ALL,
) -> list[TaskInstance]:
    flt = flt if isinstance(flt, InstanceFilter) else InstanceFilter.from_raw(flt)
    return [i for i in series_instances(all_instances, series_id) if _matches_filter(i, flt)]


def instance_counts(all_instances: Iterable[TaskInstance], series_id: str) -> dict[InstanceFilter, int]:
    own = series_instances(all_instances, series_id)
    return {flt: sum(1 for i in own if _matches_filter(i, flt)) for flt in InstanceFilter}


def group_by_month(instances: Iterable[TaskInstance]) -> dict[str, list[TaskInstance]]:
    """Group by "<Month> <Year>" label in date order; undated instances go under "No date"."""
    groups: dict[str, list[TaskInstance]] = {}
    for inst in sorted(instances, key=_sort_key):
        day = inst.effective_date
        label = f"{calendar.month_name[day.month]} {day.year}" if day else "No date"
        groups.setdefault(label, []).append(inst)
    return groups
