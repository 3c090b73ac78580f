# src/cadence/tasks/task_api.py

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from typing import Any

from ..core.state import AppState
from ..recurrence.rule_models import RecurrenceRule
from .series_manager import (
    ScopedDelete,
    ScopedUpdate,
    SeriesCreation,
    apply_scoped_delete,
    apply_scoped_update,
    count_affected,
    create_series,
    set_series_active,
    toggle_completed,
    toggle_skipped,
)
from .task_models import Scope, Series, TaskInstance, TaskTemplate

logger = logging.getLogger(__name__)


def _notify_change(state: AppState) -> None:
    """Tell the background generator that series/instances changed (if it runs)."""
    runner = state.generation_runner
    if runner is None:
        return
    try:
        runner.notify_change()
    except Exception:
        logger.exception("notify_change failed")


def _require_series(state: AppState, series_id: str) -> Series:
    series = state.store.get_series(series_id)
    if series is None:
        raise LookupError(f"Series {series_id!r} not found")
    return series


def _require_instance(state: AppState, instance_id: str) -> tuple[TaskInstance, Series]:
    inst = state.store.get_instance(instance_id)
    if inst is None:
        raise LookupError(f"Task {instance_id!r} not found")
    if not inst.series_id:
        raise LookupError(f"Task {instance_id!r} does not belong to a recurring series")
    return inst, _require_series(state, inst.series_id)


def create_recurring_task(
    state: AppState,
    template_data: TaskTemplate | Mapping[str, Any],
    rule_data: RecurrenceRule | Mapping[str, Any],
    *,
    today: date | None = None,
) -> SeriesCreation:
    """
    Create a series and persist it together with its first instances.

    Raises ValidationError (nothing is stored) when the rule or title is invalid.
    """
    settings = state.settings
    creation = create_series(
        template_data,
        rule_data,
        today=today,
        window_days=int(getattr(settings, "generation_window_days", 30)),
        max_instances=int(getattr(settings, "max_instances_per_series", 100)),
    )
    state.store.add_series(creation.series)
    state.store.add_instances(creation.instances)
    _notify_change(state)
    return creation


def count_for_scope(state: AppState, instance_id: str, scope: Scope | str) -> int:
    inst, series = _require_instance(state, instance_id)
    instances = state.store.list_instances(series_id=series.id)
    return count_affected(instances, series.id, scope, inst.effective_date)


def delete_with_scope(state: AppState, instance_id: str, scope: Scope | str) -> ScopedDelete:
    inst, series = _require_instance(state, instance_id)
    instances = state.store.list_instances(series_id=series.id)

    result = apply_scoped_delete(instances, series, scope, inst.id)
    state.store.save_series_change(
        result.series if result.series != series else None,
        deleted_ids=[i.id for i in result.deleted],
    )

    _notify_change(state)
    return result


def update_with_scope(
    state: AppState,
    instance_id: str,
    scope: Scope | str,
    changes: Mapping[str, Any],
) -> ScopedUpdate:
    inst, series = _require_instance(state, instance_id)
    instances = state.store.list_instances(series_id=series.id)

    result = apply_scoped_update(instances, series, scope, inst.id, changes)
    state.store.save_series_change(
        result.series if result.series != series else None,
        updated=result.affected,
    )
    return result


def complete_instance(state: AppState, instance_id: str) -> TaskInstance:
    inst, _series = _require_instance(state, instance_id)
    updated = toggle_completed(inst)
    state.store.update_instances([updated])
    _notify_change(state)
    return updated


def skip_instance(state: AppState, instance_id: str) -> TaskInstance:
    inst, _series = _require_instance(state, instance_id)
    updated = toggle_skipped(inst)
    state.store.update_instances([updated])
    _notify_change(state)
    return updated


def pause_series(state: AppState, series_id: str) -> Series:
    series = set_series_active(_require_series(state, series_id), False)
    state.store.update_series(series)
    return series


def resume_series(state: AppState, series_id: str) -> Series:
    series = set_series_active(_require_series(state, series_id), True)
    state.store.update_series(series)
    _notify_change(state)
    return series
