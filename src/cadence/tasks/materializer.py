# src/cadence/tasks/materializer.py

"""
Instance materializer.

Turns occurrence dates into TaskInstance records:
- never two instances for the same (series_id, instance_date),
- never more than max_instances per series,
- never on a day the user deleted with scope "this".

Nothing is persisted here: callers get the new records back and append them.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence
from datetime import date, timedelta

from ..recurrence.calculator import DEFAULT_WINDOW_DAYS, generate_date_range
from .task_models import MAX_INSTANCES_PER_SERIES, Series, TaskInstance, new_instance_id

logger = logging.getLogger(__name__)


def build_instance(series: Series, day: date, *, now_ts: float | None = None) -> TaskInstance:
    """Stamp one instance of `series` for `day` from the series template."""
    now = time.time() if now_ts is None else now_ts
    tpl = series.template
    return TaskInstance(
        id=new_instance_id(),
        series_id=series.id,
        instance_date=day,
        due_date=day,
        title=tpl.title,
        category=tpl.category,
        priority=tpl.priority,
        description=tpl.description,
        enable_reminder=tpl.enable_reminder,
        completed=False,
        skipped=False,
        created_at=now,
        updated_at=now,
    )


def materialize_for_series(
    series: Series,
    existing_instances: Iterable[TaskInstance],
    window_days: int = DEFAULT_WINDOW_DAYS,
    *,
    today: date | None = None,
    max_instances: int = MAX_INSTANCES_PER_SERIES,
    now_ts: float | None = None,
) -> list[TaskInstance]:
    """
    New instances for `series` covering [today, today + window_days].

    Returns only the newly created records. A mis-configured rule (weekly
    without days, monthly without day_of_month) yields an empty list.
    """
    base = today or date.today()
    own = [i for i in existing_instances if i.series_id == series.id]
    current_count = len(own)

    if current_count >= max_instances:
        logger.debug("Series %s at instance cap (%s); nothing to generate", series.id, max_instances)
        return []

    # Already-materialized days do not consume capacity, so the walk is bounded
    # by the cap itself and the loop below enforces what is left.
    dates = generate_date_range(series.rule, base, base + timedelta(days=window_days), max_instances)

    taken = {i.instance_date for i in own if i.instance_date is not None}
    created: list[TaskInstance] = []

    for day in dates:
        if day in taken or day in series.excluded_dates:
            continue
        if current_count + len(created) >= max_instances:
            logger.debug("Series %s reached instance cap (%s) mid-window", series.id, max_instances)
            break
        created.append(build_instance(series, day, now_ts=now_ts))
        taken.add(day)

    if created:
        logger.debug(
            "Materialized %d instance(s) for series %s (%s .. %s)",
            len(created),
            series.id,
            created[0].instance_date,
            created[-1].instance_date,
        )
    return created


def materialize_all_due_series(
    series_list: Sequence[Series],
    existing_instances: Iterable[TaskInstance],
    window_days: int = DEFAULT_WINDOW_DAYS,
    *,
    today: date | None = None,
    max_instances: int = MAX_INSTANCES_PER_SERIES,
    max_total: int | None = None,
    now_ts: float | None = None,
) -> list[TaskInstance]:
    """
    Materialize every active series in one batch.

    Later series see the instances produced for earlier ones in the same run.
    `max_total` optionally bounds the whole batch.
    """
    pool = list(existing_instances)
    created: list[TaskInstance] = []

    for series in series_list:
        if not series.active:
            continue
        if max_total is not None and len(created) >= max_total:
            logger.info("Generation batch hit global limit (%s); remaining series deferred", max_total)
            break

        new = materialize_for_series(
            series,
            pool,
            window_days,
            today=today,
            max_instances=max_instances,
            now_ts=now_ts,
        )
        if max_total is not None:
            new = new[: max_total - len(created)]

        created.extend(new)
        pool.extend(new)

    return created
