# tests/test_task_scheduler.py

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import date, timedelta

import pytest

from cadence.tasks.task_scheduler import (
    GenerationPhase,
    GenerationScheduler,
    GenerationState,
    run_generation_loop,
    should_generate_more,
)

from .fakes import BrokenGenerationRepo, FakeGenerationRepo, daily_rule, make_instance, make_series

TODAY = date(2024, 1, 1)


def _scheduler(repo: FakeGenerationRepo, **kwargs) -> GenerationScheduler:
    kwargs.setdefault("initial_delay_seconds", 0.0)
    return GenerationScheduler(repo, today_fn=lambda: TODAY, **kwargs)


def test_should_generate_more() -> None:
    series = make_series(daily_rule(TODAY))
    far = make_instance("far", series.id, TODAY + timedelta(days=30))
    near = make_instance("near", series.id, TODAY + timedelta(days=3))
    done_far = make_instance("done", series.id, TODAY + timedelta(days=30), completed=True)

    assert should_generate_more(series, [], today=TODAY) is True
    assert should_generate_more(series, [far], today=TODAY) is False
    assert should_generate_more(series, [near], today=TODAY) is True
    assert should_generate_more(series, [near, done_far], today=TODAY) is True
    assert should_generate_more(series, [near], lookahead_days=2, today=TODAY) is False

    paused = make_series(daily_rule(TODAY), active=False)
    assert should_generate_more(paused, [], today=TODAY) is False


@pytest.mark.asyncio
async def test_pass_materializes_due_series_and_persists() -> None:
    repo = FakeGenerationRepo([make_series(daily_rule(TODAY))])
    scheduler = _scheduler(repo)

    created = await scheduler.run_pass()

    assert len(created) == 31
    assert len(repo.instances) == 31
    assert repo.add_calls == 1
    assert scheduler.state.phase is GenerationPhase.IDLE
    assert scheduler.state.passes == 1
    assert scheduler.state.last_generated == 31

    # Horizon covered: the next pass has nothing to do.
    assert await scheduler.run_pass() == []
    assert repo.add_calls == 1


@pytest.mark.asyncio
async def test_pass_skips_series_that_are_not_due() -> None:
    series = make_series(daily_rule(TODAY))
    stocked = make_instance("far", series.id, TODAY + timedelta(days=20))
    repo = FakeGenerationRepo([series], [stocked])

    assert await _scheduler(repo).run_pass() == []
    assert repo.add_calls == 0


@pytest.mark.asyncio
async def test_pass_is_dropped_while_generating() -> None:
    repo = FakeGenerationRepo([make_series(daily_rule(TODAY))])
    state = GenerationState(phase=GenerationPhase.GENERATING)
    scheduler = _scheduler(repo, state=state)

    assert await scheduler.run_pass() == []
    assert scheduler.notify_change() is None
    assert repo.add_calls == 0
    assert state.passes == 0


@pytest.mark.asyncio
async def test_overlapping_passes_run_once() -> None:
    repo = FakeGenerationRepo([make_series(daily_rule(TODAY))])
    scheduler = _scheduler(repo)

    first, second = await asyncio.gather(scheduler.run_pass(), scheduler.run_pass())

    assert sorted([len(first), len(second)]) == [0, 31]
    assert repo.add_calls == 1
    assert len({(i.series_id, i.instance_date) for i in repo.instances}) == len(repo.instances)


@pytest.mark.asyncio
async def test_start_runs_only_once() -> None:
    repo = FakeGenerationRepo([make_series(daily_rule(TODAY))])
    scheduler = _scheduler(repo)

    assert len(await scheduler.start()) == 31
    assert await scheduler.start() == []
    assert scheduler.state.has_run_once is True
    assert scheduler.state.passes == 1


@pytest.mark.asyncio
async def test_notify_change_schedules_a_pass() -> None:
    repo = FakeGenerationRepo([make_series(daily_rule(TODAY))])
    scheduler = _scheduler(repo)

    task = scheduler.notify_change()
    assert task is not None

    created = await task
    assert len(created) == 31


@pytest.mark.asyncio
async def test_failed_pass_resets_phase() -> None:
    repo = BrokenGenerationRepo([make_series(daily_rule(TODAY))])
    scheduler = _scheduler(repo)

    assert await scheduler.run_pass() == []
    assert scheduler.state.phase is GenerationPhase.IDLE
    assert scheduler.state.passes == 1


@pytest.mark.asyncio
async def test_generation_loop_stops_on_event() -> None:
    repo = FakeGenerationRepo([make_series(daily_rule(TODAY))])
    scheduler = _scheduler(repo)
    stop = asyncio.Event()

    loop_task = asyncio.create_task(run_generation_loop(scheduler, interval_seconds=0.5, stop_event=stop))
    await asyncio.sleep(0.05)
    stop.set()
    await asyncio.wait_for(loop_task, timeout=2.0)

    assert scheduler.state.has_run_once is True
    assert repo.add_calls == 1


@pytest.mark.asyncio
async def test_generation_loop_can_be_cancelled() -> None:
    repo = FakeGenerationRepo()
    scheduler = _scheduler(repo)

    runner = asyncio.create_task(run_generation_loop(scheduler, interval_seconds=0.5))
    await asyncio.sleep(0.05)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert scheduler.state.passes == 1


@pytest.mark.asyncio
async def test_notify_change_keeps_task_until_done() -> None:
    repo = FakeGenerationRepo([make_series(daily_rule(TODAY))])
    scheduler = _scheduler(repo)

    task = scheduler.notify_change()
    assert task is not None
    assert scheduler.pending_passes == 1

    await task
    # Done callbacks run on the next loop iteration.
    await asyncio.sleep(0)

    assert scheduler.pending_passes == 0
    assert repo.add_calls == 1


@pytest.mark.asyncio
async def test_last_generated_counts_rows_the_repo_accepted() -> None:
    series = make_series(daily_rule(TODAY, end=TODAY + timedelta(days=40)))
    repo = FakeGenerationRepo([series])
    scheduler = _scheduler(repo)

    # Series ends before the write lands.
    original_list = repo.list_instances

    def list_then_end(*, series_id=None):
        snapshot = original_list(series_id=series_id)
        repo.series = [replace(series, rule=replace(series.rule, end_date=TODAY + timedelta(days=4)))]
        return snapshot

    repo.list_instances = list_then_end

    created = await scheduler.run_pass()

    assert len(created) == 31
    assert scheduler.state.last_generated == 5
    assert len(repo.instances) == 5
