# src/cadence/cli/commands.py

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import date
from typing import TypeVar, cast

from ..core.state import AppState
from ..recurrence.calculator import generate_dates_for_next_days
from ..recurrence.preview import format_recurrence_preview
from ..recurrence.rule_models import RecurrencePattern, RecurrenceRule
from ..recurrence.validation import ValidationError
from ..tasks import task_api
from ..tasks.series_manager import filter_instances, group_by_month, instance_counts
from ..tasks.task_models import InstanceFilter, Scope, Series, TaskInstance

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

SHORT_ID = 8

T = TypeVar("T", Series, TaskInstance)


@dataclass(frozen=True, slots=True)
class _Command:
    name: str
    handler: CommandHandler
    help_text: str
    aliases: tuple[str, ...]
    takes_emit: bool


def _takes_emit(handler: CommandHandler) -> bool:
    try:
        return len(inspect.signature(handler).parameters) >= 3
    except (TypeError, ValueError):
        return True


def format_validation_error(err: ValidationError) -> str:
    return "Invalid recurrence:\n" + "\n".join(f"  - {e}" for e in err.errors)


class CommandRegistry:
    """
    Slash-command table shared by connectors.

    Handlers take (state, args) or (state, args, emit); the arity is read
    once at registration. Domain errors raised by a handler become the reply
    text, anything else propagates to the connector.
    """

    def __init__(self) -> None:
        self._commands: dict[str, _Command] = {}
        self._lookup: dict[str, _Command] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        cmd = _Command(
            name=name.lower(),
            handler=handler,
            help_text=help_text,
            aliases=tuple(a.lower() for a in aliases or ()),
            takes_emit=_takes_emit(handler),
        )
        self._commands[cmd.name] = cmd
        for key in (cmd.name, *cmd.aliases):
            self._lookup[key] = cmd

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """Reply to "/name args..."; None when `line` is not a command at all."""
        if not line.startswith("/"):
            return None

        name, *args = line[1:].split() or [""]
        if not name:
            return "Empty command. Use /help to list available commands."

        cmd = self._lookup.get(name.lower())
        if cmd is None:
            return f"Unknown command: /{name.lower()}. Use /help to list available commands."

        try:
            if cmd.takes_emit:
                return cast(CommandHandler3, cmd.handler)(state, args, emit)
            return cast(CommandHandler2, cmd.handler)(state, args)
        except ValidationError as e:
            return format_validation_error(e)
        except (LookupError, ValueError) as e:
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for cmd in self._commands.values():
            alias_note = f" (also: {', '.join('/' + a for a in cmd.aliases)})" if cmd.aliases else ""
            lines.append(f"  /{cmd.name} - {cmd.help_text}{alias_note}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _short(id_: str) -> str:
    return id_.removeprefix("series_")[:SHORT_ID]


def _pick(items: Iterable[T], token: str, what: str) -> T:
    """Find an item by full id or unique short-id prefix."""
    token = token.strip()
    if not token:
        raise LookupError(f"Missing {what} id")
    items = list(items)
    for i in items:
        if i.id == token:
            return i
    matches = [i for i in items if i.id.removeprefix("series_").startswith(token)]
    if not matches:
        raise LookupError(f"No {what} matches {token!r}")
    if len(matches) > 1:
        raise LookupError(f"{what.capitalize()} id {token!r} is ambiguous ({len(matches)} matches)")
    return matches[0]


def _split_options(args: list[str]) -> tuple[dict[str, str], list[str]]:
    opts: dict[str, str] = {}
    rest: list[str] = []
    for a in args:
        key, sep, value = a.partition("=")
        if sep and key and not rest:
            opts[key.lower()] = value
        else:
            rest.append(a)
    return opts, rest


def _fmt_instance(inst: TaskInstance) -> str:
    mark = "x" if inst.completed else ("-" if inst.skipped else " ")
    day = inst.effective_date.isoformat() if inst.effective_date else "----------"
    return f"[{mark}] {_short(inst.id)}  {day}  {inst.title}"


def _fmt_series(series: Series) -> str:
    status = "active" if series.active else "paused"
    return f"{_short(series.id)}  ({status})  {series.template.title} - {format_recurrence_preview(series.rule)}"


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    sched = state.scheduler.state
    return (
        "Status:\n"
        f"  Database: {getattr(state.settings, 'tasks_db_path', '?')}\n"
        f"  Series: {state.store.count_series()}  Instances: {state.store.count_instances()}\n"
        f"  Generator: {sched.phase.value}, passes={sched.passes}, last created={sched.last_generated}\n"
        f"  Window: {getattr(state.settings, 'generation_window_days', 30)} days"
    )


def cmd_new(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /new <pattern> [every=N] [days=1,3,5] [dom=15] [start=YYYY-MM-DD] [end=YYYY-MM-DD]
         [category=work] [priority=high] <title...>
    """
    if not args:
        return (
            "Usage: /new <daily|weekly|monthly|custom> [every=N] [days=1,3,5] [dom=15]\n"
            "            [start=YYYY-MM-DD] [end=YYYY-MM-DD] [category=..] [priority=..] <title>"
        )

    pattern = args[0]
    opts, title_words = _split_options(args[1:])

    rule = RecurrenceRule.from_dict(
        {
            "pattern": pattern,
            "frequency": opts.get("every", "1"),
            "days_of_week": opts.get("days", ""),
            "day_of_month": opts.get("dom"),
            "start_date": opts.get("start") or date.today().isoformat(),
            "end_date": opts.get("end"),
        }
    )
    # Monthly defaults to the start day; a bad start is left for validation.
    if rule.known_pattern is RecurrencePattern.MONTHLY and "dom" not in opts and rule.start_date:
        rule = replace(rule, day_of_month=rule.start_date.day)

    template_data = {
        "title": " ".join(title_words),
        "category": opts.get("category"),
        "priority": opts.get("priority"),
    }

    creation = task_api.create_recurring_task(state, template_data, rule)
    return (
        f"Created series {_short(creation.series.id)}: {creation.series.template.title}\n"
        f"  {format_recurrence_preview(creation.series.rule)}\n"
        f"  {len(creation.instances)} upcoming task(s) generated."
    )


def cmd_series(state: AppState, args: list[str]) -> str:
    all_series = state.store.list_series()
    if not all_series:
        return "No recurring series yet. Use /new to create one."
    return "Recurring series:\n" + "\n".join(f"  {_fmt_series(s)}" for s in all_series)


def cmd_show(state: AppState, args: list[str]) -> str:
    """/show <series> [all|pending|completed|skipped]"""
    if not args:
        return "Usage: /show <series> [all|pending|completed|skipped]"

    series = _pick(state.store.list_series(), args[0], "series")
    flt = InstanceFilter.from_raw(args[1] if len(args) > 1 else None)
    instances = state.store.list_instances(series_id=series.id)

    counts = instance_counts(instances, series.id)
    header = [
        _fmt_series(series),
        "  " + "  ".join(f"{k.value}={v}" for k, v in counts.items()),
    ]

    shown = filter_instances(instances, series.id, flt)
    if not shown:
        return "\n".join(header + [f"  (no {flt.value} tasks)"])

    lines = list(header)
    for month, items in group_by_month(shown).items():
        lines.append(f"  -- {month} --")
        lines.extend(f"    {_fmt_instance(i)}" for i in items)
    return "\n".join(lines)


def cmd_preview(state: AppState, args: list[str]) -> str:
    """/preview <series> [days]"""
    if not args:
        return "Usage: /preview <series> [days]"
    series = _pick(state.store.list_series(), args[0], "series")
    days = int(args[1]) if len(args) > 1 else 14
    dates = generate_dates_for_next_days(series.rule, days)
    if not dates:
        return f"{format_recurrence_preview(series.rule)}\n  No occurrences in the next {days} days."
    listed = ", ".join(d.isoformat() for d in dates)
    return f"{format_recurrence_preview(series.rule)}\n  Next {days} days: {listed}"


def _instance_token(state: AppState, token: str) -> TaskInstance:
    return _pick(state.store.list_instances(), token, "task")


def cmd_done(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /done <task>"
    inst = task_api.complete_instance(state, _instance_token(state, args[0]).id)
    return f"{'Completed' if inst.completed else 'Reopened'}: {_fmt_instance(inst)}"


def cmd_skip(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /skip <task>"
    inst = task_api.skip_instance(state, _instance_token(state, args[0]).id)
    return f"{'Skipped' if inst.skipped else 'Unskipped'}: {_fmt_instance(inst)}"


def cmd_count(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /count <task> <this|future|all>"
    scope = Scope.parse(args[1])
    n = task_api.count_for_scope(state, _instance_token(state, args[0]).id, scope)
    return f"{n} task(s) in scope '{scope.value}'."


def cmd_delete(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/delete <task> <this|future|all>"""
    if len(args) < 2:
        return "Usage: /delete <task> <this|future|all>"
    scope = Scope.parse(args[1])
    inst = _instance_token(state, args[0])
    result = task_api.delete_with_scope(state, inst.id, scope)
    note = "" if result.series.active else " Series stopped."
    return f"Deleted {len(result.deleted)} task(s).{note}"


def cmd_rename(state: AppState, args: list[str]) -> str:
    """/rename <task> <this|future|all> <new title...>"""
    if len(args) < 3:
        return "Usage: /rename <task> <this|future|all> <new title>"
    scope = Scope.parse(args[1])
    inst = _instance_token(state, args[0])
    result = task_api.update_with_scope(state, inst.id, scope, {"title": " ".join(args[2:])})
    return f"Renamed {len(result.affected)} task(s)."


def cmd_pause(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /pause <series>"
    series = task_api.pause_series(state, _pick(state.store.list_series(), args[0], "series").id)
    return f"Paused: {_fmt_series(series)}"


def cmd_resume(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /resume <series>"
    series = task_api.resume_series(state, _pick(state.store.list_series(), args[0], "series").id)
    return f"Resumed: {_fmt_series(series)}"


def cmd_generate(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    runner = state.generation_runner
    logger.info("Manual generation pass requested (background runner: %s)", runner is not None)
    if runner is not None:
        created = runner.run_now()
    else:
        created = asyncio.run(state.scheduler.run_pass())
    return f"Generation pass done: {len(created)} new task(s)."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show store and generator status.")
registry.register("new", cmd_new, help_text="Create a recurring task: /new weekly days=1,3,5 Gym.")
registry.register("series", cmd_series, help_text="List recurring series.", aliases=["ls"])
registry.register("show", cmd_show, help_text="Show a series' tasks: /show <series> [pending|completed|skipped].")
registry.register("preview", cmd_preview, help_text="Upcoming dates of a series: /preview <series> [days].")
registry.register("done", cmd_done, help_text="Toggle a task completed: /done <task>.")
registry.register("skip", cmd_skip, help_text="Toggle a task skipped: /skip <task>.")
registry.register("count", cmd_count, help_text="How many tasks a scope touches: /count <task> <scope>.")
registry.register("delete", cmd_delete, help_text="Delete tasks: /delete <task> <this|future|all>.", aliases=["rm"])
registry.register("rename", cmd_rename, help_text="Retitle tasks: /rename <task> <scope> <title>.")
registry.register("pause", cmd_pause, help_text="Pause a series: /pause <series>.")
registry.register("resume", cmd_resume, help_text="Resume a series: /resume <series>.")
registry.register("generate", cmd_generate, help_text="Run a generation pass now.")
