# src/cadence/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
from collections.abc import Iterable
from datetime import date
from pathlib import Path
from typing import Any

from ..recurrence.rule_models import RecurrencePattern, RecurrenceRule, as_day
from .task_models import Series, TaskInstance, TaskTemplate

logger = logging.getLogger(__name__)

# Same order as TaskStore._instance_params.
_INSTANCE_COLUMNS = (
    "series_id",
    "instance_date",
    "due_date",
    "title",
    "category",
    "priority",
    "description",
    "enable_reminder",
    "completed",
    "skipped",
    "created_at",
    "updated_at",
    "id",
)


class TaskStore:
    """
    SQLite store for series and their task instances.

    This is the persistence collaborator: the recurrence engine works on the
    snapshots returned here and hands back records to save.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            n_series, n_instances = self.count_series(), self.count_instances()
        except Exception:
            n_series, n_instances = -1, -1
        logger.info("TaskStore ready db=%s series=%s instances=%s", self._db_path, n_series, n_instances)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS series (
                    id TEXT PRIMARY KEY,
                    active INTEGER NOT NULL DEFAULT 1,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    pattern TEXT NOT NULL,
                    frequency INTEGER NOT NULL DEFAULT 1,
                    days_of_week TEXT NOT NULL DEFAULT '[]',
                    day_of_month INTEGER,
                    start_date TEXT,
                    end_date TEXT,
                    end_after_occurrences INTEGER,
                    title TEXT NOT NULL,
                    category TEXT NOT NULL DEFAULT 'personal',
                    priority TEXT NOT NULL DEFAULT 'medium',
                    description TEXT NOT NULL DEFAULT '',
                    enable_reminder INTEGER NOT NULL DEFAULT 0,
                    excluded_dates TEXT NOT NULL DEFAULT '[]'
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS instances (
                    id TEXT PRIMARY KEY,
                    series_id TEXT,
                    instance_date TEXT,
                    due_date TEXT,
                    title TEXT NOT NULL,
                    category TEXT NOT NULL DEFAULT 'personal',
                    priority TEXT NOT NULL DEFAULT 'medium',
                    description TEXT NOT NULL DEFAULT '',
                    enable_reminder INTEGER NOT NULL DEFAULT 0,
                    completed INTEGER NOT NULL DEFAULT 0,
                    skipped INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            def add_cols(table: str, wanted: dict[str, str]) -> None:
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                for name, decl in wanted.items():
                    if name in cols:
                        continue
                    cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                    logger.info("TaskStore migration: added column %s.%s", table, name)

            add_cols(
                "series",
                {
                    "end_after_occurrences": "INTEGER",
                    "enable_reminder": "INTEGER NOT NULL DEFAULT 0",
                    "excluded_dates": "TEXT NOT NULL DEFAULT '[]'",
                },
            )
            add_cols(
                "instances",
                {
                    "due_date": "TEXT",
                    "enable_reminder": "INTEGER NOT NULL DEFAULT 0",
                    "skipped": "INTEGER NOT NULL DEFAULT 0",
                },
            )

            # One instance per (series, day).
            cur.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_instances_series_day "
                "ON instances(series_id, instance_date)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_series_active ON series(active)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _list_to_str(values: Iterable[Any]) -> str:
        try:
            return json.dumps(list(values))
        except Exception:
            logger.exception("Failed to JSON-encode list; storing [].")
            return "[]"

    @staticmethod
    def _str_to_list(s: str | None) -> list[Any]:
        if not s:
            return []
        try:
            val = json.loads(s)
            return val if isinstance(val, list) else []
        except Exception:
            return []

    @staticmethod
    def _day_to_str(day: date | None) -> str | None:
        return day.isoformat() if day is not None else None

    def _row_to_series(self, row: sqlite3.Row) -> Series:
        rule = RecurrenceRule(
            pattern=RecurrencePattern.parse(row["pattern"]) or str(row["pattern"]),
            frequency=int(row["frequency"] or 1),
            days_of_week=frozenset(int(d) for d in self._str_to_list(row["days_of_week"])),
            day_of_month=int(row["day_of_month"]) if row["day_of_month"] is not None else None,
            start_date=as_day(row["start_date"]),
            end_date=as_day(row["end_date"]),
            end_after_occurrences=(
                int(row["end_after_occurrences"]) if row["end_after_occurrences"] is not None else None
            ),
        )
        template = TaskTemplate(
            title=str(row["title"] or ""),
            category=str(row["category"] or "personal"),
            priority=str(row["priority"] or "medium"),
            description=str(row["description"] or ""),
            enable_reminder=bool(row["enable_reminder"]),
        )
        excluded = frozenset(d for d in (as_day(s) for s in self._str_to_list(row["excluded_dates"])) if d)
        return Series(
            id=str(row["id"]),
            rule=rule,
            template=template,
            active=bool(row["active"]),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            excluded_dates=excluded,
        )

    def _series_params(self, series: Series) -> dict[str, Any]:
        rule, tpl = series.rule, series.template
        return {
            "id": series.id,
            "active": int(series.active),
            "created_at": float(series.created_at),
            "updated_at": float(series.updated_at),
            "pattern": str(rule.pattern),
            "frequency": int(rule.frequency),
            "days_of_week": self._list_to_str(rule.sorted_days()),
            "day_of_month": rule.day_of_month,
            "start_date": self._day_to_str(rule.start_date),
            "end_date": self._day_to_str(rule.end_date),
            "end_after_occurrences": rule.end_after_occurrences,
            "title": tpl.title,
            "category": tpl.category,
            "priority": tpl.priority,
            "description": tpl.description,
            "enable_reminder": int(tpl.enable_reminder),
            "excluded_dates": self._list_to_str(d.isoformat() for d in sorted(series.excluded_dates)),
        }

    @staticmethod
    def _row_to_instance(row: sqlite3.Row) -> TaskInstance:
        return TaskInstance(
            id=str(row["id"]),
            series_id=row["series_id"],
            instance_date=as_day(row["instance_date"]),
            due_date=as_day(row["due_date"]),
            title=str(row["title"] or ""),
            category=str(row["category"] or "personal"),
            priority=str(row["priority"] or "medium"),
            description=str(row["description"] or ""),
            enable_reminder=bool(row["enable_reminder"]),
            completed=bool(row["completed"]),
            skipped=bool(row["skipped"]),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    def _instance_params(self, inst: TaskInstance) -> tuple[Any, ...]:
        return (
            inst.series_id,
            self._day_to_str(inst.instance_date),
            self._day_to_str(inst.due_date),
            inst.title,
            inst.category,
            inst.priority,
            inst.description,
            int(inst.enable_reminder),
            int(inst.completed),
            int(inst.skipped),
            float(inst.created_at),
            float(inst.updated_at),
            inst.id,
        )

    # ---- series ----

    def count_series(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM series").fetchone()
            return int(n)
        finally:
            conn.close()

    def add_series(self, series: Series) -> None:
        if not series.template.title.strip():
            raise ValueError("series title is required")

        params = self._series_params(series)
        cols = ", ".join(params)
        placeholders = ", ".join(f":{k}" for k in params)

        conn = self._get_conn()
        try:
            conn.execute(f"INSERT INTO series({cols}) VALUES ({placeholders})", params)
            conn.commit()
            logger.debug("Series added id=%s pattern=%s", series.id, series.rule.pattern)
        finally:
            conn.close()

    def _write_series(self, conn: sqlite3.Connection, series: Series) -> None:
        params = self._series_params(series)
        assignments = ", ".join(f"{k} = :{k}" for k in params if k != "id")
        cur = conn.execute(f"UPDATE series SET {assignments} WHERE id = :id", params)
        if cur.rowcount != 1:
            logger.warning("update_series: no row for id=%s", series.id)

    def update_series(self, series: Series) -> None:
        conn = self._get_conn()
        try:
            self._write_series(conn, series)
            conn.commit()
        finally:
            conn.close()

    def get_series(self, series_id: str) -> Series | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM series WHERE id = ?", (series_id,)).fetchone()
            return self._row_to_series(row) if row else None
        finally:
            conn.close()

    def list_series(self, *, active_only: bool = False) -> list[Series]:
        sql = "SELECT * FROM series"
        if active_only:
            sql += " WHERE active = 1"
        sql += " ORDER BY created_at ASC"

        conn = self._get_conn()
        try:
            return [self._row_to_series(r) for r in conn.execute(sql).fetchall()]
        finally:
            conn.close()

    # ---- instances ----

    def count_instances(self, series_id: str | None = None) -> int:
        conn = self._get_conn()
        try:
            if series_id is None:
                (n,) = conn.execute("SELECT COUNT(*) FROM instances").fetchone()
            else:
                (n,) = conn.execute(
                    "SELECT COUNT(*) FROM instances WHERE series_id = ?", (series_id,)
                ).fetchone()
            return int(n)
        finally:
            conn.close()

    def add_instances(self, instances: Iterable[TaskInstance]) -> int:
        """
        Insert instances; rows colliding on (series_id, instance_date) are ignored.

        Rows are also dropped when their series row says the day must not
        exist (anymore): the series is inactive, the day is after its
        end_date, or the day is in excluded_dates. The check runs against the
        series row at write time, so a generation pass working from an older
        snapshot cannot bring back what a delete removed in the meantime.

        Returns the number of rows actually inserted.
        """
        rows = [dict(zip(_INSTANCE_COLUMNS, self._instance_params(i))) for i in instances]
        if not rows:
            return 0

        cols = ", ".join(_INSTANCE_COLUMNS)
        values = ", ".join(f":{c}" for c in _INSTANCE_COLUMNS)

        conn = self._get_conn()
        try:
            before = conn.total_changes
            conn.executemany(
                f"""
                INSERT OR IGNORE INTO instances({cols})
                SELECT {values}
                WHERE NOT EXISTS (
                    SELECT 1 FROM series s
                    WHERE s.id = :series_id
                      AND (
                          s.active = 0
                          OR (s.end_date IS NOT NULL AND :instance_date > s.end_date)
                          OR instr(s.excluded_dates, '"' || :instance_date || '"') > 0
                      )
                )
                """,
                rows,
            )
            conn.commit()
            inserted = conn.total_changes - before
            if inserted < len(rows):
                logger.debug(
                    "add_instances: %d of %d rows were duplicates or no longer wanted",
                    len(rows) - inserted,
                    len(rows),
                )
            return inserted
        finally:
            conn.close()

    def get_instance(self, instance_id: str) -> TaskInstance | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM instances WHERE id = ?", (instance_id,)).fetchone()
            return self._row_to_instance(row) if row else None
        finally:
            conn.close()

    def list_instances(self, *, series_id: str | None = None) -> list[TaskInstance]:
        conn = self._get_conn()
        try:
            if series_id is None:
                rows = conn.execute(
                    "SELECT * FROM instances ORDER BY COALESCE(instance_date, due_date) ASC, created_at ASC"
                ).fetchall()
            else:
                rows = conn.execute(
                    """
                    SELECT *
                    FROM instances
                    WHERE series_id = ?
                    ORDER BY COALESCE(instance_date, due_date) ASC, created_at ASC
                    """,
                    (series_id,),
                ).fetchall()
            return [self._row_to_instance(r) for r in rows]
        finally:
            conn.close()

    def _write_instances(self, conn: sqlite3.Connection, instances: Iterable[TaskInstance]) -> None:
        rows = [self._instance_params(i) for i in instances]
        if not rows:
            return
        conn.executemany(
            """
            UPDATE instances
            SET series_id = ?, instance_date = ?, due_date = ?,
                title = ?, category = ?, priority = ?, description = ?, enable_reminder = ?,
                completed = ?, skipped = ?, created_at = ?, updated_at = ?
            WHERE id = ?
            """,
            rows,
        )

    @staticmethod
    def _remove_instances(conn: sqlite3.Connection, instance_ids: Iterable[str]) -> int:
        ids = [str(i) for i in instance_ids]
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        cur = conn.execute(f"DELETE FROM instances WHERE id IN ({placeholders})", ids)
        logger.debug("Deleted %d instance(s)", cur.rowcount)
        return int(cur.rowcount)

    def update_instances(self, instances: Iterable[TaskInstance]) -> None:
        conn = self._get_conn()
        try:
            self._write_instances(conn, instances)
            conn.commit()
        finally:
            conn.close()

    def delete_instances(self, instance_ids: Iterable[str]) -> int:
        conn = self._get_conn()
        try:
            n = self._remove_instances(conn, instance_ids)
            conn.commit()
            return n
        finally:
            conn.close()

    def save_series_change(
        self,
        series: Series | None = None,
        *,
        deleted_ids: Iterable[str] = (),
        updated: Iterable[TaskInstance] = (),
    ) -> int:
        """
        Apply one scoped edit atomically: delete instances, rewrite instances
        and (optionally) the series row in a single transaction.

        Either everything is written or nothing is. Returns the number of
        deleted instances.
        """
        conn = self._get_conn()
        try:
            with conn:
                n = self._remove_instances(conn, deleted_ids)
                self._write_instances(conn, updated)
                if series is not None:
                    self._write_series(conn, series)
            return n
        finally:
            conn.close()
