# src/cadence/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The recurrence engine never touches storage. Collaborators hand it in-memory
snapshots and persist whatever it returns; these Protocols describe that
boundary so the SQLite store, the in-memory fakes used in tests, or a remote
backend are interchangeable.
"""

from collections.abc import Iterable
from typing import Any, Protocol


class SeriesRepo(Protocol):
    def add_series(self, series: Any) -> None: ...
    def get_series(self, series_id: str) -> Any | None: ...
    def list_series(self, *, active_only: bool = False) -> list[Any]: ...
    def update_series(self, series: Any) -> None: ...


class InstanceRepo(Protocol):
    def add_instances(self, instances: Iterable[Any]) -> int: ...
    def get_instance(self, instance_id: str) -> Any | None: ...
    def list_instances(self, *, series_id: str | None = None) -> list[Any]: ...
    def update_instances(self, instances: Iterable[Any]) -> None: ...
    def delete_instances(self, instance_ids: Iterable[str]) -> int: ...


class GenerationRepo(Protocol):
    """
    What the generation scheduler needs from persistence.

    Reads are snapshots; add_instances is the (possibly slow) write the
    scheduler runs off the event loop. Since the snapshot may be stale by
    then, add_instances must drop days the series no longer wants.
    """

    def list_series(self, *, active_only: bool = False) -> list[Any]: ...
    def list_instances(self, *, series_id: str | None = None) -> list[Any]: ...
    def add_instances(self, instances: Iterable[Any]) -> int: ...


class TaskRepo(SeriesRepo, InstanceRepo, Protocol):
    """Everything the app layer (task_api, commands) uses from the store."""

    def count_series(self) -> int: ...
    def count_instances(self, series_id: str | None = None) -> int: ...
    def save_series_change(
        self,
        series: Any | None = None,
        *,
        deleted_ids: Iterable[str] = (),
        updated: Iterable[Any] = (),
    ) -> int: ...
    def close(self) -> None: ...
