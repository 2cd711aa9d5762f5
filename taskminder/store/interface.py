from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from taskminder.models.task import Owner, Task

from .query import TaskQuery


class TaskStore(Protocol):
    """Persistent Task collection used by the service and the reminder scheduler.

    Single-record writes are atomic; nothing spans more than one record. Both
    ``insert`` and ``update`` re-check ``reminder_at < due_date`` and stamp
    ``updated_at``. ``update`` is a field-level patch applied to the record as
    currently stored, so concurrent writers only overwrite the fields they name.
    """

    def insert(self, task: Task) -> Task:
        """Persist a new task and return the stored copy."""

    def get(self, task_id: str) -> Task | None: ...

    def find(self, query: TaskQuery) -> list[Task]:
        """Return tasks matching ``query`` in its sort order."""

    def count(self, query: TaskQuery) -> int: ...

    def update(self, task_id: str, changes: Mapping[str, Any]) -> Task:
        """Apply ``changes`` to the stored record and return the stored copy.

        Raises NotFoundError when nothing is stored under the id; a deleted task
        is never recreated.
        """

    def delete(self, task_id: str) -> bool:
        """Remove the record. Returns False when nothing was stored under the id."""

    def ping(self) -> bool: ...


class OwnerDirectory(Protocol):
    """Lookup of owner contact details (e-mail address, display name)."""

    def get_owner(self, owner_id: str) -> Owner | None: ...

    def put_owner(self, owner: Owner) -> None: ...


__all__ = ["TaskStore", "OwnerDirectory"]
