from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from taskminder.errors import ForbiddenError, NotFoundError, ValidationError
from taskminder.models.task import (
    DESCRIPTION_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Priority,
    Task,
    TaskCreate,
    TaskStats,
    TaskUpdate,
    utc_now,
)
from taskminder.observability import get_json_logger, get_metrics
from taskminder.store.interface import TaskStore
from taskminder.store.query import Filter, SortKey, TaskQuery

_SORTS: dict[str | None, tuple[SortKey, ...]] = {
    "dueDate": (SortKey("due_date"),),
    # Raw string order on priority: "medium" > "low" > "high"
    "priority": (SortKey("priority", descending=True), SortKey("due_date")),
}
_DEFAULT_SORT = (SortKey("created_at", descending=True),)


def _check_lengths(title: str | None, description: str | None) -> None:
    if title is not None and len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title cannot exceed {TITLE_MAX_LENGTH} characters")
    if description is not None and len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")


def _trimmed(value: str | None) -> str | None:
    return value.strip() if value is not None else None


class TaskService:
    """Owner-scoped CRUD, completion and stats over a TaskStore.

    Every call names the authenticated owner. Lookups by id report NotFound
    before checking ownership, so a foreign id that exists yields Forbidden and
    an unknown id yields NotFound regardless of who asks.
    """

    def __init__(self, store: TaskStore, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock
        self._logger = get_json_logger("taskminder.service")
        self._metrics = get_metrics()

    def list_tasks(
        self,
        owner_id: str,
        *,
        status: str | None = None,
        priority: str | None = None,
        sort_by: str | None = None,
    ) -> list[Task]:
        query = TaskQuery().where(Filter.eq("owner_id", owner_id))
        if status == "completed":
            query = query.where(Filter.eq("is_completed", True))
        elif status == "pending":
            query = query.where(Filter.eq("is_completed", False))
        if priority:
            query = query.where(Filter.eq("priority", priority))
        return self._store.find(query.order_by(*_SORTS.get(sort_by, _DEFAULT_SORT)))

    def get_task(self, owner_id: str, task_id: str, *, action: str = "access") -> Task:
        """Load a task for ``owner_id``; ``action`` names the verb in the 403 message."""
        task = self._store.get(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        if task.owner_id != owner_id:
            raise ForbiddenError(f"Not authorized to {action} this task")
        return task

    def create_task(self, owner_id: str, data: TaskCreate) -> Task:
        title = (data.title or "").strip()
        if not title or data.due_date is None or data.reminder_at is None:
            raise ValidationError("Please provide title, due date, and reminder time")
        description = _trimmed(data.description)
        _check_lengths(title, description)

        now = self._clock()
        if data.due_date <= now:
            raise ValidationError("Due date must be in the future")
        if data.reminder_at >= data.due_date:
            raise ValidationError("Reminder time must be before due date")
        if data.reminder_at <= now:
            raise ValidationError("Reminder time must be in the future")

        task = self._store.insert(
            Task(
                owner_id=owner_id,
                title=title,
                description=description,
                due_date=data.due_date,
                reminder_at=data.reminder_at,
                priority=data.priority or Priority.MEDIUM,
            )
        )
        self._logger.info(
            "task created",
            extra={"event": "task_created", "task_id": task.id, "owner_id": owner_id},
        )
        self._metrics.increment("tasks_created")
        return task

    def update_task(self, owner_id: str, task_id: str, data: TaskUpdate) -> Task:
        """Patch the fields the caller supplied.

        Falsy values keep the stored value, except ``description``, which is
        replaced whenever it is supplied.
        """
        task = self.get_task(owner_id, task_id, action="update")

        due = data.due_date or task.due_date
        reminder = data.reminder_at or task.reminder_at
        if (data.due_date or data.reminder_at) and reminder >= due:
            raise ValidationError("Reminder time must be before due date")

        changes: dict[str, Any] = {}
        title = (data.title or "").strip()
        if title:
            changes["title"] = title
        if data.supplied("description"):
            changes["description"] = _trimmed(data.description)
        if data.due_date:
            changes["due_date"] = data.due_date
        if data.reminder_at:
            changes["reminder_at"] = data.reminder_at
        if data.priority:
            changes["priority"] = data.priority
        _check_lengths(changes.get("title"), changes.get("description"))

        stored = self._store.update(task_id, changes)
        self._logger.info(
            "task updated",
            extra={"event": "task_updated", "task_id": task_id, "owner_id": owner_id},
        )
        return stored

    def delete_task(self, owner_id: str, task_id: str) -> None:
        self.get_task(owner_id, task_id, action="delete")
        self._store.delete(task_id)
        self._logger.info(
            "task deleted",
            extra={"event": "task_deleted", "task_id": task_id, "owner_id": owner_id},
        )
        self._metrics.increment("tasks_deleted")

    def complete_task(self, owner_id: str, task_id: str) -> Task:
        self.get_task(owner_id, task_id, action="update")
        stored = self._store.update(
            task_id, {"is_completed": True, "completed_at": self._clock()}
        )
        self._metrics.increment("tasks_completed")
        return stored

    def stats(self, owner_id: str) -> TaskStats:
        owned = TaskQuery().where(Filter.eq("owner_id", owner_id))
        total = self._store.count(owned)
        completed = self._store.count(owned.where(Filter.eq("is_completed", True)))
        overdue = self._store.count(
            owned.where(
                Filter.eq("is_completed", False),
                Filter("due_date", "lt", self._clock()),
            )
        )
        return TaskStats(
            total=total, completed=completed, pending=total - completed, overdue=overdue
        )


__all__ = ["TaskService"]
