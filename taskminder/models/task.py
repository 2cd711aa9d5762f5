from __future__ import annotations

import datetime
import uuid
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from taskminder.errors import ValidationError

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500

# Never changed by an update
_IMMUTABLE_FIELDS = frozenset({"id", "owner_id", "created_at"})


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def as_utc(value: datetime.datetime) -> datetime.datetime:
    """Treat naive datetimes as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value.astimezone(datetime.UTC)


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class _CamelModel(BaseModel):
    # camelCase on the wire, snake_case in Python and in storage
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator(
        "due_date",
        "reminder_at",
        "completed_at",
        "created_at",
        "updated_at",
        mode="before",
        check_fields=False,
    )
    @classmethod
    def _blank_datetime_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator(
        "due_date",
        "reminder_at",
        "completed_at",
        "created_at",
        "updated_at",
        mode="after",
        check_fields=False,
    )
    @classmethod
    def _normalise_datetime(cls, value: datetime.datetime | None) -> datetime.datetime | None:
        return as_utc(value) if value is not None else None


class Task(_CamelModel):
    """A reminder-bearing to-do item owned by exactly one principal.

    ``id`` and ``owner_id`` never change after creation. ``is_notified`` flips to
    True once, after a reminder e-mail was sent; ``created_at``/``updated_at`` are
    maintained by the store.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    owner_id: str
    title: str
    description: str | None = None
    due_date: datetime.datetime
    reminder_at: datetime.datetime
    priority: Priority = Priority.MEDIUM
    is_completed: bool = False
    completed_at: datetime.datetime | None = None
    is_notified: bool = False
    created_at: datetime.datetime = Field(default_factory=utc_now)
    updated_at: datetime.datetime = Field(default_factory=utc_now)

    def check_schedule(self) -> None:
        if self.reminder_at >= self.due_date:
            raise ValidationError("Reminder time must be before due date")

    def patched(self, changes: Mapping[str, Any], now: datetime.datetime) -> Task:
        """Copy with ``changes`` applied and ``updated_at`` set to ``now``.

        Immutable fields in ``changes`` are ignored; unknown field names raise KeyError.
        """
        update: dict[str, Any] = {}
        for name, value in changes.items():
            if name not in Task.model_fields:
                raise KeyError(name)
            if name not in _IMMUTABLE_FIELDS:
                update[name] = value
        update["updated_at"] = now
        return self.model_copy(update=update)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Owner(BaseModel):
    """Contact record for a task owner, joined in by the reminder scheduler."""

    id: str
    email: str
    name: str | None = None


class _TaskInput(_CamelModel):
    # Everything optional here: missing fields are reported by the service as 400s.
    title: str | None = None
    description: str | None = None
    due_date: datetime.datetime | None = None
    reminder_at: datetime.datetime | None = None
    priority: Priority | None = None

    @field_validator("priority", mode="before")
    @classmethod
    def _blank_priority_is_none(cls, value: Any) -> Any:
        # An empty priority means "use the default" (create) or "keep" (update)
        if isinstance(value, str) and not value.strip():
            return None
        return value


class TaskCreate(_TaskInput):
    pass


class TaskUpdate(_TaskInput):
    def supplied(self, field: str) -> bool:
        return field in self.model_fields_set


class TaskStats(BaseModel):
    total: int
    completed: int
    pending: int
    overdue: int


__all__ = [
    "Priority",
    "Task",
    "Owner",
    "TaskCreate",
    "TaskUpdate",
    "TaskStats",
    "utc_now",
    "as_utc",
    "TITLE_MAX_LENGTH",
    "DESCRIPTION_MAX_LENGTH",
]
