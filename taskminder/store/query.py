from __future__ import annotations

import operator
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

from taskminder.models.task import Task

Op = Literal["eq", "lt", "lte", "gt", "gte"]

_OPS: dict[str, Callable[[Any, Any], bool]] = {
    "eq": operator.eq,
    "lt": operator.lt,
    "lte": operator.le,
    "gt": operator.gt,
    "gte": operator.ge,
}


@dataclass(slots=True, frozen=True)
class Filter:
    field: str
    op: Op
    value: Any

    @classmethod
    def eq(cls, name: str, value: Any) -> Filter:
        return cls(name, "eq", value)

    def matches(self, task: Task) -> bool:
        current = getattr(task, self.field)
        if current is None:
            return False
        return _OPS[self.op](current, self.value)


@dataclass(slots=True, frozen=True)
class SortKey:
    field: str
    descending: bool = False


@dataclass(slots=True, frozen=True)
class TaskQuery:
    """Storage-agnostic filter predicate plus sort order over Task fields.

    Filters are ANDed. Sort keys compare raw field values (strings sort
    lexicographically) and are applied left to right as primary, secondary, ...
    """

    filters: tuple[Filter, ...] = ()
    sort: tuple[SortKey, ...] = field(default_factory=tuple)

    def where(self, *filters: Filter) -> TaskQuery:
        return TaskQuery(filters=self.filters + filters, sort=self.sort)

    def order_by(self, *keys: SortKey) -> TaskQuery:
        return TaskQuery(filters=self.filters, sort=keys)

    def value_for(self, name: str, op: Op = "eq") -> Any | None:
        for f in self.filters:
            if f.field == name and f.op == op:
                return f.value
        return None

    def matches(self, task: Task) -> bool:
        return all(f.matches(task) for f in self.filters)

    def apply(self, tasks: Iterable[Task]) -> list[Task]:
        result = [t for t in tasks if self.matches(t)]
        # Stable sort, least significant key first
        for key in reversed(self.sort):
            result.sort(key=lambda t, name=key.field: _sort_value(t, name), reverse=key.descending)
        return result


def _sort_value(task: Task, name: str) -> Any:
    value = getattr(task, name)
    # StrEnum members compare as their string values
    return str(value) if isinstance(value, str) else value


__all__ = ["Filter", "SortKey", "TaskQuery"]
