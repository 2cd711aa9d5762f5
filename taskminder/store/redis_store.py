from __future__ import annotations

import os
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any, cast

import redis

from taskminder.errors import NotFoundError
from taskminder.models.task import Owner, Task, utc_now
from taskminder.observability import get_json_logger

from .interface import OwnerDirectory, TaskStore
from .query import TaskQuery


class RedisTaskStore(TaskStore):
    """Redis-backed Task store.

    Data structures:
    - Hash per task: key ``{prefix}:task:{id}`` with field ``json``
    - Sorted set per owner, score=created_at epoch: ``{prefix}:owner:{owner_id}``
    - Sorted set of every task id, score=created_at epoch: ``{prefix}:all``
    - Reminder index, score=reminder_at epoch: ``{prefix}:reminders``; holds only
      tasks that are neither notified nor completed

    Each write touches one task and runs in a single MULTI/EXEC pipeline; updates
    WATCH the task hash so a patch always applies to the latest stored record.
    """

    def __init__(
        self,
        redis_url: str | None = None,
        *,
        key_prefix: str = "taskminder",
        client: Any | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        if client is not None:
            self._redis = client
        else:
            self._redis = redis.from_url(url, decode_responses=True)
        self._prefix = key_prefix.rstrip(":")
        self._clock = clock
        self._logger = get_json_logger("taskminder.store")

    # key helpers
    def _task_key(self, task_id: str) -> str:
        return f"{self._prefix}:task:{task_id}"

    def _owner_key(self, owner_id: str) -> str:
        return f"{self._prefix}:owner:{owner_id}"

    @property
    def _all_key(self) -> str:
        return f"{self._prefix}:all"

    @property
    def _reminders_key(self) -> str:
        return f"{self._prefix}:reminders"

    def get_client(self) -> Any:
        return self._redis

    def ping(self) -> bool:
        try:
            return bool(self._redis.ping())
        except redis.exceptions.RedisError:
            self._logger.warning("store ping failed", extra={"event": "store_unreachable"})
            return False

    def _queue_write(self, p: Any, task: Task) -> None:
        p.hset(self._task_key(task.id), mapping={"json": task.model_dump_json()})
        created = task.created_at.timestamp()
        p.zadd(self._owner_key(task.owner_id), {task.id: created})
        p.zadd(self._all_key, {task.id: created})
        if task.is_notified or task.is_completed:
            p.zrem(self._reminders_key, task.id)
        else:
            p.zadd(self._reminders_key, {task.id: task.reminder_at.timestamp()})

    def insert(self, task: Task) -> Task:
        task.check_schedule()
        now = self._clock()
        stored = task.model_copy(update={"created_at": now, "updated_at": now})
        p = self._redis.pipeline(transaction=True)
        self._queue_write(p, stored)
        p.execute()
        return stored

    def get(self, task_id: str) -> Task | None:
        raw = cast(str | None, self._redis.hget(self._task_key(task_id), "json"))
        if raw is None:
            return None
        return Task.model_validate_json(raw)

    def update(self, task_id: str, changes: Mapping[str, Any]) -> Task:
        key = self._task_key(task_id)
        with self._redis.pipeline(transaction=True) as p:
            while True:
                try:
                    p.watch(key)
                    raw = cast(str | None, p.hget(key, "json"))
                    if raw is None:
                        raise NotFoundError("Task not found")
                    stored = Task.model_validate_json(raw).patched(changes, self._clock())
                    stored.check_schedule()
                    p.multi()
                    self._queue_write(p, stored)
                    p.execute()
                    return stored
                except redis.exceptions.WatchError:
                    # Another writer changed the task; retry on the new version
                    continue

    def delete(self, task_id: str) -> bool:
        task = self.get(task_id)
        if task is None:
            return False
        p = self._redis.pipeline(transaction=True)
        p.delete(self._task_key(task_id))
        p.zrem(self._owner_key(task.owner_id), task_id)
        p.zrem(self._all_key, task_id)
        p.zrem(self._reminders_key, task_id)
        res = p.execute()
        return bool(res[0])

    def _candidate_ids(self, query: TaskQuery) -> list[str]:
        owner_id = query.value_for("owner_id")
        if owner_id is not None:
            return cast(list[str], self._redis.zrange(self._owner_key(owner_id), 0, -1))
        reminder_scan = (
            query.value_for("is_notified") is False and query.value_for("is_completed") is False
        )
        if reminder_scan:
            lo = query.value_for("reminder_at", "gte")
            hi = query.value_for("reminder_at", "lte")
            return cast(
                list[str],
                self._redis.zrangebyscore(
                    self._reminders_key,
                    lo.timestamp() if lo is not None else "-inf",
                    hi.timestamp() if hi is not None else "+inf",
                ),
            )
        return cast(list[str], self._redis.zrange(self._all_key, 0, -1))

    def _load_many(self, task_ids: Iterable[str]) -> list[Task]:
        ids = list(task_ids)
        if not ids:
            return []
        p = self._redis.pipeline(transaction=False)
        for tid in ids:
            p.hget(self._task_key(tid), "json")
        result: list[Task] = []
        for raw in p.execute():
            if raw is not None:
                result.append(Task.model_validate_json(raw))
        return result

    def find(self, query: TaskQuery) -> list[Task]:
        return query.apply(self._load_many(self._candidate_ids(query)))

    def count(self, query: TaskQuery) -> int:
        return len(self.find(TaskQuery(filters=query.filters)))


class RedisOwnerDirectory(OwnerDirectory):
    """Owner contact records as one hash per owner: ``{prefix}:owner-contact:{id}``."""

    def __init__(
        self,
        redis_url: str | None = None,
        *,
        key_prefix: str = "taskminder",
        client: Any | None = None,
    ) -> None:
        url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self._redis = client if client is not None else redis.from_url(url, decode_responses=True)
        self._prefix = key_prefix.rstrip(":")

    def _key(self, owner_id: str) -> str:
        return f"{self._prefix}:owner-contact:{owner_id}"

    def get_owner(self, owner_id: str) -> Owner | None:
        data = cast(dict[str, str], self._redis.hgetall(self._key(owner_id)))
        if not data or not data.get("email"):
            return None
        return Owner(id=owner_id, email=data["email"], name=data.get("name") or None)

    def put_owner(self, owner: Owner) -> None:
        self._redis.hset(
            self._key(owner.id), mapping={"email": owner.email, "name": owner.name or ""}
        )


__all__ = ["RedisTaskStore", "RedisOwnerDirectory"]
