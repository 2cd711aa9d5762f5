"""
Reminder scheduler.

A polling loop owned by the process bootstrap. Each tick:
- finds tasks that are not notified, not completed, and whose reminder time
  falls inside [now, now + window],
- sends one reminder per task through the injected notifier,
- marks the task notified after a successful send.

A failure for one task is logged and the tick moves on; a failure of the whole
tick is logged and the next tick still fires. A crash between a successful send
and the notified write will resend that reminder after restart.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from datetime import datetime, timedelta

from taskminder.errors import NotFoundError
from taskminder.models.task import Task, utc_now
from taskminder.notify.email import Notifier
from taskminder.observability import get_json_logger, get_metrics
from taskminder.store.interface import OwnerDirectory, TaskStore
from taskminder.store.query import Filter, SortKey, TaskQuery


def due_reminders_query(now: datetime, window: timedelta) -> TaskQuery:
    return TaskQuery(
        filters=(
            Filter.eq("is_notified", False),
            Filter.eq("is_completed", False),
            Filter("reminder_at", "gte", now),
            Filter("reminder_at", "lte", now + window),
        ),
        sort=(SortKey("reminder_at"),),
    )


class ReminderScheduler:
    """Recurring scan-and-notify job with an explicit start/stop lifecycle.

    Created stopped. ``start()`` must run inside an event loop; ``tick()`` can be
    awaited directly to run one scan.
    """

    def __init__(
        self,
        store: TaskStore,
        owners: OwnerDirectory,
        notifier: Notifier,
        *,
        interval_seconds: float = 60.0,
        window_seconds: float = 300.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._owners = owners
        self._notifier = notifier
        self._interval = max(0.05, float(interval_seconds))
        self._window = timedelta(seconds=float(window_seconds))
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self._logger = get_json_logger("taskminder.scheduler")
        self._metrics = get_metrics()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="reminder-scheduler"
        )
        self._logger.info(
            "reminder scheduler started",
            extra={
                "event": "scheduler_started",
                "attributes": {
                    "interval_s": self._interval,
                    "window_s": self._window.total_seconds(),
                },
            },
        )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._logger.info("reminder scheduler stopped", extra={"event": "scheduler_stopped"})

    async def _run(self) -> None:
        while True:
            started = time.monotonic()
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                self._logger.exception("reminder tick failed", extra={"event": "tick_errored"})
                self._metrics.increment("reminder_tick_errors")
            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, self._interval - elapsed))

    async def tick(self, now: datetime | None = None) -> int:
        """Run one scan. Returns how many tasks were marked notified."""
        now = now or self._clock()
        self._metrics.increment("reminder_ticks")
        tasks = await asyncio.to_thread(self._store.find, due_reminders_query(now, self._window))
        if not tasks:
            return 0

        self._logger.info(
            "processing reminders", extra={"event": "tick_matched", "count": len(tasks)}
        )
        sent = 0
        for task in tasks:
            if await self._remind(task):
                sent += 1
        return sent

    async def _remind(self, task: Task) -> bool:
        try:
            owner = await asyncio.to_thread(self._owners.get_owner, task.owner_id)
            if owner is None:
                self._logger.warning(
                    "no contact for task owner; reminder skipped",
                    extra={
                        "event": "reminder_failed",
                        "task_id": task.id,
                        "owner_id": task.owner_id,
                    },
                )
                self._metrics.increment("reminder_failures")
                return False
            await self._notifier.send(task, owner)
            await asyncio.to_thread(self._mark_notified, task)
        except Exception:
            self._logger.exception(
                "failed to send reminder",
                extra={"event": "reminder_failed", "task_id": task.id, "owner_id": task.owner_id},
            )
            self._metrics.increment("reminder_failures")
            return False
        self._logger.info("reminder sent", extra={"event": "reminder_sent", "task_id": task.id})
        self._metrics.increment("reminders_sent")
        return True

    def _mark_notified(self, task: Task) -> None:
        try:
            self._store.update(task.id, {"is_notified": True})
        except NotFoundError:
            # Deleted while the e-mail was in flight
            return


__all__ = ["ReminderScheduler", "due_reminders_query"]
