from __future__ import annotations

from datetime import timedelta

import pytest

from taskminder.errors import ForbiddenError, NotFoundError, ValidationError
from taskminder.models.task import Priority, TaskCreate, TaskUpdate
from taskminder.service.tasks import TaskService
from taskminder.store.query import Filter, TaskQuery
from tests.helpers.store import FakeClock, InMemoryTaskStore


@pytest.fixture()
def service(store: InMemoryTaskStore, clock: FakeClock) -> TaskService:
    return TaskService(store, clock=clock)


def _create(
    service: TaskService,
    clock: FakeClock,
    owner: str = "alice",
    *,
    title: str = "Pay rent",
    due_h: float = 2,
    remind_h: float = 1,
    priority: Priority | None = None,
):
    return service.create_task(
        owner,
        TaskCreate(
            title=title,
            due_date=clock.now + timedelta(hours=due_h),
            reminder_at=clock.now + timedelta(hours=remind_h),
            priority=priority,
        ),
    )


def test_create_defaults(service: TaskService, clock: FakeClock) -> None:
    task = _create(service, clock)
    assert task.owner_id == "alice"
    assert task.priority == Priority.MEDIUM
    assert task.is_completed is False
    assert task.is_notified is False
    assert task.completed_at is None
    assert task.created_at == clock.now
    assert task.reminder_at < task.due_date


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"title": None}, "Please provide title, due date, and reminder time"),
        ({"title": "   "}, "Please provide title, due date, and reminder time"),
        ({"due_date": None}, "Please provide title, due date, and reminder time"),
        ({"reminder_at": None}, "Please provide title, due date, and reminder time"),
        ({"title": "x" * 101}, "Title cannot exceed 100 characters"),
        ({"description": "d" * 501}, "Description cannot exceed 500 characters"),
    ],
)
def test_create_rejects_missing_or_oversized_fields(
    service: TaskService, clock: FakeClock, kwargs: dict, message: str
) -> None:
    base = {
        "title": "Pay rent",
        "due_date": clock.now + timedelta(hours=2),
        "reminder_at": clock.now + timedelta(hours=1),
    }
    base.update(kwargs)
    with pytest.raises(ValidationError, match=message):
        service.create_task("alice", TaskCreate(**base))


def test_create_rejects_due_date_not_in_future(service: TaskService, clock: FakeClock) -> None:
    with pytest.raises(ValidationError, match="Due date must be in the future"):
        _create(service, clock, due_h=0, remind_h=-1)


def test_create_rejects_reminder_after_due(service: TaskService, clock: FakeClock) -> None:
    with pytest.raises(ValidationError, match="Reminder time must be before due date"):
        _create(service, clock, due_h=1, remind_h=2)


def test_create_rejects_reminder_equal_to_due(service: TaskService, clock: FakeClock) -> None:
    with pytest.raises(ValidationError, match="Reminder time must be before due date"):
        _create(service, clock, due_h=1, remind_h=1)


def test_create_rejects_reminder_in_past(service: TaskService, clock: FakeClock) -> None:
    with pytest.raises(ValidationError, match="Reminder time must be in the future"):
        _create(service, clock, due_h=1, remind_h=-0.5)


def test_get_checks_existence_before_ownership(service: TaskService, clock: FakeClock) -> None:
    task = _create(service, clock, owner="bob")
    with pytest.raises(NotFoundError):
        service.get_task("alice", "does-not-exist")
    with pytest.raises(ForbiddenError, match="Not authorized to access this task"):
        service.get_task("alice", task.id)
    assert service.get_task("bob", task.id).id == task.id


@pytest.mark.parametrize(
    "op, verb", [("update", "update"), ("delete", "delete"), ("complete", "update")]
)
def test_mutations_enforce_ownership(
    service: TaskService, clock: FakeClock, op: str, verb: str
) -> None:
    task = _create(service, clock, owner="bob")
    calls = {
        "update": lambda owner, tid: service.update_task(owner, tid, TaskUpdate(title="x")),
        "delete": service.delete_task,
        "complete": service.complete_task,
    }
    with pytest.raises(ForbiddenError, match=f"Not authorized to {verb} this task"):
        calls[op]("alice", task.id)
    with pytest.raises(NotFoundError):
        calls[op]("alice", "missing")
    # untouched
    assert service.get_task("bob", task.id).title == "Pay rent"


def test_update_changes_only_supplied_fields(service: TaskService, clock: FakeClock) -> None:
    task = _create(service, clock)
    clock.advance(minutes=1)
    updated = service.update_task(
        "alice", task.id, TaskUpdate(title="Pay rent today", priority=Priority.HIGH)
    )
    assert updated.title == "Pay rent today"
    assert updated.priority == Priority.HIGH
    assert updated.due_date == task.due_date
    assert updated.reminder_at == task.reminder_at
    assert updated.created_at == task.created_at
    assert updated.updated_at == clock.now


def test_update_falsy_title_keeps_existing(service: TaskService, clock: FakeClock) -> None:
    task = _create(service, clock)
    updated = service.update_task("alice", task.id, TaskUpdate(title=""))
    assert updated.title == "Pay rent"


def test_update_can_clear_description(service: TaskService, clock: FakeClock) -> None:
    task = service.create_task(
        "alice",
        TaskCreate(
            title="Pay rent",
            description="landlord account",
            due_date=clock.now + timedelta(hours=2),
            reminder_at=clock.now + timedelta(hours=1),
        ),
    )
    kept = service.update_task("alice", task.id, TaskUpdate(title="Rent"))
    assert kept.description == "landlord account"
    cleared = service.update_task("alice", task.id, TaskUpdate(description=""))
    assert cleared.description == ""


def test_update_validates_effective_dates(service: TaskService, clock: FakeClock) -> None:
    task = _create(service, clock, due_h=2, remind_h=1)
    # New reminder after the existing due date
    with pytest.raises(ValidationError, match="Reminder time must be before due date"):
        service.update_task(
            "alice", task.id, TaskUpdate(reminder_at=clock.now + timedelta(hours=3))
        )
    # New due date before the existing reminder
    with pytest.raises(ValidationError):
        service.update_task(
            "alice", task.id, TaskUpdate(due_date=clock.now + timedelta(minutes=30))
        )
    moved = service.update_task(
        "alice",
        task.id,
        TaskUpdate(
            due_date=clock.now + timedelta(hours=5),
            reminder_at=clock.now + timedelta(hours=4),
        ),
    )
    assert moved.reminder_at < moved.due_date


def test_delete_is_permanent(service: TaskService, clock: FakeClock) -> None:
    task = _create(service, clock)
    service.delete_task("alice", task.id)
    with pytest.raises(NotFoundError):
        service.get_task("alice", task.id)


def test_complete_sets_timestamp_and_can_repeat(service: TaskService, clock: FakeClock) -> None:
    task = _create(service, clock)
    clock.advance(minutes=5)
    first = service.complete_task("alice", task.id)
    assert first.is_completed is True
    assert first.completed_at == clock.now
    clock.advance(minutes=5)
    second = service.complete_task("alice", task.id)
    assert second.completed_at == clock.now


def test_list_filters_by_owner_status_and_priority(service: TaskService, clock: FakeClock) -> None:
    a = _create(service, clock, title="a", priority=Priority.HIGH)
    b = _create(service, clock, title="b", priority=Priority.LOW)
    _create(service, clock, owner="bob", title="c")
    service.complete_task("alice", a.id)

    assert {t.id for t in service.list_tasks("alice")} == {a.id, b.id}
    assert [t.id for t in service.list_tasks("alice", status="completed")] == [a.id]
    assert [t.id for t in service.list_tasks("alice", status="pending")] == [b.id]
    assert [t.id for t in service.list_tasks("alice", priority="low")] == [b.id]
    assert service.list_tasks("alice", priority="high", status="pending") == []


def test_list_default_sort_is_newest_first(service: TaskService, clock: FakeClock) -> None:
    first = _create(service, clock, title="first", due_h=10, remind_h=9)
    clock.advance(minutes=1)
    second = _create(service, clock, title="second", due_h=10, remind_h=9)
    assert [t.id for t in service.list_tasks("alice")] == [second.id, first.id]


def test_list_sort_by_due_date(service: TaskService, clock: FakeClock) -> None:
    late = _create(service, clock, title="late", due_h=8, remind_h=7)
    early = _create(service, clock, title="early", due_h=3, remind_h=2)
    assert [t.id for t in service.list_tasks("alice", sort_by="dueDate")] == [early.id, late.id]


def test_list_pending_sorted_by_priority_uses_raw_string_order(
    service: TaskService, clock: FakeClock
) -> None:
    high = _create(service, clock, title="high", priority=Priority.HIGH, due_h=3, remind_h=2)
    low = _create(service, clock, title="low", priority=Priority.LOW, due_h=4, remind_h=3)
    med_late = _create(service, clock, title="m2", priority=Priority.MEDIUM, due_h=9, remind_h=8)
    med_early = _create(service, clock, title="m1", priority=Priority.MEDIUM, due_h=5, remind_h=4)
    done = _create(service, clock, title="done", priority=Priority.MEDIUM, due_h=6, remind_h=5)
    service.complete_task("alice", done.id)

    got = service.list_tasks("alice", status="pending", sort_by="priority")
    assert [t.id for t in got] == [med_early.id, med_late.id, low.id, high.id]


def test_stats(service: TaskService, store: InMemoryTaskStore, clock: FakeClock) -> None:
    a = _create(service, clock, title="a", due_h=1, remind_h=0.5)
    _create(service, clock, title="b", due_h=5, remind_h=4)
    c = _create(service, clock, title="c", due_h=2, remind_h=1)
    _create(service, clock, owner="bob", title="other", due_h=1, remind_h=0.5)
    service.complete_task("alice", c.id)

    clock.advance(hours=3)
    stats = service.stats("alice")
    assert stats.total == 3
    assert stats.completed == 1
    assert stats.pending == 2
    # "a" is past due and open; "c" is past due but completed
    assert stats.overdue == 1
    owned = TaskQuery().where(Filter.eq("owner_id", "alice"))
    assert stats.total == store.count(owned)
    assert a.id in {t.id for t in store.find(owned)}


def test_description_is_trimmed_before_length_check(
    service: TaskService, clock: FakeClock
) -> None:
    padded = "  " + "d" * 500 + "  "
    task = service.create_task(
        "alice",
        TaskCreate(
            title="  Pay rent  ",
            description=padded,
            due_date=clock.now + timedelta(hours=2),
            reminder_at=clock.now + timedelta(hours=1),
        ),
    )
    assert task.title == "Pay rent"
    assert task.description == "d" * 500
    updated = service.update_task("alice", task.id, TaskUpdate(description="  landlord  "))
    assert updated.description == "landlord"


def test_blank_priority_defaults_on_create_and_keeps_on_update(
    service: TaskService, clock: FakeClock
) -> None:
    body = {
        "title": "Pay rent",
        "dueDate": (clock.now + timedelta(hours=2)).isoformat(),
        "reminderAt": (clock.now + timedelta(hours=1)).isoformat(),
        "priority": "",
    }
    task = service.create_task("alice", TaskCreate.model_validate(body))
    assert task.priority == Priority.MEDIUM
    service.update_task("alice", task.id, TaskUpdate(priority=Priority.HIGH))
    kept = service.update_task(
        "alice", task.id, TaskUpdate.model_validate({"priority": "", "title": "New"})
    )
    assert kept.priority == Priority.HIGH
    assert kept.title == "New"
