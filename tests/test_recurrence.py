# tests/test_recurrence.py

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from taskgraph.application import TaskService
from taskgraph.config import EngineConfig
from taskgraph.domain.task import (
    RecurrencePattern,
    RecurrenceType,
    Task,
    TaskStatus,
    next_occurrence,
)
from taskgraph.domain.task.recurrence import add_months, add_years


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=UTC)


def _recurring(pattern: dict, **fields) -> Task:
    return Task(title="Recurring", recurrence=RecurrencePattern(**pattern), **fields)


def test_weekly_instance_starts_one_week_after_pattern_start(service, make_task, clock) -> None:
    task = make_task(
        "Weekly review",
        recurrence={"type": "Weekly", "interval": 1, "start_date": "2024-01-01T00:00:00Z"},
    )
    assert clock() == _utc(2024, 1, 3, 10, 0)

    outcome = service.complete_task(task.id).value

    assert len(outcome.spawned) == 1
    instance = outcome.spawned[0]
    assert instance.recurrence.start_date == _utc(2024, 1, 8)
    assert instance.status == TaskStatus.TODO
    assert instance.title == "Weekly review"
    assert instance.id != task.id
    assert instance.original_task_id == task.id
    assert service.get_task(instance.id).value.version == 1


def test_due_and_schedule_shift_with_the_series() -> None:
    task = _recurring(
        {"type": "Daily", "interval": 2, "start_date": _utc(2024, 1, 1)},
        due_at=_utc(2024, 1, 10, 17),
        scheduled_start=_utc(2024, 1, 10, 9),
        scheduled_end=_utc(2024, 1, 10, 10),
    )

    occurrence = next_occurrence(task)

    # Reference is the later of pattern start and scheduled start.
    assert occurrence.start == _utc(2024, 1, 12, 9)
    assert occurrence.offset == timedelta(days=2)


def test_series_stops_after_end_date(service, make_task) -> None:
    task = make_task(
        "Short series",
        recurrence={
            "type": "Weekly",
            "start_date": "2024-01-01T00:00:00Z",
            "end_date": "2024-01-05T00:00:00Z",
        },
    )

    outcome = service.complete_task(task.id).value

    assert outcome.spawned == []


def test_month_end_is_clamped() -> None:
    assert add_months(_utc(2024, 1, 31), 1) == _utc(2024, 2, 29)
    assert add_months(_utc(2023, 1, 31), 1) == _utc(2023, 2, 28)
    assert add_months(_utc(2024, 11, 15), 3) == _utc(2025, 2, 15)
    assert add_months(_utc(2024, 2, 29), 1, day_of_month=31) == _utc(2024, 3, 31)


def test_leap_day_falls_back_in_common_years() -> None:
    assert add_years(_utc(2024, 2, 29), 1) == _utc(2025, 2, 28)
    assert add_years(_utc(2024, 2, 29), 4) == _utc(2028, 2, 29)


def test_monthly_pattern_uses_pinned_day() -> None:
    task = _recurring(
        {"type": "Monthly", "start_date": _utc(2024, 1, 31), "day_of_month": 31}
    )
    assert next_occurrence(task).start == _utc(2024, 2, 29)


def test_monthly_series_keeps_month_end_after_short_month(service, make_task) -> None:
    task = make_task(
        "Month-end close",
        recurrence={"type": "Monthly", "start_date": "2024-01-31T00:00:00Z"},
    )

    february = service.complete_task(task.id).value.spawned[0]
    march = service.complete_task(february.id).value.spawned[0]

    assert february.recurrence.start_date == _utc(2024, 2, 29)
    assert february.recurrence.day_of_month == 31
    assert march.recurrence.start_date == _utc(2024, 3, 31)


def test_custom_pattern_uses_resolver(repository, clock) -> None:
    service = TaskService(
        repository,
        clock=clock,
        interval_resolver=lambda reference, interval: reference + timedelta(hours=6 * interval),
    )
    task = service.create_task(
        {
            "title": "Rotate keys",
            "recurrence": {"type": "Custom", "interval": 2, "start_date": "2024-01-01T00:00:00Z"},
        }
    ).value

    instance = service.complete_task(task.id).value.spawned[0]

    assert instance.recurrence.start_date == _utc(2024, 1, 1, 12)


def test_custom_pattern_falls_back_to_configured_unit(repository, clock) -> None:
    service = TaskService(repository, config=EngineConfig(custom_recurrence_unit="weeks"), clock=clock)
    task = service.create_task(
        {
            "title": "Fortnightly sync",
            "recurrence": {"type": "Custom", "interval": 2, "start_date": "2024-01-01T00:00:00Z"},
        }
    ).value

    instance = service.complete_task(task.id).value.spawned[0]

    assert instance.recurrence.start_date == _utc(2024, 1, 15)


def test_instance_does_not_copy_dependencies(service, make_task) -> None:
    blocker = make_task("Blocker")
    service.complete_task(blocker.id)
    parent = make_task("Parent")
    task = make_task(
        "Standup",
        parent_id=parent.id,
        depends_on=[blocker.id],
        priority="High",
        estimated_duration_minutes=15,
        recurrence={"type": "Daily", "start_date": "2024-01-01T00:00:00Z"},
    )

    instance = service.complete_task(task.id).value.spawned[0]

    assert instance.depends_on == set()
    assert instance.parent_id == parent.id
    assert instance.priority.value == "High"
    assert instance.estimated_duration_minutes == 15
    assert instance.recurrence.type == RecurrenceType.DAILY


def test_non_recurring_task_spawns_nothing(service, make_task) -> None:
    task = make_task("One-off")

    assert service.complete_task(task.id).value.spawned == []
