"""Recurrence engine.

Computes the next occurrence of a recurring task and builds the instance
that replaces it once it is completed. All functions are pure.
"""

import calendar
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

from .models import RecurrencePattern, RecurrenceType, Task, TaskStatus, new_task_id

# Advances a reference date by ``interval`` units of a caller-defined period.
IntervalResolver = Callable[[datetime, int], datetime]

CustomUnit = Literal["hours", "days", "weeks"]


@dataclass(frozen=True)
class Occurrence:
    """The next slot of a recurring series.

    Attributes:
        start: When the next instance starts.
        offset: ``start - reference``; applied to the instance's due and
            scheduled dates.
    """

    start: datetime
    offset: timedelta


def add_months(value: datetime, months: int, day_of_month: int | None = None) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    day = min(day_of_month or value.day, last_day)
    return value.replace(year=year, month=month, day=day)


def add_years(value: datetime, years: int) -> datetime:
    """Add calendar years; Feb 29 falls back to Feb 28 in common years."""
    year = value.year + years
    last_day = calendar.monthrange(year, value.month)[1]
    return value.replace(year=year, day=min(value.day, last_day))


def _custom_step(unit: CustomUnit) -> timedelta:
    return {"hours": timedelta(hours=1), "days": timedelta(days=1), "weeks": timedelta(weeks=1)}[unit]


def advance(
    pattern: RecurrencePattern,
    reference: datetime,
    resolver: IntervalResolver | None = None,
    custom_unit: CustomUnit = "days",
) -> datetime:
    """Move ``reference`` forward by one step of ``pattern``.

    Custom patterns use ``resolver`` when one is supplied; otherwise they are
    spaced by ``interval`` units of ``custom_unit``.
    """
    interval = pattern.interval
    match pattern.type:
        case RecurrenceType.DAILY:
            return reference + timedelta(days=interval)
        case RecurrenceType.WEEKLY:
            return reference + timedelta(weeks=interval)
        case RecurrenceType.MONTHLY:
            return add_months(reference, interval, pattern.day_of_month)
        case RecurrenceType.YEARLY:
            return add_years(reference, interval)
        case RecurrenceType.CUSTOM:
            if resolver is not None:
                return resolver(reference, interval)
            return reference + _custom_step(custom_unit) * interval
    raise ValueError(f"Unknown recurrence type: {pattern.type}")


def reference_date(task: Task, pattern: RecurrencePattern) -> datetime:
    """The later of the pattern start and the task's scheduled/due date."""
    anchor = task.scheduled_start or task.due_at
    if anchor is None:
        return pattern.start_date
    return max(pattern.start_date, anchor)


def next_occurrence(
    task: Task,
    resolver: IntervalResolver | None = None,
    custom_unit: CustomUnit = "days",
) -> Occurrence | None:
    """Compute the next occurrence for a completed recurring task.

    Returns:
        The next Occurrence, or None if the task does not recur or the
        series has passed its end date.
    """
    pattern = task.recurrence
    if pattern is None:
        return None
    reference = reference_date(task, pattern)
    start = advance(pattern, reference, resolver, custom_unit)
    if pattern.end_date is not None and start > pattern.end_date:
        return None
    return Occurrence(start=start, offset=start - reference)


def _shift(value: datetime | None, offset: timedelta) -> datetime | None:
    return value + offset if value is not None else None


def spawn_instance(task: Task, occurrence: Occurrence, now: datetime) -> Task:
    """Build the recurrence instance that follows ``task``.

    The instance copies the task's descriptive fields and hierarchy position,
    starts in Todo with no dependencies, and carries the pattern forward with
    its start date advanced to the occurrence. A monthly series without a
    pinned day keeps the day of its reference date, so a clamped month does
    not pull later instances earlier.
    """
    changes: dict = {"start_date": occurrence.start}
    if task.recurrence.type == RecurrenceType.MONTHLY and task.recurrence.day_of_month is None:
        changes["day_of_month"] = (occurrence.start - occurrence.offset).day
    pattern = task.recurrence.model_copy(update=changes)
    return Task(
        id=new_task_id(),
        title=task.title,
        description=task.description,
        status=TaskStatus.TODO,
        priority=task.priority,
        due_at=_shift(task.due_at, occurrence.offset),
        estimated_duration_minutes=task.estimated_duration_minutes,
        allow_parent_auto_complete=task.allow_parent_auto_complete,
        parent_id=task.parent_id,
        scheduled_start=_shift(task.scheduled_start, occurrence.offset),
        scheduled_end=_shift(task.scheduled_end, occurrence.offset),
        recurrence=pattern,
        original_task_id=task.id,
        created_at=now,
        updated_at=now,
    )
