"""Schedule planning over the dependency graph.

Places open tasks back to back into working hours, dependency-first. Within
what the dependencies allow, tasks are taken in this order: overdue first,
then earliest due date, higher priority, shorter estimate, older task.
"""

import heapq
import math
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from taskgraph.domain.shared import DependencyCycle, Err, Ok, Result
from taskgraph.domain.task.models import Task, TaskFilter, TaskStatus, ensure_utc

from .cycles import find_cycle
from .index import GraphIndex

SCHEDULABLE = frozenset({TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED})

_HHMM = r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$"


class WorkingHours(BaseModel):
    start: str = Field(default="09:00", pattern=_HHMM)
    end: str = Field(default="17:30", pattern=_HHMM)
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    def bounds(self, day: date) -> tuple[datetime, datetime]:
        zone = ZoneInfo(self.timezone)
        start = datetime.combine(day, _parse_hhmm(self.start), tzinfo=zone)
        end = datetime.combine(day, _parse_hhmm(self.end), tzinfo=zone)
        return ensure_utc(start), ensure_utc(end)


class ScheduleOptions(BaseModel):
    filter: TaskFilter | None = None
    working_hours: WorkingHours = Field(default_factory=WorkingHours)
    start_date: datetime | None = None
    daily_capacity: int = Field(default=480, ge=1)
    commit: bool = False


class ScheduleConstraints(BaseModel):
    blockers: list[str] = Field(default_factory=list)
    due_violation: bool = False
    notes: list[str] = Field(default_factory=list)


class ScheduledTask(BaseModel):
    task_id: str
    scheduled_start: datetime
    scheduled_end: datetime
    constraints: ScheduleConstraints = Field(default_factory=ScheduleConstraints)

    @property
    def minutes(self) -> int:
        return int((self.scheduled_end - self.scheduled_start).total_seconds() // 60)


class ScheduleSummary(BaseModel):
    total_planned_minutes: int = 0
    unplaced_tasks: int = 0
    violations: int = 0


class SchedulePlan(BaseModel):
    tasks: list[ScheduledTask] = Field(default_factory=list)
    summary: ScheduleSummary = Field(default_factory=ScheduleSummary)


def _parse_hhmm(value: str) -> time:
    hours, minutes = (int(part) for part in value.split(":"))
    return time(hours, minutes)


def round_to_quarter_hour(value: datetime) -> datetime:
    """Round up to the next quarter hour (exact quarters stay put)."""
    base = value.replace(second=0, microsecond=0)
    if base < value:
        base += timedelta(minutes=1)
    quarters = math.ceil(base.minute / 15) * 15
    return base.replace(minute=0) + timedelta(minutes=quarters)


def schedule_key(task: Task, now: datetime) -> tuple:
    overdue = task.due_at is not None and task.due_at < now
    due = task.due_at.timestamp() if task.due_at else float("inf")
    return (
        0 if overdue else 1,
        due,
        -task.priority.rank,
        task.estimated_duration_minutes or 0,
        task.created_at.timestamp(),
        task.id,
    )


def dependency_order(
    index: GraphIndex, candidates: list[Task], now: datetime
) -> Result[list[Task], DependencyCycle]:
    """Topological order of ``candidates``, blockers before dependents.

    Blockers outside the candidate set do not constrain the order. Among
    tasks whose blockers are all placed, ``schedule_key`` decides.
    """
    ids = {t.id for t in candidates}
    pending_blockers = {t.id: {b for b in t.depends_on if b in ids} for t in candidates}
    heap = [(schedule_key(t, now), t.id) for t in candidates if not pending_blockers[t.id]]
    heapq.heapify(heap)
    ordered: list[Task] = []
    while heap:
        _, task_id = heapq.heappop(heap)
        ordered.append(index.get(task_id))
        for dependent in index.dependents(task_id):
            blockers = pending_blockers.get(dependent.id)
            if blockers is None or task_id not in blockers:
                continue
            blockers.discard(task_id)
            if not blockers:
                heapq.heappush(heap, (schedule_key(dependent, now), dependent.id))

    if len(ordered) < len(candidates):
        cycle = find_cycle(index, within=ids) or []
        edge = (cycle[0], cycle[1]) if len(cycle) > 1 else None
        return Err(
            DependencyCycle(
                "Dependency cycle detected among tasks to schedule",
                details={"cycle": cycle},
                edge=edge,
            )
        )
    return Ok(ordered)


def plan(
    index: GraphIndex,
    options: ScheduleOptions,
    now: datetime,
    default_duration: int = 30,
) -> Result[SchedulePlan, DependencyCycle]:
    """Build a schedule for the open tasks of ``index``.

    Args:
        index: Graph containing the tasks to plan and their blockers.
        options: Filter, working hours, start date and daily capacity.
        now: Current time, used for the overdue ordering.
        default_duration: Minutes assumed for tasks without an estimate.
    """
    task_filter = options.filter
    candidates = [
        t
        for t in index
        if t.status in SCHEDULABLE and (task_filter is None or task_filter.matches(t))
    ]
    if not candidates:
        return Ok(SchedulePlan())

    ordered = dependency_order(index, candidates, now)
    if isinstance(ordered, Err):
        return ordered

    hours = options.working_hours
    zone = ZoneInfo(hours.timezone)
    current = round_to_quarter_hour(ensure_utc(options.start_date) or now)
    day = current.astimezone(zone).date()
    remaining = options.daily_capacity
    placed: dict[str, ScheduledTask] = {}

    for task in ordered.value:
        constraints = ScheduleConstraints()
        duration = task.estimated_duration_minutes
        if duration is None:
            duration = default_duration

        blocker_ends = [placed[b].scheduled_end for b in sorted(task.depends_on) if b in placed]
        if blocker_ends:
            constraints.blockers = [b for b in sorted(task.depends_on) if b in placed]
            current = max(current, *blocker_ends)
            if current.astimezone(zone).date() > day:
                day = current.astimezone(zone).date()
                remaining = options.daily_capacity

        work_start, work_end = hours.bounds(day)
        if current < work_start:
            current = work_start
        length = timedelta(minutes=duration)
        # A task that fits in a working day never runs past the day's end.
        overruns = current + length > work_end and work_start + length <= work_end
        if current >= work_end or remaining < duration or overruns:
            day += timedelta(days=1)
            current, _ = hours.bounds(day)
            remaining = options.daily_capacity

        if duration > options.daily_capacity:
            constraints.notes.append("Exceeds daily capacity")

        end = current + length
        if task.due_at is not None and end > task.due_at:
            constraints.due_violation = True
            constraints.notes.append("Scheduled after due date")

        parent = index.parent(task.id)
        if parent is not None and not task.allow_parent_auto_complete:
            if any(not c.status.is_resolved for c in index.children(parent.id) if c.id != task.id):
                constraints.notes.append("Parent has incomplete children")

        placed[task.id] = ScheduledTask(
            task_id=task.id,
            scheduled_start=current,
            scheduled_end=end,
            constraints=constraints,
        )
        current = end
        remaining -= duration

    scheduled = list(placed.values())
    return Ok(
        SchedulePlan(
            tasks=scheduled,
            summary=ScheduleSummary(
                total_planned_minutes=sum(s.minutes for s in scheduled),
                unplaced_tasks=len(candidates) - len(scheduled),
                violations=sum(1 for s in scheduled if s.constraints.due_violation),
            ),
        )
    )
