"""Graph domain - adjacency index, cycle detection and schedule planning.

All exports are pure (no I/O, no side effects).

Key Types:
    GraphIndex - Per-operation adjacency view over tasks
    Edge - (source, target) pair in the combined graph
    SchedulePlan, ScheduleOptions - Schedule planning

Functions:
    would_create_cycle - First edge of a batch that closes a cycle
    find_cycle - Any cycle already present
    plan - Place open tasks into working hours, dependency-first
"""

from .cycles import (
    Edge,
    dependency_edge,
    find_cycle,
    has_cycle,
    hierarchy_edge,
    is_reachable,
    would_create_cycle,
)
from .index import GraphIndex, TaskSource
from .schedule import (
    ScheduleConstraints,
    ScheduledTask,
    ScheduleOptions,
    SchedulePlan,
    ScheduleSummary,
    WorkingHours,
    dependency_order,
    plan,
    round_to_quarter_hour,
)

__all__ = [
    "GraphIndex",
    "TaskSource",
    "Edge",
    "dependency_edge",
    "hierarchy_edge",
    "is_reachable",
    "would_create_cycle",
    "has_cycle",
    "find_cycle",
    "WorkingHours",
    "ScheduleOptions",
    "ScheduleConstraints",
    "ScheduledTask",
    "ScheduleSummary",
    "SchedulePlan",
    "dependency_order",
    "plan",
    "round_to_quarter_hour",
]
