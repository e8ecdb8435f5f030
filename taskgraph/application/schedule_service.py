"""Schedule planning service.

Plans open tasks into working hours and, when asked, writes the planned
windows back to the tasks in one transaction.
"""

import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from taskgraph.application.task_service import parse_input
from taskgraph.application.transaction import TransactionRunner
from taskgraph.config import EngineConfig
from taskgraph.domain.graph import GraphIndex, ScheduleOptions, SchedulePlan, plan
from taskgraph.domain.shared import Err, Ok, Result, TaskError
from taskgraph.domain.task import Changeset, TaskUpdated, utcnow
from taskgraph.infrastructure.storage import TaskRepository

logger = logging.getLogger(__name__)


class ScheduleService:
    def __init__(
        self,
        repository: TaskRepository,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._config = config or EngineConfig()
        self._clock = clock or utcnow
        self._runner = TransactionRunner(
            repository, retries=self._config.conflict_retries, clock=self._clock
        )

    @property
    def repository(self) -> TaskRepository:
        return self._repository

    def plan_schedule(
        self, options: ScheduleOptions | Mapping[str, Any] | None = None
    ) -> Result[SchedulePlan, TaskError]:
        """Plan open tasks dependency-first into working hours.

        Args:
            options: Filter, working hours, start date, daily capacity and
                whether to persist the planned windows (``commit``).

        Returns:
            Ok(SchedulePlan), or Err(DependencyCycle) if the candidates
            contain a cycle.
        """
        parsed = parse_input(ScheduleOptions, options if options is not None else {})
        if isinstance(parsed, Err):
            return parsed
        return self._runner.run("plan_schedule", lambda changes: self._plan(changes, parsed.value))

    def _load(self, changes: Changeset) -> GraphIndex:
        index = GraphIndex.load(self._repository)
        changes.expect(index)
        return index

    def _plan(self, changes: Changeset, options: ScheduleOptions) -> Result[SchedulePlan, TaskError]:
        index = self._load(changes)
        planned = plan(
            index,
            options,
            changes.now,
            default_duration=self._config.default_estimated_duration_minutes,
        )
        if isinstance(planned, Err):
            return planned

        result = planned.value
        logger.info(
            f"Planned {len(result.tasks)} tasks, {result.summary.total_planned_minutes} minutes, "
            f"{result.summary.violations} due-date violation(s)"
        )
        if not options.commit:
            return Ok(result)

        for slot in result.tasks:
            task = index.get(slot.task_id)
            updated = changes.update(
                task,
                task.model_copy(
                    update={
                        "scheduled_start": slot.scheduled_start,
                        "scheduled_end": slot.scheduled_end,
                    }
                ),
            )
            if updated is not task:
                changes.record(
                    TaskUpdated(task_id=task.id, fields=["scheduled_start", "scheduled_end"])
                )
        return Ok(result)
