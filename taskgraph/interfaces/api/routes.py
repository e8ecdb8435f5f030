"""FastAPI routes for taskgraph.

Handlers call the application services held on ``app.state`` and translate
an ``Err`` into an ``HTTPException`` whose status is the error's
``status_code`` and whose detail is the error's ``to_dict()``.
"""

import logging
from typing import Optional, TypeVar

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from taskgraph import __version__
from taskgraph.application import (
    CompletionOutcome,
    ScheduleService,
    TaskCreate,
    TaskService,
    TaskUpdate,
)
from taskgraph.domain.graph import ScheduleOptions, SchedulePlan
from taskgraph.domain.shared import Err, Result, TaskError
from taskgraph.domain.task import Priority, Task, TaskAudit, TaskFilter, TaskPage, TaskStatus
from taskgraph.interfaces.api.schemas import (
    AddDependencyRequest,
    BulkImportRequest,
    CompleteTaskRequest,
    ReopenTaskRequest,
    SetDependenciesRequest,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _unwrap(result: Result[T, TaskError]) -> T:
    if isinstance(result, Err):
        error = result.error
        if error.status_code >= 500:
            logger.error(f"Request failed: {error}")
        raise HTTPException(status_code=error.status_code, detail=error.to_dict())
    return result.value


def get_task_service(request: Request) -> TaskService:
    return request.app.state.task_service


def get_schedule_service(request: Request) -> ScheduleService:
    return request.app.state.schedule_service


# =============================================================================
# Router
# =============================================================================


router = APIRouter(prefix="/api")


# =============================================================================
# Tasks
# =============================================================================


@router.get("/tasks", response_model=TaskPage)
def list_tasks(
    status: Optional[TaskStatus] = None,
    priority: Optional[Priority] = None,
    parent_id: Optional[str] = None,
    top_level_only: bool = False,
    q: Optional[str] = None,
    page: int = 1,
    limit: int = 200,
    service: TaskService = Depends(get_task_service),
):
    """List tasks, highest priority and earliest due first."""
    return _unwrap(
        service.list_tasks(
            {
                "status": status,
                "priority": priority,
                "parent_id": parent_id,
                "top_level_only": top_level_only,
                "q": q,
                "page": page,
                "limit": limit,
            }
        )
    )


@router.post("/tasks", response_model=Task, status_code=201)
def create_task(req: TaskCreate, service: TaskService = Depends(get_task_service)):
    return _unwrap(service.create_task(req))


@router.post("/tasks/bulk-import", response_model=list[Task], status_code=201)
def bulk_import(req: BulkImportRequest, service: TaskService = Depends(get_task_service)):
    """Create a batch of tasks with their edges in one transaction."""
    return _unwrap(service.bulk_import(req.records, req.edges))


@router.get("/tasks/{task_id}", response_model=Task)
def get_task(task_id: str, service: TaskService = Depends(get_task_service)):
    return _unwrap(service.get_task(task_id))


@router.patch("/tasks/{task_id}", response_model=Task)
def update_task(task_id: str, req: TaskUpdate, service: TaskService = Depends(get_task_service)):
    """Update the fields present in the body."""
    return _unwrap(service.update_task(task_id, req))


@router.delete("/tasks/{task_id}")
def delete_task(task_id: str, service: TaskService = Depends(get_task_service)):
    _unwrap(service.delete_task(task_id))
    return {"status": "deleted"}


@router.get("/tasks/{task_id}/history", response_model=list[TaskAudit])
def task_history(task_id: str, service: TaskService = Depends(get_task_service)):
    return _unwrap(service.task_history(task_id))


# =============================================================================
# Subtasks
# =============================================================================


@router.get("/tasks/{task_id}/subtasks", response_model=list[Task])
def list_subtasks(task_id: str, service: TaskService = Depends(get_task_service)):
    return _unwrap(service.get_subtasks(task_id))


@router.post("/tasks/{task_id}/subtasks", response_model=Task, status_code=201)
def add_subtask(task_id: str, req: TaskCreate, service: TaskService = Depends(get_task_service)):
    return _unwrap(service.add_subtask(task_id, req))


# =============================================================================
# Dependencies
# =============================================================================


@router.post("/tasks/{task_id}/dependencies", response_model=Task)
def add_dependency(
    task_id: str, req: AddDependencyRequest, service: TaskService = Depends(get_task_service)
):
    return _unwrap(service.add_dependency(task_id, req.depends_on))


@router.put("/tasks/{task_id}/dependencies", response_model=Task)
def set_dependencies(
    task_id: str, req: SetDependenciesRequest, service: TaskService = Depends(get_task_service)
):
    """Replace the full blocker set."""
    return _unwrap(service.set_dependencies(task_id, req.depends_on))


@router.delete("/tasks/{task_id}/dependencies/{blocker_id}", response_model=Task)
def remove_dependency(task_id: str, blocker_id: str, service: TaskService = Depends(get_task_service)):
    return _unwrap(service.remove_dependency(task_id, blocker_id))


# =============================================================================
# Status
# =============================================================================


@router.post("/tasks/{task_id}/complete", response_model=CompletionOutcome)
def complete_task(
    task_id: str,
    req: Optional[CompleteTaskRequest] = None,
    service: TaskService = Depends(get_task_service),
):
    """Complete a task; the response lists cascaded and spawned tasks."""
    req = req or CompleteTaskRequest()
    return _unwrap(service.complete_task(task_id, req.mode, req.force))


@router.post("/tasks/{task_id}/reopen", response_model=CompletionOutcome)
def reopen_task(
    task_id: str,
    req: Optional[ReopenTaskRequest] = None,
    service: TaskService = Depends(get_task_service),
):
    req = req or ReopenTaskRequest()
    return _unwrap(service.reopen_task(task_id, req.status))


@router.post("/tasks/{task_id}/cancel", response_model=CompletionOutcome)
def cancel_task(task_id: str, service: TaskService = Depends(get_task_service)):
    return _unwrap(service.cancel_task(task_id))


# =============================================================================
# Schedule
# =============================================================================


@router.post("/schedule/plan", response_model=SchedulePlan)
def plan_schedule(
    options: Optional[ScheduleOptions] = None,
    service: ScheduleService = Depends(get_schedule_service),
):
    """Plan open tasks into working hours; ``commit`` persists the windows."""
    return _unwrap(service.plan_schedule(options or ScheduleOptions()))


# =============================================================================
# App
# =============================================================================


def create_app(
    task_service: TaskService,
    schedule_service: ScheduleService | None = None,
) -> FastAPI:
    """Create the FastAPI application around existing services."""
    app = FastAPI(
        title="taskgraph",
        description="Task hierarchy, dependency graph and completion engine",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.task_service = task_service
    app.state.schedule_service = schedule_service or ScheduleService(task_service.repository)
    app.include_router(router)

    @app.get("/")
    def root():
        return {"name": "taskgraph", "version": __version__}

    return app
