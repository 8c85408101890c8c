"""Task router: the minimal task store surface the repeating engine hooks into."""
from fastapi import APIRouter, Body, Depends, Query, status
from typing import Any, Dict, Optional
from datetime import date

from app.schemas.task import TaskComplete, TaskCreate, TaskUpdate, TaskResponse
from app.services.task_service import TaskService
from app.middleware.auth import get_current_user, CurrentUser
from app.db.config import get_session
from sqlmodel import Session

router = APIRouter(prefix="/tasks", tags=["Tasks"])


def get_task_service(session: Session = Depends(get_session)) -> TaskService:
    """Dependency for getting TaskService instance."""
    return TaskService(session)


@router.get("", response_model=Dict[str, Any])
async def list_tasks(
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
    status_filter: Optional[str] = Query(None, alias="status", description="inbox, scheduled, completed, canceled"),
    scheduled_on: Optional[date] = Query(None, description="Only tasks scheduled on this date"),
    repeating_rule_id: Optional[str] = Query(None, description="Only live occurrences of this rule"),
):
    """List tasks for the authenticated user."""
    tasks = service.list_for_user(
        current_user.user_id,
        status=status_filter,
        scheduled_on=scheduled_on,
        repeating_rule_id=repeating_rule_id,
    )
    return {
        "tasks": [TaskResponse.model_validate(task) for task in tasks],
        "count": len(tasks)
    }


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Create a new task."""
    return service.create(current_user.user_id, task_data)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Get a specific task by ID."""
    return service.get_by_id(task_id, current_user.user_id)


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    task_data: TaskUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Update a task's fields."""
    return service.update(task_id, current_user.user_id, task_data)


@router.post("/{task_id}/complete", response_model=TaskResponse)
async def complete_task(
    task_id: str,
    body: Optional[TaskComplete] = Body(None),
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Complete a task. Completing a repeating occurrence advances its rule."""
    completed_at = body.completed_at if body else None
    return service.complete(task_id, current_user.user_id, completed_at)
