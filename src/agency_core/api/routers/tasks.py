"""Tasks API endpoints."""
import logging
from datetime import date
from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...database import get_db
from ...permissions import Action, ResourceType
from ..dependencies import require_permission

logger = logging.getLogger("agency-core.tasks")

router = APIRouter(tags=["tasks"])


def _task_to_response(task: models.Task) -> schemas.TaskResponse:
    """Convert Task model to TaskResponse schema."""
    is_overdue = (
        task.due_date is not None
        and task.due_date < date.today()
        and task.status != models.TaskStatus.DONE
    )
    return schemas.TaskResponse(
        id=task.id,
        project_id=task.project_id,
        project_name=task.project.name if task.project else None,
        title=task.title,
        description=task.description,
        status=task.status,
        priority=task.priority,
        assigned_to_id=task.assigned_to_id,
        assigned_to_name=task.assigned_to.name if task.assigned_to else None,
        due_date=task.due_date,
        is_overdue=is_overdue,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


@router.post("/", response_model=schemas.TaskResponse, status_code=201)
def create_task(
    task_data: schemas.TaskCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.CREATE, ResourceType.TASK)),
):
    """
    Create a new task.

    - **project_id**: Project the task belongs to (must exist)
    - **title**: Task title
    - **description**: Task description (optional)
    - **status**: To Do, In Progress or Done (default: To Do)
    - **priority**: Low, Medium or High (default: Medium)
    - **assigned_to_id**: Assignee user ID (optional, must exist)
    - **due_date**: Due date (optional)
    """
    try:
        task = crud.create_task(db, task_data)
    except crud.ReferenceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _task_to_response(task)


@router.get("/", response_model=schemas.TaskListResponse)
def list_tasks(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    project_id: Optional[str] = Query(None, description="Filter by project"),
    assigned_to_id: Optional[str] = Query(None, description="Filter by assignee"),
    status: Optional[models.TaskStatus] = Query(None, description="Filter by status"),
    priority: Optional[models.TaskPriority] = Query(None, description="Filter by priority"),
    overdue_only: bool = Query(False, description="Only return overdue tasks"),
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.LIST, ResourceType.TASK)),
):
    """
    List tasks with filtering and pagination.

    Tasks are ordered by due date (earliest first, undated last), then newest first.
    """
    skip = (page - 1) * page_size
    tasks, total = crud.get_tasks(
        db=db,
        skip=skip,
        limit=page_size,
        project_id=project_id,
        assigned_to_id=assigned_to_id,
        status=status,
        priority=priority,
        overdue_only=overdue_only,
    )

    return schemas.TaskListResponse(
        items=[_task_to_response(t) for t in tasks],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )


@router.get("/{task_id}", response_model=schemas.TaskResponse)
def get_task(
    task_id: str,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.READ, ResourceType.TASK)),
):
    """Get a specific task by ID."""
    task = crud.get_task(db, task_id)
    if not task:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return _task_to_response(task)


@router.put("/{task_id}", response_model=schemas.TaskResponse)
@router.patch("/{task_id}", response_model=schemas.TaskResponse)
def update_task(
    task_id: str,
    task_update: schemas.TaskUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.UPDATE, ResourceType.TASK)),
):
    """
    Update a task. Only the fields sent are changed.

    Send ``assigned_to_id: null`` to unassign.
    """
    try:
        task = crud.update_task(db, task_id, task_update)
    except crud.ReferenceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not task:
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")
    return _task_to_response(task)


@router.delete("/{task_id}", status_code=204)
def delete_task(
    task_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission(Action.DELETE, ResourceType.TASK)),
):
    """Delete a task."""
    if not crud.delete_task(db, task_id):
        raise HTTPException(status_code=404, detail=f"Task not found: {task_id}")

    logger.info(f"{current_user.email} deleted task {task_id}")
    return Response(status_code=204)
