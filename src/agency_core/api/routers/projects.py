"""Projects API endpoints."""
import logging
from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...database import get_db
from ...permissions import Action, ResourceType
from ..dependencies import require_permission

logger = logging.getLogger("agency-core.projects")

router = APIRouter(tags=["projects"])


def _project_to_response(project: models.Project) -> schemas.ProjectResponse:
    """Convert Project model to ProjectResponse schema."""
    return schemas.ProjectResponse(
        id=project.id,
        client_id=project.client_id,
        client_name=project.client.name if project.client else None,
        name=project.name,
        description=project.description,
        start_date=project.start_date,
        end_date=project.end_date,
        status=project.status,
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


@router.post("/", response_model=schemas.ProjectResponse, status_code=201)
def create_project(
    project: schemas.ProjectCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission(Action.CREATE, ResourceType.PROJECT)),
):
    """
    Create a new project for a client.

    - **client_id**: Owning client (must exist)
    - **name**: Project name
    - **description**: Optional description
    - **start_date** / **end_date**: Optional; end must not precede start
    - **status**: Project status (default: Planning)
    """
    try:
        result = crud.create_project(db, project)
    except crud.ReferenceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    logger.info(f"{current_user.email} created project '{result.name}' (ID: {result.id})")
    return _project_to_response(result)


@router.get("/", response_model=schemas.ProjectListResponse)
def list_projects(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    client_id: Optional[str] = Query(None, description="Filter by client"),
    status: Optional[models.ProjectStatus] = Query(None, description="Filter by status"),
    search: Optional[str] = Query(None, description="Search in name and description"),
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.LIST, ResourceType.PROJECT)),
):
    """
    List projects with optional filtering and pagination.

    - **page**: Page number (starts at 1)
    - **page_size**: Number of items per page (1-100)
    - **client_id**: Filter by client
    - **status**: Filter by project status
    - **search**: Search text in name and description
    """
    skip = (page - 1) * page_size
    projects, total = crud.get_projects(
        db=db,
        skip=skip,
        limit=page_size,
        client_id=client_id,
        status_filter=status,
        search=search,
    )

    return schemas.ProjectListResponse(
        items=[_project_to_response(p) for p in projects],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )


@router.get("/{project_id}", response_model=schemas.ProjectResponse)
def get_project(
    project_id: str,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.READ, ResourceType.PROJECT)),
):
    """Get a specific project by ID."""
    project = crud.get_project(db, project_id)
    if not project:
        raise HTTPException(status_code=404, detail=f"Project not found: {project_id}")
    return _project_to_response(project)


@router.put("/{project_id}", response_model=schemas.ProjectResponse)
@router.patch("/{project_id}", response_model=schemas.ProjectResponse)
def update_project(
    project_id: str,
    project_update: schemas.ProjectUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.UPDATE, ResourceType.PROJECT)),
):
    """
    Update a project. Only the fields sent are changed.

    - **client_id**: Move to another client (must exist)
    - **start_date** / **end_date**: End must not precede start
    """
    try:
        project = crud.update_project(db, project_id, project_update)
    except crud.ReferenceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not project:
        raise HTTPException(status_code=404, detail=f"Project not found: {project_id}")
    return _project_to_response(project)


@router.delete("/{project_id}", status_code=204)
def delete_project(
    project_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission(Action.DELETE, ResourceType.PROJECT)),
):
    """
    Delete a project.

    Tasks and resource allocations are deleted with it; financial records
    and AI deployments are kept and detached.
    """
    if not crud.delete_project(db, project_id):
        raise HTTPException(status_code=404, detail=f"Project not found: {project_id}")

    logger.info(f"{current_user.email} deleted project {project_id}")
    return Response(status_code=204)
