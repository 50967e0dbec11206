"""Resources (allocatable staff) API endpoints."""
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

logger = logging.getLogger("agency-core.resources")

router = APIRouter(tags=["resources"])


def _resource_to_response(db: Session, resource: models.Resource) -> schemas.ResourceResponse:
    """Convert Resource model to response schema with today's allocation."""
    return schemas.ResourceResponse(
        id=resource.id,
        user_id=resource.user_id,
        user_name=resource.user.name if resource.user else None,
        skill_set=resource.skill_set,
        availability=resource.availability,
        allocated_percentage=crud.get_resource_load(db, resource.id, date.today()),
        created_at=resource.created_at,
        updated_at=resource.updated_at,
    )


@router.post("/", response_model=schemas.ResourceResponse, status_code=201)
def create_resource(
    data: schemas.ResourceCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission(Action.CREATE, ResourceType.RESOURCE)),
):
    """
    Register a user as an allocatable resource.

    - **user_id**: Existing user
    - **skill_set**: Free-text skills (optional)
    - **availability**: Available, Partially Available or Unavailable
    """
    try:
        resource = crud.create_resource(db, data)
    except crud.ReferenceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    logger.info(f"{current_user.email} created resource {resource.id}")
    return _resource_to_response(db, resource)


@router.get("/", response_model=schemas.ResourceListResponse)
def list_resources(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    availability: Optional[models.Availability] = Query(None, description="Filter by availability"),
    search: Optional[str] = Query(None, description="Search in skill set"),
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.LIST, ResourceType.RESOURCE)),
):
    """List resources with optional filtering and pagination."""
    skip = (page - 1) * page_size
    resources, total = crud.get_resources(
        db=db,
        skip=skip,
        limit=page_size,
        availability=availability,
        search=search,
    )

    return schemas.ResourceListResponse(
        items=[_resource_to_response(db, r) for r in resources],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )


@router.get("/{resource_id}", response_model=schemas.ResourceResponse)
def get_resource(
    resource_id: str,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.READ, ResourceType.RESOURCE)),
):
    """Get a resource by ID."""
    resource = crud.get_resource(db, resource_id)
    if not resource:
        raise HTTPException(status_code=404, detail=f"Resource not found: {resource_id}")
    return _resource_to_response(db, resource)


@router.put("/{resource_id}", response_model=schemas.ResourceResponse)
@router.patch("/{resource_id}", response_model=schemas.ResourceResponse)
def update_resource(
    resource_id: str,
    update: schemas.ResourceUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.UPDATE, ResourceType.RESOURCE)),
):
    """Update a resource's skills or availability."""
    try:
        resource = crud.update_resource(db, resource_id, update)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not resource:
        raise HTTPException(status_code=404, detail=f"Resource not found: {resource_id}")
    return _resource_to_response(db, resource)


@router.delete("/{resource_id}", status_code=204)
def delete_resource(
    resource_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission(Action.DELETE, ResourceType.RESOURCE)),
):
    """Delete a resource and its allocations."""
    if not crud.delete_resource(db, resource_id):
        raise HTTPException(status_code=404, detail=f"Resource not found: {resource_id}")

    logger.info(f"{current_user.email} deleted resource {resource_id}")
    return Response(status_code=204)
