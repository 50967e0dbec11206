"""Resource allocation API endpoints."""
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

logger = logging.getLogger("agency-core.resource_allocations")

router = APIRouter(tags=["resource-allocations"])


def _allocation_to_response(allocation: models.ResourceAllocation) -> schemas.ResourceAllocationResponse:
    """Convert ResourceAllocation model to response schema."""
    resource_name = None
    if allocation.resource and allocation.resource.user:
        resource_name = allocation.resource.user.name

    return schemas.ResourceAllocationResponse(
        id=allocation.id,
        resource_id=allocation.resource_id,
        resource_name=resource_name,
        project_id=allocation.project_id,
        project_name=allocation.project.name if allocation.project else None,
        allocation_percentage=allocation.allocation_percentage,
        start_date=allocation.start_date,
        end_date=allocation.end_date,
        created_at=allocation.created_at,
        updated_at=allocation.updated_at,
    )


@router.post("/", response_model=schemas.ResourceAllocationResponse, status_code=201)
def create_allocation(
    data: schemas.ResourceAllocationCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.CREATE, ResourceType.RESOURCE_ALLOCATION)),
):
    """
    Allocate a resource to a project.

    - **allocation_percentage**: 1-100
    - **start_date** / **end_date**: Period (end optional, open-ended when omitted)

    A resource's overlapping allocations may not exceed 100% in total.
    """
    try:
        allocation = crud.create_allocation(db, data)
    except crud.ReferenceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _allocation_to_response(allocation)


@router.get("/", response_model=schemas.ResourceAllocationListResponse)
def list_allocations(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    resource_id: Optional[str] = Query(None, description="Filter by resource"),
    project_id: Optional[str] = Query(None, description="Filter by project"),
    active_on: Optional[date] = Query(None, description="Only allocations covering this day"),
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.LIST, ResourceType.RESOURCE_ALLOCATION)),
):
    """List allocations, latest start first."""
    skip = (page - 1) * page_size
    allocations, total = crud.get_allocations(
        db=db,
        skip=skip,
        limit=page_size,
        resource_id=resource_id,
        project_id=project_id,
        active_on=active_on,
    )

    return schemas.ResourceAllocationListResponse(
        items=[_allocation_to_response(a) for a in allocations],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )


@router.get("/{allocation_id}", response_model=schemas.ResourceAllocationResponse)
def get_allocation(
    allocation_id: str,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.READ, ResourceType.RESOURCE_ALLOCATION)),
):
    """Get an allocation by ID."""
    allocation = crud.get_allocation(db, allocation_id)
    if not allocation:
        raise HTTPException(status_code=404, detail=f"Allocation not found: {allocation_id}")
    return _allocation_to_response(allocation)


@router.put("/{allocation_id}", response_model=schemas.ResourceAllocationResponse)
@router.patch("/{allocation_id}", response_model=schemas.ResourceAllocationResponse)
def update_allocation(
    allocation_id: str,
    update: schemas.ResourceAllocationUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.UPDATE, ResourceType.RESOURCE_ALLOCATION)),
):
    """
    Change an allocation's percentage or period.

    Send ``end_date: null`` to make the allocation open-ended.
    """
    try:
        allocation = crud.update_allocation(db, allocation_id, update)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not allocation:
        raise HTTPException(status_code=404, detail=f"Allocation not found: {allocation_id}")
    return _allocation_to_response(allocation)


@router.delete("/{allocation_id}", status_code=204)
def delete_allocation(
    allocation_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission(Action.DELETE, ResourceType.RESOURCE_ALLOCATION)),
):
    """Delete an allocation."""
    if not crud.delete_allocation(db, allocation_id):
        raise HTTPException(status_code=404, detail=f"Allocation not found: {allocation_id}")

    logger.info(f"{current_user.email} deleted allocation {allocation_id}")
    return Response(status_code=204)
