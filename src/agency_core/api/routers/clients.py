"""Clients API endpoints."""
import logging
from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...database import get_db
from ...permissions import Action, ResourceType
from ..dependencies import require_permission

logger = logging.getLogger("agency-core.clients")

router = APIRouter(tags=["clients"])


@router.post("/", response_model=schemas.ClientResponse, status_code=201)
def create_client(
    client: schemas.ClientCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission(Action.CREATE, ResourceType.CLIENT)),
):
    """
    Create a new client.

    - **name**: Client name
    - **contact_email**: Contact email (optional)
    - **contact_phone**: Contact phone (optional)
    - **address**: Postal address (optional)
    - **status**: Active or Inactive (default: Active)
    """
    result = crud.create_client(db, client)
    logger.info(f"{current_user.email} created client '{result.name}' (ID: {result.id})")
    return result


@router.get("/", response_model=schemas.ClientListResponse)
def list_clients(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    status: Optional[models.ClientStatus] = Query(None, description="Filter by status"),
    search: Optional[str] = Query(None, description="Search in name and contact email"),
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.LIST, ResourceType.CLIENT)),
):
    """List clients with optional filtering and pagination."""
    skip = (page - 1) * page_size
    clients, total = crud.get_clients(
        db=db,
        skip=skip,
        limit=page_size,
        status_filter=status,
        search=search,
    )

    return schemas.ClientListResponse(
        items=clients,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )


@router.get("/{client_id}", response_model=schemas.ClientResponse)
def get_client(
    client_id: str,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.READ, ResourceType.CLIENT)),
):
    """Get a specific client by ID."""
    client = crud.get_client(db, client_id)
    if not client:
        raise HTTPException(status_code=404, detail=f"Client not found: {client_id}")
    return client


@router.put("/{client_id}", response_model=schemas.ClientResponse)
@router.patch("/{client_id}", response_model=schemas.ClientResponse)
def update_client(
    client_id: str,
    client_update: schemas.ClientUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.UPDATE, ResourceType.CLIENT)),
):
    """
    Update a client. Only the fields sent are changed.
    """
    try:
        client = crud.update_client(db, client_id, client_update)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not client:
        raise HTTPException(status_code=404, detail=f"Client not found: {client_id}")
    return client


@router.delete("/{client_id}", status_code=204)
def delete_client(
    client_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission(Action.DELETE, ResourceType.CLIENT)),
):
    """
    Delete a client.

    The client's projects (with their tasks and allocations) are deleted too.
    """
    if not crud.delete_client(db, client_id):
        raise HTTPException(status_code=404, detail=f"Client not found: {client_id}")

    logger.info(f"{current_user.email} deleted client {client_id}")
    return Response(status_code=204)
