"""User and role administration endpoints (Admin only)."""
import logging
from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...database import get_db
from ...permissions import Action, ResourceType
from ..dependencies import require_permission
from .auth import user_to_response

logger = logging.getLogger("agency-core.users")

router = APIRouter(tags=["users"])


@router.get("/users", response_model=schemas.UserListResponse)
def list_users(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    search: Optional[str] = Query(None, description="Search in name and email"),
    role: Optional[models.RoleName] = Query(None, description="Filter by role"),
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.LIST, ResourceType.USER)),
):
    """
    List users with optional search and pagination.

    - **search**: Case-insensitive match on name or email
    - **role**: Only users holding this role
    """
    skip = (page - 1) * page_size
    users, total = crud.list_users(db, skip=skip, limit=page_size, search=search, role=role)

    return schemas.UserListResponse(
        items=[user_to_response(u) for u in users],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )


@router.get("/users/{user_id}", response_model=schemas.UserResponse)
def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.READ, ResourceType.USER)),
):
    """Get a user by ID."""
    user = crud.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail=f"User not found: {user_id}")
    return user_to_response(user)


@router.post("/users", response_model=schemas.UserResponse, status_code=201)
def create_user(
    data: schemas.UserCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission(Action.CREATE, ResourceType.USER)),
):
    """
    Create a user with explicit roles.

    - **roles**: One or more of Admin, Manager, Client, User
    """
    try:
        user = crud.create_user(
            db,
            name=data.name,
            email=data.email,
            password=data.password,
            roles=data.roles,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"{current_user.email} created user {user.email} with roles {user.role_names}")
    return user_to_response(user)


@router.patch("/users/{user_id}", response_model=schemas.UserResponse)
def update_user(
    user_id: str,
    update: schemas.UserUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.UPDATE, ResourceType.USER)),
):
    """
    Update a user's name or activation.

    Deactivating a user revokes their sessions.
    """
    try:
        user = crud.update_user(db, user_id, update)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not user:
        raise HTTPException(status_code=404, detail=f"User not found: {user_id}")
    return user_to_response(user)


@router.put("/users/{user_id}/roles", response_model=schemas.UserResponse)
def set_user_roles(
    user_id: str,
    data: schemas.UserRolesUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission(Action.UPDATE, ResourceType.USER)),
):
    """Replace a user's role set. At least one role is required."""
    try:
        user = crud.set_user_roles(db, user_id, data.roles)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not user:
        raise HTTPException(status_code=404, detail=f"User not found: {user_id}")

    logger.info(f"{current_user.email} set roles of {user.email} to {user.role_names}")
    return user_to_response(user)


@router.get("/roles", response_model=list[schemas.RoleResponse])
def list_roles(
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.LIST, ResourceType.USER)),
):
    """List the built-in roles."""
    return crud.get_roles(db)
