"""Authentication API endpoints: registration, login, sessions and permissions."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...config import get_settings
from ...database import get_db
from ...permissions import (
    allowed_actions,
    evaluate_gate,
    highest_role_level,
    policy_table,
)
from ..dependencies import get_bearer_token, get_current_user, get_current_user_optional

logger = logging.getLogger("agency-core.auth")

router = APIRouter(tags=["auth"])


def user_to_response(user: models.User) -> schemas.UserResponse:
    """Convert User model to UserResponse schema."""
    return schemas.UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        is_active=user.is_active,
        roles=user.role_names,
        role_level=highest_role_level(user.role_names),
        created_at=user.created_at,
    )


@router.post("/register", response_model=schemas.UserResponse, status_code=201)
def register(
    data: schemas.UserRegister,
    db: Session = Depends(get_db),
):
    """
    Register a new account with the default User role.

    - **name**: Display name
    - **email**: Email address (must be unused)
    - **password**: At least 8 characters
    """
    try:
        user = crud.create_user(db, name=data.name, email=data.email, password=data.password)
    except crud.DuplicateRecordError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Registered user {user.email}")
    return user_to_response(user)


@router.post("/login", response_model=schemas.LoginResponse)
def login(
    credentials: schemas.LoginRequest,
    db: Session = Depends(get_db),
):
    """
    Exchange email and password for a bearer session token.

    The token is returned once; send it as ``Authorization: Bearer <token>``.
    """
    user = crud.authenticate_user(db, credentials.email, credentials.password)
    if not user:
        logger.warning(f"Failed login for {credentials.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token, session = crud.create_session(db, user, get_settings().session_ttl_hours)
    return schemas.LoginResponse(
        access_token=token,
        expires_at=session.expires_at,
        user=user_to_response(user),
    )


@router.post("/logout", status_code=204)
def logout(
    request: Request,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Revoke the session used for this request."""
    crud.revoke_session(db, get_bearer_token(request))
    logger.info(f"User {current_user.email} logged out")
    return Response(status_code=204)


@router.get("/me", response_model=schemas.UserResponse)
def me(current_user: models.User = Depends(get_current_user)):
    """Get the authenticated user with roles and role level."""
    return user_to_response(current_user)


@router.get("/permissions", response_model=schemas.PermissionsResponse)
def permissions(current_user: models.User = Depends(get_current_user)):
    """
    Get the caller's effective permissions and the full policy table.

    Clients use the policy table to hide controls the server would reject.
    """
    return schemas.PermissionsResponse(
        roles=current_user.role_names,
        role_level=highest_role_level(current_user.role_names),
        allowed=allowed_actions(current_user.role_names),
        policy=policy_table(),
    )


@router.get("/gate", response_model=schemas.GateResponse)
def gate(
    required_role: models.RoleName = Query(models.RoleName.USER, description="Minimum role for the route"),
    current_user: Optional[models.User] = Depends(get_current_user_optional),
):
    """
    Decide whether the caller may enter a role-gated route.

    Unauthenticated callers are sent to the login path, under-privileged
    callers to the unauthorized path.
    """
    settings = get_settings()
    result = evaluate_gate(
        current_user.role_names if current_user else None,
        required_role=required_role,
        login_path=settings.login_path,
        unauthorized_path=settings.unauthorized_path,
    )
    return schemas.GateResponse(
        decision=result.decision.value,
        redirect_to=result.redirect_to,
        user_level=result.user_level,
        required_level=result.required_level,
    )
