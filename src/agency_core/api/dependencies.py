"""Request dependencies: session resolution and policy enforcement."""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from .. import crud, models
from ..database import get_db
from ..permissions import Action, ResourceType, PermissionDeniedError, check_permission

logger = logging.getLogger("agency-core.auth")


def get_bearer_token(request: Request) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    header = request.headers.get("Authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user_optional(
    request: Request,
    db: Session = Depends(get_db),
) -> Optional[models.User]:
    """Resolve the session user, or None when there is no valid session."""
    token = get_bearer_token(request)
    if not token:
        return None

    session = crud.get_active_session(db, token)
    if not session:
        logger.debug("Rejected unknown, expired or revoked session token")
        return None
    return session.user


def get_current_user(
    current_user: Optional[models.User] = Depends(get_current_user_optional),
) -> models.User:
    """Require an authenticated user."""
    if not current_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current_user


def require_permission(action: Action, resource: ResourceType):
    """
    Build a dependency that enforces the access policy for one route.

    Returns the authenticated user so handlers can use it directly.
    """

    def dependency(current_user: models.User = Depends(get_current_user)) -> models.User:
        try:
            check_permission(current_user.role_names, action, resource)
        except PermissionDeniedError as e:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
        return current_user

    return dependency
