"""AI deployment API endpoints.

Status changes go through the deployment state machine; invalid
transitions are rejected with 400 and the allowed targets.
"""
import logging
from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...database import get_db
from ...permissions import Action, ResourceType
from ...state_machine import StateTransitionError, get_allowed_transitions
from ..dependencies import require_permission

logger = logging.getLogger("agency-core.ai_deployments")

router = APIRouter(tags=["ai-deployments"])


def deployment_to_response(deployment: models.AIDeployment) -> schemas.AIDeploymentResponse:
    """Convert AIDeployment model to response schema."""
    return schemas.AIDeploymentResponse(
        id=deployment.id,
        model_id=deployment.model_id,
        model_name=deployment.model.name if deployment.model else None,
        project_id=deployment.project_id,
        project_name=deployment.project.name if deployment.project else None,
        endpoint=deployment.endpoint,
        description=deployment.description,
        status=deployment.status,
        allowed_transitions=get_allowed_transitions(deployment.status),
        performance_metrics=deployment.performance_metrics or "",
        deployment_date=deployment.deployment_date,
        updated_at=deployment.updated_at,
    )


@router.post("/", response_model=schemas.AIDeploymentResponse, status_code=201)
def create_ai_deployment(
    data: schemas.AIDeploymentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission(Action.CREATE, ResourceType.AI_DEPLOYMENT)),
):
    """
    Deploy an AI model.

    - **model_id**: Model to deploy (must exist)
    - **project_id**: Project served by the deployment (optional, must exist)
    - **endpoint**: Serving endpoint (optional)
    - **status**: Initial status (default: Active)
    """
    try:
        deployment = crud.create_ai_deployment(db, data)
    except crud.ReferenceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    logger.info(f"{current_user.email} deployed model {deployment.model_id} as {deployment.id}")
    return deployment_to_response(deployment)


@router.get("/", response_model=schemas.AIDeploymentListResponse)
def list_ai_deployments(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    project_id: Optional[str] = Query(None, description="Filter by project"),
    model_id: Optional[str] = Query(None, description="Filter by model"),
    status: Optional[models.DeploymentStatus] = Query(None, description="Filter by status"),
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.LIST, ResourceType.AI_DEPLOYMENT)),
):
    """List AI deployments, newest first. Filters combine."""
    skip = (page - 1) * page_size
    deployments, total = crud.get_ai_deployments(
        db=db,
        skip=skip,
        limit=page_size,
        project_id=project_id,
        model_id=model_id,
        status_filter=status,
    )

    return schemas.AIDeploymentListResponse(
        items=[deployment_to_response(d) for d in deployments],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )


@router.get("/{deployment_id}", response_model=schemas.AIDeploymentResponse)
def get_ai_deployment(
    deployment_id: str,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.READ, ResourceType.AI_DEPLOYMENT)),
):
    """Get an AI deployment by ID."""
    deployment = crud.get_ai_deployment(db, deployment_id)
    if not deployment:
        raise HTTPException(status_code=404, detail=f"AI deployment not found: {deployment_id}")
    return deployment_to_response(deployment)


@router.put("/{deployment_id}", response_model=schemas.AIDeploymentResponse)
@router.patch("/{deployment_id}", response_model=schemas.AIDeploymentResponse)
def update_ai_deployment(
    deployment_id: str,
    update: schemas.AIDeploymentUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.UPDATE, ResourceType.AI_DEPLOYMENT)),
):
    """
    Update an AI deployment.

    Status transitions:
    - Pending -> Active | Failed
    - Active -> Inactive | Failed
    - Inactive -> Active
    - Failed -> Pending
    """
    try:
        deployment = crud.update_ai_deployment(db, deployment_id, update)
    except crud.ReferenceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StateTransitionError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "message": str(e),
                "current_status": e.current_status.value,
                "requested_status": e.requested_status.value,
                "allowed_transitions": [s.value for s in get_allowed_transitions(e.current_status)],
            },
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not deployment:
        raise HTTPException(status_code=404, detail=f"AI deployment not found: {deployment_id}")
    return deployment_to_response(deployment)


@router.delete("/{deployment_id}", status_code=204)
def delete_ai_deployment(
    deployment_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission(Action.DELETE, ResourceType.AI_DEPLOYMENT)),
):
    """Delete an AI deployment."""
    if not crud.delete_ai_deployment(db, deployment_id):
        raise HTTPException(status_code=404, detail=f"AI deployment not found: {deployment_id}")

    logger.info(f"{current_user.email} deleted AI deployment {deployment_id}")
    return Response(status_code=204)
