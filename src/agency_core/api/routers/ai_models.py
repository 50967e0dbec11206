"""AI model catalogue API endpoints."""
import logging
from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...database import get_db
from ...permissions import Action, ResourceType
from ..dependencies import require_permission

logger = logging.getLogger("agency-core.ai_models")

router = APIRouter(tags=["ai-models"])


@router.post("/", response_model=schemas.AIModelResponse, status_code=201)
def create_ai_model(
    data: schemas.AIModelCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.CREATE, ResourceType.AI_MODEL)),
):
    """
    Add a model to the catalogue.

    - **name**: Model name
    - **type** / **provider** / **capabilities**: Descriptive fields (optional)
    - **version**: Version label (default: 1.0)
    - **status**: Active or Inactive (default: Active)
    """
    return crud.create_ai_model(db, data)


@router.get("/", response_model=schemas.AIModelListResponse)
def list_ai_models(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    status: Optional[models.ModelStatus] = Query(None, description="Filter by status"),
    provider: Optional[str] = Query(None, description="Filter by provider (case-insensitive)"),
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.LIST, ResourceType.AI_MODEL)),
):
    """List AI models, newest first."""
    skip = (page - 1) * page_size
    ai_models, total = crud.get_ai_models(
        db=db,
        skip=skip,
        limit=page_size,
        status_filter=status,
        provider=provider,
    )

    return schemas.AIModelListResponse(
        items=ai_models,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )


@router.get("/{model_id}", response_model=schemas.AIModelResponse)
def get_ai_model(
    model_id: str,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.READ, ResourceType.AI_MODEL)),
):
    """Get an AI model by ID."""
    ai_model = crud.get_ai_model(db, model_id)
    if not ai_model:
        raise HTTPException(status_code=404, detail=f"AI model not found: {model_id}")
    return ai_model


@router.put("/{model_id}", response_model=schemas.AIModelResponse)
@router.patch("/{model_id}", response_model=schemas.AIModelResponse)
def update_ai_model(
    model_id: str,
    update: schemas.AIModelUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.UPDATE, ResourceType.AI_MODEL)),
):
    """Update an AI model. Only the fields sent are changed."""
    try:
        ai_model = crud.update_ai_model(db, model_id, update)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not ai_model:
        raise HTTPException(status_code=404, detail=f"AI model not found: {model_id}")
    return ai_model


@router.delete("/{model_id}", status_code=204)
def delete_ai_model(
    model_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission(Action.DELETE, ResourceType.AI_MODEL)),
):
    """Delete an AI model together with its deployments."""
    if not crud.delete_ai_model(db, model_id):
        raise HTTPException(status_code=404, detail=f"AI model not found: {model_id}")

    logger.info(f"{current_user.email} deleted AI model {model_id}")
    return Response(status_code=204)
