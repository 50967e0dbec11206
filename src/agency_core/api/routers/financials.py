"""Financial records API endpoints (Manager and above)."""
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

logger = logging.getLogger("agency-core.financials")

router = APIRouter(tags=["financials"])


def _record_to_response(record: models.FinancialRecord) -> schemas.FinancialRecordResponse:
    """Convert FinancialRecord model to response schema."""
    return schemas.FinancialRecordResponse(
        id=record.id,
        project_id=record.project_id,
        project_name=record.project.name if record.project else None,
        client_id=record.client_id,
        client_name=record.client.name if record.client else None,
        type=record.type,
        amount=record.amount,
        description=record.description,
        date=record.date,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


@router.post("/", response_model=schemas.FinancialRecordResponse, status_code=201)
def create_financial_record(
    data: schemas.FinancialRecordCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission(Action.CREATE, ResourceType.FINANCIAL_RECORD)),
):
    """
    Record revenue or an expense.

    - **type**: Revenue or Expense
    - **amount**: Positive amount with at most two decimals
    - **date**: Booking date
    - **project_id** / **client_id**: Optional references (must exist when given)
    """
    try:
        record = crud.create_financial_record(db, data)
    except crud.ReferenceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    logger.info(f"{current_user.email} recorded {record.type.value} of {record.amount} (ID: {record.id})")
    return _record_to_response(record)


@router.get("/", response_model=schemas.FinancialRecordListResponse)
def list_financial_records(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    project_id: Optional[str] = Query(None, description="Filter by project"),
    client_id: Optional[str] = Query(None, description="Filter by client"),
    type: Optional[models.FinancialRecordType] = Query(None, description="Filter by Revenue/Expense"),
    date_from: Optional[date] = Query(None, description="Earliest booking date (inclusive)"),
    date_to: Optional[date] = Query(None, description="Latest booking date (inclusive)"),
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.LIST, ResourceType.FINANCIAL_RECORD)),
):
    """List financial records, most recent first."""
    if date_from and date_to and date_to < date_from:
        raise HTTPException(status_code=400, detail="date_to must be on or after date_from")

    skip = (page - 1) * page_size
    records, total = crud.get_financial_records(
        db=db,
        skip=skip,
        limit=page_size,
        project_id=project_id,
        client_id=client_id,
        record_type=type,
        date_from=date_from,
        date_to=date_to,
    )

    return schemas.FinancialRecordListResponse(
        items=[_record_to_response(r) for r in records],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=ceil(total / page_size) if total > 0 else 0,
    )


@router.get("/{record_id}", response_model=schemas.FinancialRecordResponse)
def get_financial_record(
    record_id: str,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.READ, ResourceType.FINANCIAL_RECORD)),
):
    """Get a financial record by ID."""
    record = crud.get_financial_record(db, record_id)
    if not record:
        raise HTTPException(status_code=404, detail=f"Financial record not found: {record_id}")
    return _record_to_response(record)


@router.put("/{record_id}", response_model=schemas.FinancialRecordResponse)
@router.patch("/{record_id}", response_model=schemas.FinancialRecordResponse)
def update_financial_record(
    record_id: str,
    update: schemas.FinancialRecordUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_permission(Action.UPDATE, ResourceType.FINANCIAL_RECORD)),
):
    """Update a financial record. Only the fields sent are changed."""
    try:
        record = crud.update_financial_record(db, record_id, update)
    except crud.ReferenceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not record:
        raise HTTPException(status_code=404, detail=f"Financial record not found: {record_id}")
    return _record_to_response(record)


@router.delete("/{record_id}", status_code=204)
def delete_financial_record(
    record_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission(Action.DELETE, ResourceType.FINANCIAL_RECORD)),
):
    """Delete a financial record."""
    if not crud.delete_financial_record(db, record_id):
        raise HTTPException(status_code=404, detail=f"Financial record not found: {record_id}")

    logger.info(f"{current_user.email} deleted financial record {record_id}")
    return Response(status_code=204)
