"""Dashboard API endpoints."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...database import get_db
from ...permissions import Action, ResourceType, is_allowed
from ..dependencies import require_permission

logger = logging.getLogger("agency-core.dashboard")

router = APIRouter(tags=["dashboard"])


@router.get("/summary", response_model=schemas.DashboardSummary)
def get_summary(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_permission(Action.READ, ResourceType.DASHBOARD)),
):
    """
    Agency overview.

    - Client counts (total and active)
    - Projects and AI deployments by status
    - Revenue, expenses and profit per month (empty unless the caller may list financial records)
    - Each resource's allocation today
    """
    include_financials = is_allowed(current_user.role_names, Action.LIST, ResourceType.FINANCIAL_RECORD)
    return crud.get_dashboard_summary(db, include_financials=include_financials)
