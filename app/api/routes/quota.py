"""
Quota ledger endpoints.

Provides the caller's plan and remaining quota, and a metered spend endpoint.
"""
import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.models.user import User
from app.core.auth_dependency import get_current_user_obj
from app.schemas.quota import ConsumeQuotaRequest, ConsumeQuotaResponse, PlanDetailsResponse
from app.services.quota_service import check_and_decrement, get_user_plan_details

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quota", tags=["Quota"])


@router.get("/me", response_model=PlanDetailsResponse, status_code=status.HTTP_200_OK)
def get_my_quota(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """
    Current plan and remaining quota for the authenticated user.

    Users without a ledger row are put on the default plan first.
    """
    details = get_user_plan_details(db, user.id)
    logger.debug(f"Quota summary requested: user_id={user.id}, plan={details['plan_name']}")
    return details


@router.post("/consume", response_model=ConsumeQuotaResponse)
def consume_quota(
    payload: ConsumeQuotaRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """Spend one unit; 429 with a structured detail when nothing is left."""
    usage = check_and_decrement(
        db,
        user.id,
        payload.feature,
        related_resource_type=payload.related_resource_type,
        related_resource_id=payload.related_resource_id,
    )
    return {
        "feature": usage.feature,
        "source": usage.source,
        "subscription_quota": usage.subscription_quota,
        "permanent_quota": usage.permanent_quota,
    }
