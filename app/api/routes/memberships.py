"""
Membership endpoints for signed-in users: tiers, status, AI quota and orders.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.models.user import User
from app.core.auth_dependency import get_current_user_obj
from app.core.exceptions import QuotaExhausted
from app.schemas.membership import (
    ConsumeAIQuotaRequest,
    ConsumeAIQuotaResponse,
    MembershipResponse,
    MembershipStatusResponse,
    OrderActivateRequest,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    QuotaCheckResponse,
    TierResponse,
)
from app.services import membership_service, order_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/memberships", tags=["Memberships"])


@router.get("/tiers", response_model=List[TierResponse])
def list_tiers(db: Session = Depends(get_db)):
    return membership_service.list_active_tiers(db)


@router.get("/status", response_model=MembershipStatusResponse)
def membership_status(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """Current membership and AI quota; a free membership is created on first call."""
    return membership_service.get_membership_status(db, user.id)


@router.post("/check-quota", response_model=QuotaCheckResponse)
def check_quota(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """
    Whether one more AI action is allowed. Nothing is spent.

    An exhausted quota is an answer here, not an error; an expired
    membership still answers 402.
    """
    try:
        check = membership_service.validate_ai_quota(db, user.id)
    except QuotaExhausted:
        return QuotaCheckResponse(has_quota=False, remaining_quota=0)
    return QuotaCheckResponse(has_quota=check.has_quota, remaining_quota=check.remaining_quota)


@router.post("/consume", response_model=ConsumeAIQuotaResponse)
def consume_quota(
    payload: ConsumeAIQuotaRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    usage = membership_service.consume_ai_quota(
        db,
        user.id,
        usage_type=payload.usage_type,
        resume_id=payload.resume_id,
        job_id=payload.job_id,
    )
    return ConsumeAIQuotaResponse(
        remaining_quota=usage.remaining_quota,
        total_quota=usage.total_quota,
        usage_type=usage.usage_type,
    )


@router.post("/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreateRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    return order_service.create_order(db, user.id, payload.membership_tier_id, payload.payment_method)


@router.get("/orders", response_model=OrderListResponse)
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    return order_service.list_user_orders(db, user.id, page, limit)


@router.post("/orders/{order_id}/activate", response_model=MembershipResponse)
def activate_order(
    order_id: int,
    payload: Optional[OrderActivateRequest] = None,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """Mark a pending order paid and switch the caller to its tier. 409 if already activated."""
    transaction_id = payload.transaction_id if payload else None
    return order_service.activate_order(db, order_id, user.id, transaction_id=transaction_id)
