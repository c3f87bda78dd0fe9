"""
Membership orders.

Orders are created ``pending`` and move to ``paid`` exactly once. Activation
locks the order row, so two concurrent activations cannot both supersede the
user's membership.
"""
import logging
import secrets
import string
import time
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.dates import as_naive_utc, utcnow
from app.core.exceptions import OrderAlreadyActivated, OrderNotFound, TierNotFound
from app.core.pagination import paginate
from app.db.models.membership_order import MembershipOrder
from app.db.models.user_membership import UserMembership
from app.services import membership_service

logger = logging.getLogger(__name__)

ORDER_PREFIX = "MB"
_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number() -> str:
    """``MB`` + epoch milliseconds + 6 random uppercase characters."""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(6))
    return f"{ORDER_PREFIX}{int(time.time() * 1000)}{suffix}"


def create_order(db: Session, user_id: int, tier_id: int, payment_method: str = "alipay") -> MembershipOrder:
    tier = membership_service.get_tier(db, tier_id)
    if not tier.is_active:
        raise TierNotFound("Membership tier is not available", tier_id=tier_id)

    original = Decimal(tier.original_price or 0)
    final = Decimal(tier.reduction_price) if tier.reduction_price is not None else original

    order = MembershipOrder(
        order_number=generate_order_number(),
        user_id=user_id,
        membership_tier_id=tier.id,
        original_amount=original,
        discount_amount=original - final,
        final_amount=final,
        status="pending",
        payment_method=payment_method,
    )
    try:
        db.add(order)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(order)
    logger.info(
        f"Membership order created: order_number={order.order_number}, user_id={user_id}, "
        f"tier_id={tier.id}, final_amount={order.final_amount}"
    )
    return order


def list_user_orders(db: Session, user_id: int, page: int = 1, limit: int = 10) -> Dict[str, Any]:
    query = (
        db.query(MembershipOrder)
        .filter(MembershipOrder.user_id == user_id)
        .order_by(MembershipOrder.created_at.desc(), MembershipOrder.id.desc())
    )
    return paginate(query, page, limit)


def activate_order(
    db: Session,
    order_id: int,
    user_id: int,
    transaction_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> UserMembership:
    """
    Mark a pending order paid and activate its membership, in one transaction.

    Anything but a ``pending`` order raises OrderAlreadyActivated and
    writes nothing.
    """
    now = as_naive_utc(now) or utcnow()
    try:
        membership_service.lock_user(db, user_id)
        order = (
            db.query(MembershipOrder)
            .filter(MembershipOrder.id == order_id, MembershipOrder.user_id == user_id)
            .with_for_update(of=MembershipOrder)
            .populate_existing()
            .first()
        )
        if not order:
            raise OrderNotFound(order_id=order_id)
        if order.status != "pending":
            raise OrderAlreadyActivated(order_id=order_id, status=order.status)

        order.status = "paid"
        order.payment_transaction_id = transaction_id or f"MOCK_{int(time.time() * 1000)}"
        order.paid_at = now

        membership = membership_service.activate_membership(
            db,
            user_id,
            order.membership_tier_id,
            payment_method=order.payment_method,
            paid_amount=order.final_amount,
            admin_notes=f"Activated from order {order.order_number}",
            commit=False,
            now=now,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(membership)
    logger.info(
        f"Order activated: order_id={order_id}, user_id={user_id}, membership_id={membership.id}"
    )
    return membership
