"""
Membership lifecycle service.

A user holds at most one ``active`` membership row. Activating a new
membership expires the previous active row and inserts a fresh one, so
history is never rewritten. Each membership carries a monthly AI quota
(``remaining_ai_quota``) that is refilled lazily once ``quota_reset_date``
has passed.

Every per-user write path starts with lock_user(), which serializes membership
changes for one user even when they have no membership row yet. Decrements
are additionally guarded by ``remaining_ai_quota > 0``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.config import FREE_TIER_NAME
from app.core.dates import add_days, as_naive_utc, first_of_next_month, utcnow
from app.core.exceptions import (
    ConfigurationError,
    MembershipExpired,
    MembershipNotFound,
    QuotaExhausted,
    TierInUse,
    TierNotFound,
    UserNotFound,
    ValidationError,
)
from app.core.features import TEMPLATE_ACCESS_LEVELS
from app.core.pagination import paginate
from app.db.models.membership_order import MembershipOrder
from app.db.models.membership_tier import MembershipTier
from app.db.models.quota_usage_log import QuotaUsageLog
from app.db.models.user import User
from app.db.models.user_membership import (
    MEMBERSHIP_STATUSES,
    PAYMENT_STATUSES,
    TERMINAL_MEMBERSHIP_STATUSES,
    UserMembership,
)

logger = logging.getLogger(__name__)

AI_QUOTA_TYPE = "ai_resume"

TIER_FIELDS = (
    "name", "description", "original_price", "reduction_price", "duration_days",
    "ai_resume_quota", "template_access_level", "features", "is_active", "sort_order",
)
MEMBERSHIP_FIELDS = ("status", "end_date", "remaining_ai_quota", "payment_status", "admin_notes")


@dataclass(frozen=True)
class QuotaCheck:
    has_quota: bool
    remaining_quota: int
    total_quota: int
    tier_name: Optional[str]
    quota_reset_date: Optional[datetime]
    membership_id: int


@dataclass(frozen=True)
class QuotaUsage:
    remaining_quota: int
    total_quota: int
    usage_type: str
    membership_id: int


# --- Tiers -------------------------------------------------------------------

def list_tiers(db: Session, active_only: bool = False, page: int = 1, limit: int = 50) -> Dict[str, Any]:
    query = db.query(MembershipTier)
    if active_only:
        query = query.filter(MembershipTier.is_active.is_(True))
    query = query.order_by(MembershipTier.sort_order.asc(), MembershipTier.id.asc())
    return paginate(query, page, limit)


def list_active_tiers(db: Session) -> List[MembershipTier]:
    return (
        db.query(MembershipTier)
        .filter(MembershipTier.is_active.is_(True))
        .order_by(MembershipTier.sort_order.asc(), MembershipTier.id.asc())
        .all()
    )


def get_tier(db: Session, tier_id: int) -> MembershipTier:
    tier = db.query(MembershipTier).filter(MembershipTier.id == tier_id).first()
    if not tier:
        raise TierNotFound(tier_id=tier_id)
    return tier


def get_tier_by_name(db: Session, name: str) -> MembershipTier:
    tier = db.query(MembershipTier).filter(MembershipTier.name == name).first()
    if not tier:
        raise TierNotFound(f"Membership tier '{name}' not found", tier_name=name)
    return tier


def _check_tier_values(data: Dict[str, Any]) -> None:
    level = data.get("template_access_level")
    if level is not None and level not in TEMPLATE_ACCESS_LEVELS:
        raise ValidationError(
            f"template_access_level must be one of {', '.join(TEMPLATE_ACCESS_LEVELS)}",
            field="template_access_level",
        )
    for field in ("duration_days", "ai_resume_quota"):
        if data.get(field) is not None and data[field] < 0:
            raise ValidationError(f"{field} must not be negative", field=field)


def create_tier(db: Session, data: Dict[str, Any]) -> MembershipTier:
    if not data.get("name"):
        raise ValidationError("Tier name is required", field="name")
    _check_tier_values(data)

    tier = MembershipTier(
        name=data["name"],
        description=data.get("description"),
        original_price=data.get("original_price") or 0,
        reduction_price=data.get("reduction_price"),
        duration_days=data.get("duration_days") or 0,
        ai_resume_quota=data.get("ai_resume_quota") or 0,
        template_access_level=data.get("template_access_level") or "basic",
        features=data.get("features") or [],
        is_active=data.get("is_active", True),
        sort_order=data.get("sort_order") or 0,
    )
    try:
        db.add(tier)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(tier)
    logger.info(f"Membership tier created: id={tier.id}, name={tier.name}")
    return tier


def update_tier(db: Session, tier_id: int, data: Dict[str, Any]) -> MembershipTier:
    tier = get_tier(db, tier_id)
    changes = {k: v for k, v in data.items() if k in TIER_FIELDS}
    _check_tier_values(changes)
    try:
        for key, value in changes.items():
            setattr(tier, key, value)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(tier)
    logger.info(f"Membership tier updated: id={tier.id}, fields={sorted(changes)}")
    return tier


def delete_tier(db: Session, tier_id: int) -> None:
    tier = get_tier(db, tier_id)
    in_use = (
        db.query(UserMembership)
        .filter(
            UserMembership.membership_tier_id == tier_id,
            UserMembership.status.in_(("active", "pending")),
        )
        .count()
    )
    orders = db.query(MembershipOrder).filter(MembershipOrder.membership_tier_id == tier_id).count()
    if in_use or orders:
        raise TierInUse(tier_id=tier_id, memberships=in_use, orders=orders)

    try:
        db.delete(tier)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Membership tier deleted: id={tier_id}")


def toggle_tier(db: Session, tier_id: int) -> MembershipTier:
    tier = get_tier(db, tier_id)
    try:
        tier.is_active = not tier.is_active
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(tier)
    logger.info(f"Membership tier toggled: id={tier.id}, is_active={tier.is_active}")
    return tier


def update_tier_sort_order(db: Session, items: Iterable[Dict[str, int]]) -> int:
    """Apply ``[{id, sort_order}, ...]`` in one transaction."""
    updated = 0
    try:
        for item in items:
            tier = get_tier(db, item["id"])
            tier.sort_order = item["sort_order"]
            updated += 1
        db.commit()
    except Exception:
        db.rollback()
        raise
    return updated


# --- Activation --------------------------------------------------------------

def lock_user(db: Session, user_id: int) -> None:
    """
    Take the user's row lock for the rest of the transaction.

    A no-op UPDATE rather than SELECT ... FOR UPDATE: SQLite ignores FOR
    UPDATE but serializes writers, so this blocks concurrent membership
    writers for the same user on both backends.
    """
    locked = (
        db.query(User)
        .filter(User.id == user_id)
        .update({User.updated_at: User.updated_at}, synchronize_session=False)
    )
    if not locked:
        raise UserNotFound(user_id=user_id)

def activate_membership(
    db: Session,
    user_id: int,
    tier_id: int,
    payment_method: Optional[str] = None,
    admin_notes: Optional[str] = None,
    paid_amount: Optional[Any] = None,
    duration_days: Optional[int] = None,
    payment_status: str = "paid",
    commit: bool = True,
    now: Optional[datetime] = None,
) -> UserMembership:
    """
    Supersede the user's active membership with a new one on ``tier_id``.

    ``duration_days`` overrides the tier's duration; 0 means the membership
    never ends. Pass ``commit=False`` to join the caller's transaction.
    """
    now = as_naive_utc(now) or utcnow()
    try:
        tier = get_tier(db, tier_id)
        lock_user(db, user_id)

        previous = (
            db.query(UserMembership)
            .filter(UserMembership.user_id == user_id, UserMembership.status == "active")
            .populate_existing()
            .all()
        )
        for row in previous:
            row.status = "expired"
        # the expiry must reach the database before the insert
        db.flush()

        days = tier.duration_days if duration_days is None else duration_days
        membership = UserMembership(
            user_id=user_id,
            membership_tier_id=tier.id,
            status="active",
            start_date=now,
            end_date=add_days(now, days) if days else None,
            remaining_ai_quota=tier.ai_resume_quota or 0,
            quota_reset_date=first_of_next_month(now),
            payment_status=payment_status,
            paid_amount=paid_amount,
            payment_method=payment_method,
            admin_notes=admin_notes,
        )
        db.add(membership)
        db.flush()

        if commit:
            db.commit()
    except Exception:
        if commit:
            db.rollback()
        raise

    if commit:
        db.refresh(membership)
    logger.info(
        f"Membership activated: user_id={user_id}, tier_id={tier_id}, membership_id={membership.id}, "
        f"superseded={[row.id for row in previous]}"
    )
    return membership


def get_current_membership(db: Session, user_id: int, now: Optional[datetime] = None) -> Optional[UserMembership]:
    now = as_naive_utc(now) or utcnow()
    return (
        db.query(UserMembership)
        .filter(
            UserMembership.user_id == user_id,
            UserMembership.status == "active",
            or_(UserMembership.end_date.is_(None), UserMembership.end_date > now),
        )
        .order_by(UserMembership.created_at.desc(), UserMembership.id.desc())
        .first()
    )


def _get_free_tier(db: Session) -> MembershipTier:
    tier = db.query(MembershipTier).filter(MembershipTier.name == FREE_TIER_NAME).first()
    if not tier:
        raise ConfigurationError(f"Free membership tier '{FREE_TIER_NAME}' does not exist")
    return tier


def _provision_free(db: Session, user_id: int, now: datetime) -> UserMembership:
    tier = _get_free_tier(db)
    logger.info(f"Auto-provisioning free membership: user_id={user_id}, tier_id={tier.id}")
    return activate_membership(
        db, user_id, tier.id,
        payment_method="auto_free",
        paid_amount=0,
        admin_notes="Free membership created automatically",
        duration_days=0,
        commit=False,
        now=now,
    )


def ensure_membership(db: Session, user_id: int, now: Optional[datetime] = None) -> UserMembership:
    """
    Current membership, provisioning the free tier when there is none.

    The lookup is repeated under the user lock, so concurrent first calls
    provision exactly one row.
    """
    now = as_naive_utc(now) or utcnow()
    membership = get_current_membership(db, user_id, now)
    if membership is not None:
        return membership
    try:
        lock_user(db, user_id)
        membership = get_current_membership(db, user_id, now)
        if membership is None:
            membership = _provision_free(db, user_id, now)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(membership)
    return membership


# --- AI quota ----------------------------------------------------------------

def _tier_quota(membership: UserMembership) -> int:
    return membership.tier.ai_resume_quota if membership.tier else 0


def _apply_monthly_reset(db: Session, membership: UserMembership, now: datetime) -> bool:
    reset_at = as_naive_utc(membership.quota_reset_date)
    if reset_at is not None and now < reset_at:
        return False

    membership.remaining_ai_quota = _tier_quota(membership)
    membership.quota_reset_date = first_of_next_month(now)
    db.add(QuotaUsageLog(
        user_id=membership.user_id,
        quota_type=AI_QUOTA_TYPE,
        source="membership",
        action_type="reset",
        amount=membership.remaining_ai_quota,
        remaining_quota=membership.remaining_ai_quota,
        is_success=True,
        related_resource_type="membership",
        related_resource_id=membership.id,
    ))
    db.flush()
    logger.info(
        f"Monthly AI quota reset: user_id={membership.user_id}, membership_id={membership.id}, "
        f"quota={membership.remaining_ai_quota}, next_reset={membership.quota_reset_date}"
    )
    return True


def _prepare_membership(db: Session, user_id: int, now: datetime) -> UserMembership:
    """
    Resolve the membership a quota check runs against, under the user lock.

    A lapsed active row is flipped to ``expired`` and reported; a user with
    no active row at all gets the free tier. The monthly reset is applied
    before returning.
    """
    lock_user(db, user_id)
    membership = (
        db.query(UserMembership)
        .filter(UserMembership.user_id == user_id, UserMembership.status == "active")
        .order_by(UserMembership.created_at.desc(), UserMembership.id.desc())
        .populate_existing()
        .first()
    )

    if membership is not None:
        end_date = as_naive_utc(membership.end_date)
        if end_date is not None and end_date <= now:
            membership.status = "expired"
            db.flush()
            logger.warning(f"Membership lapsed: user_id={user_id}, membership_id={membership.id}")
            raise MembershipExpired(membership_id=membership.id, end_date=end_date)
    else:
        membership = _provision_free(db, user_id, now)

    _apply_monthly_reset(db, membership, now)
    return membership


def validate_ai_quota(db: Session, user_id: int, now: Optional[datetime] = None) -> QuotaCheck:
    """
    Check that the user can run one AI action, without spending anything.

    Raises MembershipExpired or QuotaExhausted. Expiry flips, free-tier
    provisioning and monthly resets it performs are committed either way.
    """
    now = as_naive_utc(now) or utcnow()
    try:
        membership = _prepare_membership(db, user_id, now)
        db.commit()
    except MembershipExpired:
        db.commit()
        raise
    except Exception:
        db.rollback()
        raise

    remaining = membership.remaining_ai_quota or 0
    if remaining <= 0:
        logger.warning(f"AI quota exhausted: user_id={user_id}, membership_id={membership.id}")
        raise QuotaExhausted(
            "AI quota for this month is used up",
            remaining=0,
            quota_reset_date=membership.quota_reset_date,
        )

    return QuotaCheck(
        has_quota=True,
        remaining_quota=remaining,
        total_quota=_tier_quota(membership),
        tier_name=membership.tier.name if membership.tier else None,
        quota_reset_date=membership.quota_reset_date,
        membership_id=membership.id,
    )


def consume_ai_quota(
    db: Session,
    user_id: int,
    usage_type: str = "resume_generation",
    resume_id: Optional[int] = None,
    job_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> QuotaUsage:
    """Spend one AI action. The decrement and its usage-log row commit together."""
    now = as_naive_utc(now) or utcnow()
    related_type, related_id = ("resume", resume_id) if resume_id else (("job", job_id) if job_id else (None, None))

    try:
        membership = _prepare_membership(db, user_id, now)

        updated = (
            db.query(UserMembership)
            .filter(UserMembership.id == membership.id, UserMembership.remaining_ai_quota > 0)
            .update(
                {UserMembership.remaining_ai_quota: UserMembership.remaining_ai_quota - 1},
                synchronize_session=False,
            )
        )
        if updated != 1:
            raise QuotaExhausted(
                "AI quota for this month is used up",
                remaining=0,
                quota_reset_date=membership.quota_reset_date,
            )

        db.refresh(membership)
        db.add(QuotaUsageLog(
            user_id=user_id,
            quota_type=AI_QUOTA_TYPE,
            source="membership",
            action_type=usage_type,
            amount=1,
            remaining_quota=membership.remaining_ai_quota,
            is_success=True,
            related_resource_type=related_type,
            related_resource_id=related_id,
        ))
        db.commit()
    except (QuotaExhausted, MembershipExpired) as e:
        # keep the expiry flip / reset, record the rejection alongside it
        db.add(QuotaUsageLog(
            user_id=user_id,
            quota_type=AI_QUOTA_TYPE,
            source="membership",
            action_type=usage_type,
            amount=0,
            remaining_quota=0,
            is_success=False,
            error_message=e.message,
            related_resource_type=related_type,
            related_resource_id=related_id,
        ))
        db.commit()
        logger.warning(f"AI quota rejected: user_id={user_id}, usage_type={usage_type}, reason={e.code}")
        raise
    except Exception:
        db.rollback()
        raise

    logger.info(
        f"AI quota consumed: user_id={user_id}, usage_type={usage_type}, "
        f"remaining={membership.remaining_ai_quota}"
    )
    return QuotaUsage(
        remaining_quota=membership.remaining_ai_quota,
        total_quota=_tier_quota(membership),
        usage_type=usage_type,
        membership_id=membership.id,
    )


def reset_monthly_quota(db: Session, user_id: int, now: Optional[datetime] = None) -> UserMembership:
    """Refill the current membership to its tier allotment, regardless of the reset date."""
    now = as_naive_utc(now) or utcnow()
    try:
        lock_user(db, user_id)
        membership = get_current_membership(db, user_id, now)
        if membership is None:
            raise MembershipNotFound(user_id=user_id)
        membership.quota_reset_date = None
        _apply_monthly_reset(db, membership, now)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(membership)
    return membership


def check_and_update_expired(db: Session, now: Optional[datetime] = None) -> int:
    """Expire every active membership whose end date has passed. Returns the count."""
    now = as_naive_utc(now) or utcnow()
    try:
        count = (
            db.query(UserMembership)
            .filter(
                UserMembership.status == "active",
                UserMembership.end_date.isnot(None),
                UserMembership.end_date <= now,
            )
            .update({UserMembership.status: "expired"}, synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    if count:
        logger.info(f"Expired {count} memberships")
    return count


def get_membership_status(db: Session, user_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    membership = ensure_membership(db, user_id, now)
    tier = membership.tier
    return {
        "has_membership": True,
        "is_active": membership.status == "active",
        "tier_name": tier.name if tier else FREE_TIER_NAME,
        "remaining_ai_quota": membership.remaining_ai_quota or 0,
        "total_ai_quota": tier.ai_resume_quota if tier else 0,
        "end_date": membership.end_date,
        "quota_reset_date": membership.quota_reset_date,
        "template_access_level": tier.template_access_level if tier else "basic",
        "features": list(tier.features or []) if tier else [],
    }


# --- Back-office ---------------------------------------------------------------

def list_user_memberships(
    db: Session,
    status: Optional[str] = None,
    user_id: Optional[int] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict[str, Any]:
    query = db.query(UserMembership)
    if status:
        query = query.filter(UserMembership.status == status)
    if user_id:
        query = query.filter(UserMembership.user_id == user_id)
    query = query.order_by(UserMembership.created_at.desc(), UserMembership.id.desc())
    return paginate(query, page, limit)


def get_user_membership(db: Session, membership_id: int) -> UserMembership:
    membership = db.query(UserMembership).filter(UserMembership.id == membership_id).first()
    if not membership:
        raise MembershipNotFound(membership_id=membership_id)
    return membership


def update_user_membership(db: Session, membership_id: int, data: Dict[str, Any]) -> UserMembership:
    """
    Admin edit of a membership row.

    Rows in a terminal state keep their status. Moving a row to ``active``
    expires the user's other active rows.
    """
    membership = get_user_membership(db, membership_id)
    changes = {k: v for k, v in data.items() if k in MEMBERSHIP_FIELDS}

    new_status = changes.get("status")
    if new_status is not None:
        if new_status not in MEMBERSHIP_STATUSES:
            raise ValidationError(f"Unknown membership status: {new_status}", field="status")
        if membership.status in TERMINAL_MEMBERSHIP_STATUSES and new_status != membership.status:
            raise ValidationError(
                f"Membership is {membership.status} and cannot change status",
                current_status=membership.status,
            )
    if changes.get("payment_status") is not None and changes["payment_status"] not in PAYMENT_STATUSES:
        raise ValidationError(f"Unknown payment status: {changes['payment_status']}", field="payment_status")
    if changes.get("remaining_ai_quota") is not None and changes["remaining_ai_quota"] < 0:
        raise ValidationError("remaining_ai_quota must not be negative", field="remaining_ai_quota")
    if "end_date" in changes:
        changes["end_date"] = as_naive_utc(changes["end_date"])

    try:
        if new_status == "active" and membership.status != "active":
            lock_user(db, membership.user_id)
            (
                db.query(UserMembership)
                .filter(
                    UserMembership.user_id == membership.user_id,
                    UserMembership.status == "active",
                    UserMembership.id != membership.id,
                )
                .update({UserMembership.status: "expired"}, synchronize_session=False)
            )
        for key, value in changes.items():
            setattr(membership, key, value)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(membership)
    logger.info(f"Membership updated: id={membership.id}, fields={sorted(changes)}")
    return membership
