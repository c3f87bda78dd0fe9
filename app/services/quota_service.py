"""
Quota ledger service.

Each user has one ``user_quotas`` row with two pools:

- ``subscription_quota``: granted by the current plan, spendable only
  until ``subscription_expires_at`` (NULL means the window never closes).
- ``permanent_quota``: credited by top-ups and permanent plans, never expires.

Spending always takes from the subscription pool first. Every decrement
locks the ledger row (SELECT ... FOR UPDATE) and uses an UPDATE guarded by
``quota > 0``, so concurrent callers for the same user can never drive a
counter below zero.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.dates import add_days, as_naive_utc, utcnow
from app.core.exceptions import (
    InvalidTopUpAmount,
    QuotaExhausted,
    ValidationError,
)
from app.core.features import (
    QUOTA_FEATURES,
    PermanentFeatures,
    is_quota_feature,
    load_plan_features,
    validate_top_up_features,
)
from app.db.models.plan import Plan
from app.db.models.quota_usage_log import QuotaUsageLog
from app.db.models.user_quota import UserQuota
from app.services import plan_service

logger = logging.getLogger(__name__)

DEFAULT_FEATURE = QUOTA_FEATURES[0]


@dataclass(frozen=True)
class QuotaGrant:
    """Quota a plan hands out when assigned."""
    subscription_quota: int
    permanent_quota: int
    subscription_expires_at: Optional[datetime]


@dataclass(frozen=True)
class LedgerUsage:
    """Outcome of a successful check_and_decrement."""
    feature: str
    source: str  # "subscription" | "permanent"
    subscription_quota: int
    permanent_quota: int


def derive_quota_from_plan(plan: Plan, now: Optional[datetime] = None) -> QuotaGrant:
    """
    Translate a plan's features into ledger amounts.

    Permanent plans credit the permanent pool with no expiry. Subscription
    plans fill the subscription pool for ``duration_days`` (0 = no expiry).
    """
    now = as_naive_utc(now) or utcnow()
    features = load_plan_features(plan.features, plan_id=plan.id)
    amount = features.resume_optimizations

    if isinstance(features, PermanentFeatures):
        return QuotaGrant(subscription_quota=0, permanent_quota=amount, subscription_expires_at=None)

    expires_at = add_days(now, plan.duration_days) if plan.duration_days else None
    return QuotaGrant(subscription_quota=amount, permanent_quota=0, subscription_expires_at=expires_at)


def subscription_is_usable(entry: UserQuota, now: datetime) -> bool:
    if entry.subscription_quota <= 0:
        return False
    expires_at = as_naive_utc(entry.subscription_expires_at)
    return expires_at is None or expires_at > now


def _lock_entry(db: Session, user_id: int) -> Optional[UserQuota]:
    return (
        db.query(UserQuota)
        .filter(UserQuota.user_id == user_id)
        .with_for_update(of=UserQuota)
        .populate_existing()
        .first()
    )


def _log_movement(
    db: Session,
    user_id: int,
    quota_type: str,
    source: str,
    action_type: str,
    amount: int,
    remaining: Optional[int],
    is_success: bool = True,
    error_message: Optional[str] = None,
    notes: Optional[str] = None,
    related_resource_type: Optional[str] = None,
    related_resource_id: Optional[int] = None,
) -> None:
    db.add(QuotaUsageLog(
        user_id=user_id,
        quota_type=quota_type,
        source=source,
        action_type=action_type,
        amount=amount,
        remaining_quota=remaining,
        is_success=is_success,
        error_message=error_message,
        notes=notes,
        related_resource_type=related_resource_type,
        related_resource_id=related_resource_id,
    ))


def _create_from_default_plan(db: Session, user_id: int, now: datetime) -> UserQuota:
    plan = plan_service.get_default_plan(db)
    grant = derive_quota_from_plan(plan, now)
    entry = UserQuota(
        user_id=user_id,
        plan_id=plan.id,
        subscription_quota=grant.subscription_quota,
        permanent_quota=grant.permanent_quota,
        subscription_expires_at=grant.subscription_expires_at,
        updated_at=now,
    )
    db.add(entry)
    db.flush()
    _log_movement(
        db, user_id, DEFAULT_FEATURE, "subscription", "assign",
        amount=grant.subscription_quota + grant.permanent_quota,
        remaining=grant.subscription_quota,
        notes=f"Default plan {plan.id} assigned",
    )
    logger.info(f"Ledger row created from default plan: user_id={user_id}, plan_id={plan.id}")
    return entry


def _get_or_create_entry(db: Session, user_id: int, now: datetime) -> UserQuota:
    entry = _lock_entry(db, user_id)
    if entry is None:
        entry = _create_from_default_plan(db, user_id, now)
    return entry


def assign_default_plan(
    db: Session,
    user_id: int,
    commit: bool = True,
    now: Optional[datetime] = None,
) -> UserQuota:
    """
    Point the user at the default plan.

    Creates the ledger row (with the default plan's quota) when missing;
    an existing row only has its ``plan_id`` repointed.
    Pass ``commit=False`` to join a caller's transaction (e.g. signup).
    """
    now = as_naive_utc(now) or utcnow()
    try:
        entry = _lock_entry(db, user_id)
        if entry is None:
            entry = _create_from_default_plan(db, user_id, now)
        else:
            plan = plan_service.get_default_plan(db)
            entry.plan_id = plan.id
            entry.updated_at = now
            db.flush()
        if commit:
            db.commit()
    except Exception:
        if commit:
            db.rollback()
        raise

    if commit:
        db.refresh(entry)
    return entry


def assign_plan(
    db: Session,
    user_id: int,
    plan_id: int,
    commit: bool = True,
    now: Optional[datetime] = None,
) -> UserQuota:
    """
    Assign ``plan_id`` to the user.

    Subscription fields are overwritten with the plan's grant; the permanent
    pool is only ever added to. ``commit=False`` joins the caller's transaction.
    """
    now = as_naive_utc(now) or utcnow()
    try:
        plan = plan_service.get_plan(db, plan_id)
        grant = derive_quota_from_plan(plan, now)

        entry = _lock_entry(db, user_id)
        if entry is None:
            entry = UserQuota(user_id=user_id, subscription_quota=0, permanent_quota=0)
            db.add(entry)

        entry.plan_id = plan.id
        entry.subscription_quota = grant.subscription_quota
        entry.subscription_expires_at = grant.subscription_expires_at
        if grant.permanent_quota:
            entry.permanent_quota = (entry.permanent_quota or 0) + grant.permanent_quota
        entry.updated_at = now
        db.flush()

        source = "permanent" if grant.permanent_quota else "subscription"
        _log_movement(
            db, user_id, DEFAULT_FEATURE, source, "assign",
            amount=grant.subscription_quota + grant.permanent_quota,
            remaining=entry.permanent_quota if grant.permanent_quota else entry.subscription_quota,
            notes=f"Plan {plan.id} assigned",
        )
        if commit:
            db.commit()
    except Exception:
        if commit:
            db.rollback()
        raise

    if commit:
        db.refresh(entry)
    logger.info(
        f"Plan assigned: user_id={user_id}, plan_id={plan_id}, "
        f"subscription_quota={entry.subscription_quota}, permanent_quota={entry.permanent_quota}, "
        f"expires_at={entry.subscription_expires_at}"
    )
    return entry


def add_top_up(
    db: Session,
    user_id: int,
    amount: int,
    notes: Optional[str] = None,
    commit: bool = True,
    now: Optional[datetime] = None,
) -> UserQuota:
    """Credit ``amount`` to the permanent pool. Rejects non-positive amounts."""
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise InvalidTopUpAmount(amount=amount)

    now = as_naive_utc(now) or utcnow()
    try:
        entry = _get_or_create_entry(db, user_id, now)
        db.query(UserQuota).filter(UserQuota.id == entry.id).update(
            {
                UserQuota.permanent_quota: UserQuota.permanent_quota + amount,
                UserQuota.updated_at: now,
            },
            synchronize_session=False,
        )
        db.refresh(entry)
        _log_movement(
            db, user_id, DEFAULT_FEATURE, "permanent", "grant",
            amount=amount, remaining=entry.permanent_quota, notes=notes,
        )
        if commit:
            db.commit()
    except Exception:
        if commit:
            db.rollback()
        raise

    if commit:
        db.refresh(entry)
    logger.info(f"Top-up credited: user_id={user_id}, amount={amount}, permanent_quota={entry.permanent_quota}")
    return entry


def add_top_up_pack(db: Session, user_id: int, pack_id: int, now: Optional[datetime] = None) -> UserQuota:
    pack = plan_service.get_pack(db, pack_id)
    features = validate_top_up_features(pack.features)
    return add_top_up(
        db, user_id, features.resume_optimizations,
        notes=f"Top-up pack {pack.id} ({pack.name})", now=now,
    )


def _decrement(db: Session, entry: UserQuota, source: str, now: datetime) -> int:
    if source == "subscription":
        column = UserQuota.subscription_quota
        guards = [or_(UserQuota.subscription_expires_at.is_(None), UserQuota.subscription_expires_at > now)]
    else:
        column = UserQuota.permanent_quota
        guards = []
    return (
        db.query(UserQuota)
        .filter(UserQuota.id == entry.id, column > 0, *guards)
        .update({column: column - 1, UserQuota.updated_at: now}, synchronize_session=False)
    )


def check_and_decrement(
    db: Session,
    user_id: int,
    feature: str = DEFAULT_FEATURE,
    related_resource_type: Optional[str] = None,
    related_resource_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> LedgerUsage:
    """
    Spend one unit of ``feature`` for the user, atomically.

    Precedence: a usable subscription pool, then the permanent pool.
    Raises QuotaExhausted when neither has anything left; nothing is
    decremented in that case.
    """
    if not is_quota_feature(feature):
        raise ValidationError(f"Unknown quota feature: {feature}", feature=feature)

    now = as_naive_utc(now) or utcnow()
    try:
        entry = _get_or_create_entry(db, user_id, now)

        source = None
        candidates = ["subscription", "permanent"] if subscription_is_usable(entry, now) else ["permanent"]
        for candidate in candidates:
            if candidate == "permanent" and entry.permanent_quota <= 0:
                continue
            if _decrement(db, entry, candidate, now) == 1:
                source = candidate
                break

        if source is None:
            raise QuotaExhausted(
                feature=feature,
                subscription_quota=entry.subscription_quota,
                permanent_quota=entry.permanent_quota,
                remaining=0,
            )

        db.refresh(entry)
        remaining = entry.subscription_quota if source == "subscription" else entry.permanent_quota
        _log_movement(
            db, user_id, feature, source, "usage", amount=1, remaining=remaining,
            related_resource_type=related_resource_type, related_resource_id=related_resource_id,
        )
        db.commit()
    except QuotaExhausted as e:
        db.rollback()
        _log_failure(db, user_id, feature, e)
        logger.warning(f"Quota exhausted: user_id={user_id}, feature={feature}")
        raise
    except Exception:
        db.rollback()
        raise

    logger.info(
        f"Quota consumed: user_id={user_id}, feature={feature}, source={source}, "
        f"subscription_quota={entry.subscription_quota}, permanent_quota={entry.permanent_quota}"
    )
    return LedgerUsage(
        feature=feature,
        source=source,
        subscription_quota=entry.subscription_quota,
        permanent_quota=entry.permanent_quota,
    )


def _log_failure(db: Session, user_id: int, feature: str, error: Exception) -> None:
    try:
        _log_movement(
            db, user_id, feature, "ledger", "usage", amount=0, remaining=0,
            is_success=False, error_message=str(error),
        )
        db.commit()
    except Exception as log_error:
        db.rollback()
        logger.error(f"Failed to record quota failure for user_id={user_id}: {log_error}")


def get_user_plan_details(db: Session, user_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Current plan and remaining quota for the user.

    Self-heals: a user without a ledger row is assigned the default plan.
    """
    now = as_naive_utc(now) or utcnow()
    entry = db.query(UserQuota).filter(UserQuota.user_id == user_id).first()
    if entry is None:
        logger.warning(f"User {user_id} has no ledger row, assigning default plan now")
        entry = assign_default_plan(db, user_id, now=now)

    plan = entry.plan
    return {
        "plan_id": plan.id if plan else None,
        "plan_name": plan.name if plan else "Free",
        "quotas": {
            "subscription": {DEFAULT_FEATURE: entry.subscription_quota or 0},
            "permanent": {DEFAULT_FEATURE: entry.permanent_quota or 0},
        },
        "subscription_expires_at": entry.subscription_expires_at,
        "subscription_active": subscription_is_usable(entry, now),
    }
