"""
Admin back-office: dashboard statistics, user management, manual grants.

Every mutation writes a ``user_action_logs`` row naming the acting admin.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from app.core.dates import utcnow
from app.core.exceptions import DuplicateEmail, UserNotFound, ValidationError
from app.core.pagination import paginate
from app.core.security import hash_password
from app.db.models.membership_order import MembershipOrder
from app.db.models.membership_tier import MembershipTier
from app.db.models.user import ADMIN_ROLES, USER_STATUSES, User
from app.db.models.user_membership import UserMembership
from app.db.models.user_quota import UserQuota
from app.services import membership_service, quota_service
from app.services.action_log_service import record_action

logger = logging.getLogger(__name__)

USER_FIELDS = ("full_name", "email", "admin_notes")


def _count_if(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def _default_statistics(error: str) -> Dict[str, Any]:
    return {
        "users": {"total_users": 0, "new_users_week": 0, "admin_count": 0},
        "memberships": {
            "total_memberships": 0,
            "active_memberships": 0,
            "expired_memberships": 0,
            "cancelled_memberships": 0,
            "pending_memberships": 0,
            "new_memberships_week": 0,
        },
        "tiers": {"total_tiers": 0, "active_tiers": 0},
        "revenue": {"paid_orders": 0, "total_revenue": 0.0},
        "ledger": {"users_with_ledger": 0, "subscription_quota_outstanding": 0, "permanent_quota_outstanding": 0},
        "system": {"database_status": "limited", "last_updated": utcnow().isoformat(), "error": error},
    }


def get_statistics(db: Session) -> Dict[str, Any]:
    """
    Dashboard aggregates.

    Never raises: if any query fails the zero-filled payload is returned with
    ``system.database_status = "limited"`` and the error text.
    """
    week_ago = utcnow() - timedelta(days=7)
    try:
        users = db.query(
            func.count(User.id),
            _count_if(User.created_at >= week_ago),
            _count_if(User.role.in_(ADMIN_ROLES)),
        ).one()

        memberships = db.query(
            func.count(UserMembership.id),
            _count_if(UserMembership.status == "active"),
            _count_if(UserMembership.status == "expired"),
            _count_if(UserMembership.status == "cancelled"),
            _count_if(UserMembership.status == "pending"),
            _count_if(UserMembership.created_at >= week_ago),
        ).one()

        tiers = db.query(
            func.count(MembershipTier.id),
            _count_if(MembershipTier.is_active.is_(True)),
        ).one()

        revenue = (
            db.query(func.count(MembershipOrder.id), func.coalesce(func.sum(MembershipOrder.final_amount), 0))
            .filter(MembershipOrder.status == "paid")
            .one()
        )

        ledger = db.query(
            func.count(UserQuota.id),
            func.coalesce(func.sum(UserQuota.subscription_quota), 0),
            func.coalesce(func.sum(UserQuota.permanent_quota), 0),
        ).one()
    except Exception as e:
        db.rollback()
        logger.error(f"Statistics query failed, serving defaults: {e}")
        return _default_statistics(str(e))

    return {
        "users": {
            "total_users": int(users[0]),
            "new_users_week": int(users[1]),
            "admin_count": int(users[2]),
        },
        "memberships": {
            "total_memberships": int(memberships[0]),
            "active_memberships": int(memberships[1]),
            "expired_memberships": int(memberships[2]),
            "cancelled_memberships": int(memberships[3]),
            "pending_memberships": int(memberships[4]),
            "new_memberships_week": int(memberships[5]),
        },
        "tiers": {"total_tiers": int(tiers[0]), "active_tiers": int(tiers[1])},
        "revenue": {"paid_orders": int(revenue[0]), "total_revenue": float(revenue[1])},
        "ledger": {
            "users_with_ledger": int(ledger[0]),
            "subscription_quota_outstanding": int(ledger[1]),
            "permanent_quota_outstanding": int(ledger[2]),
        },
        "system": {"database_status": "healthy", "last_updated": utcnow().isoformat()},
    }


# --- Users -------------------------------------------------------------------

def list_users(db: Session, keyword: Optional[str] = None, page: int = 1, limit: int = 20) -> Dict[str, Any]:
    query = db.query(User)
    if keyword:
        pattern = f"%{keyword}%"
        query = query.filter(or_(User.email.ilike(pattern), User.full_name.ilike(pattern)))
    query = query.order_by(User.created_at.desc(), User.id.desc())
    return paginate(query, page, limit)


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise UserNotFound(user_id=user_id)
    return user


def get_user_detail(db: Session, user_id: int) -> Dict[str, Any]:
    user = get_user(db, user_id)
    return {
        "user": user,
        "membership": membership_service.get_current_membership(db, user_id),
        "plan": quota_service.get_user_plan_details(db, user_id),
    }


def _snapshot(user: User, fields) -> Dict[str, Any]:
    return {field: getattr(user, field) for field in fields}


def update_user(db: Session, user_id: int, data: Dict[str, Any], admin_user_id: int) -> User:
    user = get_user(db, user_id)
    changes = {k: v for k, v in data.items() if k in USER_FIELDS and v is not None}
    if not changes:
        raise ValidationError("No fields to update")

    email = changes.get("email")
    if email and email != user.email:
        taken = db.query(User).filter(User.email == email, User.id != user.id).first()
        if taken:
            raise DuplicateEmail("Email is already used by another account", email=email)

    old_values = _snapshot(user, changes)
    try:
        for key, value in changes.items():
            setattr(user, key, value)
        record_action(
            db, user.id, "update_user", "User profile updated",
            admin_user_id=admin_user_id, old_values=old_values, new_values=changes,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    return user


def update_user_status(
    db: Session,
    user_id: int,
    status: str,
    admin_user_id: int,
    reason: Optional[str] = None,
) -> User:
    if status not in USER_STATUSES:
        raise ValidationError(f"Invalid user status: {status}", field="status")

    user = get_user(db, user_id)
    old_status = user.status or "active"
    try:
        user.status = status
        if status in ("disabled", "suspended"):
            user.disabled_at = utcnow()
            user.disabled_by = admin_user_id
        else:
            user.disabled_at = None
            user.disabled_by = None
        if reason:
            user.admin_notes = reason

        record_action(
            db, user.id, "update_status", f"Status changed from {old_status} to {status}",
            admin_user_id=admin_user_id,
            old_values={"status": old_status},
            new_values={"status": status, "reason": reason},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    logger.info(f"User status updated: user_id={user_id}, {old_status} -> {status}, admin_user_id={admin_user_id}")
    return user


# --- Grants --------------------------------------------------------------------

def create_user_membership(
    db: Session,
    user_id: int,
    tier_id: int,
    admin_user_id: int,
    duration_days: Optional[int] = None,
    payment_method: str = "admin",
    paid_amount: Optional[Any] = None,
    admin_notes: Optional[str] = None,
) -> UserMembership:
    get_user(db, user_id)
    try:
        membership = membership_service.activate_membership(
            db, user_id, tier_id,
            payment_method=payment_method,
            paid_amount=paid_amount,
            admin_notes=admin_notes,
            duration_days=duration_days,
            commit=False,
        )
        record_action(
            db, user_id, "activate_membership", f"Membership activated on tier {tier_id}",
            admin_user_id=admin_user_id,
            new_values={"membership_tier_id": tier_id, "duration_days": duration_days},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(membership)
    return membership


def grant_membership(
    db: Session,
    user_id: int,
    tier_name: str,
    admin_user_id: int,
    duration_days: Optional[int] = None,
) -> UserMembership:
    """Grant the tier called ``tier_name``; ``duration_days`` overrides the tier's."""
    tier = membership_service.get_tier_by_name(db, tier_name)
    return create_user_membership(
        db, user_id, tier.id, admin_user_id,
        duration_days=duration_days,
        payment_method="admin_grant",
        paid_amount=0,
        admin_notes=f"Granted by admin {admin_user_id}",
    )


def assign_quota(
    db: Session,
    user_id: int,
    admin_user_id: int,
    plan_id: Optional[int] = None,
    permanent_quota: Optional[int] = None,
) -> Dict[str, Any]:
    """Either assign a plan or credit permanent quota, never both."""
    if (plan_id is None) == (permanent_quota is None):
        raise ValidationError("Provide exactly one of planId or permanentQuota")

    get_user(db, user_id)
    try:
        if plan_id is not None:
            quota_service.assign_plan(db, user_id, plan_id, commit=False)
            action, description, values = "assign_plan", f"Plan {plan_id} assigned", {"plan_id": plan_id}
        else:
            quota_service.add_top_up(
                db, user_id, permanent_quota, notes=f"Granted by admin {admin_user_id}", commit=False,
            )
            action, description, values = (
                "grant_permanent_quota", f"{permanent_quota} permanent quota granted",
                {"permanent_quota": permanent_quota},
            )
        record_action(db, user_id, action, description, admin_user_id=admin_user_id, new_values=values)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return quota_service.get_user_plan_details(db, user_id)


# --- Admin accounts ------------------------------------------------------------

def list_admins(db: Session) -> list:
    return db.query(User).filter(User.role.in_(ADMIN_ROLES)).order_by(User.id.asc()).all()


def create_admin(
    db: Session,
    email: str,
    password: str,
    full_name: str,
    role: str,
    created_by: int,
) -> User:
    if role not in ADMIN_ROLES:
        raise ValidationError(f"Invalid admin role: {role}", field="role")
    if db.query(User).filter(User.email == email).first():
        raise DuplicateEmail(email=email)

    user = User(full_name=full_name, email=email, password_hash=hash_password(password), role=role)
    try:
        db.add(user)
        db.flush()
        record_action(
            db, user.id, "create_admin", f"Admin account created with role {role}",
            admin_user_id=created_by, new_values={"email": email, "role": role},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    logger.info(f"Admin account created: user_id={user.id}, role={role}, created_by={created_by}")
    return user
