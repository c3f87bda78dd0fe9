"""
Admin back-office: users, memberships, grants, statistics and audit log.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.models.user import User
from app.core.auth_dependency import require_admin, require_super_admin
from app.schemas.admin import (
    ActionLogListResponse,
    AdminCreateRequest,
    AssignQuotaRequest,
    ExpireSweepResponse,
    GrantMembershipRequest,
    StatisticsResponse,
    UserDetailResponse,
    UserListResponse,
    UserMembershipCreate,
    UserMembershipUpdate,
    UserStatusRequest,
    UserUpdateRequest,
)
from app.schemas.auth import UserResponse
from app.schemas.membership import MembershipListResponse, MembershipResponse
from app.schemas.quota import PlanDetailsResponse
from app.services import action_log_service, admin_service, membership_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


# --- Statistics --------------------------------------------------------------

@router.get("/statistics", response_model=StatisticsResponse)
def statistics(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Dashboard numbers. Degrades to zeros with database_status "limited" instead of failing."""
    return admin_service.get_statistics(db)


@router.get("/dashboard/stats", response_model=StatisticsResponse)
def dashboard_stats(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return admin_service.get_statistics(db)


# --- Users -------------------------------------------------------------------

@router.get("/users", response_model=UserListResponse)
def list_users(
    keyword: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return admin_service.list_users(db, keyword, page, limit)


@router.get("/users/{user_id}", response_model=UserDetailResponse)
def get_user(user_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return admin_service.get_user_detail(db, user_id)


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    payload: UserUpdateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return admin_service.update_user(db, user_id, payload.model_dump(exclude_unset=True), admin.id)


@router.put("/users/{user_id}/status", response_model=UserResponse)
def update_user_status(
    user_id: int,
    payload: UserStatusRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return admin_service.update_user_status(db, user_id, payload.status, admin.id, payload.reason)


# --- Memberships ---------------------------------------------------------------

@router.get("/user-memberships", response_model=MembershipListResponse)
def list_user_memberships(
    status_filter: Optional[str] = Query(None, alias="status"),
    user_id: Optional[int] = Query(None, alias="userId"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return membership_service.list_user_memberships(db, status_filter, user_id, page, limit)


@router.post("/user-memberships", response_model=MembershipResponse, status_code=status.HTTP_201_CREATED)
def create_user_membership(
    payload: UserMembershipCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return admin_service.create_user_membership(
        db,
        payload.user_id,
        payload.membership_tier_id,
        admin.id,
        duration_days=payload.duration_days,
        payment_method=payload.payment_method,
        paid_amount=payload.paid_amount,
        admin_notes=payload.admin_notes,
    )


@router.put("/user-memberships/{membership_id}", response_model=MembershipResponse)
def update_user_membership(
    membership_id: int,
    payload: UserMembershipUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return membership_service.update_user_membership(db, membership_id, payload.model_dump(exclude_unset=True))


@router.post("/memberships/expire", response_model=ExpireSweepResponse)
def expire_memberships(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Run the expiry sweep now. Safe to repeat."""
    return {"expired": membership_service.check_and_update_expired(db)}


@router.post("/grant-membership", response_model=MembershipResponse, status_code=status.HTTP_201_CREATED)
def grant_membership(
    payload: GrantMembershipRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return admin_service.grant_membership(db, payload.user_id, payload.tier_name, admin.id, payload.duration_days)


@router.post("/assign-quota", response_model=PlanDetailsResponse)
def assign_quota(
    payload: AssignQuotaRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return admin_service.assign_quota(
        db,
        payload.user_id,
        admin.id,
        plan_id=payload.plan_id,
        permanent_quota=payload.permanent_quota,
    )


# --- Audit & admin accounts --------------------------------------------------

@router.get("/action-logs", response_model=ActionLogListResponse)
def list_action_logs(
    user_id: Optional[int] = Query(None, alias="userId"),
    admin_user_id: Optional[int] = Query(None, alias="adminUserId"),
    action_type: Optional[str] = Query(None, alias="actionType"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return action_log_service.list_action_logs(db, user_id, admin_user_id, action_type, page, limit)


@router.get("/admins", response_model=List[UserResponse])
def list_admins(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return admin_service.list_admins(db)


@router.post("/admins", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_admin(
    payload: AdminCreateRequest,
    admin: User = Depends(require_super_admin),
    db: Session = Depends(get_db)
):
    return admin_service.create_admin(
        db,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        role=payload.role,
        created_by=admin.id,
    )
