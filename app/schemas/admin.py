"""
Pydantic schemas for the admin back-office.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, EmailStr, Field

from app.schemas.auth import UserResponse
from app.schemas.common import Pagination
from app.schemas.membership import MembershipResponse
from app.schemas.quota import PlanDetailsResponse


class UserListResponse(BaseModel):
    data: List[UserResponse]
    pagination: Pagination


class UserDetailResponse(BaseModel):
    user: UserResponse
    membership: Optional[MembershipResponse] = None
    plan: PlanDetailsResponse


class UserUpdateRequest(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    admin_notes: Optional[str] = None


class UserStatusRequest(BaseModel):
    status: str = Field(..., pattern="^(active|disabled|suspended)$")
    reason: Optional[str] = None


class GrantMembershipRequest(BaseModel):
    user_id: int = Field(..., alias="userId")
    tier_name: str = Field(..., alias="tierName", min_length=1)
    duration_days: Optional[int] = Field(None, alias="durationDays", ge=0)

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {"userId": 42, "tierName": "Pro", "durationDays": 30}
        }


class AssignQuotaRequest(BaseModel):
    """Exactly one of ``planId`` / ``permanentQuota``."""
    user_id: int = Field(..., alias="userId")
    plan_id: Optional[int] = Field(None, alias="planId")
    permanent_quota: Optional[int] = Field(None, alias="permanentQuota")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {"userId": 42, "permanentQuota": 10}
        }


class UserMembershipCreate(BaseModel):
    user_id: int = Field(..., alias="userId")
    membership_tier_id: int = Field(..., alias="membershipTierId")
    duration_days: Optional[int] = Field(None, alias="durationDays", ge=0)
    payment_method: str = Field("admin", alias="paymentMethod", max_length=50)
    paid_amount: Optional[float] = Field(None, alias="paidAmount", ge=0)
    admin_notes: Optional[str] = Field(None, alias="adminNotes")

    class Config:
        populate_by_name = True


class UserMembershipUpdate(BaseModel):
    status: Optional[str] = Field(None, pattern="^(pending|active|expired|cancelled)$")
    end_date: Optional[datetime] = None
    remaining_ai_quota: Optional[int] = Field(None, ge=0)
    payment_status: Optional[str] = Field(None, pattern="^(pending|paid|failed|refunded)$")
    admin_notes: Optional[str] = None


class ExpireSweepResponse(BaseModel):
    expired: int


class AdminCreateRequest(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    role: str = Field("admin", pattern="^(admin|super_admin)$")


class ActionLogResponse(BaseModel):
    id: int
    user_id: int
    admin_user_id: Optional[int] = None
    action_type: str
    action_description: Optional[str] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ActionLogListResponse(BaseModel):
    data: List[ActionLogResponse]
    pagination: Pagination


class StatisticsResponse(BaseModel):
    users: Dict[str, int]
    memberships: Dict[str, int]
    tiers: Dict[str, int]
    revenue: Dict[str, float]
    ledger: Dict[str, int]
    system: Dict[str, Any]
