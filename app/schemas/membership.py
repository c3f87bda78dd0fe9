"""
Pydantic schemas for membership tiers, memberships and orders.

Request bodies used by the web client are camelCase (``membershipTierId``);
both spellings are accepted.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from app.schemas.common import Pagination

ACCESS_LEVEL_PATTERN = "^(basic|premium|all)$"


class TierCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    original_price: float = Field(0, ge=0)
    reduction_price: Optional[float] = Field(None, ge=0)
    duration_days: int = Field(0, ge=0, description="0 = never expires")
    ai_resume_quota: int = Field(0, ge=0, description="Monthly AI allotment")
    template_access_level: str = Field("basic", pattern=ACCESS_LEVEL_PATTERN)
    features: List[str] = Field(default_factory=list)
    is_active: bool = True
    sort_order: int = 0

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Pro",
                "description": "For active job seekers",
                "original_price": 29.99,
                "reduction_price": 19.99,
                "duration_days": 30,
                "ai_resume_quota": 50,
                "template_access_level": "premium",
                "features": ["Premium templates", "No watermark"],
                "is_active": True,
                "sort_order": 2
            }
        }


class TierUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    original_price: Optional[float] = Field(None, ge=0)
    reduction_price: Optional[float] = Field(None, ge=0)
    duration_days: Optional[int] = Field(None, ge=0)
    ai_resume_quota: Optional[int] = Field(None, ge=0)
    template_access_level: Optional[str] = Field(None, pattern=ACCESS_LEVEL_PATTERN)
    features: Optional[List[str]] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class TierResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    original_price: float
    reduction_price: Optional[float] = None
    duration_days: int
    ai_resume_quota: int
    template_access_level: str
    features: Optional[List[str]] = None
    is_active: bool
    sort_order: int

    class Config:
        from_attributes = True


class TierListResponse(BaseModel):
    data: List[TierResponse]
    pagination: Pagination


class TierSortItem(BaseModel):
    id: int
    sort_order: int


class TierSortRequest(BaseModel):
    items: List[TierSortItem]


class MembershipResponse(BaseModel):
    id: int
    user_id: int
    membership_tier_id: Optional[int] = None
    status: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    remaining_ai_quota: int
    quota_reset_date: Optional[datetime] = None
    payment_status: str
    paid_amount: Optional[float] = None
    payment_method: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MembershipListResponse(BaseModel):
    data: List[MembershipResponse]
    pagination: Pagination


class MembershipStatusResponse(BaseModel):
    """Response schema for GET /api/memberships/status."""
    has_membership: bool
    is_active: bool
    tier_name: str
    remaining_ai_quota: int
    total_ai_quota: int
    end_date: Optional[datetime] = None
    quota_reset_date: Optional[datetime] = None
    template_access_level: str
    features: List[str]

    class Config:
        json_schema_extra = {
            "example": {
                "has_membership": True,
                "is_active": True,
                "tier_name": "Free",
                "remaining_ai_quota": 3,
                "total_ai_quota": 5,
                "end_date": None,
                "quota_reset_date": "2026-11-01T00:00:00",
                "template_access_level": "basic",
                "features": ["Basic templates"]
            }
        }


class QuotaCheckResponse(BaseModel):
    """Response schema for POST /api/memberships/check-quota."""
    has_quota: bool = Field(..., alias="hasQuota")
    remaining_quota: int = Field(..., alias="remainingQuota")

    class Config:
        populate_by_name = True


class ConsumeAIQuotaRequest(BaseModel):
    usage_type: str = Field("resume_generation", alias="usageType", max_length=20)
    resume_id: Optional[int] = Field(None, alias="resumeId")
    job_id: Optional[int] = Field(None, alias="jobId")

    class Config:
        populate_by_name = True


class ConsumeAIQuotaResponse(BaseModel):
    remaining_quota: int = Field(..., alias="remainingQuota")
    total_quota: int = Field(..., alias="totalQuota")
    usage_type: str = Field(..., alias="usageType")

    class Config:
        populate_by_name = True


class OrderCreateRequest(BaseModel):
    membership_tier_id: int = Field(..., alias="membershipTierId")
    payment_method: str = Field("alipay", alias="paymentMethod", max_length=50)

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {"membershipTierId": 2, "paymentMethod": "alipay"}
        }


class OrderActivateRequest(BaseModel):
    transaction_id: Optional[str] = Field(None, alias="transactionId", max_length=200)

    class Config:
        populate_by_name = True


class OrderResponse(BaseModel):
    id: int
    order_number: str
    user_id: int
    membership_tier_id: int
    original_amount: float
    discount_amount: float
    final_amount: float
    status: str
    payment_method: Optional[str] = None
    payment_transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    data: List[OrderResponse]
    pagination: Pagination
