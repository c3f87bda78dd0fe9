"""
Pydantic schemas for quota ledger endpoints.
"""
from datetime import datetime
from typing import Dict, Optional
from pydantic import BaseModel, Field


class QuotaPools(BaseModel):
    subscription: Dict[str, int] = Field(..., description="Remaining subscription quota per feature")
    permanent: Dict[str, int] = Field(..., description="Remaining permanent quota per feature")


class PlanDetailsResponse(BaseModel):
    """Response schema for GET /api/quota/me."""
    plan_id: Optional[int] = None
    plan_name: str
    quotas: QuotaPools
    subscription_expires_at: Optional[datetime] = None
    subscription_active: bool

    class Config:
        json_schema_extra = {
            "example": {
                "plan_id": 1,
                "plan_name": "Free",
                "quotas": {
                    "subscription": {"resume_optimizations": 3},
                    "permanent": {"resume_optimizations": 10}
                },
                "subscription_expires_at": "2026-11-18T00:00:00",
                "subscription_active": True
            }
        }


class ConsumeQuotaRequest(BaseModel):
    feature: str = Field("resume_optimizations", description="Quota feature to spend one unit of")
    related_resource_type: Optional[str] = Field(None, max_length=50)
    related_resource_id: Optional[int] = None


class ConsumeQuotaResponse(BaseModel):
    feature: str
    source: str = Field(..., description="Pool the unit came from: subscription or permanent")
    subscription_quota: int
    permanent_quota: int
