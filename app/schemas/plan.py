"""
Pydantic schemas for the plan catalog (plans and top-up packs).

``features`` is validated by app.core.features in the service layer, so the
request models accept any mapping here and let the service report field
errors in a uniform shape.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from app.schemas.common import Pagination


class PlanCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    price: float = Field(0, ge=0)
    duration_days: int = Field(30, ge=0, description="0 = subscription never expires")
    features: Dict[str, Any] = Field(..., description="Feature map, see GET /api/admin/features")
    status: str = Field("active", pattern="^(active|inactive)$")
    is_default: bool = False
    sort_order: int = 0

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Pro Monthly",
                "price": 19.99,
                "duration_days": 30,
                "features": {"type": "subscription", "resume_optimizations": 50, "template_access_level": "premium"},
                "status": "active",
                "is_default": False,
                "sort_order": 2
            }
        }


class PlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[float] = Field(None, ge=0)
    duration_days: Optional[int] = Field(None, ge=0)
    features: Optional[Dict[str, Any]] = None
    status: Optional[str] = Field(None, pattern="^(active|inactive)$")
    is_default: Optional[bool] = None
    sort_order: Optional[int] = None


class PlanResponse(BaseModel):
    id: int
    name: str
    price: float
    duration_days: int
    features: Dict[str, Any]
    status: str
    is_default: bool
    sort_order: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PlanListResponse(BaseModel):
    data: List[PlanResponse]
    pagination: Pagination


class TopUpPackCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    price: float = Field(0, ge=0)
    features: Dict[str, Any] = Field(..., description="Must grant a positive resume_optimizations amount")
    status: str = Field("active", pattern="^(active|inactive)$")
    sort_order: int = 0

    class Config:
        json_schema_extra = {
            "example": {
                "name": "10 Optimizations",
                "price": 4.99,
                "features": {"resume_optimizations": 10},
                "status": "active",
                "sort_order": 1
            }
        }


class TopUpPackUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[float] = Field(None, ge=0)
    features: Optional[Dict[str, Any]] = None
    status: Optional[str] = Field(None, pattern="^(active|inactive)$")
    sort_order: Optional[int] = None


class TopUpPackResponse(BaseModel):
    id: int
    name: str
    price: float
    features: Dict[str, Any]
    status: str
    sort_order: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TopUpPackListResponse(BaseModel):
    data: List[TopUpPackResponse]
    pagination: Pagination


class ProductsResponse(BaseModel):
    """Everything currently on sale."""
    plans: List[PlanResponse]
    top_up_packs: List[TopUpPackResponse]


class FeatureDefinition(BaseModel):
    key: str
    name: str
    kind: str
    description: str
    options: Optional[List[str]] = None
