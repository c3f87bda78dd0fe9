"""
Admin catalog management: feature registry, plans, top-up packs and
membership tiers.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.models.user import User
from app.core.auth_dependency import require_admin
from app.core.features import AVAILABLE_FEATURES
from app.schemas.common import MessageResponse
from app.schemas.membership import TierCreate, TierListResponse, TierResponse, TierSortRequest, TierUpdate
from app.schemas.plan import (
    FeatureDefinition,
    PlanCreate,
    PlanListResponse,
    PlanResponse,
    PlanUpdate,
    TopUpPackCreate,
    TopUpPackListResponse,
    TopUpPackResponse,
    TopUpPackUpdate,
)
from app.services import membership_service, plan_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin catalog"])


@router.get("/features", response_model=List[FeatureDefinition])
def list_features(admin: User = Depends(require_admin)):
    """Feature keys a plan may carry, for building the plan editor."""
    return AVAILABLE_FEATURES


# --- Plans -------------------------------------------------------------------

@router.get("/plans", response_model=PlanListResponse)
def list_plans(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return plan_service.list_plans(db, status_filter, page, limit)


@router.post("/plans", response_model=PlanResponse, status_code=status.HTTP_201_CREATED)
def create_plan(payload: PlanCreate, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return plan_service.create_plan(db, payload.model_dump())


@router.get("/plans/{plan_id}", response_model=PlanResponse)
def get_plan(plan_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return plan_service.get_plan(db, plan_id)


@router.put("/plans/{plan_id}", response_model=PlanResponse)
def update_plan(
    plan_id: int,
    payload: PlanUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return plan_service.update_plan(db, plan_id, payload.model_dump(exclude_unset=True))


@router.delete("/plans/{plan_id}", response_model=MessageResponse)
def delete_plan(plan_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    plan_service.delete_plan(db, plan_id)
    return {"message": "Plan deleted"}


# --- Top-up packs ------------------------------------------------------------

@router.get("/top-up-packs", response_model=TopUpPackListResponse)
def list_packs(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return plan_service.list_packs(db, status_filter, page, limit)


@router.post("/top-up-packs", response_model=TopUpPackResponse, status_code=status.HTTP_201_CREATED)
def create_pack(payload: TopUpPackCreate, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return plan_service.create_pack(db, payload.model_dump())


@router.get("/top-up-packs/{pack_id}", response_model=TopUpPackResponse)
def get_pack(pack_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return plan_service.get_pack(db, pack_id)


@router.put("/top-up-packs/{pack_id}", response_model=TopUpPackResponse)
def update_pack(
    pack_id: int,
    payload: TopUpPackUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return plan_service.update_pack(db, pack_id, payload.model_dump(exclude_unset=True))


@router.delete("/top-up-packs/{pack_id}", response_model=MessageResponse)
def delete_pack(pack_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    plan_service.delete_pack(db, pack_id)
    return {"message": "Top-up pack deleted"}


# --- Membership tiers --------------------------------------------------------

@router.get("/membership-tiers", response_model=TierListResponse)
def list_tiers(
    active_only: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return membership_service.list_tiers(db, active_only, page, limit)


@router.post("/membership-tiers", response_model=TierResponse, status_code=status.HTTP_201_CREATED)
def create_tier(payload: TierCreate, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return membership_service.create_tier(db, payload.model_dump())


@router.put("/membership-tiers/sort", response_model=MessageResponse)
def sort_tiers(payload: TierSortRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    updated = membership_service.update_tier_sort_order(db, [item.model_dump() for item in payload.items])
    return {"message": f"Sort order updated for {updated} tiers"}


@router.put("/membership-tiers/{tier_id}", response_model=TierResponse)
def update_tier(
    tier_id: int,
    payload: TierUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return membership_service.update_tier(db, tier_id, payload.model_dump(exclude_unset=True))


@router.patch("/membership-tiers/{tier_id}/toggle", response_model=TierResponse)
def toggle_tier(tier_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return membership_service.toggle_tier(db, tier_id)


@router.delete("/membership-tiers/{tier_id}", response_model=MessageResponse)
def delete_tier(tier_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Refused with 409 while active or pending memberships use the tier."""
    membership_service.delete_tier(db, tier_id)
    return {"message": "Membership tier deleted"}
