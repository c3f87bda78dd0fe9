"""
Plan catalog service.

Admin CRUD over ``plans`` and ``top_up_packs`` plus the public product list.
Writes that set ``is_default`` clear the previous default inside the same
transaction, so at most one default plan exists at any time. The current
default can only lose the flag by another plan taking it, never by being
unset or deleted.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ConfigurationError, PlanNotFound, TopUpPackNotFound, ValidationError
from app.core.features import validate_plan_features, validate_top_up_features
from app.core.pagination import paginate
from app.db.models.plan import Plan
from app.db.models.top_up_pack import TopUpPack

logger = logging.getLogger(__name__)

PLAN_FIELDS = ("name", "price", "duration_days", "features", "status", "is_default", "sort_order")
PACK_FIELDS = ("name", "price", "features", "status", "sort_order")


def list_plans(db: Session, status: Optional[str] = None, page: int = 1, limit: int = 20) -> Dict[str, Any]:
    query = db.query(Plan)
    if status:
        query = query.filter(Plan.status == status)
    query = query.order_by(Plan.sort_order.asc(), Plan.id.asc())
    return paginate(query, page, limit)


def get_plan(db: Session, plan_id: int) -> Plan:
    plan = db.query(Plan).filter(Plan.id == plan_id).first()
    if not plan:
        raise PlanNotFound(plan_id=plan_id)
    return plan


def get_default_plan(db: Session) -> Plan:
    """The single default plan. Its absence is a fatal configuration error."""
    plan = db.query(Plan).filter(Plan.is_default.is_(True)).first()
    if not plan:
        raise ConfigurationError("No default plan is configured")
    return plan


def _clear_default(db: Session, keep_id: Optional[int] = None) -> None:
    query = db.query(Plan).filter(Plan.is_default.is_(True))
    if keep_id is not None:
        query = query.filter(Plan.id != keep_id)
    query.update({Plan.is_default: False}, synchronize_session="fetch")


def create_plan(db: Session, data: Dict[str, Any]) -> Plan:
    features = validate_plan_features(data.get("features"))
    try:
        if data.get("is_default"):
            _clear_default(db)

        plan = Plan(
            name=data["name"],
            price=data.get("price", 0),
            duration_days=data.get("duration_days", 30),
            features=features.model_dump(exclude_none=True),
            status=data.get("status") or "active",
            is_default=bool(data.get("is_default")),
            sort_order=data.get("sort_order") or 0,
        )
        db.add(plan)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(plan)
    logger.info(f"Plan created: id={plan.id}, name={plan.name}, default={plan.is_default}")
    return plan


def update_plan(db: Session, plan_id: int, data: Dict[str, Any]) -> Plan:
    plan = get_plan(db, plan_id)
    changes = {k: v for k, v in data.items() if k in PLAN_FIELDS}
    if "features" in changes:
        changes["features"] = validate_plan_features(changes["features"]).model_dump(exclude_none=True)
    if plan.is_default and "is_default" in changes and not changes["is_default"]:
        raise ValidationError("Make another plan the default instead of unsetting it", field="is_default")

    try:
        if changes.get("is_default"):
            _clear_default(db, keep_id=plan.id)
        for key, value in changes.items():
            setattr(plan, key, value)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(plan)
    logger.info(f"Plan updated: id={plan.id}, fields={sorted(changes)}")
    return plan


def delete_plan(db: Session, plan_id: int) -> None:
    plan = get_plan(db, plan_id)
    if plan.is_default:
        raise ValidationError("The default plan cannot be deleted", plan_id=plan_id)
    try:
        db.delete(plan)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Plan deleted: id={plan_id}")


# --- Top-up packs ------------------------------------------------------------

def list_packs(db: Session, status: Optional[str] = None, page: int = 1, limit: int = 20) -> Dict[str, Any]:
    query = db.query(TopUpPack)
    if status:
        query = query.filter(TopUpPack.status == status)
    query = query.order_by(TopUpPack.sort_order.asc(), TopUpPack.id.asc())
    return paginate(query, page, limit)


def get_pack(db: Session, pack_id: int) -> TopUpPack:
    pack = db.query(TopUpPack).filter(TopUpPack.id == pack_id).first()
    if not pack:
        raise TopUpPackNotFound(pack_id=pack_id)
    return pack


def create_pack(db: Session, data: Dict[str, Any]) -> TopUpPack:
    features = validate_top_up_features(data.get("features"))
    pack = TopUpPack(
        name=data["name"],
        price=data.get("price", 0),
        features=features.model_dump(),
        status=data.get("status") or "active",
        sort_order=data.get("sort_order") or 0,
    )
    try:
        db.add(pack)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(pack)
    logger.info(f"Top-up pack created: id={pack.id}, name={pack.name}")
    return pack


def update_pack(db: Session, pack_id: int, data: Dict[str, Any]) -> TopUpPack:
    pack = get_pack(db, pack_id)
    changes = {k: v for k, v in data.items() if k in PACK_FIELDS}
    if "features" in changes:
        changes["features"] = validate_top_up_features(changes["features"]).model_dump()
    try:
        for key, value in changes.items():
            setattr(pack, key, value)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(pack)
    return pack


def delete_pack(db: Session, pack_id: int) -> None:
    pack = get_pack(db, pack_id)
    try:
        db.delete(pack)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Top-up pack deleted: id={pack_id}")


def list_products(db: Session) -> Dict[str, List[Any]]:
    """Everything currently on sale: active plans and active top-up packs."""
    plans = (
        db.query(Plan)
        .filter(Plan.status == "active")
        .order_by(Plan.sort_order.asc(), Plan.id.asc())
        .all()
    )
    packs = (
        db.query(TopUpPack)
        .filter(TopUpPack.status == "active")
        .order_by(TopUpPack.sort_order.asc(), TopUpPack.id.asc())
        .all()
    )
    return {"plans": plans, "top_up_packs": packs}
