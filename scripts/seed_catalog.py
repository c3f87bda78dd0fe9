"""
Seed the default plan, starter top-up packs and the Free/Pro/Premium tiers.
Rows are matched by name, so running it again changes nothing.
Run: python -m scripts.seed_catalog
"""
import logging
import sys

from app.core.config import FREE_TIER_NAME
from app.db.session import SessionLocal
from app.db.models.membership_tier import MembershipTier
from app.db.models.plan import Plan
from app.db.models.top_up_pack import TopUpPack

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

PLANS = [
    {
        "name": "Free",
        "price": 0,
        "duration_days": 0,
        "features": {"type": "subscription", "resume_optimizations": 3, "template_access_level": "basic"},
        "is_default": True,
        "sort_order": 1,
    },
    {
        "name": "Pro Monthly",
        "price": 19.99,
        "duration_days": 30,
        "features": {
            "type": "subscription",
            "resume_optimizations": 50,
            "template_access_level": "premium",
            "remove_watermark": True,
        },
        "is_default": False,
        "sort_order": 2,
    },
    {
        "name": "Lifetime Pioneer",
        "price": 99.0,
        "duration_days": 0,
        "features": {
            "type": "permanent",
            "resume_optimizations": 500,
            "template_access_level": "all",
            "remove_watermark": True,
            "pioneer_badge": True,
        },
        "is_default": False,
        "sort_order": 3,
    },
]

TOP_UP_PACKS = [
    {"name": "10 Optimizations", "price": 4.99, "features": {"resume_optimizations": 10}, "sort_order": 1},
    {"name": "50 Optimizations", "price": 19.99, "features": {"resume_optimizations": 50}, "sort_order": 2},
]

TIERS = [
    {
        "name": FREE_TIER_NAME,
        "description": "Get started with basic templates",
        "original_price": 0,
        "reduction_price": None,
        "duration_days": 0,
        "ai_resume_quota": 5,
        "template_access_level": "basic",
        "features": ["Basic templates", "5 AI generations per month"],
        "sort_order": 1,
    },
    {
        "name": "Pro",
        "description": "For active job seekers",
        "original_price": 29.99,
        "reduction_price": 19.99,
        "duration_days": 30,
        "ai_resume_quota": 50,
        "template_access_level": "premium",
        "features": ["Premium templates", "50 AI generations per month", "No watermark"],
        "sort_order": 2,
    },
    {
        "name": "Premium",
        "description": "Everything, with priority support",
        "original_price": 59.99,
        "reduction_price": 39.99,
        "duration_days": 30,
        "ai_resume_quota": 200,
        "template_access_level": "all",
        "features": ["All templates", "200 AI generations per month", "Priority support"],
        "sort_order": 3,
    },
]


def _seed(db, model, rows):
    created = 0
    for row in rows:
        if db.query(model).filter(model.name == row["name"]).first():
            continue
        db.add(model(**row))
        created += 1
    return created


def seed_catalog(db) -> dict:
    try:
        has_default = db.query(Plan).filter(Plan.is_default.is_(True)).first() is not None
        plans = [dict(p, is_default=p["is_default"] and not has_default) for p in PLANS]
        counts = {
            "plans": _seed(db, Plan, plans),
            "top_up_packs": _seed(db, TopUpPack, TOP_UP_PACKS),
            "membership_tiers": _seed(db, MembershipTier, TIERS),
        }
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Catalog seeded: {counts}")
    return counts


def main():
    db = SessionLocal()
    try:
        seed_catalog(db)
    except Exception as e:
        logger.error(f"Seeding failed: {e}", exc_info=True)
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
