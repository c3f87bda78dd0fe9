"""
Database models module.

Imports every model so it is registered on Base.metadata before table
creation or Alembic autogenerate runs.
"""
from app.db.models.user import User
from app.db.models.plan import Plan
from app.db.models.top_up_pack import TopUpPack
from app.db.models.user_quota import UserQuota
from app.db.models.membership_tier import MembershipTier
from app.db.models.user_membership import UserMembership
from app.db.models.membership_order import MembershipOrder
from app.db.models.quota_usage_log import QuotaUsageLog
from app.db.models.user_action_log import UserActionLog

__all__ = [
    "User",
    "Plan",
    "TopUpPack",
    "UserQuota",
    "MembershipTier",
    "UserMembership",
    "MembershipOrder",
    "QuotaUsageLog",
    "UserActionLog",
]
