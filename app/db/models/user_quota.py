from sqlalchemy import Column, Integer, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from app.db.base import Base


class UserQuota(Base):
    """
    Quota ledger: one row per user, created lazily.

    Two pools: ``subscription_quota`` is only spendable while
    ``subscription_expires_at`` is in the future (NULL = no expiry);
    ``permanent_quota`` never expires and is spent after the subscription pool.
    """
    __tablename__ = "user_quotas"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="SET NULL"), nullable=True)

    subscription_quota = Column(Integer, nullable=False, default=0)
    permanent_quota = Column(Integer, nullable=False, default=0)
    subscription_expires_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)

    plan = relationship("Plan")

    __table_args__ = (
        CheckConstraint("subscription_quota >= 0", name="ck_user_quotas_subscription_non_negative"),
        CheckConstraint("permanent_quota >= 0", name="ck_user_quotas_permanent_non_negative"),
    )
