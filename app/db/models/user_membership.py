from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, ForeignKey, Index, CheckConstraint, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base

MEMBERSHIP_STATUSES = ("pending", "active", "expired", "cancelled")
TERMINAL_MEMBERSHIP_STATUSES = ("expired", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")


class UserMembership(Base):
    """
    A user's membership in a tier.

    Rows are superseded, never re-tiered in place: activating a new
    membership flips the previous ``active`` row to ``expired`` and inserts a
    fresh one, so the table doubles as membership history.
    """
    __tablename__ = "user_memberships"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    membership_tier_id = Column(Integer, ForeignKey("membership_tiers.id", ondelete="SET NULL"), nullable=True)

    status = Column(String(20), nullable=False, default="pending")  # pending | active | expired | cancelled
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)  # NULL = never expires
    remaining_ai_quota = Column(Integer, nullable=False, default=0)
    quota_reset_date = Column(DateTime, nullable=True)

    payment_status = Column(String(20), nullable=False, default="pending")
    paid_amount = Column(Numeric(10, 2), nullable=True)
    payment_method = Column(String(50), nullable=True)
    admin_notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    tier = relationship("MembershipTier")

    __table_args__ = (
        Index("idx_user_memberships_user_status", "user_id", "status"),
        Index("idx_user_memberships_end_date", "end_date"),
        Index(
            "one_active_membership_per_user",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        CheckConstraint("remaining_ai_quota >= 0", name="ck_user_memberships_quota_non_negative"),
    )
