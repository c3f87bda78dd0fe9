from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base

ORDER_STATUSES = ("pending", "paid", "cancelled", "refunded")


class MembershipOrder(Base):
    __tablename__ = "membership_orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(100), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    membership_tier_id = Column(Integer, ForeignKey("membership_tiers.id", ondelete="RESTRICT"), nullable=False)

    original_amount = Column(Numeric(10, 2), nullable=False)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    final_amount = Column(Numeric(10, 2), nullable=False)

    status = Column(String(20), nullable=False, default="pending", index=True)  # pending | paid | cancelled | refunded
    payment_method = Column(String(50), nullable=True)
    payment_transaction_id = Column(String(200), nullable=True)
    paid_at = Column(DateTime, nullable=True)
    admin_notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    tier = relationship("MembershipTier")

    __table_args__ = (
        Index("idx_membership_orders_user_status", "user_id", "status"),
    )
