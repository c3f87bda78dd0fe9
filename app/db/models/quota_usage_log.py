from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey, Index
from sqlalchemy.sql import func
from app.db.base import Base


class QuotaUsageLog(Base):
    """
    Append-only record of every quota movement.

    ``source`` is the pool touched: "subscription" / "permanent" for the
    ledger, "membership" for the monthly membership allotment.
    Failed attempts are logged too, with ``is_success`` false.
    """
    __tablename__ = "quota_usage_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    quota_type = Column(String(50), nullable=False)  # "resume_optimizations", "resume_generation", ...
    source = Column(String(20), nullable=False)
    action_type = Column(String(20), nullable=False, default="usage")  # usage | grant | reset | assign
    amount = Column(Integer, nullable=False, default=1)
    remaining_quota = Column(Integer, nullable=True)
    is_success = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text, nullable=True)
    related_resource_type = Column(String(50), nullable=True)
    related_resource_id = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        Index("idx_quota_usage_user_type_created", "user_id", "quota_type", "created_at"),
    )
