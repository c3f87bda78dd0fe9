from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, JSON, Index, text
from sqlalchemy.sql import func
from app.db.base import Base


class Plan(Base):
    """
    Admin-managed subscription plan.

    ``features`` holds a validated SubscriptionFeatures / PermanentFeatures
    payload (see app.core.features). At most one row may be the default plan.
    """
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    duration_days = Column(Integer, nullable=False, default=30)  # 0 = unlimited
    features = Column(JSON, nullable=False, default=dict)
    status = Column(String(50), nullable=False, default="active", server_default="active")
    is_default = Column(Boolean, nullable=False, default=False, server_default="0")
    sort_order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index(
            "one_default_plan",
            "is_default",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )
