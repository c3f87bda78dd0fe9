from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, JSON, Text
from sqlalchemy.sql import func
from app.db.base import Base


class MembershipTier(Base):
    __tablename__ = "membership_tiers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)
    original_price = Column(Numeric(10, 2), nullable=False, default=0)
    reduction_price = Column(Numeric(10, 2), nullable=True)  # discounted price, if any
    duration_days = Column(Integer, nullable=False, default=0)  # 0 = never expires
    ai_resume_quota = Column(Integer, nullable=False, default=0)  # monthly allotment
    template_access_level = Column(String(20), nullable=False, default="basic")  # basic | premium | all
    features = Column(JSON, nullable=True)  # list of feature labels
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def effective_price(self):
        return self.reduction_price if self.reduction_price is not None else self.original_price
