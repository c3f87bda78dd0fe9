from sqlalchemy import Column, Integer, String, Numeric, DateTime, JSON
from sqlalchemy.sql import func
from app.db.base import Base


class TopUpPack(Base):
    """Purchasable pack that credits permanent quota, e.g. {"resume_optimizations": 10}."""
    __tablename__ = "top_up_packs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    features = Column(JSON, nullable=False, default=dict)
    status = Column(String(50), nullable=False, default="active", server_default="active", index=True)
    sort_order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
