from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from sqlalchemy.sql import func
from app.db.base import Base

USER_ROLES = ("user", "admin", "super_admin")
ADMIN_ROLES = ("admin", "super_admin")
USER_STATUSES = ("active", "disabled", "suspended")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)

    role = Column(String(20), nullable=False, default="user", server_default="user")  # user | admin | super_admin
    status = Column(String(20), nullable=False, default="active", server_default="active", index=True)

    admin_notes = Column(Text, nullable=True)
    disabled_at = Column(DateTime, nullable=True)
    disabled_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_active(self) -> bool:
        return (self.status or "active") == "active"
