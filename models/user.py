from sqlalchemy import Column, String, DateTime, ForeignKey

from core.database import Base
from core.helpers import new_id
from core.time_utils import now_utc
from models.base import EntityMixin


class AuthUser(EntityMixin, Base):
    """Authentication identity (email + bcrypt hash), separate from the clinic profile."""

    __tablename__ = "auth_users"

    id = Column(String(36), primary_key=True, default=new_id)

    email = Column(String, unique=True, index=True, nullable=False)

    password_hash = Column(String, nullable=False)

    created_at = Column(DateTime(timezone=True), default=now_utc)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.pop("password_hash", None)
        return data

    def __repr__(self):
        return f"<AuthUser {self.email}>"


class UserProfile(EntityMixin, Base):
    __tablename__ = "user_profiles"

    id = Column(String(36), primary_key=True, default=new_id)

    clinic_id = Column(String(36), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False, index=True)

    # One profile per auth identity
    auth_user_id = Column(
        String(36), ForeignKey("auth_users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True
    )

    role = Column(String, nullable=False)

    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    specialization = Column(String, nullable=True)  # doctors only

    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    def __repr__(self):
        return f"<UserProfile {self.name} ({self.role})>"
