# models/clinic.py

from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from core.database import Base
from core.helpers import new_id
from core.time_utils import now_utc
from models.base import EntityMixin


class Clinic(EntityMixin, Base):
    __tablename__ = "clinics"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    address = Column(String, nullable=True)
    phone = Column(String, nullable=True)

    # Auth identity that created the clinic
    owner_id = Column(String(36), ForeignKey("auth_users.id", ondelete="CASCADE"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=now_utc)

    # Everything hangs off the clinic; deleting it removes the tenant
    profiles = relationship("UserProfile", backref="clinic", cascade="all, delete-orphan", passive_deletes=True)
    patients = relationship("Patient", backref="clinic", cascade="all, delete-orphan", passive_deletes=True)
    expenses = relationship("Expense", backref="clinic", cascade="all, delete-orphan", passive_deletes=True)
    prescription_templates = relationship(
        "PrescriptionTemplate", backref="clinic", cascade="all, delete-orphan", passive_deletes=True
    )
    audit_logs = relationship("AuditLog", backref="clinic", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<Clinic {self.name}>"
