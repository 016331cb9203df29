from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from core.database import Base
from core.helpers import new_id
from core.time_utils import now_utc
from models.base import EntityMixin

APPOINTMENT_STATUSES = ("scheduled", "completed", "cancelled")


class Appointment(EntityMixin, Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=new_id)

    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)

    clinic_id = Column(String(36), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    assigned_to = Column(String(36), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)

    doctor_mode = Column(String, nullable=False, index=True)

    title = Column(String, nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False)
    status = Column(String, nullable=False, default="scheduled", index=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=now_utc)

    reminders = relationship("Reminder", backref="appointment", cascade="all, delete-orphan", passive_deletes=True)
