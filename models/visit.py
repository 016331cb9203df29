# models/visit.py

from sqlalchemy import Column, String, Float, Date, DateTime, ForeignKey
from sqlalchemy import Text
from sqlalchemy.orm import relationship

from core.database import Base
from core.helpers import new_id
from core.time_utils import now_utc
from models.base import EntityMixin


class Visit(EntityMixin, Base):
    __tablename__ = "visits"

    id = Column(String(36), primary_key=True, default=new_id)

    # Link to patient
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)

    clinic_id = Column(String(36), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)

    doctor_mode = Column(String, nullable=False, index=True)

    note = Column(Text, nullable=True)
    fee = Column(Float, nullable=False, default=0.0)

    next_visit = Column(Date, nullable=True)  # follow-up date
    photo_url = Column(String, nullable=True)  # prescription photo

    created_at = Column(DateTime(timezone=True), default=now_utc, index=True)

    prescriptions = relationship("Prescription", backref="visit", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<Visit {self.id} for Patient {self.patient_id}>"
