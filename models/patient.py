# models/patient.py

from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from core.database import Base
from core.helpers import new_id
from core.time_utils import now_utc
from models.base import EntityMixin


class Patient(EntityMixin, Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=new_id)

    # Tenant scoping, stamped by the data-access layer
    clinic_id = Column(String(36), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)

    # Demographics
    name = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=False)
    age = Column(Integer, nullable=False)
    gender = Column(String, nullable=False)

    doctor_mode = Column(String, nullable=False, index=True)  # general / gynecology

    photo_url = Column(String, nullable=True)

    # Obstetric history (gynecology mode only)
    lmp_date = Column(Date, nullable=True)
    gravida = Column(Integer, nullable=True)
    para = Column(Integer, nullable=True)

    address = Column(String, nullable=True)
    allergies = Column(String, nullable=True)
    blood_group = Column(String, nullable=True)
    notes = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=now_utc)

    # Deleting a patient removes their visits, appointments and invoices
    visits = relationship("Visit", backref="patient", cascade="all, delete-orphan", passive_deletes=True)
    appointments = relationship("Appointment", backref="patient", cascade="all, delete-orphan", passive_deletes=True)
    invoices = relationship("Invoice", backref="patient", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<Patient {self.id} - {self.name}>"
