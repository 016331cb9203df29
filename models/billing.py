# models/billing.py
# Prescriptions, invoices and appointment reminders.

from sqlalchemy import Column, String, Float, DateTime, ForeignKey, Text, JSON

from core.database import Base
from core.helpers import new_id
from core.time_utils import now_utc
from models.base import EntityMixin

INVOICE_STATUSES = ("paid", "unpaid", "overdue")
REMINDER_TYPES = ("sms", "email")
REMINDER_STATUSES = ("pending", "sent", "failed")


class PrescriptionTemplate(EntityMixin, Base):
    __tablename__ = "prescription_templates"

    id = Column(String(36), primary_key=True, default=new_id)
    clinic_id = Column(String(36), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    name = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=now_utc)


class Prescription(EntityMixin, Base):
    __tablename__ = "prescriptions"

    id = Column(String(36), primary_key=True, default=new_id)
    visit_id = Column(String(36), ForeignKey("visits.id", ondelete="CASCADE"), nullable=False, index=True)
    clinic_id = Column(String(36), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    template_id = Column(String(36), ForeignKey("prescription_templates.id", ondelete="SET NULL"), nullable=True)
    content = Column(Text, nullable=False)
    pdf_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)


class Invoice(EntityMixin, Base):
    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=new_id)
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    clinic_id = Column(String(36), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    visit_ids = Column(JSON, nullable=False, default=list)
    total_amount = Column(Float, nullable=False)
    status = Column(String, nullable=False, default="unpaid", index=True)
    pdf_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)


class Reminder(EntityMixin, Base):
    __tablename__ = "reminders"

    id = Column(String(36), primary_key=True, default=new_id)
    appointment_id = Column(String(36), ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False, index=True)
    clinic_id = Column(String(36), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)
    type = Column(String, nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=False, index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String, nullable=False, default="pending", index=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)
