from sqlalchemy import Column, String, Float, Date, DateTime, ForeignKey

from core.database import Base
from core.helpers import new_id
from core.time_utils import now_utc
from models.base import EntityMixin

EXPENSE_CATEGORIES = [
    "Rent",
    "Medicine Supply",
    "Travel",
    "Utilities",
    "Equipment",
    "Marketing",
    "Other",
]


class Expense(EntityMixin, Base):
    __tablename__ = "expenses"

    id = Column(String(36), primary_key=True, default=new_id)

    clinic_id = Column(String(36), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True)

    amount = Column(Float, nullable=False)
    category = Column(String, nullable=False)  # usually one of EXPENSE_CATEGORIES
    note = Column(String, nullable=True)
    date = Column(Date, nullable=False, index=True)

    doctor_mode = Column(String, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=now_utc)
