from .base import DoctorMode, Role
from .user import AuthUser, UserProfile
from .clinic import Clinic
from .patient import Patient
from .visit import Visit
from .expense import Expense, EXPENSE_CATEGORIES
from .appointment import Appointment, APPOINTMENT_STATUSES
from .billing import PrescriptionTemplate, Prescription, Invoice, Reminder
from .audit_log import AuditLog

__all__ = [
    "DoctorMode",
    "Role",
    "AuthUser",
    "UserProfile",
    "Clinic",
    "Patient",
    "Visit",
    "Expense",
    "EXPENSE_CATEGORIES",
    "Appointment",
    "APPOINTMENT_STATUSES",
    "PrescriptionTemplate",
    "Prescription",
    "Invoice",
    "Reminder",
    "AuditLog",
]
