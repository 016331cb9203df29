"""
Role-based access helpers.

These mirror the backend row-level policies. The backend stays the
authoritative boundary; the client checks only fail fast and keep the
UI honest.
"""
from typing import Iterable, Optional

from models.base import DoctorMode, Role

CLINICIAN_ROLES = {Role.DOCTOR.value, Role.GENERAL_PHYSICIAN.value, Role.GYNECOLOGIST.value}
ALL_ROLES = {r.value for r in Role}

# Entities a receptionist may create/update (front desk work)
RECEPTION_WRITABLE = {"patients", "appointments", "reminders", "invoices"}


def has_permission(role: str, required_roles: Iterable[str]) -> bool:
    return role in set(required_roles)


def can_manage_users(role: str) -> bool:
    return role == Role.ADMIN.value


def can_access_patient_data(role: str) -> bool:
    return role in ALL_ROLES


def can_modify_patient_data(role: str) -> bool:
    return role == Role.ADMIN.value or role in CLINICIAN_ROLES


def can_delete_data(role: str) -> bool:
    return role == Role.ADMIN.value or role in CLINICIAN_ROLES


def can_write(role: str, kind: str) -> bool:
    if can_modify_patient_data(role):
        return True
    return role == Role.RECEPTIONIST.value and kind in RECEPTION_WRITABLE


def restricted_mode_for_role(role: str) -> Optional[str]:
    """Specialists only see their own track; everyone else sees both."""
    if role == Role.GYNECOLOGIST.value:
        return DoctorMode.GYNECOLOGY.value
    if role == Role.GENERAL_PHYSICIAN.value:
        return DoctorMode.GENERAL.value
    return None
