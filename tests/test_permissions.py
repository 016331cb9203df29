"""
Tests for role predicates.
"""
import pytest

from services.permissions import (
    can_access_patient_data,
    can_delete_data,
    can_manage_users,
    can_write,
    has_permission,
    restricted_mode_for_role,
)


def test_has_permission():
    assert has_permission("doctor", ("admin", "doctor"))
    assert not has_permission("receptionist", ("admin", "doctor"))
    assert not has_permission("doctor", ())


@pytest.mark.parametrize("role", ["admin", "doctor", "receptionist", "general_physician", "gynecologist"])
def test_every_staff_role_reads_patient_data(role):
    assert can_access_patient_data(role)


def test_unknown_role_has_no_access():
    assert not can_access_patient_data("patient")
    assert not can_write("patient", "patients")


def test_receptionist_is_front_desk_only():
    assert can_write("receptionist", "patients")
    assert can_write("receptionist", "appointments")
    assert not can_write("receptionist", "visits")
    assert not can_write("receptionist", "expenses")
    assert not can_delete_data("receptionist")


def test_only_admin_manages_users():
    assert can_manage_users("admin")
    assert not can_manage_users("gynecologist")


def test_specialist_tracks():
    assert restricted_mode_for_role("gynecologist") == "gynecology"
    assert restricted_mode_for_role("general_physician") == "general"
    assert restricted_mode_for_role("admin") is None
