"""
Tests for form validation at the service boundary.
"""
from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from core.time_utils import local_today, now_utc
from services import appointment_service, expense_service, patient_service, visit_service
from services.validation import (
    ExpenseForm,
    PatientForm,
    SignupForm,
    UserProfileForm,
    VisitForm,
    validate_form,
)


class SpyClient:
    """Records every write so tests can assert nothing reached the data layer."""

    def __init__(self, timezone="UTC"):
        self.calls = []
        self.context = SimpleNamespace(timezone=timezone)

    def create(self, kind, payload):
        self.calls.append(("create", kind, payload))
        return payload


@pytest.fixture
def spy():
    return SpyClient()


class TestPatientForm:
    def test_valid_patient(self, patient_data):
        form, errors = validate_form(PatientForm, patient_data)

        assert errors is None
        assert form.to_payload()["doctor_mode"] == "general"

    @pytest.mark.parametrize(
        "field, value",
        [("name", "R2-D2"), ("phone", "12345"), ("age", 200), ("gender", "Unknown"), ("doctor_mode", "dentistry")],
    )
    def test_invalid_fields_are_keyed(self, patient_data, field, value):
        form, errors = validate_form(PatientForm, dict(patient_data, **{field: value}))

        assert form is None
        assert field in errors

    def test_obstetric_history_only_for_gynecology(self, patient_data):
        _, errors = validate_form(PatientForm, dict(patient_data, gravida=2))
        assert "gravida" in errors

        form, errors = validate_form(PatientForm, dict(patient_data, doctor_mode="gynecology", gravida=2, para=1))
        assert errors is None
        assert form.gravida == 2

    def test_blood_group_is_normalised(self, patient_data):
        form, _ = validate_form(PatientForm, dict(patient_data, blood_group="ab+"))
        assert form.blood_group == "AB+"

        _, errors = validate_form(PatientForm, dict(patient_data, blood_group="Z+"))
        assert "blood_group" in errors


class TestVisitForm:
    def test_quick_visit_needs_a_note(self):
        _, errors = validate_form(VisitForm, {"patient_id": "p1", "doctor_mode": "general", "fee": 200})

        assert errors == {"note": "Clinical notes are required"}

    def test_photo_visit_needs_a_photo(self):
        _, errors = validate_form(
            VisitForm, {"visit_mode": "photo", "patient_id": "p1", "doctor_mode": "general", "fee": 200}
        )

        assert "photo_url" in errors

    def test_visit_mode_is_not_stored(self):
        form, _ = validate_form(VisitForm, {"patient_id": "p1", "doctor_mode": "general", "note": "Cough"})

        assert "visit_mode" not in form.to_payload()

    def test_negative_fee_rejected(self):
        _, errors = validate_form(VisitForm, {"patient_id": "p1", "doctor_mode": "general", "fee": -1, "note": "x"})
        assert "fee" in errors


class TestExpenses:
    def test_future_expense_never_reaches_the_data_layer(self, spy):
        tomorrow = (local_today("UTC") + timedelta(days=1)).isoformat()

        result, errors = expense_service.create_expense(
            spy, {"amount": 100, "category": "Rent", "date": tomorrow, "doctor_mode": "general"}
        )

        assert result is None
        assert errors["date"] == "Expense date cannot be in the future"
        assert spy.calls == []

    def test_amount_precision(self):
        _, errors = validate_form(
            ExpenseForm, {"amount": 10.005, "category": "Rent", "date": local_today("UTC"), "doctor_mode": "general"}
        )
        assert "amount" in errors

    def test_valid_expense_is_sent_as_json(self, spy):
        result, errors = expense_service.create_expense(
            spy, {"amount": 99.5, "category": "Lab & Supplies", "date": local_today("UTC"), "doctor_mode": "general"}
        )

        assert errors is None
        assert spy.calls[0][2]["date"] == local_today("UTC").isoformat()

    def test_future_is_judged_by_the_clinic_day(self):
        data = {"amount": 10, "category": "Rent", "date": "2030-01-02", "doctor_mode": "general"}

        _, errors = validate_form(ExpenseForm, data, today=date(2030, 1, 2))
        assert errors is None

        _, errors = validate_form(ExpenseForm, dict(data, date="2030-01-03"), today=date(2030, 1, 2))
        assert errors["date"] == "Expense date cannot be in the future"

    def test_service_uses_the_clinic_timezone(self, monkeypatch):
        zones = []

        def clinic_today(tz_name):
            zones.append(tz_name)
            return date(2030, 1, 2)

        monkeypatch.setattr(expense_service, "local_today", clinic_today)
        spy = SpyClient(timezone="Pacific/Kiritimati")

        result, errors = expense_service.create_expense(
            spy, {"amount": 10, "category": "Rent", "date": "2030-01-02", "doctor_mode": "general"}
        )

        assert errors is None
        assert zones == ["Pacific/Kiritimati"]
        assert spy.calls[0][2]["date"] == "2030-01-02"


class TestAppointments:
    def test_end_before_start_rejected(self, spy):
        start = now_utc() + timedelta(days=1)

        _, errors = appointment_service.create_appointment(
            spy,
            {"patient_id": "p1", "doctor_mode": "general", "start_time": start, "end_time": start - timedelta(minutes=30)},
        )

        assert errors == {"end_time": "End time must be after start time"}
        assert spy.calls == []

    def test_past_appointment_rejected(self, spy):
        start = now_utc() - timedelta(hours=2)

        _, errors = appointment_service.create_appointment(
            spy,
            {"patient_id": "p1", "doctor_mode": "general", "start_time": start, "end_time": start + timedelta(hours=1)},
        )

        assert "start_time" in errors


def test_invalid_patient_and_visit_are_not_written(spy, patient_data):
    patient_service.create_patient(spy, dict(patient_data, phone="abc"))
    visit_service.create_visit(spy, {"patient_id": "p1", "doctor_mode": "general"})

    assert spy.calls == []


class TestAccountForms:
    @pytest.mark.parametrize(
        "password, message",
        [
            ("Short1", "Password must be at least 8 characters"),
            ("alllowercase1", "Password must contain uppercase, lowercase, and number"),
        ],
    )
    def test_password_rules(self, password, message):
        _, errors = validate_form(
            SignupForm, {"email": "a@example.com", "password": password, "confirm_password": password}
        )
        assert errors["password"] == message

    def test_passwords_must_match(self):
        _, errors = validate_form(
            SignupForm, {"email": "a@example.com", "password": "Secret123", "confirm_password": "Secret124"}
        )
        assert errors == {"confirm_password": "Passwords do not match"}

    def test_email_is_lowercased(self):
        form, _ = validate_form(
            SignupForm, {"email": "Dr.Who@Example.com", "password": "Secret123", "confirm_password": "Secret123"}
        )
        assert form.email == "dr.who@example.com"

    def test_unknown_role_rejected(self):
        _, errors = validate_form(UserProfileForm, {"name": "Ravi", "email": "r@example.com", "role": "janitor"})
        assert "role" in errors
