"""
Tests for the entity services running against a live data client.
"""
from datetime import timedelta

import pytest

from core.errors import OfflineQueued
from core.time_utils import as_utc, local_today, now_utc
from services import (
    appointment_service,
    billing_service,
    expense_service,
    patient_service,
    visit_service,
)


@pytest.fixture
def asha(client_a, patient_data):
    patient, errors = patient_service.create_patient(client_a, patient_data)
    assert errors is None
    return patient


def add_visit(client, patient, fee=500, note="Fever"):
    visit, errors = visit_service.create_visit(
        client, {"patient_id": patient.id, "doctor_mode": patient.doctor_mode, "fee": fee, "note": note}
    )
    assert errors is None
    return visit


def add_appointment(client, patient, hours_ahead=24):
    start = now_utc() + timedelta(hours=hours_ahead)
    appointment, errors = appointment_service.create_appointment(
        client,
        {
            "patient_id": patient.id,
            "doctor_mode": patient.doctor_mode,
            "title": "Follow-up",
            "start_time": start,
            "end_time": start + timedelta(minutes=30),
        },
    )
    assert errors is None
    return appointment


class TestPatients:
    def test_partial_update_only_touches_supplied_fields(self, client_a, asha):
        updated, errors = patient_service.update_patient(client_a, asha.id, {"age": 33})

        assert errors is None
        assert updated.age == 33
        assert updated.name == "Asha"

    def test_update_is_validated_against_stored_values(self, client_a, asha):
        _, errors = patient_service.update_patient(client_a, asha.id, {"gravida": 1})

        assert "gravida" in errors

    def test_update_missing_patient(self, client_a):
        _, errors = patient_service.update_patient(client_a, "missing", {"age": 3})
        assert errors == {"general": "Patient not found"}

    def test_search_by_name_or_phone(self, client_a, asha, patient_data):
        patient_service.create_patient(client_a, dict(patient_data, name="Bina", phone="9123456780"))

        assert [p.name for p in patient_service.search_patients(client_a, "ash")] == ["Asha"]
        assert [p.name for p in patient_service.search_patients(client_a, "91234")] == ["Bina"]
        assert len(patient_service.search_patients(client_a, "  ")) == 2

    def test_history(self, client_a, asha):
        add_visit(client_a, asha)
        add_appointment(client_a, asha)

        history = patient_service.get_patient_history(client_a, asha.id)

        assert history["patient"].id == asha.id
        assert len(history["visits"]) == 1
        assert len(history["appointments"]) == 1
        assert patient_service.get_patient_history(client_a, "missing") is None

    def test_reset_all_data_for_one_mode(self, client_a, asha, patient_data):
        patient_service.create_patient(client_a, dict(patient_data, name="Meera", doctor_mode="gynecology"))
        add_visit(client_a, asha)
        client_a.list("patients")

        counts = patient_service.reset_all_data(client_a, mode="general")

        assert counts["patients"] == 1
        assert counts["visits"] == 1
        assert [p.name for p in patient_service.list_patients(client_a)] == ["Meera"]
        assert client_a.cache.entity_keys("patients") == ["patients"]

    def test_offline_create_returns_queued(self, client_a, patient_data):
        client_a.monitor.set_online(False)

        result, errors = patient_service.create_patient(client_a, patient_data)

        assert errors is None
        assert isinstance(result, OfflineQueued)


class TestVisits:
    def test_visits_for_patient_newest_first(self, client_a, asha):
        first = add_visit(client_a, asha, note="First")
        second = add_visit(client_a, asha, note="Second")

        visits = visit_service.get_visits_for_patient(client_a, asha.id)

        assert {v.id for v in visits} == {first.id, second.id}
        assert visit_service.get_visit(client_a, "missing") is None

    def test_update_keeps_quick_mode(self, client_a, asha):
        visit = add_visit(client_a, asha)

        updated, errors = visit_service.update_visit(client_a, visit.id, {"fee": 750})

        assert errors is None
        assert updated.fee == 750
        assert updated.note == "Fever"

    def test_update_cannot_blank_the_note(self, client_a, asha):
        visit = add_visit(client_a, asha)

        _, errors = visit_service.update_visit(client_a, visit.id, {"note": ""})

        assert "note" in errors


class TestExpenses:
    def test_list_is_newest_first_and_filtered_by_range(self, client_a):
        today = local_today("UTC")
        for offset in (10, 0, 3):
            expense_service.create_expense(
                client_a,
                {"amount": 50, "category": "Supplies", "date": today - timedelta(days=offset), "doctor_mode": "general"},
            )

        expenses = expense_service.list_expenses(client_a)
        recent = expense_service.list_expenses(client_a, date_range=(today - timedelta(days=5), today))

        assert [e.date for e in expenses] == [today, today - timedelta(days=3), today - timedelta(days=10)]
        assert len(recent) == 2

    def test_update_rejects_future_date(self, client_a):
        expense, _ = expense_service.create_expense(
            client_a, {"amount": 50, "category": "Rent", "date": local_today("UTC"), "doctor_mode": "general"}
        )

        _, errors = expense_service.update_expense(
            client_a, expense.id, {"date": local_today("UTC") + timedelta(days=2)}
        )

        assert "date" in errors


class TestAppointments:
    def test_upcoming_excludes_cancelled_and_far_future(self, client_a, asha):
        soon = add_appointment(client_a, asha, hours_ahead=2)
        cancelled = add_appointment(client_a, asha, hours_ahead=5)
        add_appointment(client_a, asha, hours_ahead=24 * 30)
        appointment_service.cancel_appointment(client_a, cancelled.id)

        upcoming = appointment_service.get_upcoming_appointments(client_a, days=7)

        assert [a.id for a in upcoming] == [soon.id]

    def test_update_end_before_stored_start_rejected(self, client_a, asha):
        appointment = add_appointment(client_a, asha)

        _, errors = appointment_service.update_appointment(
            client_a, appointment.id, {"end_time": as_utc(appointment.start_time) - timedelta(minutes=5)}
        )

        assert "end_time" in errors

    def test_complete(self, client_a, asha):
        appointment = add_appointment(client_a, asha)

        updated, errors = appointment_service.complete_appointment(client_a, appointment.id)

        assert errors is None
        assert updated.status == "completed"


class TestBilling:
    def test_prescription_from_template(self, client_a, asha):
        visit = add_visit(client_a, asha)
        template, _ = billing_service.create_prescription_template(
            client_a, {"name": "Fever", "content": "Paracetamol 500mg"}
        )

        prescription, errors = billing_service.create_prescription(client_a, visit.id, template_id=template.id)

        assert errors is None
        assert prescription.content == "Paracetamol 500mg"
        assert [p.id for p in billing_service.get_prescriptions_for_visit(client_a, visit.id)] == [prescription.id]

    def test_prescription_needs_content(self, client_a, asha):
        visit = add_visit(client_a, asha)

        _, errors = billing_service.create_prescription(client_a, visit.id, content="  ")

        assert errors == {"content": "Prescription content is required"}

    def test_invoice_total_from_visits(self, client_a, asha):
        visits = [add_visit(client_a, asha, fee=300), add_visit(client_a, asha, fee=200)]

        invoice, errors = billing_service.create_invoice(
            client_a, {"patient_id": asha.id, "visit_ids": [v.id for v in visits]}
        )

        assert errors is None
        assert invoice.total_amount == 500
        assert invoice.status == "unpaid"
        assert [i.id for i in billing_service.get_unpaid_invoices(client_a)] == [invoice.id]

        billing_service.mark_invoice_paid(client_a, invoice.id)
        assert billing_service.get_unpaid_invoices(client_a) == []

    def test_unknown_invoice_status(self, client_a):
        _, errors = billing_service.set_invoice_status(client_a, "any", "refunded")
        assert "status" in errors

    def test_reminders_due_and_sent(self, client_a, asha):
        appointment = add_appointment(client_a, asha)
        reminder, errors = billing_service.create_reminder(
            client_a, appointment.id, "sms", now_utc() + timedelta(minutes=1)
        )
        assert errors is None

        assert billing_service.get_due_reminders(client_a) == []
        due = billing_service.get_due_reminders(client_a, now=now_utc() + timedelta(hours=1))
        assert [r.id for r in due] == [reminder.id]

        sent = billing_service.mark_reminder_sent(client_a, reminder.id)
        assert sent.status == "sent"
        assert sent.sent_at is not None

    def test_reminder_in_the_past_rejected(self, client_a, asha):
        appointment = add_appointment(client_a, asha)

        _, errors = billing_service.create_reminder(client_a, appointment.id, "pigeon", now_utc() - timedelta(hours=1))

        assert set(errors) == {"type", "scheduled_at"}
