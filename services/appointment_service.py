from datetime import timedelta

from core.errors import NotFound
from core.time_utils import as_utc, now_utc
from services.validation import AppointmentForm, AppointmentUpdateForm, validate_form


# -----------------------------
# Create an appointment
# -----------------------------
def create_appointment(client, data: dict):
    form, errors = validate_form(AppointmentForm, data)
    if errors:
        return None, errors
    return client.create("appointments", form.to_payload()), None


# -----------------------------
# Update (partial); start/end are checked against the stored values
# -----------------------------
def update_appointment(client, appointment_id: str, data: dict):
    try:
        appointment = client.get("appointments", appointment_id)
    except NotFound:
        return None, {"general": "Appointment not found"}

    data = dict(data or {})
    check = dict(data)
    if "start_time" in data or "end_time" in data:
        check.setdefault("start_time", as_utc(appointment.start_time))
        check.setdefault("end_time", as_utc(appointment.end_time))

    form, errors = validate_form(AppointmentUpdateForm, check)
    if errors:
        return None, errors

    payload = form.model_dump(mode="json")
    patch = {k: payload.get(k) for k in data if k in AppointmentUpdateForm.model_fields}
    return client.update("appointments", appointment_id, patch), None


def cancel_appointment(client, appointment_id: str):
    return update_appointment(client, appointment_id, {"status": "cancelled"})


def complete_appointment(client, appointment_id: str):
    return update_appointment(client, appointment_id, {"status": "completed"})


def delete_appointment(client, appointment_id: str):
    return client.delete("appointments", appointment_id)


# -----------------------------
# Reads
# -----------------------------
def list_appointments(client, mode=None):
    return client.list("appointments", mode=mode)


def get_upcoming_appointments(client, days: int = 7, mode=None):
    """Scheduled appointments starting between now and `days` from now, soonest first."""
    now = now_utc()
    horizon = now + timedelta(days=days)
    upcoming = [
        a
        for a in client.list("appointments", mode=mode)
        if (a.status or "scheduled") == "scheduled" and now <= as_utc(a.start_time) <= horizon
    ]
    return sorted(upcoming, key=lambda a: as_utc(a.start_time))


def get_appointments_for_patient(client, patient_id: str):
    return client.list("appointments", filters={"patient_id": patient_id}, order_by="start_time")
