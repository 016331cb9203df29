import logging

from core.errors import NotFound
from core.time_utils import local_today
from services.validation import PatientForm, validate_form

logger = logging.getLogger(__name__)

PATIENT_FIELDS = (
    "name", "phone", "age", "gender", "doctor_mode", "photo_url", "lmp_date",
    "gravida", "para", "address", "allergies", "blood_group", "notes",
)

# Cleared in this order by reset_all_data
RESET_KINDS = ("appointments", "visits", "expenses", "patients")


# ------------------------------------------
# Create a new patient
# ------------------------------------------
def create_patient(client, data: dict):
    """Returns (patient or OfflineQueued, None) or (None, {field: message})."""
    form, errors = validate_form(PatientForm, data, today=local_today(client.context.timezone))
    if errors:
        return None, errors
    return client.create("patients", form.to_payload()), None


# ------------------------------------------
# Update patient details (partial)
# ------------------------------------------
def update_patient(client, patient_id: str, data: dict):
    data = dict(data or {})
    try:
        patient = client.get("patients", patient_id)
    except NotFound:
        return None, {"general": "Patient not found"}

    merged = {field: getattr(patient, field) for field in PATIENT_FIELDS}
    merged.update({k: v for k, v in data.items() if k in PATIENT_FIELDS})
    form, errors = validate_form(PatientForm, merged, today=local_today(client.context.timezone))
    if errors:
        return None, errors

    payload = form.model_dump(mode="json")
    patch = {k: payload.get(k) for k in data if k in PATIENT_FIELDS}
    return client.update("patients", patient_id, patch), None


# ------------------------------------------
# Delete a patient (visits, appointments and invoices go with it)
# ------------------------------------------
def delete_patient(client, patient_id: str):
    return client.delete("patients", patient_id)


# ------------------------------------------
# Reads
# ------------------------------------------
def list_patients(client, mode=None):
    return client.list("patients", mode=mode)


def get_patient(client, patient_id: str):
    try:
        return client.get("patients", patient_id)
    except NotFound:
        return None


def search_patients(client, term: str, mode=None):
    """Case-insensitive match on name or phone."""
    needle = (term or "").strip().lower()
    patients = client.list("patients", mode=mode)
    if not needle:
        return patients
    return [p for p in patients if needle in (p.name or "").lower() or needle in (p.phone or "")]


def get_patient_history(client, patient_id: str):
    """Patient with visits (newest first) and appointments, or None."""
    patient = get_patient(client, patient_id)
    if patient is None:
        return None

    return {
        "patient": patient,
        "visits": client.list("visits", filters={"patient_id": patient_id}, order_by="-created_at"),
        "appointments": client.list("appointments", filters={"patient_id": patient_id}, order_by="start_time"),
    }


# ------------------------------------------
# Reset clinic data for one mode (or all)
# ------------------------------------------
def reset_all_data(client, mode=None) -> dict:
    """Delete patients, visits, expenses and appointments. Online only."""
    counts = {}
    for kind in RESET_KINDS:
        counts[kind] = client.repository(kind).delete_all(mode=mode)
        client.cache.invalidate_kind(kind)
    logger.warning("Clinic data reset", extra={"mode": mode, "counts": counts})
    return counts
