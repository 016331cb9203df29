from core.errors import NotFound
from services.validation import VisitForm, validate_form

VISIT_FIELDS = ("patient_id", "doctor_mode", "fee", "next_visit", "photo_url", "note")


# -----------------------------
# Create a new visit
# -----------------------------
def create_visit(client, data: dict):
    """
    data["visit_mode"] is "quick" (note required) or "photo"
    (prescription photo URL required).
    """
    form, errors = validate_form(VisitForm, data)
    if errors:
        return None, errors
    return client.create("visits", form.to_payload()), None


# -----------------------------
# Get visit by ID
# -----------------------------
def get_visit(client, visit_id: str):
    try:
        return client.get("visits", visit_id)
    except NotFound:
        return None


# -----------------------------
# Get all visits for a patient
# -----------------------------
def get_visits_for_patient(client, patient_id: str):
    return client.list("visits", filters={"patient_id": patient_id}, order_by="-created_at")


def list_visits(client, mode=None):
    return client.list("visits", mode=mode)


# -----------------------------
# Update visit attributes
# -----------------------------
def update_visit(client, visit_id: str, data: dict):
    data = dict(data or {})
    visit = get_visit(client, visit_id)
    if visit is None:
        return None, {"general": "Visit not found"}

    merged = {field: getattr(visit, field) for field in VISIT_FIELDS}
    merged.update({k: v for k, v in data.items() if k in VISIT_FIELDS})
    merged["visit_mode"] = data.get("visit_mode") or ("photo" if merged.get("photo_url") and not merged.get("note") else "quick")
    form, errors = validate_form(VisitForm, merged)
    if errors:
        return None, errors

    payload = form.model_dump(mode="json")
    patch = {k: payload.get(k) for k in data if k in VISIT_FIELDS}
    return client.update("visits", visit_id, patch), None


def delete_visit(client, visit_id: str):
    return client.delete("visits", visit_id)
