"""
Prescriptions, invoices and appointment reminders.

All writes go through the data client, so they are clinic-scoped,
audited and queued while offline like any other entity.
"""
from datetime import datetime

from core.errors import NotFound
from core.time_utils import as_utc, now_utc
from models.billing import INVOICE_STATUSES, REMINDER_TYPES
from services.validation import InvoiceForm, PrescriptionTemplateForm, validate_form


# -----------------------------
# Prescription templates
# -----------------------------
def create_prescription_template(client, data: dict):
    form, errors = validate_form(PrescriptionTemplateForm, data)
    if errors:
        return None, errors
    return client.create("prescription_templates", form.to_payload()), None


def list_prescription_templates(client):
    return client.list("prescription_templates", order_by="name")


def delete_prescription_template(client, template_id: str):
    return client.delete("prescription_templates", template_id)


# -----------------------------
# Prescriptions
# -----------------------------
def create_prescription(client, visit_id: str, content: str = None, template_id: str = None):
    """Prescription for a visit; an empty `content` is filled from the template."""
    if not content and template_id:
        try:
            content = client.get("prescription_templates", template_id).content
        except NotFound:
            return None, {"template_id": "Template not found"}
    if not content or not content.strip():
        return None, {"content": "Prescription content is required"}

    payload = {"visit_id": visit_id, "content": content.strip()}
    if template_id:
        payload["template_id"] = template_id
    return client.create("prescriptions", payload), None


def get_prescriptions_for_visit(client, visit_id: str):
    return client.list("prescriptions", filters={"visit_id": visit_id}, order_by="created_at")


# -----------------------------
# Invoices
# -----------------------------
def invoice_total(client, visit_ids) -> float:
    """Sum of the fees of the given visits (unknown ids count as zero)."""
    wanted = set(visit_ids or [])
    return sum(v.fee or 0 for v in client.list("visits") if v.id in wanted)


def create_invoice(client, data: dict):
    data = dict(data or {})
    if data.get("total_amount") is None:
        data["total_amount"] = invoice_total(client, data.get("visit_ids"))
    form, errors = validate_form(InvoiceForm, data)
    if errors:
        return None, errors
    return client.create("invoices", form.to_payload()), None


def set_invoice_status(client, invoice_id: str, status: str):
    if status not in INVOICE_STATUSES:
        return None, {"status": f"Status must be one of: {', '.join(INVOICE_STATUSES)}"}
    return client.update("invoices", invoice_id, {"status": status}), None


def mark_invoice_paid(client, invoice_id: str):
    return set_invoice_status(client, invoice_id, "paid")


def get_invoices_for_patient(client, patient_id: str):
    return client.list("invoices", filters={"patient_id": patient_id}, order_by="-created_at")


def get_unpaid_invoices(client):
    return [i for i in client.list("invoices") if i.status != "paid"]


# -----------------------------
# Reminders
# -----------------------------
def create_reminder(client, appointment_id: str, reminder_type: str, scheduled_at: datetime):
    errors = {}
    if reminder_type not in REMINDER_TYPES:
        errors["type"] = f"Reminder type must be one of: {', '.join(REMINDER_TYPES)}"
    if scheduled_at is None:
        errors["scheduled_at"] = "Reminder time is required"
    elif as_utc(scheduled_at) < now_utc():
        errors["scheduled_at"] = "Reminder cannot be scheduled in the past"
    if errors:
        return None, errors

    payload = {
        "appointment_id": appointment_id,
        "type": reminder_type,
        "scheduled_at": as_utc(scheduled_at).isoformat(),
        "status": "pending",
    }
    return client.create("reminders", payload), None


def get_due_reminders(client, now: datetime = None):
    """Pending reminders whose time has come, oldest first."""
    now = as_utc(now) if now else now_utc()
    due = [r for r in client.list("reminders") if r.status == "pending" and as_utc(r.scheduled_at) <= now]
    return sorted(due, key=lambda r: as_utc(r.scheduled_at))


def mark_reminder_sent(client, reminder_id: str, failed: bool = False):
    patch = {"status": "failed" if failed else "sent"}
    if not failed:
        patch["sent_at"] = now_utc().isoformat()
    return client.update("reminders", reminder_id, patch)
