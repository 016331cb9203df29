from core.errors import NotFound
from core.time_utils import local_today
from services.validation import ExpenseForm, validate_form

EXPENSE_FIELDS = ("amount", "category", "note", "date", "doctor_mode")


# -----------------------------
# Create a new expense
# -----------------------------
def create_expense(client, data: dict):
    """An invalid expense (e.g. dated in the future) never reaches the data layer."""
    form, errors = validate_form(ExpenseForm, data, today=local_today(client.context.timezone))
    if errors:
        return None, errors
    return client.create("expenses", form.to_payload()), None


def update_expense(client, expense_id: str, data: dict):
    data = dict(data or {})
    try:
        expense = client.get("expenses", expense_id)
    except NotFound:
        return None, {"general": "Expense not found"}

    merged = {field: getattr(expense, field) for field in EXPENSE_FIELDS}
    merged.update({k: v for k, v in data.items() if k in EXPENSE_FIELDS})
    form, errors = validate_form(ExpenseForm, merged, today=local_today(client.context.timezone))
    if errors:
        return None, errors

    payload = form.model_dump(mode="json")
    return client.update("expenses", expense_id, {k: payload.get(k) for k in data if k in EXPENSE_FIELDS}), None


def delete_expense(client, expense_id: str):
    return client.delete("expenses", expense_id)


def list_expenses(client, mode=None, date_range=None):
    """Newest first; `date_range` is an inclusive (start, end) pair of dates."""
    expenses = client.list("expenses", mode=mode)
    if date_range:
        start, end = date_range
        expenses = [e for e in expenses if start <= e.date <= end]
    return sorted(expenses, key=lambda e: e.date, reverse=True)
