from datetime import date

import streamlit as st

from core.errors import ClinicError
from core.helpers import format_currency
from core.session_manager import require_role
from core.sidebar import render_clinic_sidebar, show_write_result
from models.expense import EXPENSE_CATEGORIES
from services.expense_service import create_expense, delete_expense, list_expenses
from services.stats_service import get_expense_breakdown


# ----------------------------------------------
# MAIN PAGE
# ----------------------------------------------
def main():
    # Receptionists do not handle clinic finances
    _, client = require_role("admin", "doctor", "general_physician", "gynecologist")
    mode = render_clinic_sidebar()

    st.title("Expenses")

    with st.form("expense_form", clear_on_submit=True):
        c1, c2 = st.columns(2)
        amount = c1.number_input("Amount", min_value=0.0, step=100.0)
        category = c2.selectbox("Category", EXPENSE_CATEGORIES)
        spent_on = st.date_input("Date", value=date.today())
        note = st.text_input("Note")
        submitted = st.form_submit_button("Add expense")

    if submitted:
        try:
            result, errors = create_expense(
                client,
                {"amount": amount, "category": category, "date": spent_on, "note": note or None, "doctor_mode": mode},
            )
        except ClinicError as exc:
            st.error(str(exc))
        else:
            show_write_result(result, errors, "Expense added.")

    breakdown = get_expense_breakdown(client, mode=mode)["breakdown"]
    if breakdown:
        st.subheader("By category")
        st.bar_chart({row["category"]: row["amount"] for row in breakdown})

    st.subheader("All expenses")
    expenses = list_expenses(client, mode=mode)
    if not expenses:
        st.info("No expenses recorded.")
        return

    for expense in expenses:
        col1, col2 = st.columns([5, 1])
        col1.write(f"{expense.date:%d %b %Y} | {expense.category} | {format_currency(expense.amount)} {expense.note or ''}")
        if col2.button("Delete", key=f"del_{expense.id}"):
            try:
                delete_expense(client, expense.id)
            except ClinicError as exc:
                st.error(str(exc))
            else:
                st.rerun()


if __name__ == "__main__":
    main()
