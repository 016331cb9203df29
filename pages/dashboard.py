import streamlit as st

from core.errors import ClinicError
from core.helpers import format_currency
from core.session_manager import require_profile
from core.sidebar import render_clinic_sidebar
from services.audit_service import get_recent_activity
from services.appointment_service import get_upcoming_appointments
from services.stats_service import get_dashboard_stats


# ----------------------------------------------
# MAIN PAGE
# ----------------------------------------------
def main():
    context, client = require_profile()
    mode = render_clinic_sidebar()

    st.title("Dashboard")
    st.caption(f"{'Gynecology' if mode == 'gynecology' else 'General'} practice")

    try:
        stats = get_dashboard_stats(client, mode=mode)
    except ClinicError as exc:
        st.error(str(exc))
        return

    # Row 1: patients and visits
    r1c1, r1c2, r1c3 = st.columns(3)
    r1c1.metric("Patients", stats["patient_count"])
    r1c2.metric("Visits today", stats["visits_today"])
    r1c3.metric("Visits this week", stats["visits_this_week"])

    # Row 2: money
    r2c1, r2c2, r2c3, r2c4 = st.columns(4)
    r2c1.metric("Today's income", format_currency(stats["today_income"]))
    r2c2.metric("This month", format_currency(stats["monthly_income"]))
    r2c3.metric("Monthly expenses", format_currency(stats["monthly_expenses"]))
    r2c4.metric("Profit (month)", format_currency(stats["profit"]))

    st.divider()

    left, right = st.columns(2)
    with left:
        st.subheader("Recent visits")
        if not stats["recent_activity"]:
            st.info("No visits recorded yet.")
        for item in stats["recent_activity"]:
            st.write(
                f"- **{item['patient_name']}**, {item['created_at']:%d %b %H:%M}, {format_currency(item['fee'])}"
            )

    with right:
        st.subheader("Upcoming appointments")
        upcoming = get_upcoming_appointments(client, mode=mode)
        if not upcoming:
            st.info("Nothing scheduled for the next 7 days.")
        for appt in upcoming:
            st.write(f"- {appt.start_time:%d %b %H:%M}: {appt.title or 'Appointment'}")

    last_sync = client.cache.get_last_sync_time()
    if not client.monitor.is_online() and last_sync:
        st.warning("Showing cached data from the last sync.")

    with st.expander("Activity log"):
        for log in get_recent_activity(context, limit=20):
            st.write(f"{log['created_at'][:16]} {log['user_name']} {log['action']} {log['entity_type']}")


if __name__ == "__main__":
    main()
