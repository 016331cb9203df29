from datetime import datetime, timedelta

import streamlit as st

from core.errors import ClinicError
from core.session_manager import require_profile
from core.sidebar import render_clinic_sidebar, show_write_result
from core.time_utils import as_utc
from services.appointment_service import cancel_appointment, complete_appointment, create_appointment, list_appointments
from services.patient_service import list_patients


# ----------------------------------------------
# MAIN PAGE
# ----------------------------------------------
def main():
    context, client = require_profile()
    mode = render_clinic_sidebar()

    st.title("Appointments")

    patients = list_patients(client, mode=mode)
    names = {p.id: p.name for p in patients}

    if patients:
        with st.form("appointment_form", clear_on_submit=True):
            patient_id = st.selectbox("Patient", list(names), format_func=lambda pid: names[pid])
            title = st.text_input("Title")
            day = st.date_input("Date")
            start = st.time_input("Start", value=(datetime.now() + timedelta(hours=1)).time().replace(second=0, microsecond=0))
            duration = st.number_input("Duration (minutes)", min_value=5, max_value=480, value=30, step=5)
            notes = st.text_area("Notes")
            submitted = st.form_submit_button("Book appointment")

        if submitted:
            start_time = datetime.combine(day, start).astimezone()
            try:
                result, errors = create_appointment(
                    client,
                    {
                        "patient_id": patient_id,
                        "doctor_mode": mode,
                        "title": title or None,
                        "start_time": start_time,
                        "end_time": start_time + timedelta(minutes=int(duration)),
                        "notes": notes or None,
                    },
                )
            except ClinicError as exc:
                st.error(str(exc))
            else:
                show_write_result(result, errors, "Appointment booked.")
    else:
        st.info("Register a patient before booking appointments.")

    st.divider()
    appointments = list_appointments(client, mode=mode)
    if not appointments:
        st.info("No appointments yet.")
        return

    for appt in appointments:
        col1, col2, col3 = st.columns([4, 1, 1])
        when = as_utc(appt.start_time).astimezone()
        col1.write(f"{when:%d %b %H:%M} | {names.get(appt.patient_id, 'Unknown')} | {appt.title or ''} | **{appt.status}**")
        if appt.status == "scheduled":
            try:
                if col2.button("Done", key=f"done_{appt.id}"):
                    complete_appointment(client, appt.id)
                    st.rerun()
                if col3.button("Cancel", key=f"cancel_{appt.id}"):
                    cancel_appointment(client, appt.id)
                    st.rerun()
            except ClinicError as exc:
                st.error(str(exc))


if __name__ == "__main__":
    main()
