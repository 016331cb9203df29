import streamlit as st

from core.errors import ClinicError
from core.helpers import format_currency
from core.session_manager import require_profile
from core.sidebar import render_clinic_sidebar, show_write_result
from services.media_service import upload_visit_photo
from services.patient_service import create_patient, delete_patient, get_patient_history, search_patients
from services.permissions import can_delete_data
from services.visit_service import create_visit


def render_new_patient_form(client, mode):
    with st.expander("Register new patient"):
        with st.form("new_patient_form", clear_on_submit=True):
            name = st.text_input("Name")
            phone = st.text_input("Phone")
            age = st.number_input("Age", min_value=0, max_value=150, step=1)
            gender = st.selectbox("Gender", ["Female", "Male", "Other"])
            data = {"name": name, "phone": phone, "age": int(age), "gender": gender, "doctor_mode": mode}

            if mode == "gynecology":
                lmp = st.date_input("LMP date", value=None)
                gravida = st.number_input("Gravida", min_value=0, max_value=20, step=1)
                para = st.number_input("Para", min_value=0, max_value=20, step=1)
                data.update({"lmp_date": lmp, "gravida": int(gravida), "para": int(para)})

            data["blood_group"] = st.text_input("Blood group") or None
            data["allergies"] = st.text_input("Allergies") or None
            submitted = st.form_submit_button("Save patient")

        if submitted:
            try:
                result, errors = create_patient(client, data)
            except ClinicError as exc:
                st.error(str(exc))
            else:
                show_write_result(result, errors, "Patient registered.")


def render_visit_form(context, client, patient, mode):
    with st.form(f"visit_form_{patient.id}", clear_on_submit=True):
        visit_mode = st.radio("Visit type", ["quick", "photo"], horizontal=True, key=f"vm_{patient.id}")
        note = st.text_area("Clinical notes")
        photo = st.file_uploader("Prescription photo", type=["jpg", "jpeg", "png", "webp"])
        fee = st.number_input("Fee", min_value=0.0, step=50.0)
        next_visit = st.date_input("Next visit", value=None)
        submitted = st.form_submit_button("Save visit")

    if not submitted:
        return

    try:
        photo_url = None
        if photo is not None:
            photo_url = upload_visit_photo(context, patient.id, photo.name, photo.getvalue())
        result, errors = create_visit(
            client,
            {
                "visit_mode": visit_mode,
                "patient_id": patient.id,
                "doctor_mode": mode,
                "note": note,
                "fee": fee,
                "next_visit": next_visit,
                "photo_url": photo_url,
            },
        )
    except ClinicError as exc:
        st.error(str(exc))
        return
    show_write_result(result, errors, "Visit saved.")


# ----------------------------------------------
# MAIN PAGE
# ----------------------------------------------
def main():
    context, client = require_profile()
    mode = render_clinic_sidebar()

    st.title("Patients")
    render_new_patient_form(client, mode)

    term = st.text_input("Search by name or phone")
    patients = search_patients(client, term, mode=mode)

    if not patients:
        st.info("No patients found.")
        return

    for patient in patients:
        with st.expander(f"{patient.name} ({patient.age}, {patient.gender})"):
            st.write(f"- Phone: **{patient.phone}**")
            if patient.blood_group:
                st.write(f"- Blood group: **{patient.blood_group}**")

            history = get_patient_history(client, patient.id)
            if history and history["visits"]:
                st.markdown("**Visits**")
                for visit in history["visits"]:
                    when = f"{visit.created_at:%d %b %Y}" if visit.created_at else "pending sync"
                    st.write(f"- {when}: {visit.note or 'Photo prescription'} ({format_currency(visit.fee)})")

            render_visit_form(context, client, patient, mode)

            if can_delete_data(context.profile.role) and st.button("Delete patient", key=f"del_{patient.id}"):
                try:
                    delete_patient(client, patient.id)
                except ClinicError as exc:
                    st.error(str(exc))
                else:
                    st.rerun()


if __name__ == "__main__":
    main()
