import streamlit as st

from core.database import get_db_context
from core.session_manager import get_runtime, init_session_state, login, logout, refresh_client
from core.sidebar import hide_sidebar_completely
from services.auth_service import MOCK_EMAIL, MOCK_PASSWORD, sign_in, sign_up
from services.clinic_service import onboard_clinic


def render_login(runtime):
    st.subheader("Log in")
    if not runtime.settings.is_configured:
        st.info(f"Demo mode (backend not configured). Log in with **{MOCK_EMAIL}** / **{MOCK_PASSWORD}**.")

    with st.form("login_form"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Login")

    if submitted:
        with get_db_context(runtime.session_factory) as db:
            session, error = sign_in(db, email, password)
        if error:
            st.error(error)
        else:
            login(session)
            st.success("Login successful! Redirecting...")
            st.rerun()


def render_signup(runtime):
    st.subheader("New here? Sign up")
    with st.form("signup_form"):
        email = st.text_input("Email", key="su_email")
        password = st.text_input("Password", type="password", key="su_pass")
        confirm = st.text_input("Confirm password", type="password", key="su_confirm")
        submitted = st.form_submit_button("Create account")

    if submitted:
        with get_db_context(runtime.session_factory) as db:
            session, errors = sign_up(db, email, password, confirm)
        if errors:
            for field, message in errors.items():
                st.error(f"{field}: {message}")
        else:
            login(session)
            st.success("Account created. Set up your clinic next.")
            st.rerun()


def render_onboarding(context):
    """Signed in but no profile yet: create the clinic and become its admin."""
    st.subheader("Set up your clinic")
    with st.form("onboarding_form"):
        clinic_name = st.text_input("Clinic name")
        address = st.text_input("Clinic address")
        clinic_phone = st.text_input("Clinic phone")
        your_name = st.text_input("Your name")
        submitted = st.form_submit_button("Create clinic")

    if submitted:
        profile, errors = onboard_clinic(
            context,
            {"name": clinic_name, "address": address or None, "phone": clinic_phone or None},
            {"name": your_name},
        )
        if errors:
            for field, message in errors.items():
                st.error(f"{field}: {message}")
        else:
            refresh_client()
            st.success("Clinic created!")
            st.switch_page("pages/dashboard.py")

    if st.button("Log out"):
        logout()


def main():
    st.set_page_config(
        page_title="ClinicTrack",
        page_icon="🏥",
        layout="wide",
        initial_sidebar_state="collapsed",
    )

    runtime = get_runtime()
    context = init_session_state()

    st.title("ClinicTrack")
    st.write("---")

    if not context.is_authenticated:
        hide_sidebar_completely()
        col1, col2 = st.columns(2)
        with col1:
            render_login(runtime)
        with col2:
            render_signup(runtime)
        return

    profile = context.resolver.resolve()
    if profile is None:
        hide_sidebar_completely()
        render_onboarding(context)
        return

    st.info(f"Logged in as: **{context.auth_session.email}** ({profile.role})")
    st.subheader("Quick navigation")
    c1, c2, c3, c4 = st.columns(4)
    if c1.button("Dashboard"):
        st.switch_page("pages/dashboard.py")
    if c2.button("Patients"):
        st.switch_page("pages/patients.py")
    if c3.button("Expenses"):
        st.switch_page("pages/expenses.py")
    if c4.button("Appointments"):
        st.switch_page("pages/appointments.py")

    if st.button("Log out"):
        logout()


if __name__ == "__main__":
    main()
