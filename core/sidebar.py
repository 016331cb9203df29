import streamlit as st

from core.errors import OfflineQueued


def hide_default_sidebar_nav():
    """Hide Streamlit's default multi-page navigation for a cleaner custom menu."""
    st.markdown(
        """
        <style>
        [data-testid="stSidebarNav"] { display: none; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def hide_sidebar_completely():
    """Completely hide Streamlit's sidebar and the toggle control (login views)."""
    st.markdown(
        """
        <style>
        [data-testid="stSidebar"] { display: none !important; }
        [data-testid="collapsedControl"] { display: none !important; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def render_clinic_sidebar():
    """Clinic menu plus the doctor-mode switch and sync status.

    Returns the selected doctor mode ("general" / "gynecology").
    """
    hide_default_sidebar_nav()
    with st.sidebar:
        st.markdown("### ClinicTrack")
        mode = st.radio(
            "Doctor mode",
            ["general", "gynecology"],
            key="doctor_mode",
            format_func=lambda m: "General" if m == "general" else "Gynecology",
        )
        if st.button("Dashboard", use_container_width=True):
            st.switch_page("pages/dashboard.py")
        if st.button("Patients", use_container_width=True):
            st.switch_page("pages/patients.py")
        if st.button("Expenses", use_container_width=True):
            st.switch_page("pages/expenses.py")
        if st.button("Appointments", use_container_width=True):
            st.switch_page("pages/appointments.py")

        client = st.session_state.get("data_client")
        if client is not None:
            pending = len(client.queue)
            if not client.monitor.is_online():
                st.warning(f"Offline: {pending} change(s) queued")
            elif pending:
                st.info(f"{pending} change(s) waiting to sync")

        st.divider()
        if st.button("Logout", use_container_width=True):
            from core.session_manager import logout
            logout()
    return mode


def show_write_result(result, errors, success_message: str) -> bool:
    """Render the outcome of an entity-service write. Returns True on success."""
    if errors:
        for field, message in errors.items():
            st.error(f"{field}: {message}")
        return False
    if isinstance(result, OfflineQueued):
        st.info("You are offline. The change was saved and will sync when the connection returns.")
    else:
        st.success(success_message)
    return True
