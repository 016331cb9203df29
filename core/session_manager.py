import logging

import streamlit as st

from core.local_cache import LocalCache
from services.auth_service import sign_out
from services.data_client import ClinicDataClient
from services.permissions import has_permission
from services.profile_service import ClinicContext
from services.sync_service import PendingQueue

logger = logging.getLogger(__name__)


@st.cache_resource
def get_runtime():
    """One engine/store/monitor per server process."""
    from core.setup_db import bootstrap

    return bootstrap()


def init_session_state():
    """Ensure required session keys exist."""
    runtime = get_runtime()
    if "context" not in st.session_state:
        st.session_state.context = ClinicContext(
            session_factory=runtime.session_factory,
            settings=runtime.settings,
            bucket=runtime.bucket,
        )
    if "data_client" not in st.session_state:
        st.session_state.data_client = None
    return st.session_state.context


def _build_client(context, runtime) -> ClinicDataClient:
    profile = context.resolver.resolve()
    namespace = profile.clinic_id if profile else "default"
    client = ClinicDataClient(
        context,
        cache=LocalCache(runtime.store, namespace=namespace),
        queue=PendingQueue(runtime.store, namespace=namespace),
        monitor=runtime.monitor,
    )
    client.start_sync(runtime.settings.sync_interval)
    return client


def login(auth_session):
    """Attach the auth session, resolve the profile and build the data client."""
    context = init_session_state()
    context.auth_session = auth_session
    context.resolver.refetch()
    st.session_state.data_client = _build_client(context, get_runtime())


def refresh_client():
    """Rebuild the data client after onboarding (namespace changes to the new clinic)."""
    context = init_session_state()
    old = st.session_state.get("data_client")
    if old is not None:
        old.stop_sync()
    st.session_state.data_client = _build_client(context, get_runtime())


def clear_session():
    """Clear session without redirect."""
    client = st.session_state.pop("data_client", None)
    if client is not None:
        client.stop_sync()
        client.cache.clear()
    context = st.session_state.pop("context", None)
    if context is not None:
        sign_out(context)


def logout():
    """Clear session and redirect to main app page."""
    clear_session()
    st.query_params.clear()
    st.switch_page("app.py")


def require_profile():
    """Return (context, client) for a signed-in, onboarded user or redirect."""
    context = init_session_state()

    if not context.is_authenticated:
        st.warning("Please log in to access this page.")
        st.switch_page("app.py")

    profile = context.resolver.resolve()
    if profile is None:
        st.warning("Your account is not linked to a clinic yet.")
        st.switch_page("app.py")

    client = st.session_state.get("data_client")
    if client is None:
        client = _build_client(context, get_runtime())
        st.session_state.data_client = client
    return context, client


def require_role(*roles: str):
    """Restrict page by role; send unauthorized users to app.py."""
    context, client = require_profile()
    role = context.resolver.profile.role
    if roles and not has_permission(role, roles):
        st.error(f" Access denied. This page requires one of: {', '.join(roles)}.")
        st.switch_page("app.py")
    return context, client
