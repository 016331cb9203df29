"""
Global test fixtures for pytest.

Every test gets a fresh in-memory SQLite database holding two clinics
(A and B), each with an admin profile, plus data clients that share one
in-memory local store. Helpers create extra staff with other roles.
"""
from datetime import timedelta

import pytest

from core.config import Settings
from core.connectivity import ConnectivityMonitor
from core.database import Base, build_engine, make_session_factory
from core.local_cache import LocalCache
from core.local_store import LocalStore
from core.storage import LocalStorageBucket
from core.time_utils import now_utc
from models.clinic import Clinic
from models.user import AuthUser, UserProfile
from services.auth_service import AuthSession
from services.data_client import ClinicDataClient
from services.profile_service import ClinicContext
from services.sync_service import PendingQueue


def make_session(user_id: str, email: str, ttl=timedelta(hours=1)) -> AuthSession:
    return AuthSession(user_id=user_id, email=email, access_token="test-token", expires_at=now_utc() + ttl)


def add_auth_user(session_factory, email: str) -> str:
    with session_factory() as db:
        # Hashing is slow and irrelevant outside the auth tests
        user = AuthUser(email=email, password_hash="not-a-bcrypt-hash")
        db.add(user)
        db.commit()
        return user.id


def add_member(session_factory, clinic_id: str, role: str, email: str) -> AuthSession:
    """Create an auth identity with a profile in `clinic_id`; return its session."""
    user_id = add_auth_user(session_factory, email)
    with session_factory() as db:
        db.add(UserProfile(clinic_id=clinic_id, auth_user_id=user_id, role=role, name="Staff Member", email=email))
        db.commit()
    return make_session(user_id, email)


def add_clinic(session_factory, name: str, admin_email: str):
    user_id = add_auth_user(session_factory, admin_email)
    with session_factory() as db:
        clinic = Clinic(name=name, owner_id=user_id)
        db.add(clinic)
        db.flush()
        db.add(UserProfile(clinic_id=clinic.id, auth_user_id=user_id, role="admin", name="Admin", email=admin_email))
        db.commit()
        return clinic.id, make_session(user_id, admin_email)


def make_client(context, store, namespace, monitor=None) -> ClinicDataClient:
    return ClinicDataClient(
        context,
        cache=LocalCache(store, namespace=namespace),
        queue=PendingQueue(store, namespace=namespace),
        monitor=monitor or ConnectivityMonitor(),
    )


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
def settings():
    """Not-configured settings: in-memory database, UTC day boundaries."""
    return Settings(backend_url=None, api_key=None, cache_path=None, timezone="UTC")


@pytest.fixture
def engine():
    import models  # noqa: F401

    eng = build_engine("sqlite://")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


# ============================================================================
# Clinics and contexts
# ============================================================================

@pytest.fixture
def clinic_a(session_factory):
    """(clinic_id, admin AuthSession) for clinic A."""
    return add_clinic(session_factory, "Clinic A", "admin-a@example.com")


@pytest.fixture
def clinic_b(session_factory):
    return add_clinic(session_factory, "Clinic B", "admin-b@example.com")


@pytest.fixture
def bucket(tmp_path):
    return LocalStorageBucket(str(tmp_path / "storage"), "prescriptions", "test-signing-key")


@pytest.fixture
def make_context(session_factory, settings, bucket):
    def _make(auth_session=None):
        return ClinicContext(session_factory=session_factory, settings=settings, auth_session=auth_session, bucket=bucket)

    return _make


@pytest.fixture
def context_a(make_context, clinic_a):
    return make_context(clinic_a[1])


@pytest.fixture
def context_b(make_context, clinic_b):
    return make_context(clinic_b[1])


# ============================================================================
# Data clients
# ============================================================================

@pytest.fixture
def store():
    return LocalStore()


@pytest.fixture
def monitor():
    return ConnectivityMonitor()


@pytest.fixture
def client_a(context_a, clinic_a, store, monitor):
    return make_client(context_a, store, clinic_a[0], monitor)


@pytest.fixture
def client_b(context_b, clinic_b, store):
    return make_client(context_b, store, clinic_b[0])


@pytest.fixture
def patient_data():
    return {
        "name": "Asha",
        "phone": "9876543210",
        "age": 32,
        "gender": "Female",
        "doctor_mode": "general",
    }


@pytest.fixture
def make_member(session_factory, make_context):
    """Factory: ClinicContext for a new staff member with `role` in `clinic_id`."""
    counter = {"n": 0}

    def _make(clinic_id, role):
        counter["n"] += 1
        return make_context(add_member(session_factory, clinic_id, role, f"{role}{counter['n']}@example.com"))

    return _make


@pytest.fixture
def make_unonboarded(session_factory, make_context):
    """Factory: ClinicContext for a signed-in identity without a profile."""

    def _make(email="new@example.com"):
        return make_context(make_session(add_auth_user(session_factory, email), email))

    return _make
