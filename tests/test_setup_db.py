"""
Tests for process bootstrap in not-configured (demo) mode.
"""
from core.config import Settings
from core.helpers import format_currency
from core.setup_db import bootstrap
from services.auth_service import MOCK_EMAIL, MOCK_PASSWORD, ensure_mock_identity, sign_in
from services.profile_service import ClinicContext


def test_demo_identity_can_sign_in_and_resolve(tmp_path):
    settings = Settings(backend_url=None, api_key=None, cache_path=None, storage_dir=str(tmp_path))

    runtime = bootstrap(settings)

    with runtime.session_factory() as db:
        session, error = sign_in(db, MOCK_EMAIL, MOCK_PASSWORD)
        # Seeding twice is a no-op
        assert ensure_mock_identity(db).id == session.user_id
    assert error is None

    context = ClinicContext(
        session_factory=runtime.session_factory, settings=settings, auth_session=session, bucket=runtime.bucket
    )
    assert context.resolver.resolve().role == "admin"
    assert runtime.monitor.check() is True
    assert runtime.store.path is None


def test_format_currency():
    assert format_currency(1234.5) == "₹1,234.50"
    assert format_currency(None) == "₹0.00"
