"""
Tests for identity/profile resolution.
"""
import logging
import threading
from datetime import timedelta

import pytest

from models.user import UserProfile
from services.auth_service import sign_out
from services.profile_service import ProfileResolver, ProfileState, load_profile

from tests.conftest import make_session


class CountingLoader:
    def __init__(self, session_factory, gate: threading.Event = None):
        self.session_factory = session_factory
        self.gate = gate
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, auth_user_id):
        with self._lock:
            self.calls += 1
        if self.gate is not None:
            self.gate.wait(timeout=5)
        return load_profile(self.session_factory, auth_user_id)


class TestResolve:
    def test_no_session_returns_none_without_query(self, make_context, session_factory):
        context = make_context(None)
        loader = CountingLoader(session_factory)
        resolver = ProfileResolver(context, loader=loader)

        assert resolver.resolve() is None
        assert loader.calls == 0
        assert resolver.state is ProfileState.UNRESOLVED

    def test_resolves_clinic_scoped_profile(self, context_a, clinic_a):
        profile = context_a.resolver.resolve()

        assert profile.clinic_id == clinic_a[0]
        assert profile.role == "admin"
        assert profile.doctor_mode is None
        assert context_a.resolver.state is ProfileState.RESOLVED

    def test_resolving_twice_returns_same_object_with_one_call(self, context_a, session_factory):
        loader = CountingLoader(session_factory)
        resolver = ProfileResolver(context_a, loader=loader)

        first = resolver.resolve()
        second = resolver.resolve()

        assert first is second
        assert loader.calls == 1

    def test_concurrent_calls_share_one_fetch(self, context_a, session_factory):
        gate = threading.Event()
        loader = CountingLoader(session_factory, gate=gate)
        resolver = ProfileResolver(context_a, loader=loader)
        results = []

        threads = [threading.Thread(target=lambda: results.append(resolver.resolve())) for _ in range(5)]
        for t in threads:
            t.start()
        gate.set()
        for t in threads:
            t.join(timeout=5)

        assert len(results) == 5
        assert all(r is results[0] for r in results)
        assert results[0] is not None
        assert loader.calls == 1

    def test_refetch_during_slow_resolve_starts_fresh_fetch(self, context_a, session_factory):
        started = threading.Event()
        release = threading.Event()
        calls = []

        def loader(auth_user_id):
            calls.append(auth_user_id)
            if len(calls) == 1:
                # Stale lookup: blocks, then finds nothing
                started.set()
                release.wait(timeout=5)
                return None
            return load_profile(session_factory, auth_user_id)

        resolver = ProfileResolver(context_a, loader=loader)
        stale = []
        thread = threading.Thread(target=lambda: stale.append(resolver.resolve()))
        thread.start()
        assert started.wait(timeout=5)

        profile = resolver.refetch()
        release.set()
        thread.join(timeout=5)

        assert profile is not None
        assert profile.role == "admin"
        assert len(calls) == 2
        assert stale == [None]
        # The stale result does not overwrite the newer one
        assert resolver.state is ProfileState.RESOLVED
        assert resolver.resolve() is profile

    def test_expired_session_counts_as_no_session(self, make_context, clinic_a, session_factory):
        expired = make_session(clinic_a[1].user_id, clinic_a[1].email, ttl=timedelta(seconds=-1))
        context = make_context(expired)

        assert context.is_authenticated is False
        assert context.resolver.resolve() is None


class TestDenied:
    def test_not_onboarded_is_denied_not_error(self, make_unonboarded):
        context = make_unonboarded()

        assert context.resolver.resolve() is None
        assert context.resolver.state is ProfileState.DENIED

    def test_denied_sticks_until_refetch(self, make_unonboarded, session_factory, clinic_a):
        context = make_unonboarded()
        assert context.resolver.resolve() is None

        # Profile appears later (signup race resolved)
        with session_factory() as db:
            db.add(
                UserProfile(
                    clinic_id=clinic_a[0],
                    auth_user_id=context.auth_session.user_id,
                    role="doctor",
                    name="Late Joiner",
                    email=context.auth_session.email,
                )
            )
            db.commit()

        assert context.resolver.resolve() is None
        profile = context.resolver.refetch()
        assert profile is not None
        assert profile.clinic_id == clinic_a[0]

    def test_loader_error_becomes_none_and_is_logged(self, context_a, caplog):
        def broken(auth_user_id):
            raise RuntimeError("backend down")

        resolver = ProfileResolver(context_a, loader=broken)
        with caplog.at_level(logging.ERROR):
            assert resolver.resolve() is None

        assert resolver.state is ProfileState.DENIED
        assert "Profile resolution failed" in caplog.text


class TestLifecycle:
    def test_sign_out_invalidates(self, context_a):
        assert context_a.resolver.resolve() is not None

        sign_out(context_a)

        assert context_a.auth_session is None
        assert context_a.resolver.state is ProfileState.UNRESOLVED
        assert context_a.resolver.resolve() is None

    @pytest.mark.parametrize(
        "role, mode",
        [("gynecologist", "gynecology"), ("general_physician", "general"), ("doctor", None), ("receptionist", None)],
    )
    def test_specialist_roles_get_a_track(self, make_member, clinic_a, role, mode):
        context = make_member(clinic_a[0], role)
        assert context.resolver.resolve().doctor_mode == mode
