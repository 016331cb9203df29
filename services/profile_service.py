"""
Identity/profile resolution.

A ClinicContext is created per signed-in session and handed to every
data-access call. It owns the ProfileResolver, which turns the auth
session into a clinic-scoped profile once and keeps it until logout or
an explicit refetch.
"""
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from core.config import Settings
from core.database import get_db_context
from models.user import UserProfile
from services.permissions import restricted_mode_for_role

logger = logging.getLogger(__name__)


class ProfileState(str, Enum):
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    DENIED = "denied"


@dataclass(frozen=True)
class ResolvedProfile:
    id: str
    clinic_id: str
    auth_user_id: str
    role: str
    doctor_mode: Optional[str] = None  # set for specialist roles only


def load_profile(session_factory, auth_user_id: str) -> Optional[ResolvedProfile]:
    """Fetch the profile row for an auth identity, or None if not onboarded yet."""
    with get_db_context(session_factory) as db:
        row = db.query(UserProfile).filter(UserProfile.auth_user_id == auth_user_id).first()
        if row is None:
            logger.info("No profile for auth user %s (not onboarded)", auth_user_id)
            return None
        return ResolvedProfile(
            id=row.id,
            clinic_id=row.clinic_id,
            auth_user_id=row.auth_user_id,
            role=row.role,
            doctor_mode=restricted_mode_for_role(row.role),
        )


class ProfileResolver:
    """Resolves the session's profile once; concurrent callers share one fetch."""

    def __init__(self, context: "ClinicContext", loader: Callable[[str], Optional[ResolvedProfile]] = None):
        self.context = context
        self._loader = loader or (lambda auth_user_id: load_profile(context.session_factory, auth_user_id))
        self._lock = threading.Lock()
        self._state = ProfileState.UNRESOLVED
        self._profile: Optional[ResolvedProfile] = None
        self._inflight: Optional[Future] = None
        self._generation = 0

    @property
    def state(self) -> ProfileState:
        return self._state

    @property
    def profile(self) -> Optional[ResolvedProfile]:
        return self._profile

    def resolve(self) -> Optional[ResolvedProfile]:
        with self._lock:
            if self._state is ProfileState.RESOLVED:
                return self._profile
            if self._state is ProfileState.DENIED:
                return None

            session = self.context.auth_session
            if session is None or session.is_expired():
                return None

            if self._inflight is not None:
                future, owner = self._inflight, False
            else:
                future, owner = Future(), True
                self._inflight = future
                self._state = ProfileState.RESOLVING
                generation = self._generation

        if not owner:
            return future.result()

        profile = None
        try:
            profile = self._loader(session.user_id)
        except Exception:
            # Fail closed to "not authorized" rather than crash the caller
            logger.exception("Profile resolution failed for auth user %s", session.user_id)

        with self._lock:
            if generation == self._generation:
                self._profile = profile
                self._state = ProfileState.RESOLVED if profile else ProfileState.DENIED
            if self._inflight is future:
                self._inflight = None
        future.set_result(profile)
        return profile

    def invalidate(self) -> None:
        with self._lock:
            self._generation += 1
            self._profile = None
            self._state = ProfileState.UNRESOLVED
            # A fetch already running belongs to the old generation
            self._inflight = None

    def refetch(self) -> Optional[ResolvedProfile]:
        self.invalidate()
        return self.resolve()


@dataclass
class ClinicContext:
    """Everything a data-access call needs about the current session."""

    session_factory: Any
    settings: Settings
    auth_session: Any = None
    bucket: Any = None
    resolver: ProfileResolver = field(init=False, repr=False)

    def __post_init__(self):
        self.resolver = ProfileResolver(self)

    @property
    def is_authenticated(self) -> bool:
        return self.auth_session is not None and not self.auth_session.is_expired()

    @property
    def profile(self) -> Optional[ResolvedProfile]:
        return self.resolver.resolve()

    @property
    def timezone(self) -> str:
        return self.settings.timezone
