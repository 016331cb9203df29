import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.auth import hash_password, verify_password
from core.time_utils import as_utc, now_utc
from models.user import AuthUser
from services.validation import SignupForm, validate_form

logger = logging.getLogger(__name__)

SESSION_TTL = timedelta(hours=1)

# Local-only identity seeded in not-configured mode
MOCK_EMAIL = "demo@clinictrack.local"
MOCK_PASSWORD = "Demo1234"


@dataclass(frozen=True)
class AuthSession:
    user_id: str
    email: str
    access_token: str
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or now_utc()) >= as_utc(self.expires_at)


def _new_session(user: AuthUser) -> AuthSession:
    return AuthSession(
        user_id=user.id,
        email=user.email,
        access_token=secrets.token_urlsafe(32),
        expires_at=now_utc() + SESSION_TTL,
    )


def sign_up(db: Session, email: str, password: str, confirm_password: Optional[str] = None) -> Tuple[Optional[AuthSession], Optional[dict]]:
    """Create an auth identity and sign it in.

    Returns (session, None) or (None, {field: message}).
    """
    form, errors = validate_form(
        SignupForm,
        {
            "email": (email or "").strip(),
            "password": password or "",
            "confirm_password": password if confirm_password is None else confirm_password,
        },
    )
    if errors:
        return None, errors

    if db.query(AuthUser).filter(AuthUser.email == form.email).first():
        return None, {"email": "User already registered"}

    user = AuthUser(email=form.email, password_hash=hash_password(form.password))
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return None, {"email": "User already registered"}
    db.refresh(user)

    logger.info("Sign up successful", extra={"auth_user_id": user.id})
    return _new_session(user), None


def sign_in(db: Session, email: str, password: str) -> Tuple[Optional[AuthSession], Optional[str]]:
    """Check credentials. Returns (session, None) or (None, error message)."""
    email = (email or "").strip().lower()
    user = db.query(AuthUser).filter(AuthUser.email == email).first()
    if not user or not verify_password(password or "", user.password_hash):
        logger.warning("Sign in failed", extra={"email": email})
        return None, "Invalid login credentials"

    logger.info("Sign in successful", extra={"auth_user_id": user.id})
    return _new_session(user), None


def sign_out(context) -> None:
    """Drop the auth session and the cached profile on a ClinicContext."""
    context.auth_session = None
    context.resolver.invalidate()


def ensure_mock_identity(db: Session) -> AuthUser:
    """
    Creates the local demo identity (auth user, clinic, admin profile)
    used when the backend is not configured.
    """
    from models.clinic import Clinic
    from models.user import UserProfile

    user = db.query(AuthUser).filter(AuthUser.email == MOCK_EMAIL).first()
    if user:
        return user

    user = AuthUser(email=MOCK_EMAIL, password_hash=hash_password(MOCK_PASSWORD))
    db.add(user)
    db.flush()

    clinic = Clinic(name="Demo Clinic", owner_id=user.id)
    db.add(clinic)
    db.flush()

    db.add(
        UserProfile(
            clinic_id=clinic.id,
            auth_user_id=user.id,
            role="admin",
            name="Demo Doctor",
            email=MOCK_EMAIL,
        )
    )
    db.commit()
    logger.info("Local mock identity created")
    return user
