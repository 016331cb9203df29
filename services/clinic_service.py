"""
Clinic (tenant) and staff profile management.

Clinics and user profiles sit above the scoped entity tables, so they are
handled here rather than through ScopedRepository. Every operation still
checks the caller's resolved profile: admins manage their own clinic and
nobody reaches another clinic's rows.
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.auth import hash_password
from core.database import get_db_context
from core.errors import AuthenticationRequired, AuthorizationDenied, NotFound, UpstreamFailure
from core.time_utils import now_utc
from models.audit_log import AuditLog
from models.base import Role
from models.clinic import Clinic
from models.user import AuthUser, UserProfile
from services.permissions import can_manage_users
from services.validation import ClinicForm, SignupForm, UserProfileForm, validate_form

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "email", "phone", "role", "specialization")
SELF_EDITABLE_FIELDS = ("name", "phone", "specialization")


def _require_profile(context):
    if not context.is_authenticated:
        raise AuthenticationRequired()
    profile = context.resolver.resolve()
    if profile is None:
        raise AuthorizationDenied("No clinic profile for this account")
    return profile


def _require_admin(context):
    profile = _require_profile(context)
    if not can_manage_users(profile.role):
        raise AuthorizationDenied("Only clinic admins can manage the clinic")
    return profile


def _audit(db, profile_id, clinic_id, action, entity_type, entity_id, old=None, new=None):
    db.add(
        AuditLog(
            clinic_id=clinic_id,
            user_id=profile_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_values=old,
            new_values=new,
        )
    )


# -----------------------------
# Clinics
# -----------------------------
def create_clinic(context, data: dict) -> Tuple[Optional[Clinic], Optional[dict]]:
    """Create a clinic owned by the signed-in auth identity."""
    if not context.is_authenticated:
        raise AuthenticationRequired()
    form, errors = validate_form(ClinicForm, data)
    if errors:
        return None, errors

    with get_db_context(context.session_factory) as db:
        clinic = Clinic(owner_id=context.auth_session.user_id, **form.model_dump(exclude_none=True))
        db.add(clinic)
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise UpstreamFailure(str(exc)) from exc
        db.refresh(clinic)

    logger.info("Clinic created", extra={"clinic_id": clinic.id})
    return clinic, None


def get_clinic(context) -> Optional[Clinic]:
    """The caller's own clinic, or None without a profile."""
    if not context.is_authenticated:
        return None
    profile = context.resolver.resolve()
    if profile is None:
        return None
    with get_db_context(context.session_factory) as db:
        return db.query(Clinic).filter(Clinic.id == profile.clinic_id).first()


def update_clinic(context, data: dict) -> Tuple[Optional[Clinic], Optional[dict]]:
    profile = _require_admin(context)

    with get_db_context(context.session_factory) as db:
        clinic = db.query(Clinic).filter(Clinic.id == profile.clinic_id).first()
        if clinic is None:
            raise NotFound("clinics", profile.clinic_id)

        merged = {"name": clinic.name, "address": clinic.address, "phone": clinic.phone}
        merged.update({k: v for k, v in (data or {}).items() if k in merged})
        form, errors = validate_form(ClinicForm, merged)
        if errors:
            return None, errors

        before = clinic.to_dict()
        for key, value in form.model_dump().items():
            setattr(clinic, key, value)
        _audit(db, profile.id, clinic.id, "update", "clinics", clinic.id, old=before, new=clinic.to_dict())
        db.commit()
        db.refresh(clinic)

    return clinic, None


def onboard_clinic(context, clinic_data: dict, profile_data: dict) -> Tuple[Optional[UserProfile], Optional[dict]]:
    """
    Signup flow: create the clinic and the caller's admin profile in one
    transaction, then refetch the resolver so the session is scoped.
    """
    if not context.is_authenticated:
        raise AuthenticationRequired()
    if context.resolver.resolve() is not None:
        return None, {"general": "This account already belongs to a clinic"}

    clinic_form, errors = validate_form(ClinicForm, clinic_data)
    if errors:
        return None, errors

    profile_values = dict(profile_data or {})
    profile_values.setdefault("email", context.auth_session.email)
    profile_values["role"] = Role.ADMIN.value
    profile_form, errors = validate_form(UserProfileForm, profile_values)
    if errors:
        return None, errors

    with get_db_context(context.session_factory) as db:
        try:
            clinic = Clinic(owner_id=context.auth_session.user_id, **clinic_form.model_dump(exclude_none=True))
            db.add(clinic)
            db.flush()
            profile = UserProfile(
                clinic_id=clinic.id,
                auth_user_id=context.auth_session.user_id,
                **profile_form.model_dump(exclude_none=True),
            )
            db.add(profile)
            db.commit()
            db.refresh(profile)
        except IntegrityError:
            db.rollback()
            return None, {"general": "This account already belongs to a clinic"}
        except SQLAlchemyError as exc:
            db.rollback()
            raise UpstreamFailure(str(exc)) from exc

    logger.info("Clinic onboarded", extra={"clinic_id": profile.clinic_id})
    context.resolver.refetch()
    return profile, None


# -----------------------------
# Staff profiles
# -----------------------------
def create_user_profile(
    context, data: dict, password: str = None, auth_user_id: str = None
) -> Tuple[Optional[UserProfile], Optional[dict]]:
    """
    Admin adds a staff member to their own clinic.

    Pass `auth_user_id` for an existing account that has not joined a
    clinic yet, or `password` to create the login as well.
    """
    admin = _require_admin(context)
    form, errors = validate_form(UserProfileForm, data)
    if errors:
        return None, errors

    with get_db_context(context.session_factory) as db:
        if auth_user_id is None:
            _, errors = validate_form(
                SignupForm, {"email": form.email, "password": password or "", "confirm_password": password or ""}
            )
            if errors:
                return None, errors
            if db.query(AuthUser).filter(AuthUser.email == form.email).first():
                return None, {"email": "User already registered"}
            user = AuthUser(email=form.email, password_hash=hash_password(password))
            db.add(user)
            db.flush()
            auth_user_id = user.id
        elif db.query(UserProfile).filter(UserProfile.auth_user_id == auth_user_id).first():
            return None, {"general": "This account already belongs to a clinic"}

        profile = UserProfile(clinic_id=admin.clinic_id, auth_user_id=auth_user_id, **form.model_dump(exclude_none=True))
        db.add(profile)
        try:
            db.flush()
            _audit(db, admin.id, admin.clinic_id, "create", "user_profiles", profile.id, new=profile.to_dict())
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise UpstreamFailure(str(exc)) from exc
        db.refresh(profile)

    logger.info("Staff profile created", extra={"profile_id": profile.id, "role": profile.role})
    return profile, None


def get_clinic_members(context) -> List[UserProfile]:
    if not context.is_authenticated:
        return []
    profile = context.resolver.resolve()
    if profile is None:
        return []
    with get_db_context(context.session_factory) as db:
        return (
            db.query(UserProfile)
            .filter(UserProfile.clinic_id == profile.clinic_id)
            .order_by(UserProfile.name)
            .all()
        )


def update_user_profile(context, profile_id: str, data: dict) -> Tuple[Optional[UserProfile], Optional[dict]]:
    """Admins edit anyone in their clinic; everyone else only their own contact details."""
    caller = _require_profile(context)
    is_admin = can_manage_users(caller.role)
    if not is_admin and profile_id != caller.id:
        raise AuthorizationDenied("You can only edit your own profile")

    with get_db_context(context.session_factory) as db:
        target = (
            db.query(UserProfile)
            .filter(UserProfile.id == profile_id, UserProfile.clinic_id == caller.clinic_id)
            .first()
        )
        if target is None:
            raise NotFound("user_profiles", profile_id)

        editable = PROFILE_FIELDS if is_admin else SELF_EDITABLE_FIELDS
        merged = {field: getattr(target, field) for field in PROFILE_FIELDS}
        merged.update({k: v for k, v in (data or {}).items() if k in editable})
        form, errors = validate_form(UserProfileForm, merged)
        if errors:
            return None, errors

        before = target.to_dict()
        for key, value in form.model_dump().items():
            setattr(target, key, value)
        target.updated_at = now_utc()
        _audit(db, caller.id, caller.clinic_id, "update", "user_profiles", target.id, old=before, new=target.to_dict())
        db.commit()
        db.refresh(target)

    if profile_id == caller.id:
        context.resolver.refetch()
    return target, None


def delete_user_profile(context, profile_id: str) -> None:
    admin = _require_admin(context)
    if profile_id == admin.id:
        raise AuthorizationDenied("Admins cannot remove their own profile")

    with get_db_context(context.session_factory) as db:
        target = (
            db.query(UserProfile)
            .filter(UserProfile.id == profile_id, UserProfile.clinic_id == admin.clinic_id)
            .first()
        )
        if target is None:
            raise NotFound("user_profiles", profile_id)
        _audit(db, admin.id, admin.clinic_id, "delete", "user_profiles", target.id, old=target.to_dict())
        db.delete(target)
        db.commit()

    logger.info("Staff profile removed", extra={"profile_id": profile_id})
