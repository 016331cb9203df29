"""
Scoped data access.

ScopedRepository is the only path that touches entity tables. Every query
it builds is restricted to the caller's clinic (and, for specialist roles,
to their doctor-mode track). Writes stamp clinic_id/created_by from the
resolved profile and leave an audit row in the same transaction.
"""
import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import Date, DateTime
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.database import get_db_context
from core.errors import AuthenticationRequired, AuthorizationDenied, NotFound, UpstreamFailure
from models.appointment import Appointment
from models.audit_log import AuditLog
from models.billing import Invoice, Prescription, PrescriptionTemplate, Reminder
from models.expense import Expense
from models.patient import Patient
from models.user import UserProfile
from models.visit import Visit
from services.permissions import can_access_patient_data, can_delete_data, can_write

logger = logging.getLogger(__name__)

ENTITY_MODELS = {
    "patients": Patient,
    "visits": Visit,
    "expenses": Expense,
    "appointments": Appointment,
    "prescription_templates": PrescriptionTemplate,
    "prescriptions": Prescription,
    "invoices": Invoice,
    "reminders": Reminder,
}

# Foreign keys that must point inside the caller's clinic
PARENT_REFERENCES = {
    "patient_id": ("patients", Patient),
    "visit_id": ("visits", Visit),
    "appointment_id": ("appointments", Appointment),
    "template_id": ("prescription_templates", PrescriptionTemplate),
    "assigned_to": ("user_profiles", UserProfile),
}

SCOPE_COLUMNS = {"clinic_id", "created_by"}
IMMUTABLE_COLUMNS = SCOPE_COLUMNS | {"id", "created_at"}

DEFAULT_ORDER = {
    "patients": "name",
    "visits": "-created_at",
    "expenses": "-date",
    "appointments": "start_time",
}


def _mode_value(mode) -> Optional[str]:
    if mode is None:
        return None
    return mode.value if isinstance(mode, Enum) else str(mode)


class ScopedRepository:
    def __init__(self, context, kind: str):
        if kind not in ENTITY_MODELS:
            raise ValueError(f"Unknown entity kind '{kind}'")
        self.context = context
        self.kind = kind
        self.model = ENTITY_MODELS[kind]
        self.columns = self.model.__table__.columns

    # -----------------------------
    # Scope helpers
    # -----------------------------
    def _require_profile(self):
        if not self.context.is_authenticated:
            raise AuthenticationRequired()
        profile = self.context.resolver.resolve()
        if profile is None:
            raise AuthorizationDenied("No clinic profile for this account")
        if not can_access_patient_data(profile.role):
            raise AuthorizationDenied(f"Role '{profile.role}' cannot access clinic records")
        return profile

    @property
    def has_mode(self) -> bool:
        return "doctor_mode" in self.columns

    def _scoped_query(self, db: Session, profile, mode=None):
        query = db.query(self.model).filter(self.model.clinic_id == profile.clinic_id)
        if self.has_mode:
            if profile.doctor_mode:
                query = query.filter(self.model.doctor_mode == profile.doctor_mode)
            if mode:
                query = query.filter(self.model.doctor_mode == _mode_value(mode))
        return query

    def _order(self, query, order_by: Optional[str]):
        ordering = order_by or DEFAULT_ORDER.get(self.kind, "-created_at")
        descending = ordering.startswith("-")
        name = ordering.lstrip("-")
        if name not in self.columns:
            raise ValueError(f"Unknown order column '{name}' for {self.kind}")
        column = getattr(self.model, name)
        return query.order_by(column.desc() if descending else column.asc())

    def coerce(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """Turn ISO strings (e.g. from a queued JSON payload) into column types."""
        result = {}
        for key, value in values.items():
            if key not in self.columns:
                raise ValueError(f"Unknown field '{key}' for {self.kind}")
            column_type = self.columns[key].type
            if isinstance(value, Enum):
                value = value.value
            if isinstance(value, str) and value:
                if isinstance(column_type, DateTime):
                    value = datetime.fromisoformat(value)
                elif isinstance(column_type, Date):
                    value = date.fromisoformat(value[:10])
            result[key] = value
        return result

    def _clean(self, payload: Dict[str, Any], immutable=SCOPE_COLUMNS) -> Dict[str, Any]:
        supplied = dict(payload or {})
        ignored = [key for key in supplied if key in immutable]
        if ignored:
            logger.warning("Ignoring caller-supplied %s on %s", ", ".join(sorted(ignored)), self.kind)
        return self.coerce({k: v for k, v in supplied.items() if k not in immutable and k != "created_at"})

    def _check_parents(self, db: Session, profile, values: Dict[str, Any]) -> None:
        for key, (kind, model) in PARENT_REFERENCES.items():
            parent_id = values.get(key)
            if key not in self.columns or parent_id is None:
                continue
            exists = (
                db.query(model.id)
                .filter(model.id == parent_id, model.clinic_id == profile.clinic_id)
                .first()
            )
            if exists is None:
                raise NotFound(kind, parent_id)

    def _check_mode(self, profile, values: Dict[str, Any]) -> None:
        if not (self.has_mode and profile.doctor_mode):
            return
        requested = values.setdefault("doctor_mode", profile.doctor_mode)
        if requested != profile.doctor_mode:
            raise AuthorizationDenied(f"Role '{profile.role}' cannot write {requested} records")

    def authorize_write(self, action: str, values: Optional[Dict[str, Any]] = None):
        """
        Raise unless the resolved profile may `action` ("create", "update" or
        "delete") this kind. When `values` are given the specialist track is
        checked too (and stamped on creates). Returns the profile.
        """
        profile = self._require_profile()
        if action == "delete":
            allowed = can_delete_data(profile.role)
        else:
            allowed = can_write(profile.role, self.kind)
        if not allowed:
            raise AuthorizationDenied(f"Role '{profile.role}' cannot {action} {self.kind}")
        if values is not None and (action == "create" or "doctor_mode" in values):
            self._check_mode(profile, values)
        return profile

    def _audit(self, db: Session, profile, action: str, entity_id: str, old=None, new=None) -> None:
        db.add(
            AuditLog(
                clinic_id=profile.clinic_id,
                user_id=profile.id,
                action=action,
                entity_type=self.kind,
                entity_id=entity_id,
                old_values=old,
                new_values=new,
            )
        )

    def _upstream(self, db: Session, exc: SQLAlchemyError, action: str):
        db.rollback()
        logger.error("%s %s failed: %s", action, self.kind, exc)
        return UpstreamFailure(str(exc))

    # -----------------------------
    # Reads
    # -----------------------------
    def list(self, filters: Dict[str, Any] = None, mode=None, order_by: str = None, limit: int = None) -> List[Any]:
        """Clinic-scoped rows. Without a resolved profile the result is empty."""
        if not self.context.is_authenticated:
            return []
        profile = self.context.resolver.resolve()
        if profile is None or not can_access_patient_data(profile.role):
            return []

        filters = self.coerce(filters or {})
        with get_db_context(self.context.session_factory) as db:
            try:
                query = self._scoped_query(db, profile, mode)
                for key, value in filters.items():
                    query = query.filter(getattr(self.model, key) == value)
                query = self._order(query, order_by)
                if limit:
                    query = query.limit(limit)
                return query.all()
            except SQLAlchemyError as exc:
                raise self._upstream(db, exc, "list")

    def get(self, entity_id: str):
        profile = self._require_profile()
        with get_db_context(self.context.session_factory) as db:
            try:
                entity = self._scoped_query(db, profile).filter(self.model.id == entity_id).first()
            except SQLAlchemyError as exc:
                raise self._upstream(db, exc, "get")
        if entity is None:
            raise NotFound(self.kind, entity_id)
        return entity

    # -----------------------------
    # Writes
    # -----------------------------
    def create(self, payload: Dict[str, Any]):
        profile = self.authorize_write("create")
        values = self._clean(payload)
        self._check_mode(profile, values)

        with get_db_context(self.context.session_factory) as db:
            try:
                self._check_parents(db, profile, values)
                entity = self.model(**values)
                entity.clinic_id = profile.clinic_id
                entity.created_by = profile.id
                db.add(entity)
                db.flush()
                self._audit(db, profile, "create", entity.id, new=entity.to_dict())
                db.commit()
                db.refresh(entity)
            except SQLAlchemyError as exc:
                raise self._upstream(db, exc, "create")

        logger.info("Created %s %s", self.kind, entity.id)
        return entity

    def update(self, entity_id: str, patch: Dict[str, Any]):
        profile = self.authorize_write("update")
        values = self._clean(patch, immutable=IMMUTABLE_COLUMNS)
        if "doctor_mode" in values:
            self._check_mode(profile, values)

        with get_db_context(self.context.session_factory) as db:
            try:
                entity = self._scoped_query(db, profile).filter(self.model.id == entity_id).first()
                if entity is None:
                    raise NotFound(self.kind, entity_id)
                self._check_parents(db, profile, values)

                before = entity.to_dict()
                for key, value in values.items():
                    setattr(entity, key, value)
                db.flush()
                self._audit(db, profile, "update", entity.id, old=before, new=entity.to_dict())
                db.commit()
                db.refresh(entity)
            except SQLAlchemyError as exc:
                raise self._upstream(db, exc, "update")

        logger.info("Updated %s %s", self.kind, entity_id)
        return entity

    def delete(self, entity_id: str) -> None:
        profile = self.authorize_write("delete")

        with get_db_context(self.context.session_factory) as db:
            try:
                entity = self._scoped_query(db, profile).filter(self.model.id == entity_id).first()
                if entity is None:
                    raise NotFound(self.kind, entity_id)
                before = entity.to_dict()
                db.delete(entity)
                self._audit(db, profile, "delete", entity_id, old=before)
                db.commit()
            except SQLAlchemyError as exc:
                raise self._upstream(db, exc, "delete")

        logger.info("Deleted %s %s", self.kind, entity_id)

    def delete_all(self, mode=None) -> int:
        """Delete every row of this kind in the clinic (optionally one mode). Returns the count."""
        profile = self._require_profile()
        if not can_delete_data(profile.role):
            raise AuthorizationDenied(f"Role '{profile.role}' cannot delete {self.kind}")

        with get_db_context(self.context.session_factory) as db:
            try:
                rows = self._scoped_query(db, profile, mode).all()
                for entity in rows:
                    self._audit(db, profile, "delete", entity.id, old=entity.to_dict())
                    db.delete(entity)
                db.commit()
            except SQLAlchemyError as exc:
                raise self._upstream(db, exc, "delete_all")
        return len(rows)
