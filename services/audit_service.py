import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from core.database import get_db_context
from core.errors import UpstreamFailure
from core.time_utils import now_utc
from models.audit_log import AuditLog
from models.user import UserProfile

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50


def _profile(context):
    if not context.is_authenticated:
        return None
    return context.resolver.resolve()


def _serialize(log: AuditLog, name: Optional[str], email: Optional[str]) -> dict:
    data = log.to_dict()
    data["user_name"] = name or "Unknown"
    data["user_email"] = email
    return data


def _run(context, build) -> List[dict]:
    """Run a clinic-scoped audit query; `build(query)` adds the extra predicates."""
    profile = _profile(context)
    if profile is None:
        return []

    with get_db_context(context.session_factory) as db:
        try:
            query = (
                db.query(AuditLog, UserProfile.name, UserProfile.email)
                .outerjoin(UserProfile, UserProfile.id == AuditLog.user_id)
                .filter(AuditLog.clinic_id == profile.clinic_id)
            )
            rows = build(query).all()
        except SQLAlchemyError as exc:
            logger.error("Audit log query failed: %s", exc)
            raise UpstreamFailure(str(exc)) from exc
    return [_serialize(log, name, email) for log, name, email in rows]


def get_audit_logs(
    context,
    entity_type: str = None,
    entity_id: str = None,
    user_id: str = None,
    limit: int = None,
    offset: int = None,
) -> List[dict]:
    """Newest first, optionally filtered and paged."""

    def build(query):
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        if entity_id:
            query = query.filter(AuditLog.entity_id == entity_id)
        if user_id:
            query = query.filter(AuditLog.user_id == user_id)
        query = query.order_by(AuditLog.created_at.desc())
        if offset:
            query = query.offset(offset).limit(limit or DEFAULT_PAGE_SIZE)
        elif limit:
            query = query.limit(limit)
        return query

    return _run(context, build)


def get_entity_audit_logs(context, entity_type: str, entity_id: str) -> List[dict]:
    return get_audit_logs(context, entity_type=entity_type, entity_id=entity_id)


def get_recent_activity(context, limit: int = 20) -> List[dict]:
    return get_audit_logs(context, limit=limit)


def search_audit_logs(context, term: str, entity_type: str = None, limit: int = None) -> List[dict]:
    """Case-insensitive match on action or entity type."""
    pattern = f"%{term}%"

    def build(query):
        query = query.filter(or_(AuditLog.action.ilike(pattern), AuditLog.entity_type.ilike(pattern)))
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        query = query.order_by(AuditLog.created_at.desc())
        return query.limit(limit) if limit else query

    return _run(context, build)


def get_audit_stats(context, days: int = 30) -> dict:
    since = now_utc() - timedelta(days=days)
    logs = _run(context, lambda query: query.filter(AuditLog.created_at >= since))

    users = {}
    for log in logs:
        entry = users.setdefault(log["user_id"], {"user_id": log["user_id"], "count": 0, "name": log["user_name"]})
        entry["count"] += 1

    return {
        "total_logs": len(logs),
        "entity_breakdown": dict(Counter(log["entity_type"] for log in logs)),
        "action_breakdown": dict(Counter(log["action"] for log in logs)),
        "user_activity": list(users.values()),
    }


def export_audit_logs(context, start: datetime, end: datetime) -> List[dict]:
    """Oldest first, for admin export."""
    return _run(
        context,
        lambda query: query.filter(AuditLog.created_at >= start, AuditLog.created_at <= end).order_by(
            AuditLog.created_at.asc()
        ),
    )
