from sqlalchemy import Column, String, DateTime, ForeignKey, JSON

from core.database import Base
from core.helpers import new_id
from core.time_utils import now_utc
from models.base import EntityMixin


class AuditLog(EntityMixin, Base):
    """Append-only trail of create/update/delete actions."""

    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    clinic_id = Column(String(36), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False, index=True)

    # Acting profile
    user_id = Column(String(36), ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True, index=True)

    action = Column(String, nullable=False)  # create / update / delete
    entity_type = Column(String, nullable=False, index=True)
    entity_id = Column(String(36), nullable=False, index=True)

    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=now_utc, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action} {self.entity_type}:{self.entity_id}>"
