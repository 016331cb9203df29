from datetime import date, datetime
from enum import Enum


class DoctorMode(str, Enum):
    GENERAL = "general"
    GYNECOLOGY = "gynecology"


class Role(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    RECEPTIONIST = "receptionist"
    GENERAL_PHYSICIAN = "general_physician"
    GYNECOLOGIST = "gynecologist"


class EntityMixin:
    """Serialisation shared by every table."""

    def to_dict(self) -> dict:
        """Column values only, with dates as ISO strings (safe for JSON)."""
        result = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            elif isinstance(value, Enum):
                value = value.value
            result[column.key] = value
        return result

    def __repr__(self):
        return f"<{type(self).__name__} {getattr(self, 'id', None)}>"
