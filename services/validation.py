"""
Boundary validation for every form that reaches the data layer.

`validate_form` never raises: it returns either the parsed model or a
field-keyed error map that pages render next to the inputs.
"""
import re
from datetime import date, datetime, timezone
from datetime import date as DateType
from typing import Dict, List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from models.base import DoctorMode, Role

PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NAME_RE = re.compile(r"^[a-zA-Z\s'-]+$")
CATEGORY_RE = re.compile(r"^[a-zA-Z\s\-&]+$")
VALID_BLOOD_GROUPS = {"A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"}


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _today(info) -> date:
    """Calendar day forms are checked against: the clinic's when given, else the host's."""
    return (info.context or {}).get("today") or date.today()


class FormModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, use_enum_values=True, extra="ignore")

    def to_payload(self) -> dict:
        """JSON-safe dict of the submitted fields (safe to queue offline)."""
        return self.model_dump(mode="json", exclude_none=True)


class PatientForm(FormModel):
    name: str = Field(min_length=1, max_length=100)
    phone: str = Field(min_length=10, max_length=15)
    age: int = Field(ge=0, le=150)
    gender: Literal["Male", "Female", "Other"]
    doctor_mode: DoctorMode
    photo_url: Optional[str] = None
    lmp_date: Optional[date] = None
    gravida: Optional[int] = Field(default=None, ge=0, le=20)
    para: Optional[int] = Field(default=None, ge=0, le=20)
    address: Optional[str] = Field(default=None, max_length=500)
    allergies: Optional[str] = Field(default=None, max_length=500)
    blood_group: Optional[str] = Field(default=None, max_length=10)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("name")
    @classmethod
    def name_letters_only(cls, v):
        if not NAME_RE.match(v):
            raise ValueError("Name can only contain letters, spaces, hyphens, and apostrophes")
        return v

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v):
        if not PHONE_RE.match(v):
            raise ValueError("Please enter a valid phone number")
        return v

    @field_validator("photo_url", mode="before")
    @classmethod
    def empty_url_is_none(cls, v):
        return v or None

    @field_validator("lmp_date", "gravida", "para")
    @classmethod
    def obstetric_fields_need_gynecology(cls, v, info):
        if v is None:
            return v
        if info.data.get("doctor_mode") != DoctorMode.GYNECOLOGY.value:
            raise ValueError("Only recorded for gynecology patients")
        if info.field_name == "lmp_date" and v > _today(info):
            raise ValueError("LMP date cannot be in the future")
        return v

    @field_validator("blood_group")
    @classmethod
    def blood_group_known(cls, v):
        if v and v.upper() not in VALID_BLOOD_GROUPS:
            raise ValueError("Please enter a valid blood group (e.g., A+, B-, O+)")
        return v.upper() if v else None


class VisitForm(FormModel):
    visit_mode: Literal["quick", "photo"] = "quick"
    patient_id: str = Field(min_length=1)
    doctor_mode: DoctorMode
    fee: float = Field(default=0, ge=0, le=100000)
    next_visit: Optional[date] = None
    photo_url: Optional[str] = Field(default=None, validate_default=True)
    note: Optional[str] = Field(default=None, max_length=1000, validate_default=True)

    @field_validator("photo_url")
    @classmethod
    def photo_required_in_photo_mode(cls, v, info):
        if info.data.get("visit_mode") == "photo" and not v:
            raise ValueError("A prescription photo is required")
        return v or None

    @field_validator("note")
    @classmethod
    def note_required_in_quick_mode(cls, v, info):
        if info.data.get("visit_mode") == "quick" and not v:
            raise ValueError("Clinical notes are required")
        return v or None

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload.pop("visit_mode", None)
        return payload


class ExpenseForm(FormModel):
    amount: float = Field(ge=0.01, le=1000000)
    category: str = Field(min_length=1, max_length=100)
    note: Optional[str] = Field(default=None, max_length=500)
    date: DateType
    doctor_mode: DoctorMode

    @field_validator("amount")
    @classmethod
    def two_decimal_places(cls, v):
        if round(v, 2) != v:
            raise ValueError("Amount can have at most 2 decimal places")
        return v

    @field_validator("category")
    @classmethod
    def category_chars(cls, v):
        if not CATEGORY_RE.match(v):
            raise ValueError("Category can only contain letters, spaces, hyphens, and ampersands")
        return v

    @field_validator("date")
    @classmethod
    def not_in_future(cls, v, info):
        if v > _today(info):
            raise ValueError("Expense date cannot be in the future")
        return v


class AppointmentForm(FormModel):
    patient_id: str = Field(min_length=1)
    doctor_mode: DoctorMode
    title: Optional[str] = Field(default=None, max_length=200)
    start_time: datetime
    end_time: datetime
    status: Literal["scheduled", "completed", "cancelled"] = "scheduled"
    notes: Optional[str] = Field(default=None, max_length=1000)
    assigned_to: Optional[str] = None

    @field_validator("start_time")
    @classmethod
    def start_not_in_past(cls, v):
        v = _aware(v)
        if v < datetime.now(timezone.utc):
            raise ValueError("Appointment cannot be in the past")
        return v

    @field_validator("end_time")
    @classmethod
    def end_after_start(cls, v, info):
        v = _aware(v)
        start = info.data.get("start_time")
        if start is not None and v <= start:
            raise ValueError("End time must be after start time")
        return v


class AppointmentUpdateForm(FormModel):
    """Partial update: only the fields supplied are checked."""

    title: Optional[str] = Field(default=None, max_length=200)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    status: Optional[Literal["scheduled", "completed", "cancelled"]] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    assigned_to: Optional[str] = None

    @field_validator("end_time")
    @classmethod
    def end_after_start(cls, v, info):
        if v is None:
            return v
        v = _aware(v)
        start = info.data.get("start_time")
        if start is not None and v <= _aware(start):
            raise ValueError("End time must be after start time")
        return v


class ClinicForm(FormModel):
    name: str = Field(min_length=1, max_length=100)
    address: Optional[str] = Field(default=None, max_length=500)
    phone: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v):
        if v and not PHONE_RE.match(v):
            raise ValueError("Please enter a valid phone number")
        return v or None


class UserProfileForm(FormModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(max_length=255)
    phone: Optional[str] = None
    role: Role
    specialization: Optional[str] = Field(default=None, max_length=100)

    @field_validator("name")
    @classmethod
    def name_letters_only(cls, v):
        if not NAME_RE.match(v):
            raise ValueError("Name can only contain letters, spaces, hyphens, and apostrophes")
        return v

    @field_validator("email")
    @classmethod
    def email_format(cls, v):
        if not EMAIL_RE.match(v):
            raise ValueError("Please enter a valid email address")
        return v.lower()

    @field_validator("phone")
    @classmethod
    def phone_format(cls, v):
        if v and not PHONE_RE.match(v):
            raise ValueError("Please enter a valid phone number")
        return v or None


class PrescriptionTemplateForm(FormModel):
    name: str = Field(min_length=1, max_length=100)
    content: str = Field(min_length=1, max_length=5000)


class InvoiceForm(FormModel):
    patient_id: str = Field(min_length=1)
    visit_ids: List[str] = Field(default_factory=list)
    total_amount: float = Field(ge=0)
    status: Literal["paid", "unpaid", "overdue"] = "unpaid"


class SignupForm(FormModel):
    email: str
    password: str
    confirm_password: str

    @field_validator("email")
    @classmethod
    def email_format(cls, v):
        if not v:
            raise ValueError("Email is required")
        if not EMAIL_RE.match(v):
            raise ValueError("Please enter a valid email address")
        return v.lower()

    @field_validator("password")
    @classmethod
    def password_strength(cls, v):
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        if not (re.search(r"[a-z]", v) and re.search(r"[A-Z]", v) and re.search(r"\d", v)):
            raise ValueError("Password must contain uppercase, lowercase, and number")
        return v

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, v, info):
        if "password" in info.data and v != info.data["password"]:
            raise ValueError("Passwords do not match")
        return v


def _error_message(err: dict) -> str:
    if err.get("type") == "value_error" and "error" in err.get("ctx", {}):
        return str(err["ctx"]["error"])
    return err["msg"]


def validate_form(
    schema: Type[FormModel], data: dict, today: Optional[date] = None
) -> Tuple[Optional[FormModel], Optional[Dict[str, str]]]:
    """
    Parse `data` with `schema`; return (model, None) or (None, {field: message}).

    `today` is the clinic's calendar day for "not in the future" checks.
    """
    try:
        return schema.model_validate(data or {}, context={"today": today}), None
    except ValidationError as exc:
        errors: Dict[str, str] = {}
        for err in exc.errors():
            field = ".".join(str(part) for part in err["loc"]) or "general"
            # Keep the first message per field
            errors.setdefault(field, _error_message(err))
        return None, errors
