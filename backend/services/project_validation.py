"""Intake/Project Validator - schema gate in front of create/update operations.

All fields are checked in a single pass and every invalid field is reported
(ValidationFailed.field_errors). Nothing here reads or writes storage.

Payloads may use the frontend's camelCase keys (businessName, numberOfPages)
or snake_case; reported field names are always camelCase.
"""
from pydantic import (
    BaseModel, ConfigDict, EmailStr, Field, ValidationError,
    ValidationInfo, field_validator,
)
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional, Type, TypeVar
from datetime import date, datetime, time, timezone
from models import WebsiteType, ProjectStatus, ProjectType, IntakePriority
from utils.errors import ValidationFailed

MAX_FEATURES = 20
MAX_BUDGET = 1_000_000

T = TypeVar("T", bound=BaseModel)


class _Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


def _clean_string_list(value: Any) -> Any:
    """Drop blank entries and duplicates, keep submission order."""
    if not isinstance(value, list):
        return value
    seen = []
    for item in value:
        if isinstance(item, str):
            item = item.strip()
            if not item:
                continue
        if item not in seen:
            seen.append(item)
    return seen


# ============================================================================
# PROJECT FORM
# ============================================================================

class ProjectFormData(_Payload):
    business_name: str = Field(min_length=2, max_length=100)
    industry: Optional[str] = Field(None, max_length=100)
    website_type: WebsiteType
    features: List[str] = Field(min_length=1, max_length=MAX_FEATURES)
    number_of_pages: int = Field(ge=1, le=100)
    deadline: datetime
    budget: int = Field(ge=500, le=MAX_BUDGET)

    @field_validator("industry", mode="before")
    @classmethod
    def _blank_industry(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("features", mode="before")
    @classmethod
    def _clean_features(cls, v):
        return _clean_string_list(v)

    @field_validator("deadline", mode="before")
    @classmethod
    def _date_only_deadline(cls, v):
        # A bare date means the start of that day in UTC
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime.combine(v, time.min, tzinfo=timezone.utc)
        if isinstance(v, str) and len(v.strip()) == 10:
            try:
                return datetime.combine(date.fromisoformat(v.strip()), time.min, tzinfo=timezone.utc)
            except ValueError:
                return v
        return v

    @field_validator("deadline")
    @classmethod
    def _deadline_in_future(cls, v: datetime, info: ValidationInfo):
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        now = (info.context or {}).get("now") or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        if v <= now:
            raise ValueError("Deadline must be in the future")
        return v

    @property
    def deadline_date(self) -> date:
        return self.deadline.astimezone(timezone.utc).date()


class ProjectStatusUpdate(_Payload):
    status: ProjectStatus
    notes: Optional[str] = Field(None, max_length=2000)


# ============================================================================
# INTAKE (contact + project brief)
# ============================================================================

class ClientDetails(_Payload):
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    company: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = None


class IntakeDetails(_Payload):
    project_name: str = Field(min_length=3, max_length=100)
    project_type: ProjectType
    budget: float = Field(ge=100, le=MAX_BUDGET)
    timeline: str = Field(min_length=1)
    description: str = Field(min_length=10, max_length=2000)
    requirements: List[str] = Field(min_length=1, max_length=MAX_FEATURES)
    priority: IntakePriority = IntakePriority.MEDIUM

    @field_validator("requirements", mode="before")
    @classmethod
    def _clean_requirements(cls, v):
        return _clean_string_list(v)


class IntakeSubmission(_Payload):
    client: ClientDetails
    intake: IntakeDetails


# ============================================================================
# ERROR MESSAGES
# ============================================================================

# (field, pydantic error type) -> message shown to the user
MESSAGES: Dict[tuple, str] = {
    ("businessName", "string_too_short"): "Business name must be at least 2 characters",
    ("businessName", "string_too_long"): "Business name must be less than 100 characters",
    ("industry", "string_too_long"): "Industry must be less than 100 characters",
    ("websiteType", "enum"): "Please select a valid website type",
    ("features", "too_short"): "Please select at least one feature",
    ("features", "too_long"): f"Maximum {MAX_FEATURES} features allowed",
    ("numberOfPages", "greater_than_equal"): "Must have at least 1 page",
    ("numberOfPages", "less_than_equal"): "Maximum 100 pages allowed",
    ("budget", "greater_than_equal"): "Budget must be at least $500",
    ("budget", "less_than_equal"): "Budget must be less than $1,000,000",
    ("status", "enum"): "Invalid project status",
    ("intake.budget", "greater_than_equal"): "Budget must be at least $100",
    ("intake.budget", "less_than_equal"): "Budget must be less than $1,000,000",
    ("intake.requirements", "too_short"): "Please specify at least one requirement",
    ("intake.requirements", "too_long"): f"Maximum {MAX_FEATURES} requirements allowed",
    ("intake.projectName", "string_too_short"): "Project name must be at least 3 characters",
    ("intake.description", "string_too_short"): "Description must be at least 10 characters",
    ("intake.timeline", "string_too_short"): "Please specify a timeline",
    ("client.firstName", "string_too_short"): "First name must be at least 2 characters",
    ("client.lastName", "string_too_short"): "Last name must be at least 2 characters",
    ("client.email", "value_error"): "Please enter a valid email address",
}


def field_name(loc: tuple) -> str:
    parts = []
    for part in loc:
        parts.append(str(part) if isinstance(part, int) else to_camel(part) if "_" in part else part)
    return ".".join(parts) or "body"


def _message(field: str, err: Dict[str, Any]) -> str:
    custom = MESSAGES.get((field, err["type"]))
    if custom:
        return custom
    if err["type"] == "missing":
        return "This field is required"
    if err["type"] == "value_error" and err.get("ctx", {}).get("error"):
        return str(err["ctx"]["error"])
    return err["msg"]


def to_field_errors(exc: ValidationError) -> List[Dict[str, str]]:
    """One {"field", "message"} entry per invalid field, first error wins."""
    field_errors: List[Dict[str, str]] = []
    seen = set()
    for err in exc.errors():
        field = field_name(err["loc"])
        if field in seen:
            continue
        seen.add(field)
        field_errors.append({"field": field, "message": _message(field, err)})
    return field_errors


def _validate(model: Type[T], payload: Any, context: Optional[Dict] = None) -> T:
    try:
        return model.model_validate(payload, context=context)
    except ValidationError as exc:
        raise ValidationFailed(to_field_errors(exc)) from exc


def validate_project_form(payload: Any, now: Optional[datetime] = None) -> ProjectFormData:
    """Validate a project submission. `now` pins the deadline check (tests, replays)."""
    return _validate(ProjectFormData, payload, context={"now": now})


def validate_status_update(payload: Any) -> ProjectStatusUpdate:
    return _validate(ProjectStatusUpdate, payload)


def validate_intake(payload: Any) -> IntakeSubmission:
    return _validate(IntakeSubmission, payload)
