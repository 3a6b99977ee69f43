from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator


class FormPayload(BaseModel):
    """Form values arrive as strings: trim them and treat blanks as missing."""

    @model_validator(mode="before")
    @classmethod
    def _blank_to_none(cls, values):
        if isinstance(values, dict):
            cleaned = {}
            for key, value in values.items():
                if isinstance(value, str):
                    value = value.strip() or None
                if value is not None:
                    cleaned[key] = value
            return cleaned
        return values


class PhaseInput(FormPayload):
    name: str = Field(..., min_length=1, max_length=200)
    detail: Optional[str] = Field(default=None, max_length=1000)
    est_start: date
    est_end: date
    worst_start: Optional[date] = None
    worst_end: Optional[date] = None
    is_milestone: bool = False

    @model_validator(mode="after")
    def _check_dates(self):
        if self.est_end < self.est_start:
            raise ValueError("Estimated end must be on or after estimated start")
        if self.worst_start and self.worst_end and self.worst_end < self.worst_start:
            raise ValueError("Worst-case end must be on or after worst-case start")
        return self


class PhaseCreate(PhaseInput):
    sort_order: Optional[int] = Field(default=None, ge=0)


class DependencyCreate(FormPayload):
    depends_on_id: int
    lag_days: int = Field(default=0, ge=0, le=365)


class CommentCreate(FormPayload):
    content: str = Field(..., min_length=1, max_length=5000)


class DailyLogCreate(FormPayload):
    date: date
    work_summary: str = Field(..., min_length=1, max_length=5000)
    weather: Optional[str] = Field(default=None, max_length=100)
    temp_high: Optional[int] = Field(default=None, ge=-80, le=150)
    temp_low: Optional[int] = Field(default=None, ge=-80, le=150)
    crew_count: Optional[int] = Field(default=None, ge=0, le=10000)
    equipment: Optional[str] = Field(default=None, max_length=2000)
    issues: Optional[str] = Field(default=None, max_length=5000)
    notes: Optional[str] = Field(default=None, max_length=5000)

    @model_validator(mode="after")
    def _check_temps(self):
        if self.temp_high is not None and self.temp_low is not None and self.temp_low > self.temp_high:
            raise ValueError("Low temperature cannot exceed the high")
        return self


class ProjectCreate(FormPayload):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    address: Optional[str] = Field(default=None, max_length=500)
    plan_approval: Optional[date] = None
    budget: Optional[float] = Field(default=None, gt=0)
    phases: List[PhaseInput] = Field(default_factory=list)


class ProjectUpdate(FormPayload):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    address: Optional[str] = Field(default=None, max_length=500)
    plan_approval: Optional[date] = None
    budget: Optional[float] = Field(default=None, gt=0)


class StaffInput(FormPayload):
    name: str = Field(..., min_length=1, max_length=200)
    company: Optional[str] = Field(default=None, max_length=200)
    role: Optional[str] = Field(default=None, max_length=100)
    contact_type: Literal["TEAM", "SUBCONTRACTOR", "VENDOR", "INSPECTOR"] = "TEAM"
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=30)
    notes: Optional[str] = Field(default=None, max_length=2000)
    user_id: Optional[int] = None


class PunchItemCreate(FormPayload):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    priority: Literal["CRITICAL", "HIGH", "MEDIUM", "LOW"] = "MEDIUM"
    location: Optional[str] = Field(default=None, max_length=200)
    assigned_to_id: Optional[int] = None
    due_date: Optional[date] = None


class PunchItemUpdate(FormPayload):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    priority: Optional[Literal["CRITICAL", "HIGH", "MEDIUM", "LOW"]] = None
    location: Optional[str] = Field(default=None, max_length=200)
    assigned_to_id: Optional[int] = None
    due_date: Optional[date] = None


class LienWaiverCreate(FormPayload):
    waiver_type: Literal["CONDITIONAL_PARTIAL", "CONDITIONAL_FINAL", "UNCONDITIONAL_PARTIAL", "UNCONDITIONAL_FINAL"]
    vendor_name: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., ge=0)
    through_date: Optional[date] = None
    description: Optional[str] = Field(default=None, max_length=2000)


class PaymentApplicationCreate(FormPayload):
    period_start: date
    period_end: date
    scheduled_value: float = Field(default=0, ge=0)
    work_completed: float = Field(default=0, ge=0)
    materials_stored: float = Field(default=0, ge=0)
    retainage: float = Field(default=0, ge=0)
    previous_payments: float = Field(default=0, ge=0)
    notes: Optional[str] = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def _check_period(self):
        if self.period_end < self.period_start:
            raise ValueError("Period end must be on or after period start")
        return self


class BidCreate(FormPayload):
    company_name: str = Field(..., min_length=1, max_length=200)
    contact_name: Optional[str] = Field(default=None, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=30)
    amount: float = Field(..., ge=0)
    notes: Optional[str] = Field(default=None, max_length=2000)


class AnnotationCreate(FormPayload):
    type: Literal["arrow", "circle", "rectangle", "text"]
    x: float = Field(..., ge=0, le=1)
    y: float = Field(..., ge=0, le=1)
    width: Optional[float] = Field(default=None, ge=0, le=1)
    height: Optional[float] = Field(default=None, ge=0, le=1)
    radius: Optional[float] = Field(default=None, ge=0, le=1)
    color: str = Field(default="#FF0000", pattern=r"^#[0-9A-Fa-f]{6}$")
    label: Optional[str] = Field(default=None, max_length=200)


class VoiceNoteCreate(FormPayload):
    duration: int = Field(..., ge=1)
    label: Optional[str] = Field(default=None, max_length=200)


class NotificationPreferenceUpdate(FormPayload):
    email_enabled: Optional[bool] = None
    sms_enabled: Optional[bool] = None
    in_app_enabled: Optional[bool] = None
    email_phase_status: Optional[bool] = None
    email_review: Optional[bool] = None
    email_checklist: Optional[bool] = None
    email_documents: Optional[bool] = None
    email_comments: Optional[bool] = None
    sms_phase_status: Optional[bool] = None
    sms_review: Optional[bool] = None
    sms_checklist: Optional[bool] = None
    sms_documents: Optional[bool] = None
    quiet_start: Optional[str] = Field(default=None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    quiet_end: Optional[str] = Field(default=None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")


class ReportScheduleCreate(FormPayload):
    frequency: Literal["WEEKLY", "MONTHLY"] = "WEEKLY"
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    send_hour: int = Field(default=8, ge=0, le=23)
    recipients: List[EmailStr] = Field(..., min_length=1)
    include_projects: List[int] = Field(default_factory=list)


class ApiKeyCreate(FormPayload):
    name: str = Field(..., min_length=1, max_length=100)
    expires_at: Optional[datetime] = None


class SignupPayload(FormPayload):
    organization_name: str = Field(..., min_length=1, max_length=200)
    full_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value):
        return value.lower()


class UserCreate(FormPayload):
    full_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: Optional[str] = Field(default=None, min_length=8, max_length=128)
    role: Literal["ADMIN", "PROJECT_MANAGER", "CONTRACTOR", "STAKEHOLDER", "VIEWER"] = "VIEWER"
    phone: Optional[str] = Field(default=None, max_length=30)
    is_active: bool = True

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value):
        return value.lower()


class AISettingsUpdate(FormPayload):
    enabled: bool = True
    provider: Literal["openai", "anthropic"] = "openai"
    model: str = Field(..., min_length=1, max_length=100)
    max_tokens: int = Field(default=1024, ge=64, le=8192)
