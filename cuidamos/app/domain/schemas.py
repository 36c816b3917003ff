"""API I/O schemas."""
import datetime as dt
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .invites import PlanState
from .policy import Role


def _not_null(value):
    # PATCH bodies may omit these fields but not clear them
    if value is None:
        raise ValueError("must not be null")
    return value


class Principal(BaseModel):
    """Identity assertion from the external identity provider."""

    id: str
    email: str

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=1)


class OrganizationOut(BaseModel):
    id: str
    name: str
    created_by: str
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class MemberCreate(BaseModel):
    email: str
    name: str = ""
    phone: str = ""
    role: Role
    can_elevate: bool = False
    color: Optional[str] = None


class MemberUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[Role] = None
    can_elevate: Optional[bool] = None
    color: Optional[str] = None
    active: Optional[bool] = None


class MemberOut(BaseModel):
    id: str
    organization_id: str
    linked_principal_id: Optional[str]
    email: str
    name: str
    phone: str
    role: Role
    can_elevate: bool
    color: Optional[str]
    active: bool

    model_config = ConfigDict(from_attributes=True)


class PermissionBundle(BaseModel):
    member_id: str
    role: Role
    effective_role: Role
    flags: Dict[str, bool]


class CompletionCheck(BaseModel):
    patient_id: str
    date: dt.date
    allowed: bool


class PatientCreate(BaseModel):
    name: str = Field(..., min_length=1)
    identifier: Optional[str] = None
    birth_date: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    emergency_contact: Optional[str] = None
    medical_notes: Optional[str] = None


class PatientUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    identifier: Optional[str] = None
    birth_date: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    emergency_contact: Optional[str] = None
    medical_notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name_not_null(cls, value):
        return _not_null(value)


class PatientOut(PatientCreate):
    id: str
    organization_id: str
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)


class PatientTaskCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    date: dt.date
    time: Optional[str] = None
    category: str = "other"
    priority: str = Field("medium", pattern="^(low|medium|high)$")
    notes: Optional[str] = None


class PatientTaskOut(PatientTaskCreate):
    id: str
    patient_id: str
    completed: bool
    completed_at: Optional[dt.datetime]
    completed_by: Optional[str]
    completed_by_name: Optional[str]
    created_by: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class MedicationCreate(BaseModel):
    name: str = Field(..., min_length=1)
    dose: str = Field(..., min_length=1)
    route: str = "oral"
    schedules: List[str] = Field(..., min_length=1)
    date: dt.date
    notes: Optional[str] = None


class MedicationOut(MedicationCreate):
    id: str
    patient_id: str
    completed: bool
    completed_at: Optional[dt.datetime]
    completed_by: Optional[str]
    completed_by_name: Optional[str]
    created_by: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class ShiftCreate(BaseModel):
    patient_id: str
    caregiver_id: str
    date: dt.date
    start_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")
    end_time: str = Field(..., pattern=r"^\d{2}:\d{2}$")


class ShiftOut(ShiftCreate):
    id: str
    organization_id: str
    patient_name: str
    caregiver_name: str
    caregiver_color: Optional[str]
    created_by: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class CarePlanCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    patient_name: Optional[str] = None


class CarePlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    patient_name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name_not_null(cls, value):
        return _not_null(value)


class CarePlanOut(BaseModel):
    id: str
    name: str
    description: Optional[str]
    patient_name: Optional[str]
    owner_id: str
    owner_email: str
    collaborator_ids: List[str]
    collaborator_emails: List[str]
    invite_code: Optional[str]
    invite_expires_at: Optional[dt.datetime]
    state: PlanState
    created_at: dt.datetime
    updated_at: dt.datetime


class InviteOut(BaseModel):
    code: str
    expires_at: dt.datetime


class JoinRequest(BaseModel):
    code: str


class CareTaskCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    date: dt.date
    time: Optional[str] = None
    category: str = "other"
    priority: str = Field("medium", pattern="^(low|medium|high)$")
    notes: Optional[str] = None


class CareTaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    date: Optional[dt.date] = None
    time: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = Field(None, pattern="^(low|medium|high)$")
    notes: Optional[str] = None

    @field_validator("title", "date", "category", "priority")
    @classmethod
    def _required_not_null(cls, value):
        return _not_null(value)


class CareTaskOut(CareTaskCreate):
    id: str
    plan_id: str
    completed: bool
    completed_at: Optional[dt.datetime]
    completed_by: Optional[str]
    completed_by_email: Optional[str]
    created_by: str

    model_config = ConfigDict(from_attributes=True)
