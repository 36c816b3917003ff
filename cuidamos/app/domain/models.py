"""Domain models shared between API and persistence layers."""
from __future__ import annotations

import datetime as dt
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from sqlalchemy import JSON, DateTime, UniqueConstraint
from sqlalchemy.types import TypeDecorator
from sqlmodel import Column, Field as SQLField, SQLModel

from .clock import as_utc, utcnow
from .policy import Role


def _uuid() -> str:
    return str(uuid4())


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC timestamps on every backend.

    Values are converted to UTC on the way in; naive values read back from
    backends without a zone type (SQLite) are tagged as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return as_utc(value)

    def process_result_value(self, value, dialect):
        return as_utc(value)


class Organization(SQLModel, table=True):
    __tablename__ = "organizations"

    id: str = SQLField(default_factory=_uuid, primary_key=True, index=True)
    name: str
    created_by: str = SQLField(index=True)
    created_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)


class Member(SQLModel, table=True):
    """A principal's role-bound identity inside one organization."""

    __tablename__ = "members"
    __table_args__ = (UniqueConstraint("organization_id", "email", name="uq_member_org_email"),)

    id: str = SQLField(default_factory=_uuid, primary_key=True, index=True)
    organization_id: str = SQLField(index=True)
    linked_principal_id: Optional[str] = SQLField(default=None, index=True)
    email: str = SQLField(index=True)
    name: str = ""
    phone: str = ""
    role: Role
    can_elevate: bool = SQLField(default=False)
    color: Optional[str] = None  # caregivers only, copied onto their shifts
    active: bool = SQLField(default=True)
    created_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)
    updated_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)


class Patient(SQLModel, table=True):
    __tablename__ = "patients"

    id: str = SQLField(default_factory=_uuid, primary_key=True, index=True)
    organization_id: str = SQLField(index=True)
    name: str
    identifier: Optional[str] = None
    birth_date: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    emergency_contact: Optional[str] = None
    medical_notes: Optional[str] = None
    created_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)
    updated_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)


class Shift(SQLModel, table=True):
    """Scheduled presence of a caregiver with a patient on one calendar day."""

    __tablename__ = "shifts"

    id: str = SQLField(default_factory=_uuid, primary_key=True, index=True)
    organization_id: str = SQLField(index=True)
    patient_id: str = SQLField(index=True)
    patient_name: str = ""
    caregiver_id: str = SQLField(index=True)
    caregiver_name: str = ""
    caregiver_color: Optional[str] = None
    date: dt.date = SQLField(index=True)
    start_time: str  # HH:mm, local
    end_time: str  # may be earlier than start_time for overnight shifts
    created_by: Optional[str] = None
    created_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)


class PatientTask(SQLModel, table=True):
    __tablename__ = "patient_tasks"

    id: str = SQLField(default_factory=_uuid, primary_key=True, index=True)
    patient_id: str = SQLField(index=True)
    title: str
    description: Optional[str] = None
    date: dt.date = SQLField(index=True)
    time: Optional[str] = None
    category: str = "other"
    priority: str = "medium"
    notes: Optional[str] = None
    completed: bool = SQLField(default=False)
    completed_at: Optional[dt.datetime] = SQLField(default=None, sa_type=UTCDateTime)
    completed_by: Optional[str] = None
    completed_by_name: Optional[str] = None
    created_by: Optional[str] = None
    created_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)
    updated_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)


class Medication(SQLModel, table=True):
    __tablename__ = "medications"

    id: str = SQLField(default_factory=_uuid, primary_key=True, index=True)
    patient_id: str = SQLField(index=True)
    name: str
    dose: str
    route: str = "oral"
    schedules: List[str] = SQLField(
        default_factory=list, sa_column=Column(JSON, nullable=False, server_default="[]")
    )
    date: dt.date = SQLField(index=True)
    notes: Optional[str] = None
    completed: bool = SQLField(default=False)
    completed_at: Optional[dt.datetime] = SQLField(default=None, sa_type=UTCDateTime)
    completed_by: Optional[str] = None
    completed_by_name: Optional[str] = None
    created_by: Optional[str] = None
    created_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)
    updated_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)


class CarePlan(SQLModel, table=True):
    """Owner-controlled plan, independent of any organization."""

    __tablename__ = "care_plans"

    id: str = SQLField(default_factory=_uuid, primary_key=True, index=True)
    name: str
    description: Optional[str] = None
    patient_name: Optional[str] = None
    owner_id: str = SQLField(index=True)
    owner_email: str
    # pointer to the latest invite only; older invite rows stay redeemable
    invite_code: Optional[str] = None
    invite_expires_at: Optional[dt.datetime] = SQLField(default=None, sa_type=UTCDateTime)
    created_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)
    updated_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)


class PlanCollaborator(SQLModel, table=True):
    """One row per collaborator: id and email travel together."""

    __tablename__ = "plan_collaborators"

    plan_id: str = SQLField(foreign_key="care_plans.id", primary_key=True)
    user_id: str = SQLField(primary_key=True, index=True)
    email: str
    added_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)


class PlanInvite(SQLModel, table=True):
    __tablename__ = "plan_invites"

    code: str = SQLField(primary_key=True)
    plan_id: str = SQLField(index=True)
    issued_by_owner_id: str
    issued_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)
    expires_at: dt.datetime = SQLField(sa_type=UTCDateTime, nullable=False)


class CareTask(SQLModel, table=True):
    __tablename__ = "care_tasks"

    id: str = SQLField(default_factory=_uuid, primary_key=True, index=True)
    plan_id: str = SQLField(index=True)
    title: str
    description: Optional[str] = None
    date: dt.date = SQLField(index=True)
    time: Optional[str] = None
    category: str = "other"
    priority: str = "medium"
    notes: Optional[str] = None
    completed: bool = SQLField(default=False)
    completed_at: Optional[dt.datetime] = SQLField(default=None, sa_type=UTCDateTime)
    completed_by: Optional[str] = None
    completed_by_email: Optional[str] = None
    created_by: str
    created_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)
    updated_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False)


class AccessLog(SQLModel, table=True):
    __tablename__ = "access_logs"

    id: str = SQLField(default_factory=_uuid, primary_key=True, index=True)
    actor_id: str = SQLField(index=True)
    role: str
    action: str
    resource: str
    allowed: bool = SQLField(default=True)
    created_at: dt.datetime = SQLField(default_factory=utcnow, sa_type=UTCDateTime, nullable=False, index=True)


class AccessLogRead(BaseModel):
    id: str
    actor_id: str
    role: str
    action: str
    resource: str
    allowed: bool
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)
