from __future__ import annotations

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from leadflow.crm.schemas import ActivityRead


CadenceStatus = Literal["draft", "active", "inactive"]
LeadCadenceStatus = Literal["active", "paused", "completed", "cancelled"]
CadenceChannel = Literal["email", "linkedin", "whatsapp", "call", "meeting", "instagram"]

SLUG_PATTERN = r"^[a-z0-9-]+$"


class CadenceCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    slug: str | None = Field(default=None, min_length=2, max_length=50, pattern=SLUG_PATTERN)
    description: str | None = Field(default=None, max_length=2000)
    objective: str | None = Field(default=None, max_length=500)
    duration_days: int = Field(default=14, ge=1, le=90)
    icp_id: UUID | None = None
    status: CadenceStatus = "draft"


class CadenceUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    slug: str | None = Field(default=None, min_length=2, max_length=50, pattern=SLUG_PATTERN)
    description: str | None = Field(default=None, max_length=2000)
    objective: str | None = Field(default=None, max_length=500)
    duration_days: int | None = Field(default=None, ge=1, le=90)
    icp_id: UUID | None = None
    status: CadenceStatus | None = None


class CadenceStepCreate(BaseModel):
    day_number: int = Field(ge=0, le=90)
    channel: CadenceChannel
    subject: str = Field(min_length=2, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    order: int | None = Field(default=None, ge=0)


class CadenceStepUpdate(BaseModel):
    day_number: int | None = Field(default=None, ge=0, le=90)
    channel: CadenceChannel | None = None
    subject: str | None = Field(default=None, min_length=2, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    order: int | None = Field(default=None, ge=0)


class CadenceStepPosition(BaseModel):
    id: UUID
    day_number: int = Field(ge=0, le=90)
    order: int = Field(ge=0)


class CadenceStepReorder(BaseModel):
    steps: list[CadenceStepPosition] = Field(min_length=1)


class CadenceStepRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    cadence_id: UUID
    day_number: int
    channel: str
    subject: str
    description: str | None
    order: int


class CadenceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    description: str | None
    objective: str | None
    duration_days: int
    icp_id: UUID | None
    status: str
    owner_id: UUID
    created_at: datetime
    updated_at: datetime
    steps: list[CadenceStepRead] = Field(default_factory=list)


class CadenceSummaryRead(BaseModel):
    id: UUID
    name: str
    slug: str
    description: str | None
    duration_days: int
    icp_id: UUID | None
    status: str
    step_count: int
    lead_cadence_count: int = 0


class ApplyCadenceRequest(BaseModel):
    cadence_id: UUID
    start_date: date | None = None
    notes: str | None = Field(default=None, max_length=500)


class LeadCadenceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lead_id: UUID
    cadence_id: UUID
    status: LeadCadenceStatus
    start_date: date
    paused_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    current_step: int
    notes: str | None
    owner_id: UUID
    created_at: datetime
    updated_at: datetime


class ApplyCadenceResult(BaseModel):
    lead_cadence: LeadCadenceRead
    activities: list[ActivityRead]


class ScheduledStepRead(BaseModel):
    id: UUID
    day_number: int
    channel: str
    subject: str


class ScheduledActivityRead(BaseModel):
    id: UUID
    type: str
    subject: str
    completed: bool
    due_date: datetime | None


class LeadCadenceActivityRead(BaseModel):
    id: UUID
    cadence_step_id: UUID
    activity_id: UUID
    scheduled_date: date
    cadence_step: ScheduledStepRead
    activity: ScheduledActivityRead


class LeadCadenceProgressRead(LeadCadenceRead):
    cadence: CadenceSummaryRead
    activities: list[LeadCadenceActivityRead]
    total_steps: int
    completed_steps: int
    progress: int
