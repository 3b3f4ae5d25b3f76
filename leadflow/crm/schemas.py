from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


UserRole = Literal["admin", "sdr", "closer"]


class UserCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    role: UserRole = "sdr"


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    role: str
    is_active: bool
    created_at: datetime


class UserRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str | None = None


class LeadContactCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    whatsapp: str | None = Field(default=None, max_length=64)
    role: str | None = None
    is_primary: bool = False


class LeadContactRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lead_id: UUID
    name: str
    email: str | None
    phone: str | None
    whatsapp: str | None
    role: str | None
    is_primary: bool
    converted_to_contact_id: UUID | None


class LeadCreate(BaseModel):
    business_name: str = Field(min_length=2, max_length=200)
    registered_name: str | None = None
    website: str | None = None
    phone: str | None = Field(default=None, max_length=64)
    whatsapp: str | None = Field(default=None, max_length=64)
    email: str | None = Field(default=None, max_length=255)
    country: str | None = None
    state: str | None = None
    city: str | None = None
    zip_code: str | None = None
    address: str | None = None
    primary_activity: str | None = None
    employees_count: int | None = Field(default=None, ge=0)
    revenue: Decimal | None = Field(default=None, ge=0)
    company_registration_id: str | None = None
    description: str | None = None
    contacts: list[LeadContactCreate] = Field(default_factory=list)


class LeadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    business_name: str
    registered_name: str | None
    website: str | None
    phone: str | None
    whatsapp: str | None
    email: str | None
    country: str | None
    state: str | None
    city: str | None
    zip_code: str | None
    address: str | None
    primary_activity: str | None
    employees_count: int | None
    revenue: Decimal | None
    company_registration_id: str | None
    description: str | None
    status: str
    owner_id: UUID
    converted_at: datetime | None
    converted_to_organization_id: UUID | None
    created_at: datetime
    updated_at: datetime
    lead_contacts: list[LeadContactRead] = Field(default_factory=list)


class OrganizationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    legal_name: str | None
    website: str | None
    phone: str | None
    whatsapp: str | None
    email: str | None
    country: str | None
    state: str | None
    city: str | None
    zip_code: str | None
    street_address: str | None
    industry: str | None
    employee_count: int | None
    annual_revenue: Decimal | None
    tax_id: str | None
    description: str | None
    source_lead_id: UUID | None
    owner_id: UUID
    created_at: datetime


class ContactRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str | None
    phone: str | None
    whatsapp: str | None
    role: str | None
    organization_id: UUID | None
    lead_id: UUID | None
    is_primary: bool
    source_lead_contact_id: UUID | None
    owner_id: UUID


class LeadConversionRead(BaseModel):
    organization: OrganizationRead
    contacts: list[ContactRead]


class ActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    subject: str
    description: str | None
    due_date: datetime | None
    completed: bool
    completed_at: datetime | None
    lead_id: UUID | None
    owner_id: UUID
