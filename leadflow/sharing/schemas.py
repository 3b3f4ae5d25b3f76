from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from leadflow.crm.schemas import UserRef


class TransferRequest(BaseModel):
    new_owner_id: UUID


class ShareRequest(BaseModel):
    user_id: UUID


class OperationResult(BaseModel):
    success: bool
    message: str


class SharedUserRead(BaseModel):
    id: UUID
    shared_with: UserRef
    shared_by: UserRef
    created_at: datetime
