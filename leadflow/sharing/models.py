from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leadflow.core.database import Base
from leadflow.crm.models import User, utcnow


class SharedEntity(Base):
    __tablename__ = "crm_shared_entity"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    shared_with_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("crm_user.id", ondelete="CASCADE"),
        nullable=False,
    )
    shared_by_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("crm_user.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    shared_with_user: Mapped[User] = relationship("User", foreign_keys=[shared_with_user_id])
    shared_by_user: Mapped[User] = relationship("User", foreign_keys=[shared_by_user_id])

    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", "shared_with_user_id", name="uq_crm_shared_entity_target"),
        Index("ix_crm_shared_entity_lookup", "entity_type", "entity_id"),
    )
