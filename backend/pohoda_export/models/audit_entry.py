"""AuditEntry ORM — append-only trail of export outcomes.

Invariants:
    - One row per export outcome (succeeded, failed, rejected) and per admin requeue
    - Never updated or deleted by the application

Design Decisions:
    - Generic entity_type/entity_id pair: the trail can grow beyond export jobs
    - JSON details: payload log paths, attempt numbers, document identity
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from pohoda_export.db.base import Base


class AuditEntry(Base):
    """Audit trail row."""
    __tablename__ = "audit_entries"
    __table_args__ = (
        Index("ix_audit_entries_entity", "entity_type", "entity_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
