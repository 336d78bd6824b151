"""PohodaExportJob ORM — durable queue row: "submit this order's invoice".

Invariants:
    - order_id is unique: exactly one job per order
    - status ∈ {pending, succeeded, failed} (core/domain_types.ExportJobStatus)
    - succeeded is terminal; failed with next_attempt_at NULL is terminal
    - transitions happen only through core/export_transitions.py

Design Decisions:
    - The table is the queue: restarts never lose pending work
    - No lease/claim columns: a single worker instance is assumed
    - JSON columns for warnings and payload_log: small, read-only after write
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Integer, DateTime, JSON, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from pohoda_export.db.base import Base


class PohodaExportJob(Base):
    """Export job — one per order, drives retry/backoff."""
    __tablename__ = "pohoda_export_jobs"
    __table_args__ = (
        Index("ix_pohoda_export_jobs_due", "status", "next_attempt_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending",
    )
    attempt_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    last_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    next_attempt_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    succeeded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    failed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    document_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    document_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    warnings: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    payload_log: Mapped[dict | None] = mapped_column(JSON, nullable=True)
