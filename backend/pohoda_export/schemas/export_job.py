"""Export Job Schemas — admin views of the Pohoda export queue."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ExportJobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_id: int
    status: str
    attempt_count: int
    created_at: datetime
    last_attempt_at: datetime | None
    next_attempt_at: datetime | None
    succeeded_at: datetime | None
    failed_at: datetime | None
    last_error: str | None
    document_id: str | None
    document_number: str | None
    warnings: list[str]
    payload_log: dict | None


class ExportJobListResponse(BaseModel):
    jobs: list[ExportJobResponse]
    counts: dict[str, int]


class BacklogSummary(BaseModel):
    pending: int
    retrying: int
    failed_terminal: int
    oldest_pending_at: datetime | None
    next_attempt_at: datetime | None

    @property
    def status(self) -> str:
        if self.failed_terminal:
            return "unhealthy"
        if self.retrying:
            return "degraded"
        return "healthy"
