"""Export Job Routes — queue orders for Pohoda export, inspect and requeue jobs.

Invariants:
    - POST /orders/{order_id} is idempotent: 201 on first queueing, 200 with the existing job after
    - Requeueing a succeeded job is a 409, an unknown job a 404
    - Routes never call Pohoda: the worker does (services/export_worker.py)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from pohoda_export.api.dependencies import get_export_service
from pohoda_export.core.domain_types import ExportJobStatus, JobId, OrderId
from pohoda_export.schemas.export_job import ExportJobListResponse, ExportJobResponse
from pohoda_export.services.export_service import PohodaExportService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/export-jobs", tags=["export-jobs"])


@router.get("", response_model=ExportJobListResponse)
async def list_export_jobs(
    status_filter: ExportJobStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=500),
    service: PohodaExportService = Depends(get_export_service),
):
    jobs, counts = await service.list_jobs(status_filter, limit)
    return ExportJobListResponse(
        jobs=[ExportJobResponse.model_validate(job) for job in jobs],
        counts=counts,
    )


@router.post(
    "/orders/{order_id}", response_model=ExportJobResponse,
    status_code=status.HTTP_201_CREATED,
)
async def queue_order_export(
    order_id: int,
    response: Response,
    service: PohodaExportService = Depends(get_export_service),
):
    """Queue an order for export; returns the existing job if already queued."""
    job, created = await service.queue_order(OrderId(order_id))
    if not created:
        response.status_code = status.HTTP_200_OK
    return ExportJobResponse.model_validate(job)


@router.post("/{job_id}/retry", response_model=ExportJobResponse)
async def retry_export_job(
    job_id: UUID,
    service: PohodaExportService = Depends(get_export_service),
):
    """Reset a failed job to pending with a fresh attempt budget."""
    job = await service.requeue(JobId(job_id))
    return ExportJobResponse.model_validate(job)
