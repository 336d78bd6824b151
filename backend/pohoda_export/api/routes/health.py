"""Health & Readiness Probes — liveness, readiness, Pohoda reachability and export backlog.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if database is unreachable (readiness)
    - GET /health/pohoda returns 503 when the mServer status probe fails
    - GET /health/pohoda-exports returns 503 while any job has failed terminally

Design Decisions:
    - Separate liveness/readiness: liveness restarts, readiness removes from load balancer
    - Backlog probe reports retrying jobs as "degraded" with 200: retries are expected,
      only terminal failures need a human
"""

import logging
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from pohoda_export.api.dependencies import get_export_service, get_pohoda_client
from pohoda_export.core.repository_protocols import PohodaClient
from pohoda_export.infrastructure import database
from pohoda_export.services.export_service import PohodaExportService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "pohoda-export-api",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check():
    """Readiness probe — includes database connectivity."""
    manager = database.db_manager
    db_ok = await manager.health_check() if manager else False
    if not db_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "database_unavailable",
            },
        )
    return {"status": "ready", "checks": {"database": "healthy"}}


@router.get("/pohoda")
async def pohoda_check(client: PohodaClient = Depends(get_pohoda_client)):
    if not await client.check_status():
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable", "reason": "pohoda_unreachable"},
        )
    return {"status": "healthy", "checks": {"pohoda": "reachable"}}


@router.get("/pohoda-exports")
async def export_backlog_check(
    service: PohodaExportService = Depends(get_export_service),
):
    """Export queue backlog: pending, retrying and terminally failed jobs."""
    summary = await service.backlog_summary()
    content = {"status": summary.status, **summary.model_dump(mode="json")}
    if summary.failed_terminal:
        logger.warning(
            f"{summary.failed_terminal} Pohoda export job(s) failed terminally",
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=content,
        )
    return content
