"""Pohoda Export Worker — background loop that drains due export jobs.

Invariants:
    - One cycle: select due job ids (oldest first, batch_size max), export each
      in its own DB session, at most `concurrency` exports in flight
    - Stop is checked before every job: a set stop_event never starts a new remote call
    - A failing job never aborts the cycle; a failing cycle never kills the loop
    - One httpx.AsyncClient per cycle, closed when the cycle ends

Design Decisions:
    - asyncio task owned by the FastAPI lifespan (ADR: no separate worker process
      while a single instance is deployed; no lease columns needed)
    - Transport injectable so tests drive the loop with httpx.MockTransport
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable
from uuid import UUID

import httpx

from pohoda_export.config import Settings
from pohoda_export.core.build_invoice_xml import PohodaXmlBuilder
from pohoda_export.core.domain_types import JobId
from pohoda_export.core.repository_protocols import PohodaClient
from pohoda_export.infrastructure.database import DatabaseSessionManager
from pohoda_export.infrastructure.pohoda_client import build_pohoda_client, new_http_client
from pohoda_export.infrastructure.pohoda_schemas import load_pohoda_schema
from pohoda_export.services.export_service import (
    PohodaExportService, due_jobs_query, utcnow,
)

logger = logging.getLogger(__name__)


class PohodaExportWorker:
    """Polls pohoda_export_jobs and exports whatever is due."""

    def __init__(
        self,
        db_manager: DatabaseSessionManager,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db_manager = db_manager
        self.settings = settings
        self.transport = transport
        self._clock = clock
        self._builder = PohodaXmlBuilder(
            load_pohoda_schema(), settings.pohoda_xml_encoding,
        )
        self._stop = asyncio.Event()

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Loop until stop_event is set, sleeping `interval` between cycles."""
        if stop_event is not None:
            self._stop = stop_event
        interval = self.settings.pohoda_export_worker_interval_seconds
        logger.info(f"Pohoda export worker started (interval {interval}s)")
        while not self._stop.is_set():
            try:
                await self.run_cycle()
            except Exception as e:
                logger.error(f"Pohoda export cycle failed: {e}", exc_info=True)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Pohoda export worker stopped")

    async def run_cycle(self) -> int:
        """Export every job due now. Returns the number of jobs attempted."""
        job_ids = await self._due_job_ids()
        if not job_ids:
            return 0
        logger.info(f"Exporting {len(job_ids)} due Pohoda job(s)")

        semaphore = asyncio.Semaphore(max(1, self.settings.pohoda_export_worker_concurrency))
        async with new_http_client(self.transport) as http_client:
            client = build_pohoda_client(self.settings, http_client)

            async def export_one(job_id: UUID) -> bool:
                async with semaphore:
                    if self._stop.is_set():
                        return False
                    await self._export(client, job_id)
                    return True

            attempted = await asyncio.gather(*(export_one(job_id) for job_id in job_ids))
        return sum(attempted)

    async def _due_job_ids(self) -> list[UUID]:
        async with self.db_manager.session() as db:
            result = await db.execute(
                due_jobs_query(self._clock(), self.settings.pohoda_export_worker_batch_size),
            )
            return list(result.scalars().all())

    async def _export(self, client: PohodaClient, job_id: UUID) -> None:
        try:
            async with self.db_manager.session() as db:
                service = PohodaExportService.from_settings(
                    db, client, self._builder, self.settings, clock=self._clock,
                )
                await service.export_job_by_id(JobId(job_id))
        except Exception as e:
            logger.error(
                f"Export job {job_id} crashed: {e}",
                exc_info=True,
                extra={"job_id": str(job_id)},
            )
