"""Pohoda Export Service — drives one export job through map → build → send → persist.

Invariants:
    - A terminal job (succeeded, or failed past the ceiling) is never resubmitted (zero remote calls)
    - A retry first lists invoices by variable symbol; a hit completes the job without a resend
    - Missing order, InvoiceValidationError, SchemaValidationError ⇒ failed, terminal, no reschedule
    - PohodaTransportError ⇒ failed with backoff until the attempt ceiling (core/export_transitions.py)
    - Success ⇒ job succeeded, order.invoice_number = document_number
    - Every outcome writes an AuditEntry in the same commit as the job transition
    - Pohoda disabled (pohoda_enabled=False) ⇒ the dataPack is written to
      pohoda_export_directory and the job succeeds without a document number

Design Decisions:
    - Service bound to one AsyncSession: the worker builds one service per job,
      the API one per request (ADR: no session shared across concurrent exports)
    - Clock injected: tests control `now` to walk the retry timeline
"""

import asyncio
import logging
import random
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pohoda_export.config import Settings
from pohoda_export.core.build_invoice_xml import PohodaXmlBuilder
from pohoda_export.core.domain_types import ExportJobStatus, JobId, OrderId, ResponseState
from pohoda_export.core.errors import (
    ErrorContext, ExportJobConflictError, InvoiceValidationError,
    PohodaTransportError, ResourceNotFoundError, SchemaValidationError,
)
from pohoda_export.core.export_transitions import (
    RetryPolicy, is_due, is_terminal, mark_permanent_failure, mark_succeeded,
    mark_transient_failure, reset_for_retry,
)
from pohoda_export.core.invoice_document import InvoiceStatus, ListFilter, PohodaResponse
from pohoda_export.core.map_order_invoice import DEFAULT_DUE_DAYS, map_order_to_invoice
from pohoda_export.core.repository_protocols import PohodaClient
from pohoda_export.infrastructure.audit import record_audit
from pohoda_export.models.export_job import PohodaExportJob
from pohoda_export.models.order import Order
from pohoda_export.schemas.export_job import BacklogSummary

logger = logging.getLogger(__name__)

PENDING = ExportJobStatus.PENDING.value
SUCCEEDED = ExportJobStatus.SUCCEEDED.value
FAILED = ExportJobStatus.FAILED.value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def retry_policy_from_settings(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.pohoda_max_retry_attempts,
        base_delay=timedelta(seconds=settings.pohoda_retry_base_delay_seconds),
        max_delay=timedelta(seconds=settings.pohoda_retry_max_delay_seconds),
        jitter=settings.pohoda_retry_jitter,
    )


def due_jobs_query(now: datetime, limit: int):
    """Ids of jobs the worker should pick up, oldest first."""
    status = PohodaExportJob.status
    next_at = PohodaExportJob.next_attempt_at
    return (
        select(PohodaExportJob.id)
        .where(or_(
            and_(status == PENDING, or_(next_at.is_(None), next_at <= now)),
            and_(status == FAILED, next_at.is_not(None), next_at <= now),
        ))
        .order_by(PohodaExportJob.created_at, PohodaExportJob.id)
        .limit(limit)
    )


class PohodaExportService:
    """Export job state machine bound to one DB session."""

    def __init__(
        self,
        db: AsyncSession,
        client: PohodaClient,
        builder: PohodaXmlBuilder,
        policy: RetryPolicy = RetryPolicy(),
        application_name: str | None = None,
        due_days: int = DEFAULT_DUE_DAYS,
        clock: Callable[[], datetime] = utcnow,
        uniform: Callable[[float, float], float] = random.uniform,
        export_directory: Path | None = None,
    ):
        self.db = db
        self.client = client
        self.builder = builder
        self.policy = policy
        self.application_name = application_name
        self.due_days = due_days
        self._clock = clock
        self._uniform = uniform
        self.export_directory = export_directory

    @classmethod
    def from_settings(
        cls,
        db: AsyncSession,
        client: PohodaClient,
        builder: PohodaXmlBuilder,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> "PohodaExportService":
        return cls(
            db, client, builder,
            policy=retry_policy_from_settings(settings),
            application_name=settings.pohoda_application,
            due_days=settings.pohoda_invoice_due_days,
            clock=clock,
            export_directory=(
                None if settings.pohoda_enabled else Path(settings.pohoda_export_directory)
            ),
        )

    # ─── Queue ───────────────────────────────────────────────────

    async def queue_order(self, order_id: OrderId) -> tuple[PohodaExportJob, bool]:
        """Create the pending job for an order, or return the existing one. (job, created)"""
        existing = await self._job_for_order(order_id)
        if existing is not None:
            return existing, False
        if await self.db.get(Order, order_id) is None:
            raise ResourceNotFoundError("Order", str(order_id))

        job = PohodaExportJob(
            order_id=order_id,
            status=PENDING,
            attempt_count=0,
            created_at=self._clock(),
            warnings=[],
        )
        self.db.add(job)
        try:
            await self.db.flush()
        except IntegrityError:
            # Lost a race against another queue_order for the same order
            await self.db.rollback()
            existing = await self._job_for_order(order_id)
            if existing is None:
                raise
            return existing, False
        record_audit(
            self.db, "pohoda_export_job", str(job.id), "pohoda_export_queued",
            {"order_id": order_id, "job_id": str(job.id)},
        )
        await self.db.commit()
        logger.info(
            f"Queued Pohoda export for order {order_id}",
            extra={"order_id": order_id, "job_id": str(job.id)},
        )
        return job, True

    async def _job_for_order(self, order_id: OrderId) -> PohodaExportJob | None:
        result = await self.db.execute(
            select(PohodaExportJob).where(PohodaExportJob.order_id == order_id),
        )
        return result.scalar_one_or_none()

    # ─── Export ──────────────────────────────────────────────────

    async def export_job_by_id(self, job_id: JobId) -> PohodaExportJob:
        """Export a job the worker selected; a job that is no longer due is left alone."""
        job = await self.db.get(PohodaExportJob, job_id)
        if job is None:
            raise ResourceNotFoundError("PohodaExportJob", str(job_id))
        if not is_due(job, self._clock()):
            logger.debug(
                "Export job no longer due, skipping",
                extra={"order_id": job.order_id, "job_id": str(job.id)},
            )
            return job
        return await self.export_order(job)

    async def export_order(self, job: PohodaExportJob) -> PohodaExportJob:
        log_extra = {"order_id": job.order_id, "job_id": str(job.id)}
        if is_terminal(job):
            logger.debug("Export job is terminal, skipping", extra=log_extra)
            return job

        order = await self.db.get(Order, job.order_id)
        if order is None:
            return await self._reject(job, f"Order {job.order_id} not found", log_extra)

        try:
            document = map_order_to_invoice(order, self.due_days)
        except InvoiceValidationError as e:
            return await self._reject(job, e.message, log_extra)

        try:
            xml = self.builder.build_issued_invoice_xml(document, self.application_name)
        except SchemaValidationError as e:
            logger.critical(
                f"Invoice XML for order {order.id} violates the schema: {e.message}",
                extra={**log_extra, "error_code": e.code},
            )
            return await self._reject(job, e.message, log_extra)

        now = self._clock()
        if self.export_directory is not None:
            return await self._export_to_directory(job, order, xml, now, log_extra)

        try:
            if job.attempt_count > 0:
                existing = await self._find_remote_invoice(document.header.variable_symbol)
                if existing is not None:
                    logger.info(
                        f"Order {order.id} already in Pohoda as {existing.number}, not resending",
                        extra={**log_extra, "document_number": existing.number},
                    )
                    response = PohodaResponse(
                        state=ResponseState.OK, document_number=existing.number,
                    )
                    return await self._record_success(
                        job, order, response, now, log_extra, found_remotely=True,
                    )
            response = await self.client.send_invoice(
                xml, self.application_name, correlation_id=f"order-{order.id}",
            )
        except PohodaTransportError as e:
            return await self._record_transport_failure(job, order, e, now, log_extra)

        return await self._record_success(job, order, response, now, log_extra)

    async def _export_to_directory(
        self,
        job: PohodaExportJob,
        order: Order,
        xml: bytes,
        now: datetime,
        log_extra: dict,
    ) -> PohodaExportJob:
        """Pohoda disabled: the dataPack goes to a file for manual import. OSError propagates."""
        path = self.export_directory / f"Invoice-{order.id}-{now:%Y%m%d%H%M%S}.xml"
        await asyncio.to_thread(_write_file, path, xml)
        mark_succeeded(job, PohodaResponse(state=ResponseState.OK), now)
        record_audit(
            self.db, "pohoda_export_job", str(job.id), "pohoda_export_written",
            {**log_extra, "attempt": job.attempt_count, "path": str(path)},
        )
        await self.db.commit()
        logger.info(
            f"Pohoda disabled, order {order.id} written to {path}", extra=log_extra,
        )
        return job

    async def _find_remote_invoice(self, variable_symbol: str) -> InvoiceStatus | None:
        """An earlier attempt may have landed although its reply was lost."""
        invoices = await self.client.list_invoices(ListFilter(variable_symbol=variable_symbol))
        for invoice in invoices:
            if invoice.number and invoice.variable_symbol == variable_symbol:
                return invoice
        return None

    async def _record_success(
        self,
        job: PohodaExportJob,
        order: Order,
        response: PohodaResponse,
        now: datetime,
        log_extra: dict,
        found_remotely: bool = False,
    ) -> PohodaExportJob:
        mark_succeeded(job, response, now)
        if response.document_number:
            order.invoice_number = response.document_number
        record_audit(
            self.db, "pohoda_export_job", str(job.id), "pohoda_export_succeeded",
            {
                **log_extra,
                "attempt": job.attempt_count,
                "document_number": response.document_number,
                "document_id": response.document_id,
                "warnings": list(response.warnings),
                "found_remotely": found_remotely,
            },
        )
        await self.db.commit()
        logger.info(
            f"Order {order.id} exported to Pohoda as {response.document_number}",
            extra={
                **log_extra,
                "attempt": job.attempt_count,
                "document_number": response.document_number,
            },
        )
        return job

    async def _record_transport_failure(
        self,
        job: PohodaExportJob,
        order: Order,
        error: PohodaTransportError,
        now: datetime,
        log_extra: dict,
    ) -> PohodaExportJob:
        mark_transient_failure(
            job, error.message, now, self.policy, error.payload_log, self._uniform,
        )
        terminal = is_terminal(job)
        record_audit(
            self.db, "pohoda_export_job", str(job.id), "pohoda_export_failed",
            {
                **log_extra,
                "attempt": job.attempt_count,
                "api_error_type": error.api_error_type,
                "terminal": terminal,
                "payload_log": error.payload_log,
            },
        )
        await self.db.commit()
        logger.warning(
            f"Pohoda export of order {order.id} failed "
            f"(attempt {job.attempt_count}/{self.policy.max_attempts}): {error.message}",
            extra={**log_extra, "attempt": job.attempt_count, "error_code": error.code},
        )
        if terminal:
            logger.error(
                f"Pohoda export of order {order.id} gave up after {job.attempt_count} attempts",
                extra={**log_extra, "attempt": job.attempt_count},
            )
        return job

    async def _reject(
        self, job: PohodaExportJob, message: str, log_extra: dict,
    ) -> PohodaExportJob:
        mark_permanent_failure(job, message, self._clock())
        record_audit(
            self.db, "pohoda_export_job", str(job.id), "pohoda_export_rejected",
            {**log_extra, "error": job.last_error},
        )
        await self.db.commit()
        logger.error(
            f"Pohoda export rejected permanently: {message}", extra=log_extra,
        )
        return job

    # ─── Admin ───────────────────────────────────────────────────

    async def requeue(self, job_id: JobId) -> PohodaExportJob:
        """Put a failed job back in the queue with a fresh attempt budget."""
        job = await self.db.get(PohodaExportJob, job_id)
        context = ErrorContext(job_id=str(job_id))
        if job is None:
            raise ResourceNotFoundError("PohodaExportJob", str(job_id), context)
        context.order_id = job.order_id
        if job.status == SUCCEEDED:
            raise ExportJobConflictError(
                f"Export job {job_id} already succeeded", context,
            )
        if job.status == PENDING:
            return job
        previous = {"attempt": job.attempt_count, "error": job.last_error}
        reset_for_retry(job, self._clock())
        record_audit(
            self.db, "pohoda_export_job", str(job.id), "pohoda_export_requeued",
            {"order_id": job.order_id, "job_id": str(job.id), **previous},
        )
        await self.db.commit()
        logger.info(
            f"Export job {job.id} requeued",
            extra={"order_id": job.order_id, "job_id": str(job.id)},
        )
        return job

    async def list_jobs(
        self, status: ExportJobStatus | None = None, limit: int = 50,
    ) -> tuple[list[PohodaExportJob], dict[str, int]]:
        query = select(PohodaExportJob).order_by(
            PohodaExportJob.created_at.desc(), PohodaExportJob.id,
        ).limit(limit)
        if status is not None:
            query = query.where(PohodaExportJob.status == status.value)
        jobs = list((await self.db.execute(query)).scalars().all())

        counts = {s.value: 0 for s in ExportJobStatus}
        rows = await self.db.execute(
            select(PohodaExportJob.status, func.count()).group_by(PohodaExportJob.status),
        )
        for job_status, count in rows.all():
            counts[job_status] = count
        return jobs, counts

    async def backlog_summary(self) -> BacklogSummary:
        status = PohodaExportJob.status
        next_at = PohodaExportJob.next_attempt_at
        row = (await self.db.execute(
            select(
                func.count().filter(status == PENDING),
                func.count().filter(and_(status == FAILED, next_at.is_not(None))),
                func.count().filter(and_(status == FAILED, next_at.is_(None))),
                func.min(PohodaExportJob.created_at).filter(status == PENDING),
                func.min(next_at).filter(status.in_((PENDING, FAILED))),
            ),
        )).one()
        return BacklogSummary(
            pending=row[0] or 0,
            retrying=row[1] or 0,
            failed_terminal=row[2] or 0,
            oldest_pending_at=row[3],
            next_attempt_at=row[4],
        )


def _write_file(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
