"""Export Job Transitions — pure state machine for Pohoda export jobs.

Invariants:
    - pending → succeeded | failed; failed → succeeded | failed; succeeded is terminal
    - Transient failure: attempt_count += 1, next_attempt_at = now + backoff(attempt_count),
      cleared (terminal) once attempt_count reaches the ceiling
    - Permanent failure: terminal at once, attempt_count untouched
    - A job is due when pending with next_attempt_at null/elapsed, or failed with a
      non-null elapsed next_attempt_at
    - No IO and no clock: `now` is always passed in

Design Decisions:
    - Functions mutate any ExportJobLike (ORM row or test double) instead of returning copies:
      the service persists the row it loaded
    - backoff(n) = min(max_delay, base × 2^(n−1)), optional ±jitter fraction on top
"""

import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from pohoda_export.core.domain_types import ExportJobStatus
from pohoda_export.core.invoice_document import PohodaResponse

MAX_ERROR_LENGTH = 2000


class ExportJobLike(Protocol):
    status: str
    attempt_count: int
    last_attempt_at: datetime | None
    next_attempt_at: datetime | None
    succeeded_at: datetime | None
    failed_at: datetime | None
    last_error: str | None
    document_id: str | None
    document_number: str | None
    warnings: list
    payload_log: dict | None


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay: timedelta = timedelta(seconds=30)
    max_delay: timedelta = timedelta(minutes=10)
    jitter: float = 0.0


def compute_backoff(
    attempt: int,
    policy: RetryPolicy,
    uniform: Callable[[float, float], float] = random.uniform,
) -> timedelta:
    """Delay before retry number `attempt` (1-based)."""
    exponent = max(attempt, 1) - 1
    delay = min(policy.max_delay, policy.base_delay * (2 ** exponent))
    if policy.jitter > 0:
        delay = delay * uniform(1 - policy.jitter, 1 + policy.jitter)
    return max(delay, timedelta(0))


def ensure_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def is_terminal(job: ExportJobLike) -> bool:
    if job.status == ExportJobStatus.SUCCEEDED.value:
        return True
    return job.status == ExportJobStatus.FAILED.value and job.next_attempt_at is None


def is_due(job: ExportJobLike, now: datetime) -> bool:
    next_attempt_at = ensure_utc(job.next_attempt_at)
    if job.status == ExportJobStatus.PENDING.value:
        return next_attempt_at is None or next_attempt_at <= now
    if job.status == ExportJobStatus.FAILED.value:
        return next_attempt_at is not None and next_attempt_at <= now
    return False


def mark_succeeded(job: ExportJobLike, response: PohodaResponse, now: datetime) -> None:
    job.attempt_count += 1
    job.last_attempt_at = now
    job.status = ExportJobStatus.SUCCEEDED.value
    job.succeeded_at = now
    job.failed_at = None
    job.next_attempt_at = None
    job.last_error = None
    job.document_id = response.document_id
    job.document_number = response.document_number
    job.warnings = list(response.warnings)


def mark_transient_failure(
    job: ExportJobLike,
    error: str,
    now: datetime,
    policy: RetryPolicy,
    payload_log: dict | None = None,
    uniform: Callable[[float, float], float] = random.uniform,
) -> None:
    """Record a retryable failure; returns with next_attempt_at None when out of attempts."""
    job.attempt_count += 1
    job.last_attempt_at = now
    job.status = ExportJobStatus.FAILED.value
    job.last_error = truncate_error(error)
    job.payload_log = payload_log
    if job.attempt_count >= policy.max_attempts:
        job.next_attempt_at = None
        job.failed_at = now
    else:
        job.next_attempt_at = now + compute_backoff(job.attempt_count, policy, uniform)
        job.failed_at = None


def mark_permanent_failure(job: ExportJobLike, error: str, now: datetime) -> None:
    job.status = ExportJobStatus.FAILED.value
    job.last_error = truncate_error(error)
    job.next_attempt_at = None
    job.failed_at = now


def reset_for_retry(job: ExportJobLike, now: datetime) -> None:
    """Admin requeue: back to pending with a fresh attempt budget."""
    job.status = ExportJobStatus.PENDING.value
    job.attempt_count = 0
    job.next_attempt_at = now
    job.failed_at = None
    job.last_error = None
    job.document_id = None
    job.document_number = None
    job.warnings = []
    job.payload_log = None


def truncate_error(message: str) -> str:
    if len(message) <= MAX_ERROR_LENGTH:
        return message
    return message[: MAX_ERROR_LENGTH - 1] + "…"
