"""Audit Trail — records export outcomes as AuditEntry rows plus a dedicated logger.

Invariants:
    - record_audit only adds to the session; the caller's commit makes it durable,
      so the audit row and the job transition land in the same transaction
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from pohoda_export.models.audit_entry import AuditEntry

audit_logger = logging.getLogger("pohoda_export.audit")


def record_audit(
    db: AsyncSession,
    entity_type: str,
    entity_id: str,
    action: str,
    details: dict | None = None,
) -> AuditEntry:
    entry = AuditEntry(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        details=details,
    )
    db.add(entry)
    audit_logger.info(
        f"{action} {entity_type}={entity_id}",
        extra={"action": action, **_log_fields(details)},
    )
    return entry


def _log_fields(details: dict | None) -> dict:
    if not details:
        return {}
    return {
        key: details[key]
        for key in ("order_id", "job_id", "attempt", "document_number", "status")
        if key in details
    }
