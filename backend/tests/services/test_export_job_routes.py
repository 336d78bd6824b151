"""Export Job Routes — tests for queueing, listing and requeueing over HTTP.

Invariants:
    - Queueing is idempotent: 201 first, 200 with the same job after
    - Retry of a succeeded job is 409, of an unknown job 404
    - No route calls Pohoda
"""

from datetime import datetime, timezone
from uuid import uuid4

from pohoda_export.models.export_job import PohodaExportJob

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


async def _insert_job(db, order_id: int, status: str, **fields) -> PohodaExportJob:
    job = PohodaExportJob(
        order_id=order_id, status=status, attempt_count=fields.pop("attempt_count", 0),
        created_at=NOW, warnings=[], **fields,
    )
    db.add(job)
    await db.commit()
    return job


async def test_queue_order_creates_then_returns_existing(client, make_order, mock_pohoda):
    await make_order(42)

    first = await client.post("/api/v1/export-jobs/orders/42")
    second = await client.post("/api/v1/export-jobs/orders/42")

    assert first.status_code == 201
    assert first.json()["status"] == "pending"
    assert first.json()["attempt_count"] == 0
    assert second.status_code == 200
    assert second.json()["id"] == first.json()["id"]
    assert mock_pohoda.requests == []


async def test_queue_unknown_order_is_404(client):
    response = await client.post("/api/v1/export-jobs/orders/999")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


async def test_list_jobs_filters_by_status(client, make_order, test_db):
    """Filtered list, counts across every status."""
    for order_id in (1, 2, 3):
        await make_order(order_id)
    await _insert_job(test_db, 1, "pending")
    await _insert_job(test_db, 2, "failed", attempt_count=3, last_error="HTTP 500", failed_at=NOW)
    await _insert_job(test_db, 3, "succeeded", attempt_count=1, document_number="FV2024003")

    response = await client.get("/api/v1/export-jobs", params={"status": "failed"})

    assert response.status_code == 200
    data = response.json()
    assert [job["order_id"] for job in data["jobs"]] == [2]
    assert data["jobs"][0]["last_error"] == "HTTP 500"
    assert data["counts"] == {"pending": 1, "succeeded": 1, "failed": 1}


async def test_list_jobs_rejects_unknown_status(client):
    response = await client.get("/api/v1/export-jobs", params={"status": "exploded"})
    assert response.status_code == 400


async def test_retry_resets_failed_job(client, make_order, test_db):
    await make_order(2)
    job = await _insert_job(
        test_db, 2, "failed", attempt_count=3, last_error="HTTP 500", failed_at=NOW,
    )

    response = await client.post(f"/api/v1/export-jobs/{job.id}/retry")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "pending"
    assert data["attempt_count"] == 0
    assert data["last_error"] is None
    assert data["failed_at"] is None


async def test_retry_succeeded_job_is_409(client, make_order, test_db):
    await make_order(3)
    job = await _insert_job(test_db, 3, "succeeded", attempt_count=1, document_number="FV2024003")

    response = await client.post(f"/api/v1/export-jobs/{job.id}/retry")

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "EXPORT_JOB_CONFLICT"


async def test_retry_unknown_job_is_404(client):
    response = await client.post(f"/api/v1/export-jobs/{uuid4()}/retry")
    assert response.status_code == 404
