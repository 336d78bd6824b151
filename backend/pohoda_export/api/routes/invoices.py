"""Invoice Routes — synchronous invoice submission and payment-status lookup against Pohoda.

Invariants:
    - POST validates (pydantic, then business rules, then XSD) before any remote call
    - Pohoda failures surface as 502 with api_error_type and payload_log (error_handlers.py)
    - GET looks up by document number first, then by variable symbol when the query is numeric

Design Decisions:
    - These routes bypass the export queue: they are admin tools, the queue is
      the path for orders (export_jobs.py)
"""

import logging

from fastapi import APIRouter, Depends, status

from pohoda_export.api.dependencies import get_pohoda_client, get_xml_builder
from pohoda_export.config import Settings, get_settings
from pohoda_export.core.build_invoice_xml import PohodaXmlBuilder
from pohoda_export.core.errors import ErrorContext, ResourceNotFoundError
from pohoda_export.core.invoice_document import ListFilter
from pohoda_export.core.repository_protocols import PohodaClient
from pohoda_export.schemas.invoice import (
    InvoiceCreate, InvoiceCreatedResponse, InvoiceStatusOut, InvoiceStatusResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/invoices", tags=["invoices"])


@router.post(
    "", response_model=InvoiceCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_invoice(
    body: InvoiceCreate,
    client: PohodaClient = Depends(get_pohoda_client),
    builder: PohodaXmlBuilder = Depends(get_xml_builder),
    settings: Settings = Depends(get_settings),
):
    """Build an issued invoice from the request and submit it to Pohoda."""
    document = body.to_document(settings.pohoda_invoice_due_days)
    xml = builder.build_issued_invoice_xml(document, settings.pohoda_application)
    response = await client.send_invoice(
        xml,
        settings.pohoda_application,
        correlation_id=f"invoice-{body.header.order_number}",
    )
    logger.info(
        f"Invoice for order number {body.header.order_number} accepted by Pohoda",
        extra={
            "order_id": body.header.order_number,
            "document_number": response.document_number,
            "status": response.state.value,
        },
    )
    return InvoiceCreatedResponse(
        state=response.state.value,
        document_number=response.document_number,
        document_id=response.document_id,
        warnings=list(response.warnings),
        errors=list(response.errors),
    )


@router.get("/{query}", response_model=InvoiceStatusResponse)
async def get_invoice_status(
    query: str, client: PohodaClient = Depends(get_pohoda_client),
):
    """Payment status of invoices matching a document number or variable symbol."""
    query = query.strip()
    invoices = await client.list_invoices(ListFilter(number=query))
    if not invoices and query.isdigit():
        invoices = await client.list_invoices(ListFilter(variable_symbol=query))
    if not invoices:
        raise ResourceNotFoundError(
            "Invoice", query, ErrorContext(debug_info={"query": query}),
        )
    return InvoiceStatusResponse(
        query=query,
        invoices=[InvoiceStatusOut.from_status(status) for status in invoices],
    )
