"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - The mapper reads orders through OrderLike, never through the ORM model
    - The export service talks to Pohoda through PohodaClient, never through httpx

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: boundary methods are async because implementations do IO,
      but core pure functions that USE these protocols are never async themselves
"""

from datetime import datetime
from decimal import Decimal
from typing import Protocol, Sequence

from pohoda_export.core.invoice_document import (
    InvoiceStatus, ListFilter, PohodaResponse,
)


class OrderItemLike(Protocol):
    """Structural contract for order lines handed to the mapper."""
    id: int
    course_id: int
    course_title: str | None
    quantity: int
    unit_price_excl_vat: Decimal
    vat: Decimal
    total: Decimal


class OrderLike(Protocol):
    """Structural contract for orders handed to the mapper.

    Satisfied by the ORM Order as well as by plain test doubles.
    """
    id: int
    customer_id: str | None
    created_at: datetime
    price_excl_vat: Decimal
    vat: Decimal
    total: Decimal
    total_price: Decimal
    invoice_number: str | None
    payment_confirmation: str | None
    items: Sequence[OrderItemLike]


class PohodaClient(Protocol):
    """Contract for the Pohoda mServer transport — implemented by infrastructure."""
    async def send_invoice(
        self,
        xml: bytes,
        application_name: str | None = None,
        correlation_id: str | None = None,
    ) -> PohodaResponse: ...
    async def list_invoices(self, list_filter: ListFilter) -> list[InvoiceStatus]: ...
    async def check_status(self) -> bool: ...
