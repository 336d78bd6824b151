"""Invoice Schemas — synchronous invoice submission and payment-status lookups.

Invariants:
    - InvoiceCreate carries at least one item; money fields are non-negative Decimals
    - to_document() produces the same InvoiceDocument shape the order mapper does,
      summary buckets included, and runs the same business validation

Design Decisions:
    - rate optional per item: when omitted it is reconstructed from vat_amount / net like the mapper does
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from pohoda_export.core.domain_types import VatRate
from pohoda_export.core.invoice_document import (
    CustomerIdentity, InvoiceDocument, InvoiceHeader, InvoiceItem, InvoiceStatus,
)
from pohoda_export.core.map_order_invoice import (
    determine_vat_rate, round_currency, summarize_items, validate_invoice,
)


class CustomerIn(BaseModel):
    company: str | None = Field(None, max_length=255)
    name: str | None = Field(None, max_length=255)
    street: str | None = Field(None, max_length=255)
    city: str | None = Field(None, max_length=255)
    zip: str | None = Field(None, max_length=32)
    country: str | None = Field(None, max_length=255)


class InvoiceHeaderIn(BaseModel):
    invoice_type: str = Field("issuedInvoice", pattern=r"^issued(Invoice|CreditNotice|AdvanceInvoice)$")
    order_number: int = Field(gt=0)
    text: str | None = Field(None, max_length=240)
    issue_date: date
    tax_date: date | None = None
    due_date: date | None = None
    variable_symbol: str | None = Field(None, pattern=r"^\d{1,20}$")
    specific_symbol: str | None = Field(None, max_length=32)
    invoice_number: str | None = Field(None, max_length=32)
    customer: CustomerIn | None = None
    note: str | None = None

    @field_validator("text", "specific_symbol", "invoice_number", "note")
    @classmethod
    def strip_blank(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class InvoiceItemIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    quantity: int = Field(ge=1)
    unit_price_excl_vat: Decimal = Field(ge=0)
    vat_amount: Decimal = Field(ge=0)
    total_incl_vat: Decimal = Field(ge=0)
    discount: Decimal = Field(Decimal("0"), ge=0)
    rate: VatRate | None = None


class InvoiceCreate(BaseModel):
    """Admin pass-through: one invoice, sent synchronously."""
    header: InvoiceHeaderIn
    items: list[InvoiceItemIn] = Field(min_length=1)

    def to_document(self, due_days: int = 14) -> InvoiceDocument:
        h = self.header
        items = tuple(
            _to_item(index, item) for index, item in enumerate(self.items, start=1)
        )
        summary = summarize_items(items)
        customer = CustomerIdentity(**h.customer.model_dump()) if h.customer else CustomerIdentity()
        header = InvoiceHeader(
            order_id=h.order_number,
            customer_id=customer.company,
            created_at=datetime.combine(h.issue_date, time.min, tzinfo=timezone.utc),
            price_excl_vat=summary.total_excl_vat,
            vat=summary.total_vat,
            total_incl_vat=summary.total_incl_vat,
            discount=sum((i.discount for i in items), Decimal("0")),
            payment_reference=h.specific_symbol,
            invoice_number=h.invoice_number,
            text=h.text or f"Objednávka {h.order_number}",
            date=h.issue_date,
            tax_date=h.tax_date or h.issue_date,
            due_date=h.due_date or h.issue_date + timedelta(days=due_days),
            variable_symbol=h.variable_symbol or str(h.order_number),
            invoice_type=h.invoice_type,
            customer=customer,
            note=h.note,
        )
        document = InvoiceDocument(header=header, items=items, summary=summary)
        validate_invoice(document)
        return document


def _to_item(index: int, item: InvoiceItemIn) -> InvoiceItem:
    total_incl_vat = round_currency(item.total_incl_vat)
    vat_amount = round_currency(item.vat_amount)
    total_excl_vat = total_incl_vat - vat_amount
    return InvoiceItem(
        order_item_id=index,
        name=item.name.strip(),
        qty=item.quantity,
        unit_price_excl_vat=round_currency(item.unit_price_excl_vat),
        vat_rate=item.rate or determine_vat_rate(vat_amount, total_excl_vat),
        vat_amount=vat_amount,
        total_excl_vat=total_excl_vat,
        total_incl_vat=total_incl_vat,
        discount=round_currency(item.discount),
    )


class InvoiceCreatedResponse(BaseModel):
    state: str
    document_number: str | None
    document_id: str | None
    warnings: list[str]
    errors: list[str]


class InvoiceStatusOut(BaseModel):
    number: str | None
    variable_symbol: str | None
    total: Decimal | None
    paid: bool
    due_date: date | None
    paid_at: date | None

    @classmethod
    def from_status(cls, status: InvoiceStatus) -> "InvoiceStatusOut":
        return cls(
            number=status.number,
            variable_symbol=status.variable_symbol,
            total=status.total,
            paid=status.paid,
            due_date=status.due_date,
            paid_at=status.paid_at,
        )


class InvoiceStatusResponse(BaseModel):
    query: str
    invoices: list[InvoiceStatusOut]
