"""Invoice Document — value types flowing between mapper, builders, parsers and client.

Invariants:
    - All types are frozen dataclasses: pure data, no IO
    - Money is always Decimal, already rounded to cents
    - PohodaResponse is one discriminated result: `state` decides which fields are meaningful
      (ok/warning → document identity set; error → document identity None, errors non-empty)

Design Decisions:
    - Dataclasses over pydantic in core: the core layer has no validation framework
      dependency, pydantic lives in schemas/ at the API edge
    - Summary buckets precomputed by the mapper: the XML builder only formats
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP

from pohoda_export.core.domain_types import ResponseState, VatRate

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_PERCENT_STEP = Decimal("0.000001")


@dataclass(frozen=True)
class CustomerIdentity:
    """Partner address block. Only non-empty fields are emitted."""
    company: str | None = None
    name: str | None = None
    street: str | None = None
    city: str | None = None
    zip: str | None = None
    country: str | None = None

    @property
    def is_empty(self) -> bool:
        return not any(
            (self.company, self.name, self.street, self.city, self.zip, self.country),
        )


@dataclass(frozen=True)
class InvoiceHeader:
    order_id: int
    customer_id: str | None
    created_at: datetime
    price_excl_vat: Decimal
    vat: Decimal
    total_incl_vat: Decimal
    discount: Decimal
    payment_reference: str | None
    invoice_number: str | None
    text: str
    date: date
    tax_date: date
    due_date: date
    variable_symbol: str
    invoice_type: str = "issuedInvoice"
    customer: CustomerIdentity = field(default_factory=CustomerIdentity)
    note: str | None = None


@dataclass(frozen=True)
class InvoiceItem:
    order_item_id: int
    name: str
    qty: int
    unit_price_excl_vat: Decimal
    vat_rate: VatRate
    vat_amount: Decimal
    total_excl_vat: Decimal
    total_incl_vat: Decimal
    discount: Decimal = _ZERO

    @property
    def discount_percentage(self) -> Decimal:
        """Discount as a share of the gross line total, six decimals.

        Two decimals lose the cent split: 10.19 % of 242 is 24.66, not 24.67.
        """
        if self.discount <= 0 or self.total_incl_vat <= 0:
            return _ZERO
        return (self.discount * _HUNDRED / self.total_incl_vat).quantize(
            _PERCENT_STEP, rounding=ROUND_HALF_UP,
        )


@dataclass(frozen=True)
class InvoiceSummary:
    total_excl_vat: Decimal
    total_vat: Decimal
    total_incl_vat: Decimal
    none_rate_base: Decimal = _ZERO
    low_rate_base: Decimal = _ZERO
    low_rate_vat: Decimal = _ZERO
    high_rate_base: Decimal = _ZERO
    high_rate_vat: Decimal = _ZERO


@dataclass(frozen=True)
class InvoiceDocument:
    header: InvoiceHeader
    items: tuple[InvoiceItem, ...]
    summary: InvoiceSummary

    @property
    def total_discount(self) -> Decimal:
        return sum((item.discount for item in self.items), _ZERO)


@dataclass(frozen=True)
class InvoiceStatus:
    """One row of a remote invoice list: payment state of an issued invoice."""
    number: str | None
    variable_symbol: str | None
    total: Decimal | None
    paid: bool
    due_date: date | None
    paid_at: date | None


@dataclass(frozen=True)
class ListFilter:
    """Predicates for a remote invoice list query. Empty fields are not sent."""
    number: str | None = None
    variable_symbol: str | None = None
    date_from: date | None = None
    date_till: date | None = None

    @property
    def is_empty(self) -> bool:
        return not any(
            (self.number, self.variable_symbol, self.date_from, self.date_till),
        )


@dataclass(frozen=True)
class PohodaResponse:
    state: ResponseState
    document_number: str | None = None
    document_id: str | None = None
    warnings: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()

    @property
    def is_success(self) -> bool:
        return self.state is not ResponseState.ERROR


@dataclass(frozen=True)
class PayloadLog:
    """Where the sanitized request/response bodies of one exchange were stored."""
    request_path: str | None = None
    response_path: str | None = None

    @property
    def has_data(self) -> bool:
        return bool(self.request_path or self.response_path)

    def to_dict(self) -> dict[str, str | None] | None:
        if not self.has_data:
            return None
        return {
            "request_path": self.request_path,
            "response_path": self.response_path,
        }
