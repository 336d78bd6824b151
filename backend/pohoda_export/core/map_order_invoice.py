"""Order → Invoice Mapping — pure transform of a paid order into an InvoiceDocument.

Invariants:
    - Empty order ⇒ InvoiceValidationError (permanent, never retried)
    - Σ item.discount == round(total_price − total, 2) exactly; every share ≥ 0 and
      within one cent of its proportional share
    - Every amount is rounded half-up to cents before it reaches the document
    - Pure: no IO, no clock (dates derive from order.created_at)

Design Decisions:
    - Largest-remainder allocation: shares truncated to cents, the leftover cents
      go one by one to the largest fractional remainders, so the split never drifts
      from the total and no line is pushed below zero
    - VAT bucket reconstructed from vat / base ratio and snapped to the nearest
      statutory rate; equidistant ratios go to the higher rate (ADR: over-declaring
      VAT is correctable, under-declaring is not)
"""

from dataclasses import replace
from datetime import timedelta
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import Sequence

from pohoda_export.core.domain_types import STATUTORY_VAT_RATES, VatRate
from pohoda_export.core.errors import ErrorContext, InvoiceValidationError
from pohoda_export.core.invoice_document import (
    CustomerIdentity, InvoiceDocument, InvoiceHeader, InvoiceItem, InvoiceSummary,
)
from pohoda_export.core.repository_protocols import OrderLike

_CENT = Decimal("0.01")
_ZERO = Decimal("0")
_HUNDRED = Decimal("100")

MAX_TEXT_LENGTH = 240
MAX_ITEM_NAME_LENGTH = 255
MAX_SYMSPEC_LENGTH = 32
MAX_CUSTOMER_LENGTH = 255
DEFAULT_DUE_DAYS = 14


def round_currency(value) -> Decimal:
    """Round to cents, halves away from zero. Floats go through str() first."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def determine_vat_rate(vat, base) -> VatRate:
    """Snap the vat/base ratio to the nearest statutory bucket."""
    vat = round_currency(vat)
    base = round_currency(base)
    if base <= 0 or vat <= 0:
        return VatRate.NONE
    percent = vat * _HUNDRED / base
    # Iterate high → low so strict `<` keeps the higher rate on a tie
    best, best_distance = VatRate.HIGH, None
    for rate in (VatRate.HIGH, VatRate.LOW, VatRate.NONE):
        distance = abs(percent - STATUTORY_VAT_RATES[rate])
        if best_distance is None or distance < best_distance:
            best, best_distance = rate, distance
    return best


def allocate_discount(total_discount, weights: Sequence) -> list[Decimal]:
    """Split total_discount across weights by largest remainder.

    Shares sum to the rounded total exactly, are never negative, and none is
    more than one cent away from its proportional share.
    """
    if not weights:
        return []
    discount = round_currency(total_discount)
    if discount <= 0:
        return [_ZERO for _ in weights]
    gross = [round_currency(w) for w in weights]
    gross_sum = sum(gross, _ZERO)
    if gross_sum <= 0:
        return [_ZERO] * (len(gross) - 1) + [discount]
    exact = [discount * g / gross_sum for g in gross]
    shares = [e.quantize(_CENT, rounding=ROUND_DOWN) for e in exact]
    leftover = int((discount - sum(shares, _ZERO)) / _CENT)
    # Largest fractional remainder first; on a tie the later line wins
    order = sorted(
        range(len(shares)), key=lambda i: (exact[i] - shares[i], i), reverse=True,
    )
    for index in order[:leftover]:
        shares[index] += _CENT
    return shares


def map_order_to_invoice(
    order: OrderLike, due_days: int = DEFAULT_DUE_DAYS,
) -> InvoiceDocument:
    """Map a paid order to an issued-invoice document. Pure, no IO."""
    context = ErrorContext(order_id=order.id)
    if not order.items:
        raise InvoiceValidationError(
            f"Order {order.id} has no items", "items", context,
        )

    total = round_currency(order.total)
    total_price = round_currency(order.total_price or order.total)
    discount = round_currency(total_price - total) if total_price > total else _ZERO

    lines = [_map_item(item, context) for item in order.items]
    shares = allocate_discount(discount, [line.total_incl_vat for line in lines])
    items = tuple(
        _with_discount(line, share) for line, share in zip(lines, shares)
    )

    issued = order.created_at.date()
    customer = CustomerIdentity(
        company=str(order.customer_id) if order.customer_id else None,
    )
    header = InvoiceHeader(
        order_id=order.id,
        customer_id=str(order.customer_id) if order.customer_id else None,
        created_at=order.created_at,
        price_excl_vat=round_currency(order.price_excl_vat),
        vat=round_currency(order.vat),
        total_incl_vat=total,
        discount=discount,
        payment_reference=order.payment_confirmation or None,
        invoice_number=order.invoice_number or None,
        text=f"Objednávka {order.id}",
        date=issued,
        tax_date=issued,
        due_date=issued + timedelta(days=due_days),
        variable_symbol=str(order.id),
        customer=customer,
    )
    document = InvoiceDocument(
        header=header, items=items, summary=summarize_items(items),
    )
    validate_invoice(document)
    return document


def summarize_items(items: Sequence[InvoiceItem]) -> InvoiceSummary:
    """Aggregate discounted line totals into the per-rate summary buckets."""
    buckets = {rate: [_ZERO, _ZERO] for rate in VatRate}
    for item in items:
        base, vat = _discounted_split(item)
        buckets[item.vat_rate][0] += base
        buckets[item.vat_rate][1] += vat
    total_excl_vat = sum((b[0] for b in buckets.values()), _ZERO)
    total_vat = sum((b[1] for b in buckets.values()), _ZERO)
    return InvoiceSummary(
        total_excl_vat=total_excl_vat,
        total_vat=total_vat,
        total_incl_vat=total_excl_vat + total_vat,
        none_rate_base=buckets[VatRate.NONE][0],
        low_rate_base=buckets[VatRate.LOW][0],
        low_rate_vat=buckets[VatRate.LOW][1],
        high_rate_base=buckets[VatRate.HIGH][0],
        high_rate_vat=buckets[VatRate.HIGH][1],
    )


def validate_invoice(document: InvoiceDocument) -> None:
    """Reject documents the accounting system would refuse. Raises InvoiceValidationError."""
    header = document.header
    context = ErrorContext(order_id=header.order_id)
    _check_length(header.text, MAX_TEXT_LENGTH, "text", context)
    _check_length(header.payment_reference, MAX_SYMSPEC_LENGTH, "payment_reference", context)
    _check_length(header.customer.company, MAX_CUSTOMER_LENGTH, "customer_id", context)
    if header.total_incl_vat < 0:
        raise InvoiceValidationError(
            f"Order {header.order_id} has a negative total", "total", context,
        )
    for index, item in enumerate(document.items):
        field = f"items[{index}]"
        if min(item.unit_price_excl_vat, item.vat_amount, item.total_excl_vat) < 0:
            raise InvoiceValidationError(
                f"{field} has a negative amount", f"{field}.total", context,
            )
        if item.discount < 0:
            raise InvoiceValidationError(
                f"{field} has a negative discount", f"{field}.discount", context,
            )
        _check_length(item.name, MAX_ITEM_NAME_LENGTH, f"{field}.name", context)


def _map_item(item, context: ErrorContext) -> InvoiceItem:
    if item.total is None or item.vat is None or item.unit_price_excl_vat is None:
        raise InvoiceValidationError(
            f"Order item {item.id} has incomplete pricing", "items.total", context,
        )
    total_incl_vat = round_currency(item.total)
    vat_amount = round_currency(item.vat)
    total_excl_vat = total_incl_vat - vat_amount
    name = (item.course_title or "").strip() or f"Course #{item.course_id}"
    return InvoiceItem(
        order_item_id=item.id,
        name=name,
        qty=max(1, item.quantity or 0),
        unit_price_excl_vat=round_currency(item.unit_price_excl_vat),
        vat_rate=determine_vat_rate(vat_amount, total_excl_vat),
        vat_amount=vat_amount,
        total_excl_vat=total_excl_vat,
        total_incl_vat=total_incl_vat,
    )


def _discounted_split(item: InvoiceItem) -> tuple[Decimal, Decimal]:
    """(base, vat) of the line after discount; the split keeps the line's ratio."""
    if not item.discount:
        return item.total_excl_vat, item.vat_amount
    gross = item.total_incl_vat - item.discount
    if item.total_incl_vat <= 0:
        return gross, _ZERO
    base = round_currency(gross * item.total_excl_vat / item.total_incl_vat)
    return base, gross - base


def _with_discount(item: InvoiceItem, discount: Decimal) -> InvoiceItem:
    return replace(item, discount=discount) if discount else item


def _check_length(
    value: str | None, limit: int, field: str, context: ErrorContext,
) -> None:
    if value and len(value) > limit:
        raise InvoiceValidationError(
            f"{field} exceeds {limit} characters", field, context,
        )
