"""Invoice List Parsing — list response → [InvoiceStatus].

Invariants:
    - One InvoiceStatus per `invoice` element carrying at least one recognizable value
    - paid_at is None when no payment date is present
    - paid comes from an explicit flag (true/false/1/0) or, failing that, from paid_at
    - Empty input ⇒ []; malformed XML ⇒ PohodaTransportError(malformed_response)
"""

from datetime import date
from decimal import Decimal, InvalidOperation

from lxml import etree

from pohoda_export.core.errors import PohodaTransportError
from pohoda_export.core.invoice_document import InvoiceStatus
from pohoda_export.core.pohoda_xml import decode_payload, load_xml, local_name

_NUMBER_CANDIDATES = ("number", "numberRequested", "numberAssigned", "invoiceNumber")
_DUE_DATE_CANDIDATES = ("dateDue", "dueDate")
_PAID_DATE_CANDIDATES = ("dateOfPayment", "datePayment", "datePaid", "datePay")
_PAID_FLAG_CANDIDATES = ("paid", "isPaid", "paymentState")

_TRUE = {"true", "1", "yes", "paid"}
_FALSE = {"false", "0", "no", "unpaid"}


def parse_invoice_list(payload: bytes | str | None) -> list[InvoiceStatus]:
    text = decode_payload(payload)
    if not text.strip():
        return []
    try:
        root = load_xml(payload)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise PohodaTransportError(
            f"Pohoda list response is not well-formed XML: {e}",
            "malformed_response", payload=text,
        )
    statuses = []
    for element in root.iter():
        if local_name(element) != "invoice":
            continue
        status = _parse_invoice(element)
        if status is not None:
            statuses.append(status)
    return statuses


def _parse_invoice(invoice) -> InvoiceStatus | None:
    number = _extract_number(invoice)
    variable_symbol = _extract_text(invoice, "symVar")
    total = _extract_decimal(invoice, "priceSum")
    due_date = _extract_date(invoice, _DUE_DATE_CANDIDATES)
    paid_at = _extract_date(invoice, _PAID_DATE_CANDIDATES)
    if not any((number, variable_symbol, total, due_date, paid_at)):
        return None
    paid = _extract_flag(invoice, _PAID_FLAG_CANDIDATES)
    return InvoiceStatus(
        number=number,
        variable_symbol=variable_symbol,
        total=total,
        paid=paid if paid is not None else paid_at is not None,
        due_date=due_date,
        paid_at=paid_at,
    )


def _find(invoice, name: str):
    for element in invoice.iter():
        if element is not invoice and local_name(element) == name:
            return element
    return None


def _extract_text(invoice, name: str) -> str | None:
    element = _find(invoice, name)
    if element is None:
        return None
    value = "".join(element.itertext()).strip()
    return value or None


def _extract_number(invoice) -> str | None:
    # <inv:number><typ:numberRequested>…</typ:numberRequested></inv:number> nests
    for name in _NUMBER_CANDIDATES:
        value = _extract_text(invoice, name)
        if value:
            return value
    return None


def _extract_decimal(invoice, name: str) -> Decimal | None:
    value = _extract_text(invoice, name)
    if value is None:
        return None
    try:
        return Decimal(value.replace(" ", "").replace(",", "."))
    except InvalidOperation:
        return None


def _extract_date(invoice, names) -> date | None:
    for name in names:
        value = _extract_text(invoice, name)
        if not value:
            continue
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            continue
    return None


def _extract_flag(invoice, names) -> bool | None:
    for name in names:
        value = _extract_text(invoice, name)
        if not value:
            continue
        token = value.lower()
        if token in _TRUE:
            return True
        if token in _FALSE:
            return False
    return None
