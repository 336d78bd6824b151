"""Issued Invoice XML — serializes an InvoiceDocument into a Pohoda dataPack.

Invariants:
    - Identical document + settings ⇒ byte-identical output
    - Element order follows invoice.xsd exactly (header → detail → summary)
    - Output is validated against the bundled XSD before it is returned;
      a failure is a builder defect (SchemaValidationError), never a remote problem
    - Optional elements are omitted, never emitted empty

Design Decisions:
    - Schema injected, not loaded here: core stays free of file IO
      (infrastructure/pohoda_schemas.py compiles it)
    - Validation runs on the serialized bytes, so encoding problems surface too
    - Only unitPrice is sent per line; Pohoda derives line totals and applies discountPercentage
"""

import logging

from lxml import etree

from pohoda_export.core.domain_types import TextEncoding
from pohoda_export.core.errors import ErrorContext, SchemaValidationError
from pohoda_export.core.invoice_document import (
    CustomerIdentity, InvoiceDocument, InvoiceHeader, InvoiceItem, InvoiceSummary,
)
from pohoda_export.core.pohoda_xml import (
    INVOICE_NSMAP, NS_DATA, NS_INVOICE, NS_TYPE, SCHEMA_VERSION,
    format_amount, format_date, format_percentage, load_xml, qname,
)

logger = logging.getLogger(__name__)


def _inv(parent, tag: str, text: str | None = None):
    element = etree.SubElement(parent, qname(NS_INVOICE, tag))
    if text is not None:
        element.text = text
    return element


def _typ(parent, tag: str, text: str | None = None):
    element = etree.SubElement(parent, qname(NS_TYPE, tag))
    if text is not None:
        element.text = text
    return element


def validate_against_schema(
    schema: etree.XMLSchema | None, payload: bytes, document: str,
    context: ErrorContext | None = None,
) -> None:
    """Re-parse payload and validate it. Raises SchemaValidationError."""
    if schema is None:
        return
    try:
        root = load_xml(payload)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise SchemaValidationError(document, [f"not well-formed: {e}"], context)
    if not schema.validate(root):
        errors = [
            f"line {entry.line}: {entry.message}" for entry in schema.error_log
        ]
        logger.critical(
            f"{document} XML failed schema validation: {errors}",
            extra={"order_id": context.order_id if context else None},
        )
        raise SchemaValidationError(document, errors, context)


class PohodaXmlBuilder:
    """Builds issued-invoice dataPacks. Stateless apart from schema and encoding."""

    def __init__(
        self,
        schema: etree.XMLSchema | None = None,
        encoding: TextEncoding = TextEncoding.UTF8,
    ):
        self.schema = schema
        self.encoding = encoding

    def build_issued_invoice_xml(
        self, document: InvoiceDocument, application_name: str | None = None,
    ) -> bytes:
        header = document.header
        identifier = f"Invoice-{header.order_id}"

        root = etree.Element(qname(NS_DATA, "dataPack"), nsmap=INVOICE_NSMAP)
        root.set("id", identifier)
        root.set("version", SCHEMA_VERSION)
        if application_name and application_name.strip():
            root.set("application", application_name.strip())

        item = etree.SubElement(root, qname(NS_DATA, "dataPackItem"))
        item.set("id", identifier)
        item.set("version", SCHEMA_VERSION)

        invoice = _inv(item, "invoice")
        invoice.set("version", SCHEMA_VERSION)
        self._write_header(invoice, header)
        self._write_detail(invoice, document.items)
        self._write_summary(invoice, document.summary)

        payload = etree.tostring(
            root,
            xml_declaration=True,
            encoding=self.encoding.value,
            pretty_print=True,
        )
        validate_against_schema(
            self.schema, payload, "Invoice", ErrorContext(order_id=header.order_id),
        )
        return payload

    def _write_header(self, invoice, header: InvoiceHeader) -> None:
        element = _inv(invoice, "invoiceHeader")
        _inv(element, "invoiceType", header.invoice_type)
        if header.invoice_number:
            number = _inv(element, "number")
            _typ(number, "numberRequested", header.invoice_number)
        _inv(element, "numberOrder", str(header.order_id))
        _inv(element, "symVar", header.variable_symbol)
        if header.payment_reference:
            _inv(element, "symSpec", header.payment_reference)
        _inv(element, "date", format_date(header.date))
        _inv(element, "dateTax", format_date(header.tax_date))
        _inv(element, "dateDue", format_date(header.due_date))
        _inv(element, "text", header.text)
        if not header.customer.is_empty:
            self._write_partner(element, header.customer)
        if header.note:
            _inv(element, "note", header.note)

    @staticmethod
    def _write_partner(header_element, customer: CustomerIdentity) -> None:
        identity = _inv(header_element, "partnerIdentity")
        address = _typ(identity, "address")
        for tag in ("company", "name", "street", "city", "zip", "country"):
            value = getattr(customer, tag)
            if value and value.strip():
                _typ(address, tag, value.strip())

    @staticmethod
    def _write_detail(invoice, items: tuple[InvoiceItem, ...]) -> None:
        detail = _inv(invoice, "invoiceDetail")
        for line in items:
            element = _inv(detail, "invoiceItem")
            _inv(element, "text", line.name)
            _inv(element, "quantity", str(line.qty))
            _inv(element, "rateVAT", line.vat_rate.value)
            if line.discount > 0:
                _inv(element, "discountPercentage", format_percentage(line.discount_percentage))
            home = _inv(element, "homeCurrency")
            _typ(home, "unitPrice", format_amount(line.unit_price_excl_vat))

    @staticmethod
    def _write_summary(invoice, summary: InvoiceSummary) -> None:
        element = _inv(invoice, "invoiceSummary")
        _inv(element, "round", "none")
        home = _inv(element, "homeCurrency")
        for tag, value in (
            ("priceNone", summary.none_rate_base),
            ("priceLow", summary.low_rate_base),
            ("priceLowVAT", summary.low_rate_vat),
            ("priceHigh", summary.high_rate_base),
            ("priceHighVAT", summary.high_rate_vat),
        ):
            if value > 0:
                _typ(home, tag, format_amount(value))
        _typ(home, "priceSum", format_amount(summary.total_incl_vat))
