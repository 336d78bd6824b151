"""Invoice List Request XML — serializes a ListFilter into a `lst:listInvoiceRequest` dataPack.

Invariants:
    - Filter children appear in the order number, dateFrom, dateTill, symVar; empty ones are omitted
    - An empty filter sends no `ftr:filter` element at all
    - dataPack id is `ListInvoice-{ident}`, item id `InvoiceList-{ident}`; ident only holds [A-Za-z0-9._-]
    - Output is validated against the bundled XSD before it is returned
"""

import re

from lxml import etree

from pohoda_export.core.build_invoice_xml import validate_against_schema
from pohoda_export.core.domain_types import TextEncoding
from pohoda_export.core.invoice_document import ListFilter
from pohoda_export.core.pohoda_xml import (
    LIST_NSMAP, NS_DATA, NS_FILTER, NS_LIST, SCHEMA_VERSION, format_date, qname,
)

_UNSAFE = re.compile(r"[^\w.\-]", re.ASCII)
_MAX_IDENT = 48


def sanitize_identifier(value: str) -> str:
    cleaned = _UNSAFE.sub("", value.strip())[:_MAX_IDENT]
    return cleaned or "Value"


def list_request_identifier(list_filter: ListFilter, request_id: str | None = None) -> str:
    if request_id and request_id.strip():
        return sanitize_identifier(request_id)
    if list_filter.number and list_filter.number.strip():
        return sanitize_identifier(list_filter.number)
    if list_filter.variable_symbol and list_filter.variable_symbol.strip():
        return sanitize_identifier(list_filter.variable_symbol)
    if list_filter.date_from and list_filter.date_till:
        return f"{list_filter.date_from:%Y%m%d}-{list_filter.date_till:%Y%m%d}"
    if list_filter.date_from:
        return f"from-{list_filter.date_from:%Y%m%d}"
    if list_filter.date_till:
        return f"to-{list_filter.date_till:%Y%m%d}"
    return "All"


class PohodaListRequestBuilder:
    """Builds issued-invoice list queries."""

    def __init__(
        self,
        schema: etree.XMLSchema | None = None,
        encoding: TextEncoding = TextEncoding.UTF8,
    ):
        self.schema = schema
        self.encoding = encoding

    def build(
        self,
        list_filter: ListFilter,
        request_id: str | None = None,
        application_name: str | None = None,
    ) -> bytes:
        ident = list_request_identifier(list_filter, request_id)

        root = etree.Element(qname(NS_DATA, "dataPack"), nsmap=LIST_NSMAP)
        root.set("id", f"ListInvoice-{ident}")
        root.set("version", SCHEMA_VERSION)
        if application_name and application_name.strip():
            root.set("application", application_name.strip())

        item = etree.SubElement(root, qname(NS_DATA, "dataPackItem"))
        item.set("id", f"InvoiceList-{ident}")
        item.set("version", SCHEMA_VERSION)

        request = etree.SubElement(item, qname(NS_LIST, "listInvoiceRequest"))
        request.set("version", SCHEMA_VERSION)
        request.set("invoiceType", "issuedInvoice")
        request.set("invoiceVersion", SCHEMA_VERSION)
        request_invoice = etree.SubElement(request, qname(NS_LIST, "requestInvoice"))

        filter_element = etree.SubElement(request_invoice, qname(NS_FILTER, "filter"))
        self._fill_filter(filter_element, list_filter)
        if not len(filter_element):
            request_invoice.remove(filter_element)

        payload = etree.tostring(
            root,
            xml_declaration=True,
            encoding=self.encoding.value,
            pretty_print=True,
        )
        validate_against_schema(self.schema, payload, "Invoice list request")
        return payload

    @staticmethod
    def _fill_filter(element, list_filter: ListFilter) -> None:
        def add(tag: str, text: str) -> None:
            etree.SubElement(element, qname(NS_FILTER, tag)).text = text

        if list_filter.number and list_filter.number.strip():
            add("number", list_filter.number.strip())
        if list_filter.date_from:
            add("dateFrom", format_date(list_filter.date_from))
        if list_filter.date_till:
            add("dateTill", format_date(list_filter.date_till))
        if list_filter.variable_symbol and list_filter.variable_symbol.strip():
            add("symVar", list_filter.variable_symbol.strip())
