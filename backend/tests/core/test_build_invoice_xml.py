"""Invoice XML Builder — tests for dataPack generation and XSD self-validation.

Tests cover:
    - single-item and discounted multi-item invoices validate against the bundled XSD
    - the XML declaration carries the configured code page
    - discounts appear as discountPercentage, summary buckets only when positive
    - building is deterministic (same document ⇒ same bytes)
    - schema violations raise SchemaValidationError
"""

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from lxml import etree

from pohoda_export.core.build_invoice_xml import PohodaXmlBuilder
from pohoda_export.core.domain_types import TextEncoding
from pohoda_export.core.errors import SchemaValidationError
from pohoda_export.core.map_order_invoice import map_order_to_invoice
from pohoda_export.core.pohoda_xml import NS_DATA, NS_INVOICE, NS_TYPE
from pohoda_export.infrastructure.pohoda_schemas import load_pohoda_schema

D = Decimal
NS = {"dat": NS_DATA, "inv": NS_INVOICE, "typ": NS_TYPE}


def _order(order_id, lines, total=None, total_price=None, customer_id="cust-9"):
    items = [
        SimpleNamespace(
            id=index, course_id=index, course_title=title, quantity=qty,
            unit_price_excl_vat=(D(gross) - D(vat)) / qty, vat=D(vat), total=D(gross),
        )
        for index, (title, qty, vat, gross) in enumerate(lines, start=1)
    ]
    gross_sum = sum((i.total for i in items), D("0"))
    return SimpleNamespace(
        id=order_id,
        customer_id=customer_id,
        created_at=datetime(2024, 5, 2, 8, 0, tzinfo=timezone.utc),
        price_excl_vat=gross_sum - sum((i.vat for i in items), D("0")),
        vat=sum((i.vat for i in items), D("0")),
        total=D(total) if total else gross_sum,
        total_price=D(total_price) if total_price else gross_sum,
        invoice_number=None,
        payment_confirmation="PAY-2024-0001",
        items=items,
    )


@pytest.fixture
def builder():
    return PohodaXmlBuilder(load_pohoda_schema())


@pytest.fixture
def single_item_document():
    return map_order_to_invoice(_order(42, [("Python basics", 1, "21.00", "121.00")]))


@pytest.fixture
def discounted_document():
    return map_order_to_invoice(_order(
        7,
        [("Python basics", 1, "21.00", "121.00"), ("SQL in practice", 2, "42.00", "242.00")],
        total="326.00", total_price="363.00",
    ))


def _parse(payload: bytes):
    return etree.fromstring(payload)


# ─── Structure ───────────────────────────────────────────────────

def test_single_item_invoice_validates(builder, single_item_document):
    payload = builder.build_issued_invoice_xml(single_item_document, "CourseShop")
    root = _parse(payload)
    assert root.get("id") == "Invoice-42"
    assert root.get("version") == "2.0"
    assert root.get("application") == "CourseShop"
    assert root.findtext("dat:dataPackItem/inv:invoice/inv:invoiceHeader/inv:symVar", namespaces=NS) == "42"
    assert root.findtext(".//inv:invoiceHeader/inv:symSpec", namespaces=NS) == "PAY-2024-0001"
    assert root.findtext(".//inv:invoiceHeader/inv:dateDue", namespaces=NS) == "2024-05-16"
    assert root.findtext(".//typ:address/typ:company", namespaces=NS) == "cust-9"


def test_item_lines_carry_unit_price_and_rate(builder, single_item_document):
    root = _parse(builder.build_issued_invoice_xml(single_item_document))
    items = root.findall(".//inv:invoiceItem", namespaces=NS)
    assert len(items) == 1
    assert items[0].findtext("inv:text", namespaces=NS) == "Python basics"
    assert items[0].findtext("inv:quantity", namespaces=NS) == "1"
    assert items[0].findtext("inv:rateVAT", namespaces=NS) == "high"
    assert items[0].findtext("inv:homeCurrency/typ:unitPrice", namespaces=NS) == "100"
    assert items[0].find("inv:discountPercentage", namespaces=NS) is None


def test_discounted_multi_item_invoice_validates(builder, discounted_document):
    root = _parse(builder.build_issued_invoice_xml(discounted_document))
    percentages = [
        el.text for el in root.findall(".//inv:invoiceItem/inv:discountPercentage", namespaces=NS)
    ]
    assert percentages == ["10.190083", "10.194215"]
    summary = root.find(".//inv:invoiceSummary/inv:homeCurrency", namespaces=NS)
    assert summary.findtext("typ:priceHigh", namespaces=NS) == "269.42"
    assert summary.findtext("typ:priceHighVAT", namespaces=NS) == "56.58"
    assert summary.findtext("typ:priceSum", namespaces=NS) == "326"
    assert summary.find("typ:priceLow", namespaces=NS) is None


def test_requested_number_written_when_order_already_numbered(builder):
    order = _order(11, [("Python basics", 1, "21.00", "121.00")])
    order.invoice_number = "FV2024011"
    root = _parse(builder.build_issued_invoice_xml(map_order_to_invoice(order)))
    assert root.findtext(".//inv:number/typ:numberRequested", namespaces=NS) == "FV2024011"


def test_partner_identity_omitted_without_customer(builder):
    order = _order(12, [("Python basics", 1, "21.00", "121.00")], customer_id=None)
    root = _parse(builder.build_issued_invoice_xml(map_order_to_invoice(order)))
    assert root.find(".//inv:partnerIdentity", namespaces=NS) is None


# ─── Encoding & determinism ──────────────────────────────────────

def test_declaration_uses_configured_code_page(single_item_document):
    builder = PohodaXmlBuilder(load_pohoda_schema(), TextEncoding.WINDOWS_1250)
    payload = builder.build_issued_invoice_xml(single_item_document)
    assert payload.startswith(b"<?xml version='1.0' encoding='windows-1250'?>")
    assert "Objednávka 42".encode("cp1250") in payload


def test_build_is_deterministic(builder, discounted_document):
    first = builder.build_issued_invoice_xml(discounted_document, "CourseShop")
    second = builder.build_issued_invoice_xml(discounted_document, "CourseShop")
    assert first == second


# ─── Schema self-validation ──────────────────────────────────────

def test_schema_violation_raises(builder):
    base = map_order_to_invoice(_order(13, [("Python basics", 1, "21.00", "121.00")]))
    broken = replace(base, header=replace(base.header, variable_symbol="ABC"))
    with pytest.raises(SchemaValidationError) as exc:
        builder.build_issued_invoice_xml(broken)
    assert exc.value.errors
    assert exc.value.context.order_id == 13


def test_builder_without_schema_skips_validation(single_item_document):
    broken = replace(
        single_item_document,
        header=replace(single_item_document.header, variable_symbol="ABC"),
    )
    payload = PohodaXmlBuilder().build_issued_invoice_xml(broken)
    assert b"<inv:symVar>ABC</inv:symVar>" in payload
