"""Pohoda XML Primitives — namespaces, value formatting and safe parsing shared by builders and parsers.

Invariants:
    - Namespace URIs are the vendor's version-2 URIs; prefixes are cosmetic
    - Amounts render as `0.##`: at most two decimals, no trailing zeros, dot separator
    - Percentages keep six decimals so Pohoda recomputes the cent-exact line discount
    - load_xml never resolves external entities or touches the network

Design Decisions:
    - lxml over xml.etree: XSD validation and namespace maps in one library
    - str input has its XML declaration stripped: lxml refuses str with an encoding declaration
"""

import re
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from lxml import etree

NS_DATA = "http://www.stormware.cz/schema/version_2/data.xsd"
NS_INVOICE = "http://www.stormware.cz/schema/version_2/invoice.xsd"
NS_TYPE = "http://www.stormware.cz/schema/version_2/type.xsd"
NS_LIST = "http://www.stormware.cz/schema/version_2/list.xsd"
NS_FILTER = "http://www.stormware.cz/schema/version_2/filter.xsd"
NS_RESPONSE = "http://www.stormware.cz/schema/version_2/response.xsd"

INVOICE_NSMAP = {"dat": NS_DATA, "inv": NS_INVOICE, "typ": NS_TYPE}
LIST_NSMAP = {"dat": NS_DATA, "lst": NS_LIST, "ftr": NS_FILTER, "typ": NS_TYPE}

SCHEMA_VERSION = "2.0"

_CENT = Decimal("0.01")
_PERCENT_STEP = Decimal("0.000001")
_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>", re.IGNORECASE)

_parser = etree.XMLParser(
    resolve_entities=False, no_network=True, remove_blank_text=True,
)


def qname(namespace: str, tag: str) -> str:
    return f"{{{namespace}}}{tag}"


def format_amount(value: Decimal) -> str:
    """Decimal → `0.##` text (181.5, 12.33, 363)."""
    text = format(value.quantize(_CENT, rounding=ROUND_HALF_UP), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def format_percentage(value: Decimal) -> str:
    """Six decimals, trailing zeros dropped (10.194215)."""
    text = format(value.quantize(_PERCENT_STEP, rounding=ROUND_HALF_UP), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def format_date(value: date) -> str:
    return value.isoformat()


def local_name(element) -> str:
    """Tag without namespace; comments and PIs yield ''."""
    tag = element.tag
    if not isinstance(tag, str):
        return ""
    return etree.QName(tag).localname


def load_xml(payload: bytes | str):
    """Parse payload into an element. Raises etree.XMLSyntaxError / ValueError."""
    if isinstance(payload, str):
        payload = _DECLARATION.sub("", payload, count=1).strip()
    if not payload:
        raise ValueError("empty XML payload")
    return etree.fromstring(payload, _parser)


def decode_payload(payload: bytes | str | None) -> str:
    """Best-effort text form of a payload for logs and error envelopes."""
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    match = re.match(rb"^\s*<\?xml[^>]*encoding=[\"']([A-Za-z0-9_.\-]+)[\"']", payload)
    encoding = match.group(1).decode("ascii") if match else "utf-8"
    try:
        return payload.decode(encoding, errors="replace")
    except LookupError:
        return payload.decode("utf-8", errors="replace")
