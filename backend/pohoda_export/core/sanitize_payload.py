"""Payload Sanitizing — redacts personal and banking data from Pohoda XML before it is stored.

Invariants:
    - Every element whose local name is in SENSITIVE_ELEMENTS has its content replaced by [redacted]
    - Unparseable payloads are never stored verbatim: a marker comment is returned instead
    - Pure: no IO
"""

import re

from lxml import etree

from pohoda_export.core.pohoda_xml import decode_payload, load_xml, local_name

REDACTED = "[redacted]"
SANITIZATION_FAILED = "<!-- sanitization_failed -->"

SENSITIVE_ELEMENTS = frozenset({
    "company", "name", "street", "city", "zip", "country",
    "email", "phone", "mobile",
    "ico", "dic", "vatid",
    "variablesymbol", "symvar",
    "accountnumber", "iban", "swift",
})

_UNSAFE_CORRELATION = re.compile(r"[^A-Za-z0-9_\-]")


def sanitize_xml(payload: bytes | str | None) -> str:
    """Redacted text form of payload; '' for empty input."""
    if payload is None or not decode_payload(payload).strip():
        return ""
    try:
        root = load_xml(payload)
    except (etree.XMLSyntaxError, ValueError):
        return SANITIZATION_FAILED
    for element in root.iter():
        if local_name(element).lower() in SENSITIVE_ELEMENTS:
            for child in list(element):
                element.remove(child)
            element.text = REDACTED
    return etree.tostring(root, encoding="unicode", pretty_print=True)


def normalize_correlation_id(correlation_id: str | None) -> str:
    cleaned = _UNSAFE_CORRELATION.sub("", correlation_id or "")[:60]
    return cleaned or "payload"
