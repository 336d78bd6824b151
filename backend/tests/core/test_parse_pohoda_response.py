"""Pohoda Response Parsing — tests for responsePack → PohodaResponse.

Tests cover:
    - ok responses yield document number/id and no messages
    - warning responses collect attribute notes and nested warning elements
    - error responses collect nested messages and the root stateDetail
    - most severe state wins across root and items
    - empty, malformed and foreign-root payloads raise PohodaTransportError
"""

import pytest

from pohoda_export.core.domain_types import ResponseState
from pohoda_export.core.errors import PohodaTransportError
from pohoda_export.core.parse_pohoda_response import normalize_state, parse_pohoda_response

RSP = 'xmlns:rsp="http://www.stormware.cz/schema/version_2/response.xsd"'
RDC = 'xmlns:rdc="http://www.stormware.cz/schema/version_2/documentresponse.xsd"'

OK = f"""<?xml version="1.0" encoding="UTF-8"?>
<rsp:responsePack {RSP} {RDC} version="2.0" id="Invoice-42" state="ok">
  <rsp:responsePackItem version="2.0" id="Invoice-42" state="ok">
    <rdc:producedDetails>
      <rdc:id>2051</rdc:id>
      <rdc:number>FV2024042</rdc:number>
    </rdc:producedDetails>
  </rsp:responsePackItem>
</rsp:responsePack>"""

WARNING = f"""<?xml version="1.0" encoding="Windows-1250"?>
<rsp:responsePack {RSP} version="2.0" id="Invoice-43" state="ok">
  <rsp:responsePackItem version="2.0" id="Invoice-43" state="warning"
      documentNumber="FV2024043" note="Invoice already exists">
    <rsp:warning message="Duplicitní doklad"/>
  </rsp:responsePackItem>
</rsp:responsePack>"""

ERROR = f"""<?xml version="1.0" encoding="UTF-8"?>
<rsp:responsePack {RSP} version="2.0" id="Invoice-44" state="error" stateDetail="Validation failed">
  <rsp:responsePackItem version="2.0" id="Invoice-44" state="error">
    <rsp:message>Chyba: Povinné pole není vyplněno.</rsp:message>
  </rsp:responsePackItem>
</rsp:responsePack>"""


# ─── States ──────────────────────────────────────────────────────

def test_ok_response_yields_document_identity():
    response = parse_pohoda_response(OK.encode("utf-8"))
    assert response.state is ResponseState.OK
    assert response.is_success
    assert response.document_number == "FV2024042"
    assert response.document_id == "2051"
    assert response.warnings == ()
    assert response.errors == ()


def test_warning_response_collects_attribute_and_element_messages():
    response = parse_pohoda_response(WARNING.encode("cp1250"))
    assert response.state is ResponseState.WARNING
    assert response.is_success
    assert response.document_number == "FV2024043"
    assert response.warnings == ("Invoice already exists", "Duplicitní doklad")


def test_error_response_collects_errors_without_document():
    response = parse_pohoda_response(ERROR)
    assert response.state is ResponseState.ERROR
    assert not response.is_success
    assert response.document_number is None
    assert response.errors == ("Validation failed", "Chyba: Povinné pole není vyplněno.")


def test_error_without_details_gets_fallback_message():
    payload = f'<rsp:responsePack {RSP} version="2.0" id="x" state="error"/>'
    response = parse_pohoda_response(payload)
    assert response.errors == ("Pohoda rejected the request without details",)


def test_item_error_beats_root_ok():
    payload = f"""<rsp:responsePack {RSP} version="2.0" id="x" state="ok">
      <rsp:responsePackItem version="2.0" id="x" state="error" note="Doklad nelze uložit"/>
    </rsp:responsePack>"""
    response = parse_pohoda_response(payload)
    assert response.state is ResponseState.ERROR
    assert response.errors == ("Doklad nelze uložit",)


def test_duplicate_messages_reported_once():
    payload = f"""<rsp:responsePack {RSP} version="2.0" id="x" state="warning">
      <rsp:responsePackItem version="2.0" id="x" state="warning" note="Same">
        <rsp:warning>Same</rsp:warning>
      </rsp:responsePackItem>
    </rsp:responsePack>"""
    assert parse_pohoda_response(payload).warnings == ("Same",)


def test_nested_warning_with_code_and_message_child():
    """<warning><code/><message/></warning> is one warning, not an error."""
    payload = f"""<rsp:responsePack {RSP} version="2.0" id="x" state="ok">
      <rsp:responsePackItem version="2.0" id="x" state="warning" documentNumber="FV1">
        <rsp:warning>
          <rsp:code>105</rsp:code>
          <rsp:message>Duplicitní doklad</rsp:message>
        </rsp:warning>
      </rsp:responsePackItem>
    </rsp:responsePack>"""
    response = parse_pohoda_response(payload)
    assert response.state is ResponseState.WARNING
    assert response.document_number == "FV1"
    assert response.warnings == ("Duplicitní doklad",)
    assert response.errors == ()


def test_nested_error_with_code_and_message_child():
    payload = f"""<rsp:responsePack {RSP} version="2.0" id="x" state="error">
      <rsp:responsePackItem version="2.0" id="x" state="error">
        <rsp:errors>
          <rsp:error><rsp:code>201</rsp:code><rsp:message>Neplatné IČ</rsp:message></rsp:error>
        </rsp:errors>
      </rsp:responsePackItem>
    </rsp:responsePack>"""
    assert parse_pohoda_response(payload).errors == ("Neplatné IČ",)


def test_warning_without_text_gets_fallback_message():
    payload = f"""<rsp:responsePack {RSP} version="2.0" id="x" state="ok">
      <rsp:responsePackItem version="2.0" id="x" state="warning" documentNumber="FV1"/>
    </rsp:responsePack>"""
    response = parse_pohoda_response(payload)
    assert response.warnings == ("Pohoda accepted the request with an unspecified warning",)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("ok", ResponseState.OK),
        (" Warning ", ResponseState.WARNING),
        ("fail", ResponseState.ERROR),
        ("partial", ResponseState.WARNING),
        ("", None),
        (None, None),
    ],
)
def test_normalize_state(raw, expected):
    assert normalize_state(raw) is expected


# ─── Malformed input ─────────────────────────────────────────────

@pytest.mark.parametrize("payload", [None, b"", "   "])
def test_empty_payload_is_malformed(payload):
    with pytest.raises(PohodaTransportError) as exc:
        parse_pohoda_response(payload)
    assert exc.value.api_error_type == "malformed_response"


def test_broken_xml_is_malformed():
    with pytest.raises(PohodaTransportError) as exc:
        parse_pohoda_response(b"<rsp:responsePack")
    assert exc.value.api_error_type == "malformed_response"
    assert exc.value.payload == "<rsp:responsePack"


def test_foreign_root_is_malformed():
    with pytest.raises(PohodaTransportError) as exc:
        parse_pohoda_response(b"<html><body>Bad gateway</body></html>")
    assert "<html>" in exc.value.message
