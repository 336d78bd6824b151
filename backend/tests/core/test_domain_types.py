"""Domain Types — verifies rich type definitions and enum values.

Tests:
    - Enums have expected members and serialize to string
    - ResponseState severity ordering and lenient parsing
    - TextEncoding resolves aliases and encodes with the right code page
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from pohoda_export.core.domain_types import (
    ExportJobStatus, JobId, OrderId, ResponseState,
    STATUTORY_VAT_RATES, TextEncoding, VatRate,
)


def test_identity_types_wrap_values():
    uid = uuid4()
    assert JobId(uid) == uid
    assert OrderId(42) == 42


def test_export_job_status_has_three_states():
    assert {s.value for s in ExportJobStatus} == {"pending", "succeeded", "failed"}


def test_response_state_severity_orders_ok_warning_error():
    ordered = sorted(ResponseState, key=lambda s: s.severity)
    assert ordered == [ResponseState.OK, ResponseState.WARNING, ResponseState.ERROR]


def test_response_state_parse_is_lenient():
    assert ResponseState.parse(" OK ") is ResponseState.OK
    assert ResponseState.parse("bogus") is None
    assert ResponseState.parse(None) is None


def test_vat_rates_cover_every_bucket():
    assert set(STATUTORY_VAT_RATES) == set(VatRate)
    assert STATUTORY_VAT_RATES[VatRate.HIGH] == Decimal("21")
    assert VatRate.LOW.value == "low"


@pytest.mark.parametrize(
    "alias, expected",
    [
        ("cp1250", TextEncoding.WINDOWS_1250),
        ("Windows-1250", TextEncoding.WINDOWS_1250),
        ("utf8", TextEncoding.UTF8),
        ("latin2", TextEncoding.ISO_8859_2),
        ("ascii", TextEncoding.ASCII),
    ],
)
def test_text_encoding_resolves_aliases(alias, expected):
    assert TextEncoding.from_name(alias) is expected


def test_text_encoding_rejects_unknown_names():
    with pytest.raises(ValueError):
        TextEncoding.from_name("klingon-8")
    with pytest.raises(ValueError):
        TextEncoding.from_name("shift_jis")


def test_windows_1250_encodes_czech_single_byte():
    assert TextEncoding.WINDOWS_1250.encode("č") == b"\xe8"
    with pytest.raises(UnicodeEncodeError):
        TextEncoding.ASCII.encode("č")
