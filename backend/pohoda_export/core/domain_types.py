"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - OrderId wraps int, JobId wraps UUID; service entry points take them, routes and the worker wrap
    - All valid states encoded as Enums — no raw string matching
    - VatRate values are the literal tokens the accounting XML expects (none/low/high)
    - TextEncoding always resolves to a Python codec that exists

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and DB columns without custom encoders
    - Code pages as an enum, not magic strings: the default string encoding differs
      between platforms, so the credential encoder must be chosen explicitly
"""

import codecs
from decimal import Decimal
from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

OrderId = NewType("OrderId", int)
JobId = NewType("JobId", UUID)


# ─── Enums ───────────────────────────────────────────────────────

class ExportJobStatus(str, Enum):
    """Export job lifecycle — maps to DB `status` column.

    pending → succeeded (terminal) | failed (retryable until the attempt ceiling).
    """
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ResponseState(str, Enum):
    """responsePack / responsePackItem `state` attribute."""
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"

    @property
    def severity(self) -> int:
        return _STATE_SEVERITY[self]

    @classmethod
    def parse(cls, value: str | None) -> "ResponseState | None":
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


_STATE_SEVERITY = {
    ResponseState.OK: 0,
    ResponseState.WARNING: 1,
    ResponseState.ERROR: 2,
}


class VatRate(str, Enum):
    """Statutory VAT buckets as written in `typ:rateVAT`."""
    NONE = "none"
    LOW = "low"
    HIGH = "high"


# Percentages per bucket (Czech rates since 2024).
STATUTORY_VAT_RATES: dict[VatRate, Decimal] = {
    VatRate.NONE: Decimal("0"),
    VatRate.LOW: Decimal("12"),
    VatRate.HIGH: Decimal("21"),
}


class TextEncoding(str, Enum):
    """Code pages accepted for XML prologs and Basic-Auth credential bytes."""
    UTF8 = "utf-8"
    WINDOWS_1250 = "windows-1250"
    ISO_8859_2 = "iso-8859-2"
    WINDOWS_1252 = "windows-1252"
    ASCII = "us-ascii"

    @property
    def codec(self) -> str:
        """Python codec name."""
        return codecs.lookup(self.value).name

    def encode(self, text: str) -> bytes:
        return text.encode(self.codec)

    @classmethod
    def from_name(cls, name: str) -> "TextEncoding":
        """Resolve a configured name or alias (cp1250, latin2, utf8) to a member."""
        try:
            wanted = codecs.lookup(name.strip()).name
        except LookupError:
            raise ValueError(f"Unknown text encoding: {name!r}") from None
        for member in cls:
            if member.codec == wanted:
                return member
        raise ValueError(f"Unsupported text encoding: {name!r}")
