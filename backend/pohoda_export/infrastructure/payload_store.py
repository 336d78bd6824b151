"""Payload Store — persists sanitized Pohoda request/response bodies for audit.

Invariants:
    - Only sanitized content reaches disk (core/sanitize_payload.py)
    - File names: {UTC yyyyMMddHHmmssfff}-{correlation}-{request|response}.xml
    - A failed write is logged and yields a None path; it never masks the export outcome

Design Decisions:
    - Files over a DB column: payloads can be large and are only read during incident review
    - Blocking writes run in a worker thread (asyncio.to_thread)
"""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from pohoda_export.core.invoice_document import PayloadLog
from pohoda_export.core.sanitize_payload import normalize_correlation_id, sanitize_xml

logger = logging.getLogger(__name__)


class PayloadStore:
    """Writes sanitized payload pairs into one directory."""

    def __init__(
        self,
        directory: str | Path | None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.directory = Path(directory) if directory else None
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self.directory is not None

    async def save(
        self,
        request: bytes | str | None,
        response: bytes | str | None,
        correlation_id: str,
    ) -> PayloadLog:
        if self.directory is None:
            return PayloadLog()
        stamp = self._clock().astimezone(timezone.utc).strftime("%Y%m%d%H%M%S%f")[:-3]
        prefix = f"{stamp}-{normalize_correlation_id(correlation_id)}"
        request_path = await asyncio.to_thread(
            self._write, request, f"{prefix}-request.xml",
        )
        response_path = await asyncio.to_thread(
            self._write, response, f"{prefix}-response.xml",
        )
        return PayloadLog(request_path=request_path, response_path=response_path)

    def _write(self, payload: bytes | str | None, file_name: str) -> str | None:
        sanitized = sanitize_xml(payload)
        if not sanitized:
            return None
        path = self.directory / file_name
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_text(sanitized, encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to persist Pohoda payload to {path}: {e}")
            return None
        return str(path)
