"""Pohoda mServer Client — authenticated XML transport for invoice submission, list queries and probes.

Invariants:
    - STW-Authorization is `Basic base64(user:pass)` with the credential bytes encoded in the
      configured code page (TextEncoding), never the platform default
    - Every call carries its own timeout; a timeout is a transport failure like any other
    - Timeout, connection error, non-2xx, unreadable body and state="error" all raise
      PohodaTransportError with the sanitized payload log attached
    - No retries here: retry policy belongs to the export service / worker

Design Decisions:
    - httpx.AsyncClient injected: the worker owns one client per cycle, tests pass MockTransport
    - Payloads stored for every submission (success included) so audits can replay the exchange
"""

import base64
import logging
import uuid

import httpx

from pohoda_export.config import Settings
from pohoda_export.core.build_list_request import PohodaListRequestBuilder
from pohoda_export.core.domain_types import TextEncoding
from pohoda_export.core.errors import PohodaTransportError
from pohoda_export.core.invoice_document import (
    InvoiceStatus, ListFilter, PayloadLog, PohodaResponse,
)
from pohoda_export.core.parse_invoice_list import parse_invoice_list
from pohoda_export.core.parse_pohoda_response import parse_pohoda_response
from pohoda_export.core.pohoda_xml import decode_payload
from pohoda_export.infrastructure.payload_store import PayloadStore
from pohoda_export.infrastructure.pohoda_schemas import load_pohoda_schema

logger = logging.getLogger(__name__)


def encode_basic_credentials(
    username: str, password: str, encoding: TextEncoding,
) -> str:
    """`Basic …` header value; raises ValueError if the code page cannot encode the credentials."""
    try:
        raw = encoding.encode(f"{username}:{password}")
    except UnicodeEncodeError as e:
        raise ValueError(
            f"Pohoda credentials are not representable in {encoding.value}",
        ) from e
    return "Basic " + base64.b64encode(raw).decode("ascii")


class PohodaXmlClient:
    """Talks to one Pohoda mServer instance over HTTP."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        username: str,
        password: str,
        application: str | None = None,
        instance: str | None = None,
        check_duplicity: bool = True,
        timeout_seconds: float = 30.0,
        credential_encoding: TextEncoding = TextEncoding.WINDOWS_1250,
        list_builder: PohodaListRequestBuilder | None = None,
        payload_store: PayloadStore | None = None,
    ):
        self.http = http_client
        self.base_url = base_url.rstrip("/")
        self.application = application
        self.instance = instance
        self.check_duplicity = check_duplicity
        self.timeout = httpx.Timeout(timeout_seconds)
        self.list_builder = list_builder or PohodaListRequestBuilder()
        self.payload_store = payload_store or PayloadStore(None)
        self._authorization = encode_basic_credentials(
            username, password, credential_encoding,
        )

    def _headers(self, application_name: str | None = None) -> dict[str, str]:
        headers = {
            "STW-Authorization": self._authorization,
            "STW-Check-Duplicity": "true" if self.check_duplicity else "false",
            "Content-Type": "text/xml",
        }
        application = application_name or self.application
        if application:
            headers["STW-Application"] = application
        if self.instance:
            headers["STW-Instance"] = self.instance
        return headers

    async def send_invoice(
        self,
        xml: bytes,
        application_name: str | None = None,
        correlation_id: str | None = None,
    ) -> PohodaResponse:
        correlation_id = correlation_id or f"invoice-{uuid.uuid4().hex[:12]}"
        body = await self._post_xml(xml, application_name, correlation_id)
        payload_log = await self._store(xml, body, correlation_id)
        try:
            response = parse_pohoda_response(body)
        except PohodaTransportError as e:
            raise e.with_payload_log(payload_log)
        if not response.is_success:
            raise PohodaTransportError(
                "; ".join(response.errors),
                "remote_error",
                payload=decode_payload(body),
                payload_log=payload_log,
                response=response,
            )
        logger.info(
            f"Pohoda accepted invoice ({response.state.value})",
            extra={
                "document_number": response.document_number,
                "status": response.state.value,
            },
        )
        return response

    async def list_invoices(self, list_filter: ListFilter) -> list[InvoiceStatus]:
        xml = self.list_builder.build(
            list_filter, application_name=self.application,
        )
        correlation_id = f"list-{uuid.uuid4().hex[:12]}"
        body = await self._post_xml(xml, None, correlation_id)
        try:
            envelope = parse_pohoda_response(body)
            if not envelope.is_success:
                raise PohodaTransportError(
                    "; ".join(envelope.errors),
                    "remote_error",
                    payload=decode_payload(body),
                    response=envelope,
                )
            return parse_invoice_list(body)
        except PohodaTransportError as e:
            raise e.with_payload_log(await self._store(xml, body, correlation_id))

    async def check_status(self) -> bool:
        try:
            response = await self.http.get(
                f"{self.base_url}/status",
                headers=self._headers(),
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Pohoda status probe failed: {e}")
            return False
        return response.is_success

    async def _post_xml(
        self, xml: bytes, application_name: str | None, correlation_id: str,
    ) -> bytes:
        try:
            response = await self.http.post(
                f"{self.base_url}/xml",
                content=xml,
                headers=self._headers(application_name),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise await self._transport_failure(
                f"request timed out: {e}", "timeout", xml, None, correlation_id,
            )
        except httpx.HTTPError as e:
            raise await self._transport_failure(
                f"connection failed: {e}", "connection_error", xml, None, correlation_id,
            )
        if not response.is_success:
            raise await self._transport_failure(
                f"HTTP {response.status_code}", "http_status",
                xml, response.content, correlation_id, response.status_code,
            )
        return response.content

    async def _transport_failure(
        self,
        message: str,
        api_error_type: str,
        request: bytes,
        body: bytes | None,
        correlation_id: str,
        status_code: int | None = None,
    ) -> PohodaTransportError:
        logger.warning(
            f"Pohoda call failed: {message}",
            extra={"api_error_type": api_error_type, "status_code": status_code},
        )
        return PohodaTransportError(
            message,
            api_error_type,
            status_code=status_code,
            payload=decode_payload(body) if body else None,
            payload_log=await self._store(request, body, correlation_id),
        )

    async def _store(
        self, request: bytes, body: bytes | None, correlation_id: str,
    ) -> dict[str, str | None] | None:
        log: PayloadLog = await self.payload_store.save(request, body, correlation_id)
        return log.to_dict()


def build_pohoda_client(
    settings: Settings, http_client: httpx.AsyncClient,
) -> PohodaXmlClient:
    """Wire a client from settings: schema-validated list builder, payload store, code page."""
    return PohodaXmlClient(
        http_client,
        base_url=settings.pohoda_base_url,
        username=settings.pohoda_username,
        password=settings.pohoda_password,
        application=settings.pohoda_application,
        instance=settings.pohoda_instance,
        check_duplicity=settings.pohoda_check_duplicity,
        timeout_seconds=settings.pohoda_timeout_seconds,
        credential_encoding=settings.pohoda_encoding_name,
        list_builder=PohodaListRequestBuilder(
            load_pohoda_schema(), settings.pohoda_xml_encoding,
        ),
        payload_store=PayloadStore(settings.pohoda_payload_dir),
    )


def new_http_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Fresh AsyncClient; per-call timeouts are set by PohodaXmlClient."""
    return httpx.AsyncClient(transport=transport)
