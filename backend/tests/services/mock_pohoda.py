"""Mock Pohoda mServer — httpx.MockTransport that scripts /xml and /status replies.

Invariants:
    - Replies are consumed in order; the last one repeats once the script runs out
    - Every request is recorded (method, path, headers, body) for assertions
    - A reply can be an httpx.Response, an exception instance (raised), or a callable

Design Decisions:
    - Transport-level fake instead of a PohodaClient double: the real client,
      parsers and payload store run in every service and route test
"""

import httpx

RSP = "http://www.stormware.cz/schema/version_2/response.xsd"
RDC = "http://www.stormware.cz/schema/version_2/documentresponse.xsd"
INV = "http://www.stormware.cz/schema/version_2/invoice.xsd"
LST = "http://www.stormware.cz/schema/version_2/list.xsd"
TYP = "http://www.stormware.cz/schema/version_2/type.xsd"


# -- Response builders ----------------------------------------------------------


def ok_response(number: str = "FV2024001", document_id: str = "101") -> bytes:
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rsp:responsePack xmlns:rsp="{RSP}" xmlns:rdc="{RDC}" xmlns:inv="{INV}"
    version="2.0" id="Invoice" state="ok" application="CourseShop">
  <rsp:responsePackItem version="2.0" id="Invoice" state="ok">
    <inv:invoiceResponse version="2.0" state="ok">
      <rdc:producedDetails>
        <rdc:id>{document_id}</rdc:id>
        <rdc:number>{number}</rdc:number>
      </rdc:producedDetails>
    </inv:invoiceResponse>
  </rsp:responsePackItem>
</rsp:responsePack>""".encode("utf-8")


def warning_response(number: str = "FV2024002") -> bytes:
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rsp:responsePack xmlns:rsp="{RSP}" xmlns:rdc="{RDC}"
    version="2.0" id="Invoice" state="ok">
  <rsp:responsePackItem version="2.0" id="Invoice" state="warning"
      documentNumber="{number}" note="Invoice already exists">
    <rsp:warning message="Duplicitní doklad"/>
  </rsp:responsePackItem>
</rsp:responsePack>""".encode("utf-8")


def error_response(message: str = "Chyba: Povinné pole není vyplněno.") -> bytes:
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rsp:responsePack xmlns:rsp="{RSP}" version="2.0" id="Invoice"
    state="error" stateDetail="Validation failed">
  <rsp:responsePackItem version="2.0" id="Invoice" state="error">
    <rsp:message>{message}</rsp:message>
  </rsp:responsePackItem>
</rsp:responsePack>""".encode("utf-8")


def invoice_list_response(*invoices: dict) -> bytes:
    """listInvoice reply; each dict: number, symvar, total, paid, due, paid_at."""
    entries = []
    for invoice in invoices:
        paid_at = (
            f"<inv:dateOfPayment>{invoice['paid_at']}</inv:dateOfPayment>"
            if invoice.get("paid_at") else ""
        )
        entries.append(f"""
      <lst:invoice version="2.0">
        <inv:invoiceHeader>
          <inv:number><typ:numberRequested>{invoice['number']}</typ:numberRequested></inv:number>
          <inv:symVar>{invoice['symvar']}</inv:symVar>
          <inv:dateDue>{invoice['due']}</inv:dateDue>
          {paid_at}
          <inv:paid>{'true' if invoice['paid'] else 'false'}</inv:paid>
        </inv:invoiceHeader>
        <inv:invoiceSummary>
          <inv:homeCurrency><typ:priceSum>{invoice['total']}</typ:priceSum></inv:homeCurrency>
        </inv:invoiceSummary>
      </lst:invoice>""")
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rsp:responsePack xmlns:rsp="{RSP}" xmlns:lst="{LST}" xmlns:inv="{INV}" xmlns:typ="{TYP}"
    version="2.0" id="ListInvoice" state="ok">
  <rsp:responsePackItem version="2.0" id="InvoiceList" state="ok">
    <lst:listInvoice version="2.0" state="ok">{''.join(entries)}
    </lst:listInvoice>
  </rsp:responsePackItem>
</rsp:responsePack>""".encode("utf-8")


# -- Mock server ----------------------------------------------------------------


class MockPohoda:
    """Scripted mServer. `xml_replies` answer POST /xml, `status_code` answers GET /status."""

    def __init__(self, *xml_replies, status_code: int = 200):
        self.xml_replies = list(xml_replies) or [httpx.Response(200, content=ok_response())]
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    @property
    def xml_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/xml"]

    @property
    def invoice_requests(self) -> list[httpx.Request]:
        """POST /xml bodies carrying an invoice dataPack; list queries are left out."""
        return [r for r in self.xml_requests if b'id="Invoice-' in r.content]

    def reply(self, *xml_replies) -> None:
        self.xml_replies = list(xml_replies)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/status":
            return httpx.Response(self.status_code, text="OK")
        reply = self.xml_replies.pop(0) if len(self.xml_replies) > 1 else self.xml_replies[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        # fresh copy per request: a Response object is bound to one request
        return httpx.Response(reply.status_code, headers=reply.headers, content=reply.content)


def xml_reply(payload: bytes, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code, content=payload, headers={"Content-Type": "text/xml"},
    )
