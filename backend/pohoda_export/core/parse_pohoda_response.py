"""Pohoda Response Parsing — `rsp:responsePack` → PohodaResponse.

Invariants:
    - Overall state is the most severe of the root and responsePackItem states
    - ok ⇒ document fields set, warnings/errors empty
    - warning ⇒ document fields set, warnings non-empty: attributes, nested warning elements
      (message attribute, message child or text), else a fallback text
    - A message child belongs to its warning/error parent; loose messages follow the item state
    - error ⇒ document fields None, errors non-empty
    - Empty, malformed or non-responsePack payloads raise PohodaTransportError(malformed_response)
    - Messages are de-duplicated, first occurrence wins

Design Decisions:
    - Matching by local name: mServer versions differ in prefixes and nested agenda namespaces
    - Unknown state tokens count as warning ("fail" counts as error) so nothing silently passes as ok
"""

from lxml import etree

from pohoda_export.core.domain_types import ResponseState
from pohoda_export.core.errors import PohodaTransportError
from pohoda_export.core.invoice_document import PohodaResponse
from pohoda_export.core.pohoda_xml import decode_payload, load_xml, local_name

_NUMBER_ATTRIBUTES = ("documentNumber", "number", "numberValue")
_NUMBER_ELEMENTS = ("numberAssigned", "numberRequested", "invoiceNumber", "number")
_MESSAGE_ATTRIBUTES = ("note", "stateDetail", "stateInfo")
_WARNING_ELEMENTS = {"warning", "warnings"}
_ERROR_ELEMENTS = {"error", "errors"}
_FALLBACK_ERROR = "Pohoda rejected the request without details"
_FALLBACK_WARNING = "Pohoda accepted the request with an unspecified warning"


def normalize_state(value: str | None) -> ResponseState | None:
    """Map a raw state attribute to ResponseState; None when absent."""
    if value is None or not value.strip():
        return None
    token = value.strip().lower()
    if token == "fail":
        return ResponseState.ERROR
    return ResponseState.parse(token) or ResponseState.WARNING


def load_response_pack(payload: bytes | str | None):
    """Parse payload and check the root is responsePack. Raises PohodaTransportError."""
    text = decode_payload(payload)
    if payload is None or not text.strip():
        raise PohodaTransportError(
            "Pohoda response was empty", "malformed_response", payload=text,
        )
    try:
        root = load_xml(payload)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise PohodaTransportError(
            f"Pohoda response is not well-formed XML: {e}",
            "malformed_response", payload=text,
        )
    if local_name(root) != "responsePack":
        raise PohodaTransportError(
            f"Unexpected Pohoda response root <{local_name(root)}>",
            "malformed_response", payload=text,
        )
    return root


def parse_pohoda_response(payload: bytes | str | None) -> PohodaResponse:
    root = load_response_pack(payload)
    items = [el for el in root.iter() if local_name(el) == "responsePackItem"]

    state = overall_state(root, items)
    if state is ResponseState.ERROR:
        errors = _collect_messages(root, items, ResponseState.ERROR) or [_FALLBACK_ERROR]
        return PohodaResponse(state=state, errors=tuple(errors))
    warnings = []
    if state is ResponseState.WARNING:
        warnings = _collect_messages(root, items, ResponseState.WARNING) or [_FALLBACK_WARNING]
    return PohodaResponse(
        state=state,
        document_number=_document_number(root, items),
        document_id=_document_id(items),
        warnings=tuple(warnings),
    )


def overall_state(root, items) -> ResponseState:
    states = [normalize_state(root.get("state"))]
    states.extend(normalize_state(item.get("state")) for item in items)
    known = [s for s in states if s is not None]
    if not known:
        return ResponseState.OK
    return max(known, key=lambda s: s.severity)


def _document_number(root, items) -> str | None:
    for attribute in _NUMBER_ATTRIBUTES:
        for item in items:
            value = _clean(item.get(attribute))
            if value:
                return value
    for element in root.iter():
        if local_name(element) in _NUMBER_ELEMENTS and not len(element):
            value = _clean(element.text)
            if value:
                return value
    return None


def _document_id(items) -> str | None:
    for item in items:
        value = _clean(item.get("documentId"))
        if value:
            return value
    # <rdc:producedDetails><rdc:id>…</rdc:id></rdc:producedDetails>
    for item in items:
        for element in item.iter():
            if local_name(element) == "producedDetails":
                for child in element:
                    if local_name(child) == "id" and _clean(child.text):
                        return _clean(child.text)
    return None


def _collect_messages(root, items, wanted: ResponseState) -> list[str]:
    """Messages whose severity equals `wanted`, in document order, de-duplicated."""
    entries: list[tuple[str, ResponseState]] = []
    root_state = normalize_state(root.get("state")) or ResponseState.OK

    def add(message: str | None, severity: ResponseState) -> None:
        message = _clean(message)
        if message:
            entries.append((message, severity))

    for attribute in ("stateDetail", "stateInfo"):
        add(root.get(attribute), _message_severity(root_state))

    for item in items:
        item_state = normalize_state(item.get("state")) or root_state
        for attribute in _MESSAGE_ATTRIBUTES:
            add(item.get(attribute), _message_severity(item_state))
        for element, severity in _message_elements(item, item_state):
            add(_element_message(element), severity)

    seen: set[str] = set()
    messages = []
    for message, severity in entries:
        if severity is wanted and message not in seen:
            seen.add(message)
            messages.append(message)
    return messages


def _message_elements(item, item_state: ResponseState):
    """(element, severity) for every message carrier below item, outermost carrier only.

    warning/error elements are classified by their own name; their children
    (code, message) belong to them. Loose message/note elements follow the item state.
    """
    stack = list(reversed(item))
    while stack:
        element = stack.pop()
        name = local_name(element)
        has_children = any(local_name(child) for child in element)
        if name in ("warnings", "errors") and has_children:
            stack.extend(reversed(element))
        elif name in _WARNING_ELEMENTS:
            yield element, ResponseState.WARNING
        elif name in _ERROR_ELEMENTS:
            yield element, ResponseState.ERROR
        elif name in ("message", "note"):
            yield element, _message_severity(item_state)
        else:
            stack.extend(reversed(element))


def _element_message(element) -> str | None:
    """message attribute, else the message child, else all text joined."""
    message = _clean(element.get("message"))
    if message:
        return message
    for child in element:
        if local_name(child) == "message" and _clean("".join(child.itertext())):
            return _clean("".join(child.itertext()))
    return _clean(" ".join(t.strip() for t in element.itertext() if t.strip()))


def _message_severity(state: ResponseState) -> ResponseState:
    return ResponseState.ERROR if state is ResponseState.ERROR else ResponseState.WARNING


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None
