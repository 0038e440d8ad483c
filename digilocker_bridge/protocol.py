from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Dict, Optional, Tuple
from xml.sax.saxutils import quoteattr

from defusedxml import ElementTree as DefusedElementTree
from defusedxml.common import DefusedXmlException
from pydantic import ValidationError

from .errors import ProtocolDecodeError, SerializationError
from .models import (
    PullURIRequest,
    PullURIResponse,
    ResponseDocDetails,
    ResponseStatus,
)

logger = logging.getLogger(__name__)

NS2_URI = "http://tempuri.org/"

REQUEST_ATTRIBUTES = ("ver", "ts", "txn", "orgId", "format")


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _parse(raw: bytes, what: str) -> ET.Element:
    try:
        return DefusedElementTree.fromstring(raw)
    except (ET.ParseError, DefusedXmlException) as exc:
        raise ProtocolDecodeError(f"{what} is not well-formed XML: {exc}") from exc


def _find_child(parent: ET.Element, name: str) -> Optional[ET.Element]:
    for child in parent:
        if _local_name(child.tag) == name:
            return child
    return None


def _children_text(parent: ET.Element) -> Dict[str, str]:
    return {_local_name(child.tag): (child.text or "").strip() for child in parent}


# PullURIRequest -----------------------------------------------------------


def decode_request(raw: bytes) -> PullURIRequest:
    root = _parse(raw, "PullURIRequest")
    if _local_name(root.tag) != "PullURIRequest":
        raise ProtocolDecodeError(f"Unexpected root element {root.tag!r}")

    details = _find_child(root, "DocDetails")
    if details is None:
        raise ProtocolDecodeError("PullURIRequest carries no DocDetails block")

    values: Dict[str, object] = {
        name: root.get(name) for name in REQUEST_ATTRIBUTES if root.get(name) is not None
    }
    values["DocDetails"] = _children_text(details)
    try:
        return PullURIRequest.model_validate(values)
    except ValidationError as exc:
        raise ProtocolDecodeError(f"Invalid PullURIRequest: {exc}") from exc


# PullURIResponse ----------------------------------------------------------


def encode_response(response: PullURIResponse) -> bytes:
    try:
        root = ET.Element("PullURIResponse", {"xmlns:ns2": NS2_URI})
        status = response.response_status
        ET.SubElement(
            root,
            "ResponseStatus",
            {"Status": status.status, "ts": status.ts, "txn": status.txn},
        )
        details = ET.SubElement(root, "DocDetails")
        for name, field in ResponseDocDetails.model_fields.items():
            value = getattr(response.doc_details, name)
            if value is None:
                continue
            ET.SubElement(details, field.alias or name).text = value
        return ET.tostring(root, encoding="utf-8", xml_declaration=True)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Unable to serialize PullURIResponse: {exc}") from exc


def decode_response(raw: bytes) -> PullURIResponse:
    root = _parse(raw, "PullURIResponse")
    if _local_name(root.tag) != "PullURIResponse":
        raise ProtocolDecodeError(f"Unexpected root element {root.tag!r}")
    status = _find_child(root, "ResponseStatus")
    if status is None:
        raise ProtocolDecodeError("PullURIResponse carries no ResponseStatus")
    details = _find_child(root, "DocDetails")
    try:
        return PullURIResponse(
            response_status=ResponseStatus.model_validate(dict(status.attrib)),
            doc_details=ResponseDocDetails.model_validate(
                _children_text(details) if details is not None else {}
            ),
        )
    except ValidationError as exc:
        raise ProtocolDecodeError(f"Invalid PullURIResponse: {exc}") from exc


# <certificate> envelope ---------------------------------------------------


def wrap_certificate(certificate_id: str, signed_payload: str) -> str:
    """Put the signed credential into the XML envelope carried as DataContent."""
    # A literal "]]>" would close the section early, so split it across two.
    body = signed_payload.replace("]]>", "]]]]><![CDATA[>")
    return f"<certificate id={quoteattr(certificate_id)}><![CDATA[{body}]]></certificate>"


def unwrap_certificate(envelope: str) -> Tuple[str, str]:
    root = _parse(envelope.encode("utf-8"), "certificate envelope")
    if _local_name(root.tag) != "certificate":
        raise ProtocolDecodeError(f"Unexpected root element {root.tag!r}")
    return root.get("id", ""), root.text or ""
