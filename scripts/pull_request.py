#!/usr/bin/env python3
"""Send a signed Pull-URI request to a running bridge.

Usage:
    python scripts/pull_request.py full_name mobile [format] [base_url]

Defaults:
    format: both
    base_url: http://localhost:8003

The HMAC key is read from DIGILOCKER_AUTH_HMAC_KEY, the same variable the
bridge uses, so a local instance can be exercised the way DigiLocker calls it.
"""
from __future__ import annotations

import base64
import os
import sys
import urllib.error
import urllib.request
import uuid
import xml.etree.ElementTree as ET
from datetime import datetime

from digilocker_bridge.errors import ProtocolDecodeError
from digilocker_bridge.protocol import decode_response, unwrap_certificate
from digilocker_bridge.signature import sign


def build_request(full_name: str, mobile: str, doc_format: str) -> bytes:
    root = ET.Element(
        "PullURIRequest",
        {
            "xmlns:ns2": "http://tempuri.org/",
            "ver": "1.0",
            "ts": datetime.now().strftime("%Y-%m-%dT%H:%M:%S"),
            "txn": str(uuid.uuid4()),
            "orgId": os.getenv("DIGILOCKER_ORG_ID", "in.gov.sandbox"),
            "format": doc_format,
        },
    )
    details = ET.SubElement(root, "DocDetails")
    ET.SubElement(details, "DocType").text = os.getenv("DIGILOCKER_DOC_TYPE", "VACER")
    ET.SubElement(details, "FullName").text = full_name
    ET.SubElement(details, "UDF1").text = mobile
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def main() -> int:
    if len(sys.argv) < 3:
        print(__doc__)
        return 2
    full_name, mobile = sys.argv[1], sys.argv[2]
    doc_format = sys.argv[3] if len(sys.argv) > 3 else "both"
    base_url = sys.argv[4] if len(sys.argv) > 4 else "http://localhost:8003"
    key = os.getenv("DIGILOCKER_AUTH_HMAC_KEY", "")
    header = os.getenv("DIGILOCKER_AUTH_KEY_NAME", "x-digilocker-hmac")

    body = build_request(full_name, mobile, doc_format)
    request = urllib.request.Request(base_url.rstrip("/") + "/pullUriRequest", data=body, method="POST")
    request.add_header("Content-Type", "application/xml")
    request.add_header(header, sign(body, key.encode("utf-8")))

    try:
        with urllib.request.urlopen(request, timeout=30) as response:
            payload = response.read()
    except urllib.error.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="ignore")
        print(f"Pull request failed: HTTP {exc.code} – {detail}")
        return 1
    except urllib.error.URLError as exc:
        print(f"Pull request failed: {exc.reason}")
        return 1

    try:
        pull_response = decode_response(payload)
    except ProtocolDecodeError as exc:
        print(f"Bridge answered with an unreadable response: {exc}")
        return 1

    status = pull_response.response_status
    details = pull_response.doc_details
    print(f"Status {status.status} for txn {status.txn} ({status.ts})")
    print(f"URI: {details.uri or '-'}")
    if details.doc_content:
        print(f"PDF: {len(base64.b64decode(details.doc_content))} bytes")
    if details.data_content:
        certificate_id, signed_payload = unwrap_certificate(
            base64.b64decode(details.data_content).decode("utf-8")
        )
        print(f"Certificate {certificate_id}: {signed_payload[:80]}...")
    return 0 if pull_response.succeeded else 1


if __name__ == "__main__":
    raise SystemExit(main())
