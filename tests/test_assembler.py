import base64

import pytest

from digilocker_bridge.assembler import ResponseAssembler
from digilocker_bridge.errors import NoContentProduced, RenderError
from digilocker_bridge.protocol import decode_request, unwrap_certificate
from digilocker_bridge.resolver import CredentialResolver


class _SpyRenderer:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def render(self, fields, raw_credential_text):
        self.calls.append((fields, raw_credential_text))
        if self.fail:
            raise RenderError("template missing")
        return b"%PDF-1.4 fake"


@pytest.fixture
def bundle(registry):
    return CredentialResolver(registry, "https://moh.example.gov/vc/{certificate_id}").by_identity(
        "Asha Kumari", "9876543210"
    )


def _assemble(renderer, request_xml, bundle):
    return ResponseAssembler(renderer, "VACER").assemble(decode_request(request_xml), bundle)


def test_xml_never_renders(pull_request_xml, bundle):
    renderer = _SpyRenderer()
    response = _assemble(renderer, pull_request_xml(doc_format="xml"), bundle)

    assert renderer.calls == []
    assert response.succeeded
    assert response.doc_details.doc_content is None
    envelope = base64.b64decode(response.doc_details.data_content).decode("utf-8")
    assert unwrap_certificate(envelope) == ("C-1001", bundle.signed_payload)


def test_pdf_never_produces_data_content(pull_request_xml, bundle):
    renderer = _SpyRenderer()
    response = _assemble(renderer, pull_request_xml(doc_format="pdf"), bundle)

    assert len(renderer.calls) == 1
    fields, raw_text = renderer.calls[0]
    assert raw_text == bundle.signed_payload
    assert fields.rows[0] == "Asha Kumari"
    assert base64.b64decode(response.doc_details.doc_content) == b"%PDF-1.4 fake"
    assert response.doc_details.data_content is None


def test_both_formats(pull_request_xml, bundle):
    response = _assemble(_SpyRenderer(), pull_request_xml(doc_format="both"), bundle)
    assert response.doc_details.doc_content
    assert response.doc_details.data_content
    assert response.doc_details.uri == "https://moh.example.gov/vc/C-1001"
    assert response.doc_details.doc_type == "VACER"
    assert response.doc_details.full_name == "Asha Kumari"


def test_render_failure_keeps_xml(pull_request_xml, bundle):
    response = _assemble(_SpyRenderer(fail=True), pull_request_xml(doc_format="both"), bundle)
    assert response.succeeded
    assert response.doc_details.doc_content is None
    assert response.doc_details.data_content


def test_render_failure_without_alternative_is_total(pull_request_xml, bundle):
    with pytest.raises(NoContentProduced):
        _assemble(_SpyRenderer(fail=True), pull_request_xml(doc_format="pdf"), bundle)


def test_missing_bundle_yields_failure_status(pull_request_xml):
    renderer = _SpyRenderer()
    response = _assemble(renderer, pull_request_xml(ts="t-9", txn="x-9"), None)

    assert renderer.calls == []
    assert not response.succeeded
    assert response.response_status.status == "0"
    assert response.response_status.ts == "t-9"
    assert response.response_status.txn == "x-9"
    assert response.doc_details.uri == ""
    assert response.doc_details.doc_content is None
    assert response.doc_details.data_content is None
