import copy
import json
import xml.etree.ElementTree as ET

import pytest
from fastapi.testclient import TestClient
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen.canvas import Canvas

from digilocker_bridge.config import BridgeSettings
from digilocker_bridge.main import create_app
from digilocker_bridge.rendering import RenderAssets
from digilocker_bridge.store import InMemoryRegistry

HMAC_KEY = "digilocker-shared-secret"

CERTIFICATE = {
    "@context": [
        "https://www.w3.org/2018/credentials/v1",
        "https://cowin.gov.in/credentials/vaccination/v1",
    ],
    "type": ["VerifiableCredential", "ProofOfVaccinationCredential"],
    "credentialSubject": {
        "type": "Person",
        "id": "did:example:aadhaar:123456789012",
        "name": "Asha Kumari",
        "gender": "Female",
        "age": "31",
        "dob": "1990-05-10",
        "nationality": "Indian",
    },
    "issuer": "https://cowin.gov.in/",
    "issuanceDate": "2021-01-16T07:15:00.000Z",
    "evidence": [
        {
            "id": "https://cowin.gov.in/vaccine/C-1001",
            "feedbackUrl": "https://cowin.gov.in/?C-1001",
            "infoUrl": "https://cowin.gov.in/?C-1001",
            "type": ["Vaccination"],
            "batch": "4121Z005",
            "vaccine": "COVISHIELD",
            "manufacturer": "Serum Institute of India",
            "date": "2021-01-15T10:30:00.000Z",
            "effectiveStart": "2021-01-15",
            "effectiveUntil": "2022-01-15",
            "verifier": {"name": "Dr. Meera Rao"},
            "facility": {
                "name": "PHC Indiranagar",
                "address": {
                    "streetAddress": "12 Main Road",
                    "streetAddress2": "",
                    "district": "Bengaluru Urban",
                    "city": "Bengaluru",
                    "addressRegion": "Karnataka",
                    "addressCountry": "IN",
                },
            },
        }
    ],
    "nonTransferable": "true",
    "proof": {
        "type": "RsaSignature2018",
        "created": "2021-01-16T07:15:00Z",
        "verificationMethod": "did:india",
        "proofPurpose": "assertionMethod",
        "jws": "eyJhbGciOiJQUzI1NiIsImI2NCI6ZmFsc2V9..c2lnbmF0dXJl",
    },
}


@pytest.fixture
def certificate_data():
    return copy.deepcopy(CERTIFICATE)


@pytest.fixture
def make_record(certificate_data):
    def _make_record(
        certificate_id="C-1001",
        name="Asha Kumari",
        mobile="9876543210",
        pre_enrollment_code="PE-1001",
        **certificate_changes,
    ):
        certificate = copy.deepcopy(certificate_data)
        certificate.update(certificate_changes)
        return {
            "certificateId": certificate_id,
            "name": name,
            "mobile": mobile,
            "preEnrollmentCode": pre_enrollment_code,
            "certificate": json.dumps(certificate),
        }

    return _make_record


@pytest.fixture
def registry(make_record):
    registry = InMemoryRegistry()
    registry.add(make_record())
    return registry


@pytest.fixture
def template_path(tmp_path):
    path = tmp_path / "certificate_template.pdf"
    canvas = Canvas(str(path), pagesize=A4)
    canvas.setFont("Helvetica-Bold", 18)
    canvas.drawString(72, 780, "Certificate for COVID-19 Vaccination")
    canvas.showPage()
    canvas.save()
    return path


@pytest.fixture
def assets(template_path):
    return RenderAssets.load(template_path)


@pytest.fixture
def settings(template_path):
    return BridgeSettings(
        auth_hmac_key=HMAC_KEY,
        template_path=template_path,
        uri_template="https://moh.example.gov/vc/{certificate_id}",
    )


@pytest.fixture
def client(settings, registry, assets):
    app = create_app(settings, registry=registry, assets=assets)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def pull_request_xml():
    def _pull_request_xml(
        full_name="Asha Kumari",
        mobile="9876543210",
        doc_format="both",
        ts="2021-02-01T10:00:00+05:30",
        txn="f7f1469c-29b0-4325-9dfc-c567200a70f7",
    ):
        root = ET.Element(
            "PullURIRequest",
            {
                "xmlns:ns2": "http://tempuri.org/",
                "ver": "1.0",
                "ts": ts,
                "txn": txn,
                "orgId": "in.gov.digilocker",
                "format": doc_format,
            },
        )
        details = ET.SubElement(root, "DocDetails")
        for tag, text in (
            ("DocType", "VACER"),
            ("DigiLockerId", "123e4567-e89b-12d3-a456-426655440000"),
            ("UID", "123456789012"),
            ("FullName", full_name),
            ("DOB", "10-05-1990"),
            ("UDF1", mobile),
        ):
            ET.SubElement(details, tag).text = text
        return ET.tostring(root, encoding="utf-8")

    return _pull_request_xml
