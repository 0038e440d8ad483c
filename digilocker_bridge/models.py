from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterator, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

CERTIFICATE_ENTITY = "VaccinationCertificate"

STATUS_SUCCESS = "1"
STATUS_FAILURE = "0"


class DocumentFormat(str, Enum):
    PDF = "pdf"
    XML = "xml"
    BOTH = "both"

    @property
    def wants_pdf(self) -> bool:
        return self in {DocumentFormat.PDF, DocumentFormat.BOTH}

    @property
    def wants_xml(self) -> bool:
        return self in {DocumentFormat.XML, DocumentFormat.BOTH}


# Pull-URI protocol ---------------------------------------------------------


class RequestDocDetails(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    doc_type: str = Field("", alias="DocType")
    digilocker_id: str = Field("", alias="DigiLockerId")
    uid: str = Field("", alias="UID")
    full_name: str = Field("", alias="FullName")
    dob: str = Field("", alias="DOB")
    photo: str = Field("", alias="Photo")
    udf1: str = Field("", alias="UDF1", description="Mobile number of the beneficiary")
    udf2: str = Field("", alias="UDF2")
    udf3: str = Field("", alias="UDF3")
    udfn: str = Field("", alias="UDFn")


class PullURIRequest(BaseModel):
    """A DigiLocker request to pull a document on behalf of a citizen."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ver: str = ""
    ts: str
    txn: str
    org_id: str = Field(..., alias="orgId")
    format: DocumentFormat
    doc_details: RequestDocDetails = Field(..., alias="DocDetails")

    @field_validator("format", mode="before")
    @classmethod
    def _normalize_format(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class ResponseStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str = Field(STATUS_FAILURE, alias="Status")
    ts: str
    txn: str


class ResponseDocDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    doc_type: str = Field("", alias="DocType")
    digilocker_id: str = Field("", alias="DigiLockerId")
    uid: str = Field("", alias="UID")
    full_name: str = Field("", alias="FullName")
    dob: str = Field("", alias="DOB")
    udf1: str = Field("", alias="UDF1")
    udf2: str = Field("", alias="UDF2")
    uri: str = Field("", alias="URI")
    doc_content: Optional[str] = Field(None, alias="DocContent", description="Base64 PDF")
    data_content: Optional[str] = Field(
        None, alias="DataContent", description="Base64 <certificate> envelope"
    )


class PullURIResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response_status: ResponseStatus = Field(..., alias="ResponseStatus")
    doc_details: ResponseDocDetails = Field(default_factory=ResponseDocDetails, alias="DocDetails")

    @property
    def succeeded(self) -> bool:
        return self.response_status.status == STATUS_SUCCESS


# Vaccination credential ----------------------------------------------------


class CredentialSubject(BaseModel):
    type: str = ""
    id: str
    name: str
    gender: str
    age: Optional[Union[int, str]] = None
    dob: Optional[str] = None
    nationality: str = ""


class FacilityAddress(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    street_address: str = Field("", alias="streetAddress")
    street_address2: str = Field("", alias="streetAddress2")
    district: str = ""
    city: str = ""
    address_region: str = Field("", alias="addressRegion")
    address_country: str = Field("", alias="addressCountry")


class Facility(BaseModel):
    name: str
    address: FacilityAddress = Field(default_factory=FacilityAddress)


class Verifier(BaseModel):
    name: str


class Evidence(BaseModel):
    """One vaccination event recorded in the credential."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    feedback_url: str = Field("", alias="feedbackUrl")
    info_url: str = Field("", alias="infoUrl")
    type: List[str] = Field(default_factory=list)
    batch: str
    vaccine: str
    manufacturer: str = ""
    date: datetime
    effective_start: str = Field("", alias="effectiveStart")
    effective_until: str = Field("", alias="effectiveUntil")
    verifier: Verifier
    facility: Facility


class Proof(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str = ""
    created: Optional[datetime] = None
    verification_method: str = Field("", alias="verificationMethod")
    proof_purpose: str = Field("", alias="proofPurpose")
    jws: str = ""


class VaccinationCertificate(BaseModel):
    """Typed view of the signed credential stored in the registry."""

    model_config = ConfigDict(populate_by_name=True)

    context: List[str] = Field(default_factory=list, alias="@context")
    type: List[str] = Field(default_factory=list)
    credential_subject: CredentialSubject = Field(..., alias="credentialSubject")
    issuer: str
    issuance_date: str = Field("", alias="issuanceDate")
    evidence: List[Evidence] = Field(..., min_length=1)
    non_transferable: str = Field("", alias="nonTransferable")
    proof: Proof


class RegistryRecord(BaseModel):
    """Projection of one registry row onto the fields the bridge relies on."""

    model_config = ConfigDict(populate_by_name=True)

    certificate_id: str = Field(..., alias="certificateId")
    certificate: str = Field(..., description="Signed credential JSON text")
    pre_enrollment_code: Optional[str] = Field(None, alias="preEnrollmentCode")
    name: Optional[str] = None
    mobile: Optional[str] = None


class CredentialBundle(BaseModel):
    """A resolved credential ready for rendering or wrapping."""

    model_config = ConfigDict(frozen=True)

    certificate_id: str
    uri: str
    signed_payload: str
    certificate: VaccinationCertificate


@dataclass(frozen=True)
class DisplayFields:
    """Template rows, top to bottom, as they appear on the certificate."""

    rows: Tuple[str, ...]

    def __iter__(self) -> Iterator[str]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)


class ProblemDetail(BaseModel):
    type: str
    title: str
    status: int
    detail: str
