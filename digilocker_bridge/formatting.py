from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Union

from .config import DEFAULT_SCHEDULE_NOTE
from .models import DisplayFields, Evidence, VaccinationCertificate

NATIONAL_ID_SCHEMES = frozenset({"aadhaar"})
MASKED_ID_PREFIX = "XXXX XXXX XXXX "
DISPLAY_DATE_FORMAT = "%d %b %Y"
DOB_FORMAT = "%Y-%m-%d"
MIN_BIRTH_YEAR = 1900


def format_id(identity: str) -> str:
    """Mask national ids down to their last four characters.

    ``did:example:aadhaar:123456789012`` becomes ``XXXX XXXX XXXX 9012``;
    any other scheme shows its last ``:`` fragment as is.
    """
    fragments = identity.split(":")
    value = fragments[-1]
    scheme = ":".join(fragments[:-1]).lower()
    if any(national_id in scheme for national_id in NATIONAL_ID_SCHEMES):
        return MASKED_ID_PREFIX + value[-4:]
    return value


def format_date(value: Union[str, date, datetime]) -> str:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    return value.strftime(DISPLAY_DATE_FORMAT)


def format_facility_address(evidence: Evidence) -> str:
    facility = evidence.facility
    return ", ".join(
        [facility.name, facility.address.district, facility.address.address_region]
    )


def derive_age(
    age: Optional[Union[int, str]],
    dob: Optional[str],
    today: Optional[date] = None,
) -> int:
    """Age as recorded, or years since birth when the record says nothing."""
    try:
        years = int(age) if age not in (None, "") else 0
    except (TypeError, ValueError):
        years = 0
    if years:
        return years
    if not dob:
        return 0
    try:
        born = datetime.strptime(dob.strip(), DOB_FORMAT)
    except ValueError:
        return 0
    if born.year <= MIN_BIRTH_YEAR:
        return 0
    return (today or date.today()).year - born.year


def select_evidence(certificate: VaccinationCertificate) -> Evidence:
    """The most recent vaccination event; ties keep credential order."""
    if not certificate.evidence:
        raise IndexError("certificate carries no evidence entries")
    return max(certificate.evidence, key=lambda evidence: evidence.date.timestamp())


def build_display_fields(
    certificate: VaccinationCertificate,
    certificate_id: str,
    schedule_note: str = DEFAULT_SCHEDULE_NOTE,
    today: Optional[date] = None,
) -> DisplayFields:
    subject = certificate.credential_subject
    evidence = select_evidence(certificate)
    age = derive_age(subject.age, subject.dob, today)
    return DisplayFields(
        rows=(
            subject.name,
            f"{age} Years",
            subject.gender,
            certificate_id,
            format_id(subject.id),
            "",
            "",
            evidence.vaccine,
            f"{format_date(evidence.date)} (Batch no. {evidence.batch})",
            schedule_note,
            "",
            format_facility_address(evidence),
            evidence.verifier.name,
        )
    )
