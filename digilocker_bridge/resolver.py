from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Tuple

from pydantic import ValidationError

from .errors import CredentialNotFound, SchemaMismatch
from .models import CERTIFICATE_ENTITY, CredentialBundle, RegistryRecord, VaccinationCertificate
from .registry import RegistryQuery, eq_filter, project_records

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def parse_certificate(signed_payload: str) -> VaccinationCertificate:
    try:
        return VaccinationCertificate.model_validate(json.loads(signed_payload))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise SchemaMismatch(f"Signed credential does not match the certificate schema: {exc}") from exc


def _issued_at(certificate: VaccinationCertificate) -> datetime:
    try:
        issued = datetime.fromisoformat(certificate.issuance_date.replace("Z", "+00:00"))
    except ValueError:
        return _OLDEST
    if issued.tzinfo is None:
        issued = issued.replace(tzinfo=timezone.utc)
    return issued


class CredentialResolver:
    """Looks vaccination certificates up in the registry.

    When several records match, the one with the latest ``issuanceDate`` wins;
    records without a usable date rank oldest and ties keep registry order.
    Records whose signed credential does not parse are skipped.
    """

    def __init__(self, registry: RegistryQuery, uri_template: str) -> None:
        self.registry = registry
        self.uri_template = uri_template

    def by_identity(self, full_name: str, phone: str) -> CredentialBundle:
        return self._resolve(eq_filter(name=full_name, mobile=phone))

    def by_enrollment_code(self, pre_enrollment_code: str) -> CredentialBundle:
        return self._resolve(eq_filter(preEnrollmentCode=pre_enrollment_code))

    def _resolve(self, filter: Mapping[str, Any]) -> CredentialBundle:
        records = project_records(self.registry.query(CERTIFICATE_ENTITY, filter))
        if not records:
            raise CredentialNotFound(f"No certificate matches {sorted(filter)}")

        candidates: List[Tuple[RegistryRecord, VaccinationCertificate]] = []
        for record in records:
            try:
                candidates.append((record, parse_certificate(record.certificate)))
            except SchemaMismatch as exc:
                logger.warning("Skipping certificate %s: %s", record.certificate_id, exc)
        if not candidates:
            raise SchemaMismatch(f"None of the {len(records)} matching certificates could be parsed")

        # max() keeps the first of equal keys, which preserves registry order on ties
        record, certificate = max(candidates, key=lambda pair: _issued_at(pair[1]))
        if len(candidates) > 1:
            logger.info(
                "%d certificates matched, picked %s issued %s",
                len(candidates),
                record.certificate_id,
                certificate.issuance_date or "unknown",
            )
        return CredentialBundle(
            certificate_id=record.certificate_id,
            uri=self.uri_template.format(certificate_id=record.certificate_id),
            signed_payload=record.certificate,
            certificate=certificate,
        )

    def describe(self) -> Dict[str, str]:
        return {"registry": type(self.registry).__name__}
