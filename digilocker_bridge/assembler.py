from __future__ import annotations

import base64
import logging
from typing import Optional

from .config import DEFAULT_SCHEDULE_NOTE
from .errors import NoContentProduced, RenderError
from .formatting import build_display_fields
from .models import (
    STATUS_FAILURE,
    STATUS_SUCCESS,
    CredentialBundle,
    PullURIRequest,
    PullURIResponse,
    ResponseDocDetails,
    ResponseStatus,
)
from .protocol import wrap_certificate
from .rendering import CertificateRenderer

logger = logging.getLogger(__name__)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class ResponseAssembler:
    def __init__(
        self,
        renderer: CertificateRenderer,
        doc_type: str,
        schedule_note: str = DEFAULT_SCHEDULE_NOTE,
    ) -> None:
        self.renderer = renderer
        self.doc_type = doc_type
        self.schedule_note = schedule_note

    def render_pdf(self, bundle: CredentialBundle) -> bytes:
        try:
            fields = build_display_fields(
                bundle.certificate, bundle.certificate_id, self.schedule_note
            )
        except (IndexError, ValueError) as exc:
            raise RenderError(f"Cannot format certificate {bundle.certificate_id}: {exc}") from exc
        return self.renderer.render(fields, bundle.signed_payload)

    def assemble(
        self, request: PullURIRequest, bundle: Optional[CredentialBundle]
    ) -> PullURIResponse:
        """Populate a PullURIResponse for the requested format.

        Without a bundle the response carries the failure status and no
        content. A render failure drops DocContent but keeps DataContent when
        both were asked for; if nothing at all could be produced,
        NoContentProduced is raised.
        """
        details = request.doc_details
        response = PullURIResponse(
            response_status=ResponseStatus(status=STATUS_FAILURE, ts=request.ts, txn=request.txn),
            doc_details=ResponseDocDetails(
                doc_type=self.doc_type,
                digilocker_id=details.digilocker_id,
                full_name=details.full_name,
                dob=details.dob,
            ),
        )
        if bundle is None:
            return response

        response.doc_details.uri = bundle.uri
        if request.format.wants_pdf:
            try:
                response.doc_details.doc_content = _b64(self.render_pdf(bundle))
            except RenderError as exc:
                logger.error("Error in creating certificate pdf for txn %s: %s", request.txn, exc)
        if request.format.wants_xml:
            envelope = wrap_certificate(bundle.certificate_id, bundle.signed_payload)
            response.doc_details.data_content = _b64(envelope.encode("utf-8"))

        if response.doc_details.doc_content is None and response.doc_details.data_content is None:
            raise NoContentProduced(
                f"Nothing could be produced for certificate {bundle.certificate_id}"
            )
        response.response_status.status = STATUS_SUCCESS
        return response
