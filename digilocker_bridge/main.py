from __future__ import annotations

import logging
import os
from contextlib import ExitStack, asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response
from starlette.concurrency import run_in_threadpool

from .assembler import ResponseAssembler
from .config import BridgeSettings, init_logging
from .errors import (
    AuthenticationError,
    CredentialNotFound,
    NoContentProduced,
    ProtocolDecodeError,
    RegistryError,
    RenderError,
    SchemaMismatch,
    SerializationError,
)
from .models import CredentialBundle, ProblemDetail, PullURIRequest
from .protocol import decode_request, encode_response
from .registry import RegistryClient, RegistryQuery
from .rendering import CertificateRenderer, RenderAssets, open_render_assets
from .resolver import CredentialResolver
from .signature import authenticate
from .store import InMemoryRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


def _raise_problem(*, status: int, type_: str, title: str, detail: str) -> None:
    raise HTTPException(
        status_code=status,
        detail=ProblemDetail(type=type_, title=title, status=status, detail=detail).model_dump(),
    )


def build_registry(settings: BridgeSettings) -> RegistryQuery:
    if settings.registry_url:
        return RegistryClient(settings.registry_url, timeout=settings.registry_timeout)
    registry = InMemoryRegistry()
    if settings.registry_seed:
        registry.load_seed(settings.registry_seed)
    logger.warning("DIGILOCKER_REGISTRY_URL is not set, serving certificates from memory")
    return registry


def _resolve_for_pull(
    resolver: CredentialResolver, pull_request: PullURIRequest
) -> Optional[CredentialBundle]:
    details = pull_request.doc_details
    try:
        return resolver.by_identity(details.full_name, details.udf1)
    except CredentialNotFound:
        logger.info("No certificate found for txn %s", pull_request.txn)
    except (RegistryError, SchemaMismatch) as exc:
        logger.error("Certificate lookup failed for txn %s: %s", pull_request.txn, exc)
    return None


def _serve_pull_request(app: FastAPI, pull_request: PullURIRequest) -> bytes:
    bundle = _resolve_for_pull(app.state.resolver, pull_request)
    response = app.state.assembler.assemble(pull_request, bundle)
    return encode_response(response)


@router.post("/pullUriRequest")
async def pull_uri_request(request: Request) -> Response:
    settings: BridgeSettings = request.app.state.settings
    raw_body = await request.body()
    logger.info("Got pull request of %d bytes", len(raw_body))

    try:
        authenticate(raw_body, request.headers.get(settings.auth_key_name), settings.auth_hmac_key)
    except AuthenticationError as exc:
        logger.warning("Rejecting pull request: %s", exc)
        return PlainTextResponse("Unauthorized", status_code=401)

    try:
        pull_request = decode_request(raw_body)
    except ProtocolDecodeError as exc:
        logger.error("Error in unmarshalling request from DigiLocker: %s", exc)
        return PlainTextResponse("Malformed PullURIRequest", status_code=500)

    try:
        body = await run_in_threadpool(_serve_pull_request, request.app, pull_request)
    except NoContentProduced as exc:
        logger.error("txn %s: %s", pull_request.txn, exc)
        return PlainTextResponse("Unable to produce certificate content", status_code=500)
    except SerializationError as exc:
        logger.error("txn %s: %s", pull_request.txn, exc)
        return PlainTextResponse("Error while serializing response", status_code=500)
    return Response(content=body, media_type="application/xml")


@router.get("/certificatePDF/{preEnrollmentCode}")
def get_certificate_pdf(preEnrollmentCode: str, request: Request) -> Response:  # noqa: N803
    state = request.app.state
    try:
        bundle = state.resolver.by_enrollment_code(preEnrollmentCode)
    except CredentialNotFound:
        _raise_problem(
            status=404,
            type_="https://digilocker-bridge.dev/errors/certificate-not-found",
            title="Certificate not found",
            detail=f"No certificate exists for enrollment code {preEnrollmentCode}.",
        )
    except (RegistryError, SchemaMismatch) as exc:
        logger.error("Certificate lookup failed for %s: %s", preEnrollmentCode, exc)
        _raise_problem(
            status=502,
            type_="https://digilocker-bridge.dev/errors/registry-unavailable",
            title="Registry lookup failed",
            detail="The certificate registry could not be queried.",
        )

    try:
        pdf_bytes = state.assembler.render_pdf(bundle)
    except RenderError as exc:
        logger.error("Error in creating certificate pdf for %s: %s", preEnrollmentCode, exc)
        _raise_problem(
            status=500,
            type_="https://digilocker-bridge.dev/errors/render-failed",
            title="Certificate rendering failed",
            detail="The certificate PDF could not be generated.",
        )
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": "attachment; filename=certificate.pdf"},
    )


@router.get("/healthz")
def healthcheck(request: Request) -> Dict[str, Any]:
    state = request.app.state
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "pdf_rendering": state.renderer.assets is not None,
        **state.resolver.describe(),
    }


def create_app(
    settings: Optional[BridgeSettings] = None,
    registry: Optional[RegistryQuery] = None,
    assets: Optional[RenderAssets] = None,
    configure_logging: bool = False,
) -> FastAPI:
    settings = settings or BridgeSettings.from_env()
    if configure_logging:
        init_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        with ExitStack() as stack:
            loaded = assets
            if loaded is None:
                loaded = stack.enter_context(
                    open_render_assets(settings.template_path, settings.font_path)
                )
            app.state.renderer = CertificateRenderer(loaded)
            app.state.assembler = ResponseAssembler(
                app.state.renderer, settings.doc_type, settings.schedule_note
            )
            logger.info("Running digilocker support api")
            yield

    app = FastAPI(title="DigiLocker Pull-URI Bridge", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.resolver = CredentialResolver(
        registry if registry is not None else build_registry(settings),
        settings.uri_template,
    )
    app.include_router(router)
    return app


def main() -> None:
    import uvicorn

    settings = BridgeSettings.from_env()
    uvicorn.run(
        create_app(settings, configure_logging=True),
        host=os.getenv("DIGILOCKER_HOST", "0.0.0.0"),
        port=int(os.getenv("DIGILOCKER_PORT", "8003")),
    )


if __name__ == "__main__":
    main()
