from __future__ import annotations

import io
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Union

import qrcode
from pypdf import PageObject, PdfReader, PdfWriter, Transformation
from pypdf.errors import PyPdfError
from qrcode.exceptions import DataOverflowError
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen.canvas import Canvas

from .errors import RenderError
from .models import DisplayFields

logger = logging.getLogger(__name__)

CERTIFICATE_FONT = "CertificateFont"
FALLBACK_FONT = "Helvetica"
FONT_SIZE = 10

# Layout in points, measured from the top-left corner of an A4 page.
TEMPLATE_WIDTH = 580.0
OFFSET_X = 280.0
OFFSET_Y = 361.0
ROW_HEIGHT = 22.0
QR_X = 400.0
QR_Y = 30.0
QR_SIZE = 160.0


@dataclass
class RenderAssets:
    """Template page and font, loaded once and shared read-only."""

    template: bytes
    font_name: str = FALLBACK_FONT

    @classmethod
    def load(
        cls,
        template_path: Union[str, Path],
        font_path: Optional[Union[str, Path]] = None,
    ) -> "RenderAssets":
        try:
            template = Path(template_path).read_bytes()
        except OSError as exc:
            raise RenderError(f"Cannot read certificate template {template_path}: {exc}") from exc
        try:
            pages = len(PdfReader(io.BytesIO(template)).pages)
        except (PyPdfError, ValueError) as exc:
            raise RenderError(f"Certificate template {template_path} is not a PDF: {exc}") from exc
        if not pages:
            raise RenderError(f"Certificate template {template_path} has no pages")

        font_name = FALLBACK_FONT
        if font_path:
            try:
                pdfmetrics.registerFont(TTFont(CERTIFICATE_FONT, str(font_path)))
            except (OSError, TTFError) as exc:
                raise RenderError(f"Cannot load font {font_path}: {exc}") from exc
            font_name = CERTIFICATE_FONT
        else:
            logger.warning(
                "DIGILOCKER_FONT_PATH is not set, falling back to %s which only covers Latin script",
                FALLBACK_FONT,
            )
        logger.info("Loaded certificate template %s (font %s)", template_path, font_name)
        return cls(template=template, font_name=font_name)


@contextmanager
def open_render_assets(
    template_path: Union[str, Path],
    font_path: Optional[Union[str, Path]] = None,
) -> Iterator[Optional[RenderAssets]]:
    """Yield loaded assets, or None when they are unusable; PDFs then fail per request."""
    try:
        assets: Optional[RenderAssets] = RenderAssets.load(template_path, font_path)
    except RenderError as exc:
        logger.error("PDF rendering disabled: %s", exc)
        assets = None
    try:
        yield assets
    finally:
        if assets is not None:
            assets.template = b""


def _qr_png(text: str) -> io.BytesIO:
    try:
        code = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_M, border=2)
        code.add_data(text)
        code.make(fit=True)
    except (DataOverflowError, ValueError) as exc:
        raise RenderError(f"Credential does not fit in a QR code: {exc}") from exc
    buffer = io.BytesIO()
    code.make_image(fill_color="black", back_color="white").save(buffer, format="PNG")
    buffer.seek(0)
    return buffer


class CertificateRenderer:
    def __init__(self, assets: Optional[RenderAssets]) -> None:
        self.assets = assets

    def render(self, fields: DisplayFields, raw_credential_text: str) -> bytes:
        """Compose the certificate PDF: template, text rows and the QR code."""
        if self.assets is None or not self.assets.template:
            raise RenderError("Certificate template is not loaded")
        qr_png = _qr_png(raw_credential_text)
        width, height = A4

        overlay = io.BytesIO()
        canvas = Canvas(overlay, pagesize=A4)
        canvas.setFont(self.assets.font_name, FONT_SIZE)
        for index, text in enumerate(fields):
            top = OFFSET_Y + index * ROW_HEIGHT
            canvas.drawString(OFFSET_X, height - top - FONT_SIZE, text)
        canvas.drawImage(
            ImageReader(qr_png),
            QR_X,
            height - QR_Y - QR_SIZE,
            width=QR_SIZE,
            height=QR_SIZE,
        )
        canvas.showPage()
        canvas.save()

        try:
            template_page = PdfReader(io.BytesIO(self.assets.template)).pages[0]
            scale = TEMPLATE_WIDTH / float(template_page.mediabox.width)
            scaled_height = float(template_page.mediabox.height) * scale

            page = PageObject.create_blank_page(width=width, height=height)
            page.merge_transformed_page(
                template_page,
                Transformation().scale(scale, scale).translate(0, height - scaled_height),
            )
            page.merge_page(PdfReader(overlay).pages[0])

            writer = PdfWriter()
            writer.add_page(page)
            document = io.BytesIO()
            writer.write(document)
        except (PyPdfError, ValueError, ZeroDivisionError) as exc:
            raise RenderError(f"Unable to compose certificate PDF: {exc}") from exc
        return document.getvalue()
