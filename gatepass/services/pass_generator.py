"""
Gate pass PDF generation.

Two renderers sit behind ``PassGenerator.generate``: the front-end pass page
printed by headless Chromium, and a ReportLab layout used whenever the
browser path fails for any reason.
"""
import io
import logging
from typing import Callable, List, Optional, Protocol, Tuple
from xml.sax.saxutils import escape

import qrcode
import requests
from playwright.sync_api import sync_playwright
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import (
    HRFlowable,
    Image,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from gatepass.core.config import Settings
from gatepass.models.visitor import Visitor, utcnow

logger = logging.getLogger(__name__)


class PassGenerationError(Exception):
    """Raised when no renderer could produce the pass."""


class PassRenderer(Protocol):
    def render(self, visitor: Visitor) -> bytes:
        ...


# Print overrides for the React pass page: hide chrome, force colours, fill the page.
PRINT_CSS = """
@media print {
  @page { size: A4; margin: 8mm; }
  html, body {
    width: 100% !important; max-width: none !important;
    margin: 0 !important; padding: 0 !important;
    font-size: 12pt !important; background: white !important;
  }
  html, body, * {
    -webkit-print-color-adjust: exact !important;
    print-color-adjust: exact !important;
    color: #000 !important; opacity: 1 !important;
  }
  header, footer, .footer, .header-fixed, .success-banner, .step-indicator,
  .action-section, .background-container, .no-print { display: none !important; }
  .qr-main, .pass-container, .visitor-pass-card {
    width: 100% !important; max-width: none !important;
    margin: 0 auto !important; min-height: auto !important;
  }
  .visitor-pass-card {
    box-shadow: none !important; border: 2px solid #333 !important;
    page-break-inside: avoid; background: white !important;
  }
  .pass-header { background: linear-gradient(135deg, #2563eb, #1d4ed8) !important; color: white !important; }
  .pass-footer { background: #111827 !important; color: white !important; }
  .only-print { display: flex !important; justify-content: space-between !important; margin-top: 20px !important; }
}
"""

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-extensions",
    "--disable-gpu",
]


class BrowserPassRenderer:
    """Print the front-end pass page (``/qrcode/{id}``) with headless Chromium."""

    def __init__(self, settings: Settings, playwright_factory: Callable = sync_playwright):
        self.frontend_base_url = settings.frontend_base_url.rstrip("/")
        self.navigation_timeout_ms = settings.pass_navigation_timeout_ms
        self.ready_timeout_ms = settings.pass_ready_timeout_ms
        self.ready_selector = settings.pass_ready_selector
        self._playwright_factory = playwright_factory

    def pass_url(self, visitor: Visitor) -> str:
        return f"{self.frontend_base_url}/qrcode/{visitor.id}"

    def render(self, visitor: Visitor) -> bytes:
        url = self.pass_url(visitor)
        logger.info(f"[Pass] Rendering {url}")

        with self._playwright_factory() as playwright:
            browser = playwright.chromium.launch(headless=True, args=CHROMIUM_ARGS)
            try:
                page = browser.new_page()
                page.goto(url, wait_until="networkidle", timeout=self.navigation_timeout_ms)
                page.wait_for_selector(self.ready_selector, timeout=self.ready_timeout_ms)
                page.emulate_media(media="print")
                page.add_style_tag(content=PRINT_CSS)
                return page.pdf(
                    format="A4",
                    print_background=True,
                    prefer_css_page_size=True,
                    margin={"top": "10mm", "right": "10mm", "bottom": "10mm", "left": "10mm"},
                )
            finally:
                try:
                    browser.close()
                except Exception as e:
                    logger.warning(f"[Pass] Error closing browser: {e}")


def pass_fields(visitor: Visitor) -> List[Tuple[str, str]]:
    """Labeled values printed on the pass, skipping anything absent."""
    person_type = visitor.person_type.value if visitor.person_type else None
    status = visitor.status.value if visitor.status else "pending"
    candidates = [
        ("Name", visitor.name),
        ("Visitor Code", visitor.visitor_code or (str(visitor.id) if visitor.id else None)),
        ("Purpose", visitor.purpose),
        ("Meeting With", visitor.to_meet or visitor.other_person),
        ("Contact", visitor.mobile),
        ("Email", visitor.email),
        ("Company", visitor.company_name),
        ("Person Type", person_type),
        ("Gate Number", visitor.gate_number),
        ("Vehicle Number", visitor.vehicle_number),
        ("Laptop", visitor.laptop if visitor.laptop == "Yes" else None),
        ("Status", status.upper()),
    ]
    fields = []
    for label, value in candidates:
        if value is None:
            continue
        text = str(value).strip()
        if text and text != "N/A":
            fields.append((label, text))
    return fields


def generate_qr_code_image(data: str) -> bytes:
    """Generate QR code image as PNG bytes"""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    img_bytes = io.BytesIO()
    img.save(img_bytes, format='PNG')
    return img_bytes.getvalue()


class ReportLabPassRenderer:
    """Assemble the pass directly with ReportLab; never depends on the photo being reachable."""

    PHOTO_BOX = 50 * mm
    QR_SIZE = 35 * mm

    def __init__(self, settings: Settings, photo_fetcher: Optional[Callable[[str], bytes]] = None):
        self.photo_fetch_timeout = settings.photo_fetch_timeout_seconds
        self._fetch_photo = photo_fetcher or self._download

    def _download(self, url: str) -> bytes:
        resp = requests.get(url, timeout=self.photo_fetch_timeout)
        resp.raise_for_status()
        return resp.content

    def _photo_flowable(self, url: Optional[str]) -> Optional[Image]:
        if not url:
            return None
        try:
            data = self._fetch_photo(url)
            width, height = ImageReader(io.BytesIO(data)).getSize()
            scale = min(self.PHOTO_BOX / width, self.PHOTO_BOX / height)
            return Image(io.BytesIO(data), width=width * scale, height=height * scale)
        except Exception as e:
            logger.warning(f"[Pass] Could not load visitor photo {url}: {e}")
            return None

    @staticmethod
    def _draw_footer(canvas, doc):
        canvas.saveState()
        canvas.setFont("Helvetica", 8)
        canvas.setFillColor(colors.grey)
        width, _ = A4
        canvas.drawRightString(width - doc.rightMargin, 22 * mm,
                               f"Generated: {utcnow().strftime('%d/%m/%Y %H:%M')} UTC")
        canvas.drawCentredString(width / 2, 16 * mm, "Please present this pass at reception")
        canvas.drawCentredString(width / 2, 12 * mm, "Valid for authorized visit only")
        canvas.restoreState()

    def render(self, visitor: Visitor) -> bytes:
        styles = getSampleStyleSheet()
        title_style = ParagraphStyle("PassTitle", parent=styles["Title"], fontSize=24, leading=28)
        section_style = ParagraphStyle("PassSection", parent=styles["Heading2"], textColor=colors.HexColor("#34495e"))
        body = styles["BodyText"]
        centered = ParagraphStyle("PassCentered", parent=body, alignment=TA_CENTER)

        story = [
            Paragraph("VISITOR PASS", title_style),
            HRFlowable(width="100%", thickness=2, color=colors.HexColor("#2c3e50")),
            Spacer(1, 6 * mm),
            Paragraph("VISITOR INFORMATION", section_style),
        ]

        rows = [
            [Paragraph(f"{escape(label)}:", body), Paragraph(f"<b>{escape(value)}</b>", body)]
            for label, value in pass_fields(visitor)
        ]
        details = Table(rows, colWidths=[40 * mm, 120 * mm], hAlign="LEFT")
        details.setStyle(TableStyle([
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
        ]))
        story.append(details)
        story.append(Spacer(1, 6 * mm))

        photo = self._photo_flowable(visitor.photo_url)
        if photo is not None:
            story.append(Paragraph("VISITOR PHOTO", ParagraphStyle("PhotoTitle", parent=section_style, alignment=TA_CENTER)))
            story.append(photo)
            story.append(Spacer(1, 4 * mm))

        if visitor.visitor_code:
            qr_png = generate_qr_code_image(visitor.visitor_code)
            story.append(Image(io.BytesIO(qr_png), width=self.QR_SIZE, height=self.QR_SIZE))
            story.append(Paragraph(escape(visitor.visitor_code), centered))
            story.append(Spacer(1, 4 * mm))

        created = visitor.created_at or utcnow()
        story.append(Paragraph("VISIT DETAILS", section_style))
        story.append(Paragraph(f"Visit Date: {created.strftime('%A, %B %d, %Y')}", body))
        story.append(Paragraph(f"Visit Time: {created.strftime('%H:%M')} UTC", body))
        story.append(Spacer(1, 18 * mm))

        signatures = Table(
            [["Entry Signature", "", "Exit Signature"]],
            colWidths=[55 * mm, 40 * mm, 55 * mm],
        )
        signatures.setStyle(TableStyle([
            ("LINEABOVE", (0, 0), (0, 0), 1, colors.black),
            ("LINEABOVE", (2, 0), (2, 0), 1, colors.black),
            ("ALIGN", (0, 0), (-1, -1), "CENTER"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
        ]))
        story.append(signatures)

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=18 * mm,
            rightMargin=18 * mm,
            topMargin=18 * mm,
            bottomMargin=30 * mm,
            title=f"Visitor Pass {visitor.visitor_code or ''}".strip(),
        )
        doc.build(story, onFirstPage=self._draw_footer, onLaterPages=self._draw_footer)
        return buffer.getvalue()


class PassGenerator:
    """
    ``generate(visitor) -> bytes`` over a primary and a fallback renderer.

    The fallback only runs after the primary has returned or raised, so any
    browser it launched is already closed. Callers cannot tell which one ran.
    """

    def __init__(self, fallback: PassRenderer, primary: Optional[PassRenderer] = None):
        self.primary = primary
        self.fallback = fallback

    @classmethod
    def from_settings(cls, settings: Settings) -> "PassGenerator":
        primary = BrowserPassRenderer(settings) if settings.pass_browser_enabled else None
        return cls(fallback=ReportLabPassRenderer(settings), primary=primary)

    def generate(self, visitor: Visitor) -> bytes:
        if self.primary is not None:
            try:
                pdf = self.primary.render(visitor)
                if pdf:
                    logger.info(f"[Pass] Rendered pass for visitor {visitor.id} in browser")
                    return pdf
                logger.warning(f"[Pass] Browser returned an empty PDF for visitor {visitor.id}")
            except Exception as e:
                logger.warning(f"[Pass] Browser rendering failed for visitor {visitor.id}: {e}")

        logger.info(f"[Pass] Assembling fallback pass for visitor {visitor.id}")
        try:
            return self.fallback.render(visitor)
        except Exception as e:
            logger.error(f"[Pass] Fallback rendering failed for visitor {visitor.id}: {e}", exc_info=True)
            raise PassGenerationError(f"Could not generate pass for visitor {visitor.id}") from e
