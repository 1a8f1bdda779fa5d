"""Contract PDF rendering (reportlab) and id-addressed file storage."""
from __future__ import annotations

import base64
import hashlib
import html
import re
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from app.config import Settings

SIGNED_FILE_NAME = "contract_signed.pdf"

_DATA_URL_RE = re.compile(r"^data:image/(?P<kind>[a-zA-Z0-9.+-]+);base64,(?P<payload>[A-Za-z0-9+/=\s]+)$")
_BLOCK_TAG_RE = re.compile(r"<\s*(br|/p|/h[1-6]|/li|/tr|/div|/table)\b[^>]*>", re.IGNORECASE)
_LI_RE = re.compile(r"<\s*li\b[^>]*>", re.IGNORECASE)
_CELL_END_RE = re.compile(r"<\s*/t[dh]\s*>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")


@dataclass(frozen=True)
class PdfResult:
    file_path: str
    file_name: str
    sha256: str
    version: int


@dataclass(frozen=True)
class PartyInfo:
    photographer_name: str
    photographer_address: str
    photographer_siret: str
    client_name: str
    client_address: str


def decode_signature_data_url(data_url: str) -> bytes | None:
    """Return the image bytes of a data:image/...;base64 URL, or None if malformed."""
    m = _DATA_URL_RE.match((data_url or "").strip())
    if not m:
        return None
    try:
        raw = base64.b64decode(re.sub(r"\s+", "", m.group("payload")), validate=True)
    except ValueError:
        return None
    if not raw:
        return None
    # the payload must be a decodable image, or the signed PDF cannot embed it
    try:
        with Image.open(BytesIO(raw)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        return None
    return raw


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def html_to_lines(content: str) -> list[str]:
    """Flatten contract HTML to text lines; block tags become line breaks."""
    text = _LI_RE.sub("\n- ", content or "")
    text = _CELL_END_RE.sub(" : ", text)
    text = _BLOCK_TAG_RE.sub("\n", text)
    text = html.unescape(_TAG_RE.sub("", text))
    lines = [" ".join(line.split()) for line in text.splitlines()]
    # collapse runs of blank lines
    out: list[str] = []
    for line in lines:
        line = line.rstrip(" :")
        if not line and (not out or not out[-1]):
            continue
        out.append(line)
    return out


def _escape_for_reportlab(s: str) -> str:
    """Escape text for ReportLab Paragraph (XML-like markup)."""
    return s.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def render_contract_pdf(
    title: str,
    content: str,
    parties: PartyInfo,
    footer: str,
    signature_image: bytes | None = None,
    signed_at: str | None = None,
) -> bytes:
    """Render contract HTML to PDF bytes. With a signature image, a signature block is appended."""
    from reportlab.lib.enums import TA_JUSTIFY
    from reportlab.lib.pagesizes import A4
    from reportlab.lib.styles import getSampleStyleSheet
    from reportlab.lib.units import inch
    from reportlab.platypus import Image as FlowableImage, Paragraph, SimpleDocTemplate, Spacer

    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=0.75 * inch,
        rightMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
        title=title,
    )
    styles = getSampleStyleSheet()
    body_style = styles["Normal"].clone("JustifiedBody", alignment=TA_JUSTIFY, spaceAfter=6)
    small_style = styles["Normal"].clone("Small", fontSize=8, textColor="#6b7280")

    story = [Paragraph(_escape_for_reportlab(title), styles["Title"])]
    header = [
        f"Photographer: {parties.photographer_name}",
        parties.photographer_address,
        f"SIRET: {parties.photographer_siret}" if parties.photographer_siret else "",
        f"Client: {parties.client_name}",
        parties.client_address,
    ]
    for line in header:
        if line:
            story.append(Paragraph(_escape_for_reportlab(line), small_style))
    story.append(Spacer(1, 0.2 * inch))

    for line in html_to_lines(content):
        if line:
            story.append(Paragraph(_escape_for_reportlab(line), body_style))
        else:
            story.append(Spacer(1, 0.12 * inch))

    if signature_image is not None:
        story.append(Spacer(1, 0.3 * inch))
        story.append(Paragraph("Client signature", styles["Heading3"]))
        story.append(FlowableImage(BytesIO(signature_image), width=2.5 * inch, height=1 * inch, kind="proportional"))
        if signed_at:
            story.append(Paragraph(_escape_for_reportlab(f"Signed electronically by {parties.client_name} on {signed_at}"), small_style))

    story.append(Spacer(1, 0.3 * inch))
    story.append(Paragraph(_escape_for_reportlab(footer), small_style))
    doc.build(story)
    return buf.getvalue()


class PdfStore:
    """Writes contract PDFs under <pdf_dir>/<user_id>/<contract_id>/."""

    def __init__(self, settings: Settings) -> None:
        self.root = Path(settings.pdf_dir)

    def contract_dir(self, user_id: int, contract_id: int) -> Path:
        path = self.root / str(user_id) / str(contract_id)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def write(self, user_id: int, contract_id: int, file_name: str, data: bytes, version: int) -> PdfResult:
        path = self.contract_dir(user_id, contract_id) / file_name
        path.write_bytes(data)
        return PdfResult(file_path=str(path), file_name=file_name, sha256=sha256_hex(data), version=version)

    def write_draft(self, user_id: int, contract_id: int, data: bytes, version: int) -> PdfResult:
        return self.write(user_id, contract_id, f"contract_v{version}.pdf", data, version)

    def write_signed(self, user_id: int, contract_id: int, data: bytes) -> PdfResult:
        return self.write(user_id, contract_id, SIGNED_FILE_NAME, data, 0)

    @staticmethod
    def file_hash(path: str) -> str | None:
        p = Path(path)
        if not p.is_file():
            return None
        return sha256_hex(p.read_bytes())
