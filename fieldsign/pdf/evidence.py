"""
Audit trail report generator.
Renders the hash-chained audit records of a document as a PDF.
"""
import io
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont, TTFError
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from fieldsign.audit import AuditRecord, compute_digest, latest_digest, verify_document
from fieldsign.errors import IntegrityMismatch
from fieldsign.utils.datetime_utils import utc_now
from fieldsign.utils.logging import short_digest

logger = logging.getLogger(__name__)

_FONTS_REGISTERED = False

FONT_PATHS = {
    "DejaVuSans": "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "DejaVuSans-Bold": "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
}

# Font names to use (will be set after registration)
FONT_NORMAL = "Helvetica"  # Fallback
FONT_BOLD = "Helvetica-Bold"  # Fallback
FONT_MONO = "Courier"

ACTION_LABELS = {
    "uploaded": "Document uploaded",
    "field_added": "Field added",
    "field_modified": "Field modified",
    "field_deleted": "Field deleted",
    "signed": "Document signed",
    "downloaded": "Document downloaded",
}


def _register_fonts():
    """Register TTF fonts with broad Unicode coverage when installed."""
    global _FONTS_REGISTERED, FONT_NORMAL, FONT_BOLD

    if _FONTS_REGISTERED:
        return

    try:
        if os.path.exists(FONT_PATHS["DejaVuSans"]):
            pdfmetrics.registerFont(TTFont("DejaVuSans", FONT_PATHS["DejaVuSans"]))
            FONT_NORMAL = "DejaVuSans"
        if os.path.exists(FONT_PATHS["DejaVuSans-Bold"]):
            pdfmetrics.registerFont(TTFont("DejaVuSans-Bold", FONT_PATHS["DejaVuSans-Bold"]))
            FONT_BOLD = "DejaVuSans-Bold"
    except TTFError as e:
        logger.warning(f"Failed to register DejaVu fonts: {e}")

    _FONTS_REGISTERED = True


_register_fonts()


@dataclass
class DocumentInfo:
    """Document information for the report."""
    id: str
    name: str
    status: str
    created_at: datetime
    page_count: int
    original_hash: str
    current_bytes: bytes


@dataclass
class ChainStatus:
    """Outcome of checking the chain, reported rather than raised."""
    valid: bool
    message: str
    current_hash: str
    latest_recorded_hash: Optional[str]


def chain_status(current_bytes: bytes, records: List[AuditRecord]) -> ChainStatus:
    """Check the chain and the stored bytes without raising."""
    latest = latest_digest(records)
    try:
        current = verify_document(current_bytes, records)
    except IntegrityMismatch as e:
        return ChainStatus(False, e.message, compute_digest(current_bytes), latest)
    return ChainStatus(True, f"Chain intact ({len(records)} records)", current, latest)


class AuditReportGenerator:
    """Generates the audit trail PDF of a document."""

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        self.styles['Normal'].fontName = FONT_NORMAL
        self.styles['Title'].fontName = FONT_BOLD
        self.styles['Heading2'].fontName = FONT_BOLD

        self.styles.add(ParagraphStyle(
            name='Title2',
            parent=self.styles['Title'],
            fontName=FONT_BOLD,
            fontSize=18,
            spaceAfter=12,
        ))
        self.styles.add(ParagraphStyle(
            name='SectionHeader',
            parent=self.styles['Heading2'],
            fontName=FONT_BOLD,
            fontSize=12,
            spaceBefore=12,
            spaceAfter=6,
            textColor=colors.HexColor('#1a1a1a'),
        ))
        self.styles.add(ParagraphStyle(
            name='Cell',
            parent=self.styles['Normal'],
            fontName=FONT_NORMAL,
            fontSize=8,
            leading=10,
        ))
        self.styles.add(ParagraphStyle(
            name='Footer',
            parent=self.styles['Normal'],
            fontName=FONT_NORMAL,
            fontSize=8,
            textColor=colors.grey,
            alignment=TA_CENTER,
        ))

    def generate(self, document: DocumentInfo, records: List[AuditRecord]) -> bytes:
        """
        Generate the audit report.

        Args:
            document: Document information
            records: Audit records in append order

        Returns:
            PDF bytes
        """
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=20*mm,
            leftMargin=20*mm,
            topMargin=20*mm,
            bottomMargin=20*mm,
            title=f"Audit trail - {document.name}",
        )
        status = chain_status(document.current_bytes, records)

        elements = []
        elements.append(Paragraph("Audit Trail", self.styles['Title2']))
        elements.append(Spacer(1, 6*mm))

        elements.append(Paragraph("Document", self.styles['SectionHeader']))
        elements.extend(self._build_document_section(document))
        elements.append(Spacer(1, 6*mm))

        elements.append(Paragraph("Integrity", self.styles['SectionHeader']))
        elements.extend(self._build_status_section(status))
        elements.append(Spacer(1, 6*mm))

        elements.append(Paragraph("Events", self.styles['SectionHeader']))
        elements.extend(self._build_events_section(records))

        elements.append(Spacer(1, 10*mm))
        elements.append(Paragraph(
            f"Generated: {utc_now().strftime('%Y-%m-%d %H:%M:%S')} UTC",
            self.styles['Footer']
        ))

        doc.build(elements)
        data = buffer.getvalue()

        logger.info(
            f"Generated audit report for document {document.id}: "
            f"{len(records)} records, valid={status.valid}"
        )
        return data

    def _build_document_section(self, document: DocumentInfo) -> list:
        data = [
            ["Name:", document.name],
            ["Document ID:", document.id],
            ["Status:", document.status],
            ["Created:", self._format_datetime(document.created_at)],
            ["Pages:", str(document.page_count)],
            ["Original SHA-256:", document.original_hash],
        ]

        table = Table(data, colWidths=[40*mm, 130*mm])
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (0, -1), FONT_BOLD),
            ('FONTNAME', (1, 0), (1, -1), FONT_NORMAL),
            ('FONTNAME', (1, -1), (1, -1), FONT_MONO),
            ('FONTSIZE', (0, 0), (-1, -1), 8),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
        ]))
        return [table]

    def _build_status_section(self, status: ChainStatus) -> list:
        data = [
            ["Result:", "VALID" if status.valid else "BROKEN"],
            ["Detail:", Paragraph(status.message, self.styles['Cell'])],
            ["Current SHA-256:", status.current_hash],
            ["Last recorded:", status.latest_recorded_hash or "-"],
        ]

        table = Table(data, colWidths=[40*mm, 130*mm])
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (0, -1), FONT_BOLD),
            ('FONTNAME', (1, 0), (1, 1), FONT_NORMAL),
            ('FONTNAME', (1, 2), (1, -1), FONT_MONO),
            ('FONTSIZE', (0, 0), (-1, -1), 8),
            ('TEXTCOLOR', (1, 0), (1, 0), colors.green if status.valid else colors.red),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
        ]))
        return [table]

    def _build_events_section(self, records: List[AuditRecord]) -> list:
        header = ["#", "Time", "Action", "IP address", "Hash before", "Hash after"]
        data = [header]

        for record in records:
            data.append([
                str(record.sequence),
                self._format_datetime(record.timestamp),
                ACTION_LABELS.get(record.action.value, record.action.value),
                record.actor.ip or "-",
                short_digest(record.hash_before) if record.hash_before else "-",
                short_digest(record.hash_after) if record.hash_after else "-",
            ])

        table = Table(data, colWidths=[8*mm, 36*mm, 38*mm, 28*mm, 30*mm, 30*mm], repeatRows=1)
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (-1, 0), FONT_BOLD),
            ('FONTNAME', (0, 1), (3, -1), FONT_NORMAL),
            ('FONTNAME', (4, 1), (5, -1), FONT_MONO),
            ('FONTSIZE', (0, 0), (-1, -1), 7),
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#f0f0f0')),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
            ('TOPPADDING', (0, 0), (-1, -1), 3),
        ]))
        return [table]

    def _format_datetime(self, dt: Optional[datetime]) -> str:
        if dt is None:
            return "-"
        return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


# Singleton instance
_report_generator: Optional[AuditReportGenerator] = None


def get_report_generator() -> AuditReportGenerator:
    """Get the audit report generator singleton."""
    global _report_generator
    if _report_generator is None:
        _report_generator = AuditReportGenerator()
    return _report_generator
