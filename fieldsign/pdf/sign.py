"""
PDF signing module using PyMuPDF (fitz).
Reads page geometry and burns the draw operations of all valued fields into
the document in one pass.
"""
import logging
import os
from dataclasses import dataclass
from typing import Iterable, List, Optional

import fitz  # PyMuPDF

from fieldsign.errors import InvalidDocument, MissingPageGeometry, SigningError
from fieldsign.pdf.coordinates import PageGeometry, TargetRectangle, to_top_left
from fieldsign.pdf.embed import (
    DEFAULT_DATE_FORMAT,
    CheckmarkDraw,
    CircleDraw,
    Field,
    ImageDraw,
    PageDrawing,
    TextDraw,
    build_page_drawings,
)

logger = logging.getLogger(__name__)

# Fonts with broad Unicode coverage; the PDF base-14 Helvetica is the fallback
FONT_PATHS = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
]
FALLBACK_FONT = "helv"
INK_COLOR = (0, 0, 0)


def _find_font() -> Optional[str]:
    """Find a font file with Unicode support."""
    for path in FONT_PATHS:
        if os.path.exists(path):
            return path
    return None


def _open_pdf(pdf_bytes: bytes) -> fitz.Document:
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except (fitz.FileDataError, RuntimeError, ValueError) as e:
        raise InvalidDocument(f"Invalid PDF file: {e}")

    if doc.needs_pass:
        doc.close()
        raise InvalidDocument("Encrypted PDF files are not supported")
    if doc.page_count < 1:
        doc.close()
        raise InvalidDocument("PDF has no pages")
    return doc


def _geometries(doc: fitz.Document) -> List[PageGeometry]:
    return [
        PageGeometry(
            page_number=index + 1,
            width_units=page.rect.width,
            height_units=page.rect.height,
        )
        for index, page in enumerate(doc)
    ]


def read_page_geometries(pdf_bytes: bytes) -> List[PageGeometry]:
    """
    Get dimensions of every page in points.

    Raises:
        InvalidDocument: If the bytes are not a readable PDF
    """
    doc = _open_pdf(pdf_bytes)
    try:
        return _geometries(doc)
    finally:
        doc.close()


@dataclass
class SignedDocument:
    """Result of a signing pass."""
    data: bytes
    fields: List[Field]
    page_count: int


class PDFSigner:
    """Embeds field values into a PDF using PyMuPDF."""

    def __init__(self, producer: str = "fieldsign", date_format: str = DEFAULT_DATE_FORMAT):
        self.producer = producer
        self.date_format = date_format
        self.font_file = _find_font()

    def sign(self, pdf_bytes: bytes, fields: Iterable[Field]) -> SignedDocument:
        """
        Embed all valued fields and return the new document bytes.

        Every draw operation is computed and validated before the document
        is touched, so a failing field never yields a partially signed PDF.

        Raises:
            InvalidDocument: If the input is not a readable PDF
            EmptyFieldSet, MissingPageGeometry, InvalidGeometry,
            UnsupportedAssetFormat, InvalidFieldValue: From the embedding pass
            SigningError: If PyMuPDF fails to apply an operation
        """
        geometries = read_page_geometries(pdf_bytes)
        drawings, processed = build_page_drawings(
            fields,
            geometries,
            date_format=self.date_format,
        )
        data = self.apply(pdf_bytes, drawings)

        logger.info(
            f"Embedded {len(processed)} fields on {len(drawings)} of {len(geometries)} pages"
        )
        return SignedDocument(data=data, fields=processed, page_count=len(geometries))

    def apply(self, pdf_bytes: bytes, drawings: List[PageDrawing]) -> bytes:
        """
        Apply page drawings to a PDF and save it.

        Raises:
            InvalidDocument: If the input is not a readable PDF
            SigningError: If PyMuPDF fails to apply an operation
        """
        doc = _open_pdf(pdf_bytes)
        try:
            for drawing in drawings:
                if drawing.page_number > doc.page_count:
                    raise MissingPageGeometry(drawing.page_number, doc.page_count)
                self._apply_page(doc[drawing.page_number - 1], drawing)

            metadata = doc.metadata or {}
            metadata["producer"] = self.producer
            doc.set_metadata(metadata)

            # no_new_id keeps the file identifier, so equal input gives equal output
            return doc.tobytes(garbage=4, deflate=True, no_new_id=True)
        finally:
            doc.close()

    def _apply_page(self, page: fitz.Page, drawing: PageDrawing) -> None:
        """Apply the operations of one page in order."""
        page_height = drawing.height_units
        for operation in drawing.operations:
            try:
                if isinstance(operation, ImageDraw):
                    self._draw_image(page, operation, page_height)
                elif isinstance(operation, TextDraw):
                    self._draw_text(page, operation, page_height)
                elif isinstance(operation, CheckmarkDraw):
                    self._draw_checkmark(page, operation, page_height)
                elif isinstance(operation, CircleDraw):
                    self._draw_circle(page, operation, page_height)
                else:
                    raise SigningError(f"Unknown draw operation: {type(operation).__name__}")
            except SigningError:
                raise
            except (RuntimeError, ValueError) as e:
                logger.exception(f"Failed to draw {type(operation).__name__} on page {drawing.page_number}")
                raise SigningError(
                    f"Failed to draw on page {drawing.page_number}: {e}",
                    details={"page_number": drawing.page_number},
                )

    def _draw_image(self, page: fitz.Page, op: ImageDraw, page_height: float) -> None:
        rect = fitz.Rect(*to_top_left(
            TargetRectangle(x=op.x, y=op.y, width=op.width, height=op.height),
            page_height,
        ))
        # Size is already aspect-fitted
        page.insert_image(rect, stream=op.data, keep_proportion=False)

    def _draw_text(self, page: fitz.Page, op: TextDraw, page_height: float) -> None:
        # PyMuPDF places text by its baseline, measured from the top
        point = fitz.Point(op.x, page_height - op.y)
        if self.font_file:
            try:
                page.insert_text(
                    point,
                    op.text,
                    fontfile=self.font_file,
                    fontname="F0",
                    fontsize=op.font_size,
                    color=INK_COLOR,
                )
                return
            except (RuntimeError, ValueError) as e:
                logger.warning(f"Font {self.font_file} failed: {e}")

        page.insert_text(
            point,
            op.text,
            fontname=FALLBACK_FONT,
            fontsize=op.font_size,
            color=INK_COLOR,
        )

    def _draw_checkmark(self, page: fitz.Page, op: CheckmarkDraw, page_height: float) -> None:
        size = op.size
        left = op.x
        top = page_height - op.y - size
        shape = page.new_shape()
        shape.draw_polyline([
            fitz.Point(left + 0.1 * size, top + 0.55 * size),
            fitz.Point(left + 0.4 * size, top + 0.85 * size),
            fitz.Point(left + 0.9 * size, top + 0.15 * size),
        ])
        shape.finish(color=INK_COLOR, width=max(size * 0.12, 0.5), closePath=False)
        shape.commit()

    def _draw_circle(self, page: fitz.Page, op: CircleDraw, page_height: float) -> None:
        shape = page.new_shape()
        shape.draw_circle(fitz.Point(op.center_x, page_height - op.center_y), op.radius)
        shape.finish(color=INK_COLOR, fill=INK_COLOR, width=0)
        shape.commit()


# Singleton instance
_pdf_signer: Optional[PDFSigner] = None


def get_pdf_signer() -> PDFSigner:
    """Get the PDF signer singleton."""
    global _pdf_signer
    if _pdf_signer is None:
        from fieldsign.config import get_settings

        settings = get_settings()
        _pdf_signer = PDFSigner(
            producer=settings.pdf_producer,
            date_format=settings.date_format,
        )
    return _pdf_signer


__all__ = [
    "PDFSigner",
    "SignedDocument",
    "read_page_geometries",
    "get_pdf_signer",
]
