"""
Health check endpoints for diagnosing service dependencies.
"""
import fitz  # PyMuPDF
import PIL
import reportlab
from fastapi import APIRouter

from fieldsign.pdf.sign import get_pdf_signer, read_page_geometries

router = APIRouter(
    prefix="/health",
    tags=["health"],
)


def _sample_pdf() -> bytes:
    doc = fitz.open()
    try:
        doc.new_page(width=595, height=842)
        return doc.tobytes()
    finally:
        doc.close()


@router.get("")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


@router.get("/pdf")
def health_check_pdf():
    """
    Verifies the PDF backend can create and parse a document and reports
    the library versions and the font used for text fields.
    """
    result = {
        "pymupdf_version": fitz.VersionBind,
        "pillow_version": PIL.__version__,
        "reportlab_version": reportlab.Version,
        "font_file": get_pdf_signer().font_file,
        "error": None,
    }

    try:
        pages = read_page_geometries(_sample_pdf())
        result["sample_pages"] = len(pages)
        return {"status": "healthy", "pdf": result}
    except (RuntimeError, ValueError) as e:
        result["error"] = str(e)
        return {"status": "unhealthy", "pdf": result}
