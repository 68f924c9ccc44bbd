# PDF module
from fieldsign.pdf.coordinates import (
    NormalizedPosition,
    PageGeometry,
    TargetRectangle,
    clamp,
    to_normalized,
    to_pixels,
    to_target_units,
)
from fieldsign.pdf.fit import FitResult, fit
from fieldsign.pdf.embed import Field, build_page_drawings, embed_field
from fieldsign.pdf.sign import PDFSigner, SignedDocument, get_pdf_signer, read_page_geometries
from fieldsign.pdf.evidence import AuditReportGenerator, DocumentInfo, get_report_generator

__all__ = [
    "NormalizedPosition",
    "PageGeometry",
    "TargetRectangle",
    "clamp",
    "to_normalized",
    "to_pixels",
    "to_target_units",
    "FitResult",
    "fit",
    "Field",
    "build_page_drawings",
    "embed_field",
    "PDFSigner",
    "SignedDocument",
    "get_pdf_signer",
    "read_page_geometries",
    "AuditReportGenerator",
    "DocumentInfo",
    "get_report_generator",
]
