"""
Tests for PDF signing.
"""
import fitz  # PyMuPDF
import pytest

from fieldsign.errors import EmptyFieldSet, InvalidDocument, MissingPageGeometry
from fieldsign.models import FieldType
from fieldsign.pdf.coordinates import NormalizedPosition
from fieldsign.pdf.embed import Field
from fieldsign.pdf.sign import PDFSigner, read_page_geometries


def make_field(field_type, value, x=0.1, y=0.8, w=0.3, h=0.1, page=1, field_id="f1"):
    return Field(
        id=field_id,
        document_id="doc-1",
        field_type=field_type,
        position=NormalizedPosition(page, x, y, w, h),
        value=value,
    )


class TestReadPageGeometries:
    """Tests for page geometry parsing."""

    def test_single_page(self, sample_pdf_bytes):
        [page] = read_page_geometries(sample_pdf_bytes)
        assert page.page_number == 1
        assert page.width_units == pytest.approx(595)
        assert page.height_units == pytest.approx(842)

    def test_mixed_orientation(self, multipage_pdf_bytes):
        pages = read_page_geometries(multipage_pdf_bytes)
        assert [(p.width_units, p.height_units) for p in pages] == [(595, 842), (842, 595)]

    def test_garbage_rejected(self):
        with pytest.raises(InvalidDocument) as exc_info:
            read_page_geometries(b"%PDF-1.7 this is not really a pdf")
        assert exc_info.value.code == "INVALID_DOCUMENT"


class TestPDFSigner:
    """Tests for PDF signing functionality."""

    @pytest.fixture
    def pdf_signer(self):
        return PDFSigner(producer="fieldsign-test")

    def test_sign_all_field_types(self, pdf_signer, sample_pdf_bytes, png_bytes):
        fields = [
            make_field(FieldType.SIGNATURE, png_bytes, field_id="sig"),
            make_field(FieldType.TEXT, "Jane Doe", y=0.6, h=0.04, field_id="name"),
            make_field(FieldType.DATE, "2024-03-05", y=0.5, h=0.04, field_id="date"),
            make_field(FieldType.CHECKBOX, True, y=0.4, w=0.03, h=0.03, field_id="agree"),
            make_field(FieldType.RADIO, "yes", y=0.3, w=0.03, h=0.03, field_id="choice"),
        ]
        result = pdf_signer.sign(sample_pdf_bytes, fields)

        assert result.data.startswith(b"%PDF-")
        assert result.page_count == 1
        assert [f.id for f in result.fields] == ["sig", "name", "date", "agree", "choice"]

        doc = fitz.open(stream=result.data, filetype="pdf")
        try:
            page = doc[0]
            text = page.get_text()
            # Original content is preserved alongside the embedded values
            assert "Test Document" in text
            assert "Jane Doe" in text
            assert "2024-03-05" in text
            assert len(page.get_images()) == 1
            assert doc.metadata["producer"] == "fieldsign-test"
        finally:
            doc.close()

    def test_image_placed_in_field_box(self, pdf_signer, sample_pdf_bytes, png_bytes):
        result = pdf_signer.sign(sample_pdf_bytes, [make_field(FieldType.SIGNATURE, png_bytes)])

        doc = fitz.open(stream=result.data, filetype="pdf")
        try:
            page = doc[0]
            xref = page.get_images()[0][0]
            [bbox] = page.get_image_rects(xref)
        finally:
            doc.close()

        # Top-left origin: the 59.5pt-high image is centered in the box 673.6..757.8
        assert bbox.x0 == pytest.approx(59.5, abs=0.01)
        assert bbox.x1 == pytest.approx(238.0, abs=0.01)
        assert bbox.y0 == pytest.approx(673.6 + 12.35, abs=0.01)
        assert bbox.y1 == pytest.approx(757.8 - 12.35, abs=0.01)

    def test_output_is_stable(self, pdf_signer, sample_pdf_bytes):
        fields = [
            make_field(FieldType.TEXT, "Jane Doe"),
            make_field(FieldType.CHECKBOX, True, y=0.4, w=0.03, h=0.03, field_id="agree"),
        ]
        first = pdf_signer.sign(sample_pdf_bytes, fields)
        second = pdf_signer.sign(sample_pdf_bytes, fields)
        assert first.data == second.data

    def test_second_page(self, pdf_signer, multipage_pdf_bytes):
        result = pdf_signer.sign(
            multipage_pdf_bytes,
            [make_field(FieldType.TEXT, "Landscape", page=2)],
        )
        doc = fitz.open(stream=result.data, filetype="pdf")
        try:
            assert "Landscape" in doc[1].get_text()
            assert "Landscape" not in doc[0].get_text()
        finally:
            doc.close()

    def test_no_values_rejected(self, pdf_signer, sample_pdf_bytes):
        with pytest.raises(EmptyFieldSet):
            pdf_signer.sign(sample_pdf_bytes, [make_field(FieldType.TEXT, None)])

    def test_invalid_page_rejected(self, pdf_signer, sample_pdf_bytes):
        with pytest.raises(MissingPageGeometry) as exc_info:
            pdf_signer.sign(sample_pdf_bytes, [make_field(FieldType.TEXT, "x", page=2)])
        assert "1 pages" in exc_info.value.message

    def test_invalid_pdf_rejected(self, pdf_signer):
        with pytest.raises(InvalidDocument):
            pdf_signer.sign(b"not a pdf", [make_field(FieldType.TEXT, "x")])
