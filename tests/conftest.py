"""
Pytest configuration and fixtures.
"""
import base64
import io
import os
import sys

import fitz  # PyMuPDF
import pytest
from fastapi.testclient import TestClient
from PIL import Image

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fieldsign.audit import AuditLog
from fieldsign.config import Settings
from fieldsign.pdf.sign import PDFSigner
from fieldsign.services.signing_processor import SigningProcessor
from fieldsign.storage import DocumentStore


def _image_bytes(size, image_format):
    buffer = io.BytesIO()
    Image.new("RGB", size, (20, 20, 120)).save(buffer, format=image_format)
    return buffer.getvalue()


@pytest.fixture
def sample_pdf_bytes():
    """Single A4 page with some text."""
    doc = fitz.open()
    page = doc.new_page(width=595, height=842)  # A4 size
    page.insert_text((50, 100), "Test Document", fontsize=24)
    page.insert_text((50, 150), "This is a test PDF for signing.", fontsize=12)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def multipage_pdf_bytes():
    """A4 portrait page followed by an A4 landscape page."""
    doc = fitz.open()
    doc.new_page(width=595, height=842)
    doc.new_page(width=842, height=595)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def png_bytes():
    """300x100 PNG (3:1 aspect ratio)."""
    return _image_bytes((300, 100), "PNG")


@pytest.fixture
def png_base64(png_bytes):
    return base64.b64encode(png_bytes).decode()


@pytest.fixture
def jpeg_bytes():
    """100x200 JPEG (1:2 aspect ratio)."""
    return _image_bytes((100, 200), "JPEG")


@pytest.fixture
def gif_bytes():
    return _image_bytes((10, 10), "GIF")


@pytest.fixture
def test_settings():
    return Settings(ENVIRONMENT="test", MAX_UPLOAD_MB=1, DATE_FORMAT="%Y-%m-%d")


@pytest.fixture
def processor(test_settings):
    """Processor over fresh, isolated storage."""
    return SigningProcessor(
        store=DocumentStore(),
        audit_log=AuditLog(),
        signer=PDFSigner(producer="fieldsign-test", date_format=test_settings.date_format),
        settings=test_settings,
    )


@pytest.fixture
def client(processor):
    """API client wired to the isolated processor."""
    from fieldsign.main import app
    from fieldsign.routers.common import get_processor

    app.dependency_overrides[get_processor] = lambda: processor
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
