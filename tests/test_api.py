"""
Tests for the HTTP API.
"""
import base64

import fitz  # PyMuPDF
import pytest


def upload(client, pdf_bytes, filename="contract.pdf"):
    response = client.post("/v1/documents", json={
        "filename": filename,
        "content_base64": base64.b64encode(pdf_bytes).decode(),
    })
    assert response.status_code == 201, response.text
    return response.json()


def add_field(client, document_id, field_type="signature", **position):
    body = {
        "document_id": document_id,
        "field_type": field_type,
        "position": {
            "page_number": 1,
            "x_percent": 0.1,
            "y_percent": 0.8,
            "width_percent": 0.3,
            "height_percent": 0.1,
            **position,
        },
    }
    return client.post("/v1/fields", json=body)


class TestHealth:
    """Health endpoints."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_pdf_backend(self, client):
        response = client.get("/health/pdf")
        assert response.status_code == 200
        assert response.json()["pdf"]["sample_pages"] == 1

    def test_request_id_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


class TestDocuments:
    """Upload and retrieval."""

    def test_upload(self, client, sample_pdf_bytes):
        document = upload(client, sample_pdf_bytes)
        assert document["status"] == "draft"
        assert document["page_count"] == 1
        assert document["pages"][0]["width_units"] == pytest.approx(595)
        assert len(document["original_hash"]) == 64

    def test_upload_rejects_non_pdf(self, client):
        response = client.post("/v1/documents", json={
            "filename": "notes.pdf",
            "content_base64": base64.b64encode(b"plain text").decode(),
        })
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_upload_rejects_wrong_extension(self, client, sample_pdf_bytes):
        response = client.post("/v1/documents", json={
            "filename": "contract.docx",
            "content_base64": base64.b64encode(sample_pdf_bytes).decode(),
        })
        assert response.status_code == 422

    def test_upload_too_large(self, client):
        data = b"%PDF-" + b"0" * (1024 * 1024)
        response = client.post("/v1/documents", json={
            "filename": "big.pdf",
            "content_base64": base64.b64encode(data).decode(),
        })
        assert response.status_code == 413
        assert response.json()["code"] == "DOCUMENT_TOO_LARGE"

    def test_unknown_document(self, client):
        response = client.get("/v1/documents/does-not-exist")
        assert response.status_code == 404
        body = response.json()
        assert body["error"] is True
        assert body["code"] == "NOT_FOUND"

    def test_get_document_with_fields(self, client, sample_pdf_bytes):
        document = upload(client, sample_pdf_bytes)
        add_field(client, document["id"], "text", height_percent=0.04)

        response = client.get(f"/v1/documents/{document['id']}")
        assert response.status_code == 200
        body = response.json()
        assert body["document"]["status"] == "pending_signature"
        [field] = body["fields"]
        assert field["field_type"] == "text"
        assert field["has_value"] is False
        assert field["position"]["height_percent"] == pytest.approx(0.04)


class TestFields:
    """Field placement errors."""

    def test_field_past_page_edge(self, client, sample_pdf_bytes):
        document = upload(client, sample_pdf_bytes)
        response = add_field(client, document["id"], x_percent=0.9, width_percent=0.2)
        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_GEOMETRY"

    def test_field_on_missing_page(self, client, sample_pdf_bytes):
        document = upload(client, sample_pdf_bytes)
        response = add_field(client, document["id"], page_number=3)
        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "MISSING_PAGE_GEOMETRY"
        assert body["details"] == {"page_number": 3, "page_count": 1}

    def test_unsupported_image(self, client, sample_pdf_bytes, gif_bytes):
        document = upload(client, sample_pdf_bytes)
        field = add_field(client, document["id"]).json()
        response = client.post(
            f"/v1/fields/{field['id']}/value",
            json={"value": base64.b64encode(gif_bytes).decode()},
        )
        assert response.status_code == 422
        assert response.json()["code"] == "UNSUPPORTED_ASSET_FORMAT"

    def test_update_and_delete(self, client, sample_pdf_bytes):
        document = upload(client, sample_pdf_bytes)
        field = add_field(client, document["id"], "checkbox", width_percent=0.03, height_percent=0.03).json()

        response = client.put(f"/v1/fields/{field['id']}", json={"label": "I agree", "required": False})
        assert response.status_code == 200
        assert response.json()["label"] == "I agree"
        assert response.json()["required"] is False

        response = client.delete(f"/v1/fields/{field['id']}")
        assert response.status_code == 200
        assert client.delete(f"/v1/fields/{field['id']}").status_code == 404


class TestSigningFlow:
    """Upload, place, fill, sign, download and verify."""

    def test_full_flow(self, client, sample_pdf_bytes, png_base64):
        document = upload(client, sample_pdf_bytes)
        document_id = document["id"]

        signature = add_field(client, document_id).json()
        name = add_field(client, document_id, "text", y_percent=0.6, height_percent=0.04).json()
        assert client.post(f"/v1/fields/{signature['id']}/value", json={"value": png_base64}).status_code == 200
        assert client.post(f"/v1/fields/{name['id']}/value", json={"value": "Jane Doe"}).status_code == 200

        response = client.post(f"/v1/documents/{document_id}/sign")
        assert response.status_code == 200, response.text
        signed = response.json()
        assert signed["status"] == "signed"
        assert signed["fields_processed"] == 2
        assert signed["field_types"] == ["signature", "text"]
        assert signed["hash_before"] == document["original_hash"]

        response = client.get(f"/v1/documents/{document_id}/download")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert 'filename="contract.pdf"' in response.headers["content-disposition"]
        doc = fitz.open(stream=response.content, filetype="pdf")
        try:
            assert "Jane Doe" in doc[0].get_text()
        finally:
            doc.close()

        trail = client.get(f"/v1/documents/{document_id}/audit").json()["audit_trail"]
        assert [r["action"] for r in trail] == [
            "downloaded",
            "signed",
            "field_modified",
            "field_modified",
            "field_added",
            "field_added",
            "uploaded",
        ]
        assert trail[1]["hash_after"] == signed["hash_after"]
        assert trail[1]["details"]["fields_processed"] == 2

        response = client.get(f"/v1/documents/{document_id}/audit/verify")
        assert response.status_code == 200
        verification = response.json()
        assert verification["valid"] is True
        assert verification["records_checked"] == 7
        assert verification["current_hash"] == signed["hash_after"]

        response = client.post(f"/v1/documents/{document_id}/complete")
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    def test_sign_without_values(self, client, sample_pdf_bytes):
        document = upload(client, sample_pdf_bytes)
        add_field(client, document["id"])
        response = client.post(f"/v1/documents/{document['id']}/sign")
        assert response.status_code == 400
        assert response.json()["code"] == "EMPTY_FIELD_SET"

    def test_sign_twice(self, client, sample_pdf_bytes):
        document = upload(client, sample_pdf_bytes)
        field = add_field(client, document["id"], "radio", width_percent=0.03, height_percent=0.03).json()
        client.post(f"/v1/fields/{field['id']}/value", json={"value": True})

        assert client.post(f"/v1/documents/{document['id']}/sign").status_code == 200
        response = client.post(f"/v1/documents/{document['id']}/sign")
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_STATE_TRANSITION"

    def test_tampering_detected(self, client, processor, sample_pdf_bytes):
        document = upload(client, sample_pdf_bytes)
        processor.store.replace_bytes(document["id"], sample_pdf_bytes + b"\n%tampered")

        response = client.get(f"/v1/documents/{document['id']}/audit/verify")
        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "INTEGRITY_MISMATCH"
        assert body["details"]["expected"] == document["original_hash"]

    def test_audit_report(self, client, sample_pdf_bytes):
        document = upload(client, sample_pdf_bytes)
        response = client.get(f"/v1/documents/{document['id']}/audit/report")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF-")

    def test_audit_report_shows_tampering(self, client, processor, sample_pdf_bytes):
        document = upload(client, sample_pdf_bytes)
        report = client.get(f"/v1/documents/{document['id']}/audit/report").content
        with fitz.open(stream=report, filetype="pdf") as pdf:
            text = "".join(page.get_text() for page in pdf)
        assert "VALID" in text and "BROKEN" not in text

        processor.store.replace_bytes(document["id"], sample_pdf_bytes + b"\n%tampered")
        report = client.get(f"/v1/documents/{document['id']}/audit/report").content
        with fitz.open(stream=report, filetype="pdf") as pdf:
            text = "".join(page.get_text() for page in pdf)
        assert "BROKEN" in text
        assert "Stored document does not match" in text
