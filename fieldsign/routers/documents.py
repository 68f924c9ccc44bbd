"""
Documents API Router.
Paths: /v1/documents
"""
from fastapi import APIRouter, Depends, Path, Request, Response

from fieldsign.models import (
    AuditTrailResponse,
    ChainVerificationResponse,
    DocumentDetailResponse,
    DocumentResponse,
    SignResponse,
    UploadDocumentRequest,
)
from fieldsign.routers.common import (
    document_response,
    field_response,
    get_actor,
    get_processor,
    record_response,
)
from fieldsign.services.signing_processor import SigningProcessor
from fieldsign.utils.logging import get_logger, set_context

logger = get_logger(__name__)

router = APIRouter(
    prefix="/v1/documents",
    tags=["documents"],
)


def _attachment(filename: str) -> str:
    safe = filename.replace('"', "").replace("\r", "").replace("\n", "")
    return f'attachment; filename="{safe}"'


@router.post(
    "",
    response_model=DocumentResponse,
    status_code=201,
)
def upload_document(
    request: Request,
    request_body: UploadDocumentRequest,
    processor: SigningProcessor = Depends(get_processor),
):
    """
    Upload a PDF. Page geometry is read once and the hash chain starts here.
    """
    document = processor.upload_document(
        request_body.filename,
        request_body.content_bytes(),
        actor=get_actor(request),
    )
    return document_response(document)


@router.get(
    "/{document_id}",
    response_model=DocumentDetailResponse,
)
def get_document(
    document_id: str = Path(..., description="Document ID"),
    processor: SigningProcessor = Depends(get_processor),
):
    set_context(document_id=document_id)
    document = processor.get_document(document_id)
    fields = processor.list_fields(document_id)
    return DocumentDetailResponse(
        document=document_response(document),
        fields=[field_response(f) for f in fields],
    )


@router.post(
    "/{document_id}/sign",
    response_model=SignResponse,
)
def sign_document(
    request: Request,
    document_id: str = Path(..., description="Document ID"),
    processor: SigningProcessor = Depends(get_processor),
):
    """
    Embed every valued field into the PDF in one pass.
    """
    result = processor.sign_document(document_id, actor=get_actor(request))
    return SignResponse(
        document_id=result.document_id,
        status=result.status,
        hash_before=result.hash_before,
        hash_after=result.hash_after,
        fields_processed=result.fields_processed,
        field_types=result.field_types,
        signed_at=result.signed_at,
    )


@router.post(
    "/{document_id}/complete",
    response_model=DocumentResponse,
)
def complete_document(
    document_id: str = Path(..., description="Document ID"),
    processor: SigningProcessor = Depends(get_processor),
):
    set_context(document_id=document_id)
    return document_response(processor.complete_document(document_id))


@router.get("/{document_id}/download")
def download_document(
    request: Request,
    document_id: str = Path(..., description="Document ID"),
    processor: SigningProcessor = Depends(get_processor),
):
    """
    Current document bytes. The download is recorded in the audit trail.
    """
    set_context(document_id=document_id)
    document = processor.get_document(document_id)
    data = processor.download_document(document_id, actor=get_actor(request))
    logger.info(f"Downloaded document {document_id}: {len(data)} bytes, status={document.status.value}")
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": _attachment(document.filename)},
    )


@router.get(
    "/{document_id}/audit",
    response_model=AuditTrailResponse,
)
def get_audit_trail(
    document_id: str = Path(..., description="Document ID"),
    processor: SigningProcessor = Depends(get_processor),
):
    """Audit records, newest first."""
    records = processor.audit_trail(document_id)
    return AuditTrailResponse(
        document_id=document_id,
        audit_trail=[record_response(r) for r in records],
    )


@router.get(
    "/{document_id}/audit/verify",
    response_model=ChainVerificationResponse,
)
def verify_audit_chain(
    document_id: str = Path(..., description="Document ID"),
    processor: SigningProcessor = Depends(get_processor),
):
    """
    Walk the hash chain. A broken chain answers 409 INTEGRITY_MISMATCH.
    """
    result = processor.verify_document(document_id)
    return ChainVerificationResponse(
        document_id=result.document_id,
        valid=True,
        records_checked=result.records_checked,
        links_checked=result.links_checked,
        current_hash=result.current_hash,
        latest_recorded_hash=result.latest_recorded_hash,
    )


@router.get("/{document_id}/audit/report")
def get_audit_report(
    document_id: str = Path(..., description="Document ID"),
    processor: SigningProcessor = Depends(get_processor),
):
    """Audit trail rendered as PDF."""
    set_context(document_id=document_id)
    data = processor.audit_report(document_id)
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": _attachment(f"audit_{document_id}.pdf")},
    )
