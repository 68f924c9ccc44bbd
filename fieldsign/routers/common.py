"""
Request helpers and response builders shared by the API routers.
"""
from fastapi import Request

from fieldsign.audit import ActorInfo, AuditRecord
from fieldsign.models import (
    ActorResponse,
    AuditRecordResponse,
    DocumentResponse,
    FieldResponse,
    PageGeometryResponse,
)
from fieldsign.pdf.embed import Field
from fieldsign.services.signing_processor import SigningProcessor, get_signing_processor
from fieldsign.storage import DocumentRecord


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address, handling proxies.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP (original client)
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


def get_actor(request: Request) -> ActorInfo:
    """Actor metadata recorded in the audit trail."""
    user_agent = request.headers.get("User-Agent")
    return ActorInfo(
        ip=get_client_ip(request),
        user_agent=user_agent[:500] if user_agent else None,
    )


def get_processor() -> SigningProcessor:
    return get_signing_processor()


def document_response(document: DocumentRecord) -> DocumentResponse:
    return DocumentResponse(
        id=document.id,
        filename=document.filename,
        status=document.status,
        page_count=document.page_count,
        pages=[
            PageGeometryResponse(
                page_number=page.page_number,
                width_units=page.width_units,
                height_units=page.height_units,
            )
            for page in document.pages
        ],
        original_hash=document.original_hash,
        signed_hash=document.signed_hash,
        created_at=document.created_at,
        updated_at=document.updated_at,
    )


def field_response(field_record: Field) -> FieldResponse:
    # Values are never echoed back, only whether one is set
    return FieldResponse(
        id=field_record.id,
        document_id=field_record.document_id,
        field_type=field_record.field_type,
        label=field_record.label,
        position=field_record.position.to_dict(),
        required=field_record.required,
        has_value=field_record.has_value,
        created_at=field_record.created_at,
        signed_at=field_record.signed_at,
    )


def record_response(record: AuditRecord) -> AuditRecordResponse:
    return AuditRecordResponse(
        id=record.id,
        document_id=record.document_id,
        sequence=record.sequence,
        action=record.action,
        hash_before=record.hash_before,
        hash_after=record.hash_after,
        timestamp=record.timestamp,
        actor=ActorResponse(ip=record.actor.ip, user_agent=record.actor.user_agent),
        details=dict(record.details),
    )
