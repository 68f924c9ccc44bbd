"""
Fields API Router.
Paths: /v1/fields
"""
from fastapi import APIRouter, Depends, Path, Request

from fieldsign.models import (
    CreateFieldRequest,
    FieldResponse,
    SetFieldValueRequest,
    UpdateFieldRequest,
)
from fieldsign.routers.common import field_response, get_actor, get_processor
from fieldsign.services.signing_processor import SigningProcessor
from fieldsign.utils.logging import set_context

router = APIRouter(
    prefix="/v1/fields",
    tags=["fields"],
)


@router.post(
    "",
    response_model=FieldResponse,
    status_code=201,
)
def create_field(
    request: Request,
    request_body: CreateFieldRequest,
    processor: SigningProcessor = Depends(get_processor),
):
    """
    Place a field. Position is normalized to the page (top-left origin).
    """
    set_context(document_id=request_body.document_id)
    field_record = processor.add_field(
        request_body.document_id,
        request_body.field_type,
        request_body.position.to_position(),
        label=request_body.label,
        required=request_body.required,
        actor=get_actor(request),
    )
    return field_response(field_record)


@router.put(
    "/{field_id}",
    response_model=FieldResponse,
)
def update_field(
    request: Request,
    request_body: UpdateFieldRequest,
    field_id: str = Path(..., description="Field ID"),
    processor: SigningProcessor = Depends(get_processor),
):
    set_context(field_id=field_id)
    field_record = processor.update_field(
        field_id,
        position=request_body.position.to_position() if request_body.position else None,
        label=request_body.label,
        required=request_body.required,
        actor=get_actor(request),
    )
    return field_response(field_record)


@router.delete(
    "/{field_id}",
    response_model=FieldResponse,
)
def delete_field(
    request: Request,
    field_id: str = Path(..., description="Field ID"),
    processor: SigningProcessor = Depends(get_processor),
):
    set_context(field_id=field_id)
    return field_response(processor.delete_field(field_id, actor=get_actor(request)))


@router.post(
    "/{field_id}/value",
    response_model=FieldResponse,
)
def set_field_value(
    request: Request,
    request_body: SetFieldValueRequest,
    field_id: str = Path(..., description="Field ID"),
    processor: SigningProcessor = Depends(get_processor),
):
    """
    Store a signer's value: base64 PNG/JPEG for signature and image fields,
    text, an ISO date, or a boolean for checkbox and radio fields.
    """
    set_context(field_id=field_id)
    field_record = processor.set_field_value(
        field_id,
        request_body.value,
        actor=get_actor(request),
    )
    return field_response(field_record)
