import base64
import binascii
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BaseRequest(BaseModel):
    """Base class for all request models - ignores extra fields."""
    model_config = ConfigDict(extra="ignore")


# Enums
class FieldType(str, Enum):
    SIGNATURE = "signature"
    TEXT = "text"
    DATE = "date"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    IMAGE = "image"


class DocumentStatus(str, Enum):
    CREATED = "created"
    DRAFT = "draft"
    PENDING_SIGNATURE = "pending_signature"
    SIGNED = "signed"
    COMPLETED = "completed"


class AuditAction(str, Enum):
    UPLOADED = "uploaded"
    FIELD_ADDED = "field_added"
    FIELD_MODIFIED = "field_modified"
    FIELD_DELETED = "field_deleted"
    SIGNED = "signed"
    DOWNLOADED = "downloaded"


PDF_MAGIC = b"%PDF-"


def strip_data_url(value: str) -> str:
    """Remove a data URL prefix (data:<mime>;base64,) if present."""
    if value.startswith("data:") and "," in value:
        return value.split(",", 1)[1]
    return value


# Request Models
class PositionModel(BaseRequest):
    """Normalized field position, fractions of the page from the top-left corner."""
    page_number: int = Field(..., ge=1, description="1-indexed page number")
    x_percent: float = Field(..., ge=0, le=1)
    y_percent: float = Field(..., ge=0, le=1)
    width_percent: float = Field(..., gt=0, le=1)
    height_percent: float = Field(..., gt=0, le=1)

    def to_position(self):
        from fieldsign.pdf.coordinates import NormalizedPosition

        return NormalizedPosition(
            page_number=self.page_number,
            x_percent=self.x_percent,
            y_percent=self.y_percent,
            width_percent=self.width_percent,
            height_percent=self.height_percent,
        )


class UploadDocumentRequest(BaseRequest):
    filename: str = Field(..., min_length=1, max_length=255)
    content_base64: str = Field(..., min_length=8, description="Base64-encoded PDF")

    @field_validator("filename")
    @classmethod
    def validate_filename(cls, v: str) -> str:
        v = v.strip()
        if not v.lower().endswith(".pdf"):
            raise ValueError("Only PDF files are allowed")
        return v

    @field_validator("content_base64")
    @classmethod
    def validate_content(cls, v: str) -> str:
        v = strip_data_url(v.strip())
        try:
            decoded = base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 content: {e}")
        if not decoded.startswith(PDF_MAGIC):
            raise ValueError("Content is not a PDF document")
        return v

    def content_bytes(self) -> bytes:
        return base64.b64decode(self.content_base64)


class CreateFieldRequest(BaseRequest):
    document_id: str = Field(..., min_length=1)
    field_type: FieldType
    label: Optional[str] = Field(None, max_length=200)
    position: PositionModel
    required: bool = Field(default=True)


class UpdateFieldRequest(BaseRequest):
    position: Optional[PositionModel] = None
    label: Optional[str] = Field(None, max_length=200)
    required: Optional[bool] = None


class SetFieldValueRequest(BaseRequest):
    value: Any = Field(..., description="Base64 image, text, ISO date or boolean, by field type")


# Response Models
class PageGeometryResponse(BaseModel):
    page_number: int
    width_units: float
    height_units: float


class FieldResponse(BaseModel):
    id: str
    document_id: str
    field_type: FieldType
    label: str
    position: Dict[str, Any]
    required: bool
    has_value: bool
    created_at: datetime
    signed_at: Optional[datetime] = None


class DocumentResponse(BaseModel):
    id: str
    filename: str
    status: DocumentStatus
    page_count: int
    pages: List[PageGeometryResponse]
    original_hash: str
    signed_hash: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class DocumentDetailResponse(BaseModel):
    document: DocumentResponse
    fields: List[FieldResponse]


class ActorResponse(BaseModel):
    ip: Optional[str] = None
    user_agent: Optional[str] = None


class AuditRecordResponse(BaseModel):
    id: str
    document_id: str
    sequence: int
    action: AuditAction
    hash_before: Optional[str] = None
    hash_after: Optional[str] = None
    timestamp: datetime
    actor: ActorResponse
    details: Dict[str, Any] = Field(default_factory=dict)


class AuditTrailResponse(BaseModel):
    document_id: str
    audit_trail: List[AuditRecordResponse]


class ChainVerificationResponse(BaseModel):
    document_id: str
    valid: bool
    records_checked: int
    links_checked: int
    current_hash: str
    latest_recorded_hash: Optional[str] = None


class SignResponse(BaseModel):
    document_id: str
    status: DocumentStatus
    hash_before: str
    hash_after: str
    fields_processed: int
    field_types: List[FieldType]
    signed_at: datetime
