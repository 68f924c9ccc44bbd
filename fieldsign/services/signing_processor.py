"""
Document lifecycle orchestration.

Every operation that changes a document (its bytes, fields or status) runs
under that document's exclusive writer lock, so digests are always taken
over a stable snapshot and embedding passes never interleave.
"""
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

from fieldsign.audit import (
    ActorInfo,
    AuditLog,
    AuditRecord,
    compute_digest,
    count_links,
    get_audit_log,
    latest_digest,
    transition,
    verify_document,
)
from fieldsign.config import Settings, get_settings
from fieldsign.errors import (
    EmptyFieldSet,
    InvalidDocument,
    InvalidFieldValue,
    InvalidStateTransition,
    MissingPageGeometry,
)
from fieldsign.models import AuditAction, DocumentStatus, FieldType
from fieldsign.pdf.coordinates import NormalizedPosition, validate_position
from fieldsign.pdf.embed import Field, decode_asset
from fieldsign.pdf.evidence import DocumentInfo, get_report_generator
from fieldsign.pdf.sign import PDFSigner, get_pdf_signer, read_page_geometries
from fieldsign.storage import DocumentRecord, DocumentStore, get_document_store
from fieldsign.utils.datetime_utils import parse_date_value, utc_now
from fieldsign.utils.logging import fingerprint, set_context, short_digest

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (DocumentStatus.DRAFT, DocumentStatus.PENDING_SIGNATURE)


@dataclass
class SignResult:
    document_id: str
    status: DocumentStatus
    hash_before: str
    hash_after: str
    fields_processed: int
    field_types: List[FieldType]
    signed_at: datetime


@dataclass
class ChainVerification:
    document_id: str
    records_checked: int
    links_checked: int
    current_hash: str
    latest_recorded_hash: Optional[str]


class SigningProcessor:
    """Upload, field editing, signing, download and verification of documents."""

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        audit_log: Optional[AuditLog] = None,
        signer: Optional[PDFSigner] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store or get_document_store()
        self.audit_log = audit_log or get_audit_log()
        self.signer = signer or get_pdf_signer()
        self.settings = settings or get_settings()
        # One lock per document for the life of the process; documents are never deleted
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _writer(self, document_id: str) -> Iterator[None]:
        """Exclusive writer for one document."""
        with self._locks_guard:
            lock = self._locks.setdefault(document_id, threading.Lock())
        with lock:
            yield

    # Documents
    def upload_document(
        self,
        filename: str,
        pdf_bytes: bytes,
        actor: Optional[ActorInfo] = None,
    ) -> DocumentRecord:
        """
        Register an uploaded PDF: parse page geometry, hash it and start its chain.

        Raises:
            InvalidDocument: If the file is too large or not a readable PDF
        """
        if len(pdf_bytes) > self.settings.max_upload_bytes:
            raise InvalidDocument(
                f"File exceeds the {self.settings.max_upload_mb} MB upload limit",
                code="DOCUMENT_TOO_LARGE",
                details={"size": len(pdf_bytes), "limit": self.settings.max_upload_bytes},
            )

        pages = read_page_geometries(pdf_bytes)
        original_hash = compute_digest(pdf_bytes)

        document = DocumentRecord(
            id=self.store.new_id(),
            filename=filename,
            original_bytes=pdf_bytes,
            current_bytes=pdf_bytes,
            pages=pages,
            original_hash=original_hash,
        )
        set_context(document_id=document.id)

        with self._writer(document.id):
            document.status = transition(document.status, DocumentStatus.DRAFT)
            self.store.add_document(document)
            self.audit_log.record_mutation(
                document.id,
                AuditAction.UPLOADED,
                before=None,
                after=pdf_bytes,
                actor=actor,
                details={
                    "file_name": filename,
                    "file_size": len(pdf_bytes),
                    "page_count": len(pages),
                },
            )

        logger.info(
            f"Uploaded document {document.id}: {len(pages)} pages, "
            f"hash={short_digest(original_hash)}, actor={fingerprint(actor.ip if actor else None, 'ip_')}"
        )
        return document

    def get_document(self, document_id: str) -> DocumentRecord:
        return self.store.get_document(document_id)

    def list_fields(self, document_id: str) -> List[Field]:
        self.store.get_document(document_id)
        return self.store.list_fields(document_id)

    # Fields
    def add_field(
        self,
        document_id: str,
        field_type: FieldType,
        position: NormalizedPosition,
        label: Optional[str] = None,
        required: bool = True,
        actor: Optional[ActorInfo] = None,
    ) -> Field:
        """
        Place a new field on a document page.

        Raises:
            InvalidGeometry: If the position is invalid
            MissingPageGeometry: If the page does not exist
            InvalidStateTransition: If the document is already signed
        """
        field_type = FieldType(field_type)
        validate_position(position)

        with self._writer(document_id):
            document = self.store.get_document(document_id)
            self._ensure_editable(document)
            self._ensure_page(document, position.page_number)

            field_record = Field(
                id=self.store.new_id(),
                document_id=document_id,
                field_type=field_type,
                position=position,
                label=label or field_type.value,
                required=required,
            )
            document.status = transition(document.status, DocumentStatus.PENDING_SIGNATURE)
            document.updated_at = utc_now()
            self.store.add_field(field_record)

            self.audit_log.record_mutation(
                document_id,
                AuditAction.FIELD_ADDED,
                before=document.current_bytes,
                after=document.current_bytes,
                actor=actor,
                details={
                    "field_id": field_record.id,
                    "field_type": field_type.value,
                    "position": position.to_dict(),
                },
            )

        set_context(field_id=field_record.id)
        logger.info(f"Added {field_type.value} field {field_record.id} on page {position.page_number}")
        return field_record

    def update_field(
        self,
        field_id: str,
        position: Optional[NormalizedPosition] = None,
        label: Optional[str] = None,
        required: Optional[bool] = None,
        actor: Optional[ActorInfo] = None,
    ) -> Field:
        """
        Move/resize a field or change its label or required flag.

        Raises:
            InvalidGeometry: If the new position is invalid
            InvalidStateTransition: If the document is signed or the field
                already has a value and the position changes
        """
        if position is not None:
            validate_position(position)

        document_id = self.store.get_field(field_id).document_id
        with self._writer(document_id):
            # A concurrent delete may have won the lock
            field_record = self.store.get_field(field_id)
            document = self.store.get_document(document_id)
            self._ensure_editable(document)

            updates: Dict[str, Any] = {}
            if position is not None:
                if field_record.has_value:
                    raise InvalidStateTransition(
                        f"Field {field_id} already has a value; its position is fixed",
                        details={"field_id": field_id},
                    )
                self._ensure_page(document, position.page_number)
                field_record.position = position
                updates["position"] = position.to_dict()
            if label is not None:
                field_record.label = label
                updates["label"] = label
            if required is not None:
                field_record.required = required
                updates["required"] = required

            document.updated_at = utc_now()
            self.audit_log.record_mutation(
                document.id,
                AuditAction.FIELD_MODIFIED,
                before=document.current_bytes,
                after=document.current_bytes,
                actor=actor,
                details={"field_id": field_id, "updates": updates},
            )

        logger.info(f"Modified field {field_id}: {sorted(updates)}")
        return field_record

    def delete_field(self, field_id: str, actor: Optional[ActorInfo] = None) -> Field:
        document_id = self.store.get_field(field_id).document_id
        with self._writer(document_id):
            field_record = self.store.get_field(field_id)
            document = self.store.get_document(document_id)
            self._ensure_editable(document)
            self.store.delete_field(field_id)
            document.updated_at = utc_now()

            self.audit_log.record_mutation(
                document.id,
                AuditAction.FIELD_DELETED,
                before=document.current_bytes,
                after=document.current_bytes,
                actor=actor,
                details={"field_id": field_id, "field_type": field_record.field_type.value},
            )

        logger.info(f"Deleted field {field_id}")
        return field_record

    def set_field_value(
        self,
        field_id: str,
        value: Any,
        actor: Optional[ActorInfo] = None,
    ) -> Field:
        """
        Store the value a signer entered for a field.

        Image and date values are checked here so bad input is rejected
        before the signing pass.

        Raises:
            UnsupportedAssetFormat: If an image value is not PNG/JPEG
            InvalidFieldValue: If a date value cannot be parsed
        """
        field_record = self.store.get_field(field_id)
        self._check_value(field_record, value)

        with self._writer(field_record.document_id):
            field_record = self.store.get_field(field_id)
            document = self.store.get_document(field_record.document_id)
            self._ensure_editable(document)

            field_record.value = value
            field_record.signed_at = utc_now() if value is not None else None
            field_record.signed_by_ip = actor.ip if actor and value is not None else None
            document.updated_at = utc_now()

            self.audit_log.record_mutation(
                document.id,
                AuditAction.FIELD_MODIFIED,
                before=document.current_bytes,
                after=document.current_bytes,
                actor=actor,
                details={"field_id": field_id, "updates": {"value": value is not None}},
            )

        logger.info(f"Set value of {field_record.field_type.value} field {field_id}")
        return field_record

    # Signing
    def sign_document(self, document_id: str, actor: Optional[ActorInfo] = None) -> SignResult:
        """
        Embed every valued field into the document and record the signing.

        The stored bytes, status and audit trail change only if every field
        embeds successfully.

        Raises:
            EmptyFieldSet: If no field has a value
            InvalidStateTransition: If the document is already signed
            MissingPageGeometry, InvalidGeometry, UnsupportedAssetFormat,
            InvalidFieldValue, SigningError: From the embedding pass
        """
        set_context(document_id=document_id)
        with self._writer(document_id):
            document = self.store.get_document(document_id)
            fields = self.store.list_fields(document_id)

            if document.status == DocumentStatus.DRAFT or not any(f.has_value for f in fields):
                raise EmptyFieldSet(
                    "No fields with values to sign",
                    details={"document_id": document_id, "field_count": len(fields)},
                )
            transition(document.status, DocumentStatus.SIGNED)

            before = document.current_bytes
            signed = self.signer.sign(before, fields)

            signed_at = utc_now()
            record = self.audit_log.record_mutation(
                document_id,
                AuditAction.SIGNED,
                before=before,
                after=signed.data,
                actor=actor,
                details={
                    "fields_processed": len(signed.fields),
                    "field_types": [f.field_type.value for f in signed.fields],
                    "field_ids": [f.id for f in signed.fields],
                },
            )
            self.store.replace_bytes(document_id, signed.data)
            document.signed_hash = record.hash_after
            document.status = transition(document.status, DocumentStatus.SIGNED)

        logger.info(
            f"Signed document {document_id}: {len(signed.fields)} fields, "
            f"{short_digest(record.hash_before)} -> {short_digest(record.hash_after)}"
        )
        return SignResult(
            document_id=document_id,
            status=document.status,
            hash_before=record.hash_before,
            hash_after=record.hash_after,
            fields_processed=len(signed.fields),
            field_types=[f.field_type for f in signed.fields],
            signed_at=signed_at,
        )

    def download_document(self, document_id: str, actor: Optional[ActorInfo] = None) -> bytes:
        """Return the current document bytes and record the download."""
        with self._writer(document_id):
            document = self.store.get_document(document_id)
            data = document.current_bytes
            self.audit_log.record_mutation(
                document_id,
                AuditAction.DOWNLOADED,
                before=data,
                after=data,
                actor=actor,
                details={"status": document.status.value},
            )
        return data

    def complete_document(self, document_id: str) -> DocumentRecord:
        """
        Mark a signed document as completed.

        Raises:
            InvalidStateTransition: If the document is not signed
        """
        with self._writer(document_id):
            document = self.store.get_document(document_id)
            document.status = transition(document.status, DocumentStatus.COMPLETED)
            document.updated_at = utc_now()
        logger.info(f"Completed document {document_id}")
        return document

    # Audit
    def audit_trail(self, document_id: str) -> List[AuditRecord]:
        """Audit records of a document, newest first."""
        self.store.get_document(document_id)
        return self.audit_log.history(document_id)

    def verify_document(self, document_id: str) -> ChainVerification:
        """
        Walk the hash chain and compare the stored bytes with its last link.

        Raises:
            IntegrityMismatch: If the chain is broken or the stored bytes
                changed outside a recorded action
        """
        with self._writer(document_id):
            document = self.store.get_document(document_id)
            records = self.audit_log.records(document_id)
            current_hash = verify_document(document.current_bytes, records)

        return ChainVerification(
            document_id=document_id,
            records_checked=len(records),
            links_checked=count_links(records),
            current_hash=current_hash,
            latest_recorded_hash=latest_digest(records),
        )

    def audit_snapshot(self, document_id: str) -> Tuple[DocumentInfo, List[AuditRecord]]:
        """Document bytes and audit records taken together under the writer lock."""
        with self._writer(document_id):
            document = self.store.get_document(document_id)
            info = DocumentInfo(
                id=document.id,
                name=document.filename,
                status=document.status.value,
                created_at=document.created_at,
                page_count=document.page_count,
                original_hash=document.original_hash,
                current_bytes=document.current_bytes,
            )
            records = self.audit_log.records(document_id)
        return info, records

    def audit_report(self, document_id: str) -> bytes:
        """Audit trail of a document rendered as PDF."""
        info, records = self.audit_snapshot(document_id)
        return get_report_generator().generate(info, records)

    # Helpers
    def _ensure_editable(self, document: DocumentRecord) -> None:
        if document.status not in EDITABLE_STATUSES:
            raise InvalidStateTransition(
                f"Fields of a {document.status.value} document cannot be changed",
                details={"status": document.status.value},
            )

    def _ensure_page(self, document: DocumentRecord, page_number: int) -> None:
        if not 1 <= page_number <= document.page_count:
            raise MissingPageGeometry(page_number, document.page_count)

    def _check_value(self, field_record: Field, value: Any) -> None:
        if value is None:
            return
        if field_record.field_type in (FieldType.SIGNATURE, FieldType.IMAGE):
            decode_asset(value)
        elif field_record.field_type == FieldType.DATE:
            if parse_date_value(value) is None:
                raise InvalidFieldValue(
                    f"Date field {field_record.id} needs an ISO-8601 date",
                    details={"field_id": field_record.id},
                )


# Singleton instance
_signing_processor: Optional[SigningProcessor] = None


def get_signing_processor() -> SigningProcessor:
    """Get the signing processor singleton."""
    global _signing_processor
    if _signing_processor is None:
        _signing_processor = SigningProcessor()
    return _signing_processor
