"""
In-memory document store.

Single persistence boundary for documents, their bytes and their fields.
Returned objects are the stored instances; callers mutate them only while
holding the document's writer lock (see services.signing_processor).
"""
import itertools
import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from fieldsign.models import DocumentStatus
from fieldsign.pdf.coordinates import PageGeometry
from fieldsign.pdf.embed import Field, processing_order
from fieldsign.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


@dataclass
class DocumentRecord:
    """A stored document and its current bytes."""
    id: str
    filename: str
    original_bytes: bytes
    current_bytes: bytes
    pages: List[PageGeometry]
    original_hash: str
    status: DocumentStatus = DocumentStatus.CREATED
    signed_hash: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def page_count(self) -> int:
        return len(self.pages)


class NotFound(KeyError):
    """Requested record does not exist."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} not found: {resource_id}")
        self.resource = resource
        self.resource_id = resource_id


class DocumentStore:
    """Thread-safe in-memory storage for documents and fields."""

    def __init__(self):
        self._documents: Dict[str, DocumentRecord] = {}
        self._fields: Dict[str, Field] = {}
        self._lock = threading.Lock()
        self._field_sequence = itertools.count(1)

    @staticmethod
    def new_id() -> str:
        return str(uuid.uuid4())

    # Documents
    def add_document(self, document: DocumentRecord) -> DocumentRecord:
        with self._lock:
            self._documents[document.id] = document
        logger.debug(f"Stored document {document.id} ({document.page_count} pages)")
        return document

    def get_document(self, document_id: str) -> DocumentRecord:
        with self._lock:
            document = self._documents.get(document_id)
        if document is None:
            raise NotFound("Document", document_id)
        return document

    def replace_bytes(self, document_id: str, data: bytes) -> None:
        """Overwrite the stored bytes of a document."""
        document = self.get_document(document_id)
        with self._lock:
            document.current_bytes = data
            document.updated_at = utc_now()

    # Fields
    def add_field(self, field_record: Field) -> Field:
        with self._lock:
            field_record.sequence = next(self._field_sequence)
            self._fields[field_record.id] = field_record
        return field_record

    def get_field(self, field_id: str) -> Field:
        with self._lock:
            field_record = self._fields.get(field_id)
        if field_record is None:
            raise NotFound("Field", field_id)
        return field_record

    def delete_field(self, field_id: str) -> Field:
        with self._lock:
            field_record = self._fields.pop(field_id, None)
        if field_record is None:
            raise NotFound("Field", field_id)
        return field_record

    def list_fields(self, document_id: str) -> List[Field]:
        """Fields of a document in creation order."""
        with self._lock:
            fields = [f for f in self._fields.values() if f.document_id == document_id]
        return processing_order(fields)


# Singleton instance
_document_store: Optional[DocumentStore] = None


def get_document_store() -> DocumentStore:
    """Get the document store singleton."""
    global _document_store
    if _document_store is None:
        _document_store = DocumentStore()
    return _document_store
