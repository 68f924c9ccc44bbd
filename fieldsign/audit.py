"""
Hash-chained audit trail.

Every mutating action on a document appends an immutable record carrying the
SHA-256 digest of the document bytes before and after the action. For
adjacent records of a document, hash_after of one must equal hash_before of
the next; a difference means the stored bytes changed outside the recorded
actions (for example an externally replaced file).
"""
import logging
import threading
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from fieldsign.errors import IntegrityMismatch, InvalidStateTransition
from fieldsign.models import AuditAction, DocumentStatus
from fieldsign.utils.datetime_utils import utc_now
from fieldsign.utils.logging import short_digest
from fieldsign.utils.security import compute_bytes_hash, digests_equal

logger = logging.getLogger(__name__)


# Allowed lifecycle steps: created -> draft -> pending_signature -> signed -> completed
ALLOWED_TRANSITIONS: Dict[DocumentStatus, tuple] = {
    DocumentStatus.CREATED: (DocumentStatus.DRAFT,),
    DocumentStatus.DRAFT: (DocumentStatus.PENDING_SIGNATURE,),
    DocumentStatus.PENDING_SIGNATURE: (
        DocumentStatus.PENDING_SIGNATURE,
        DocumentStatus.SIGNED,
    ),
    DocumentStatus.SIGNED: (DocumentStatus.COMPLETED,),
    DocumentStatus.COMPLETED: (),
}


def transition(current: DocumentStatus, target: DocumentStatus) -> DocumentStatus:
    """
    Validate a document status change.

    Raises:
        InvalidStateTransition: If the lifecycle does not allow the step
    """
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStateTransition(
            f"Document cannot move from {current.value} to {target.value}",
            details={"from": current.value, "to": target.value},
        )
    return target


def compute_digest(data: bytes) -> str:
    """SHA-256 over the exact document bytes."""
    return compute_bytes_hash(data)


@dataclass(frozen=True)
class ActorInfo:
    """Who performed an action."""
    ip: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class AuditRecord:
    """One immutable entry of a document's audit trail."""
    id: str
    document_id: str
    sequence: int
    action: AuditAction
    hash_before: Optional[str]
    hash_after: Optional[str]
    timestamp: datetime
    actor: ActorInfo = field(default_factory=ActorInfo)
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "sequence": self.sequence,
            "action": self.action.value,
            "hash_before": self.hash_before,
            "hash_after": self.hash_after,
            "timestamp": self.timestamp,
            "actor": {"ip": self.actor.ip, "user_agent": self.actor.user_agent},
            "details": dict(self.details),
        }


@dataclass(frozen=True)
class ChainBreak:
    """A link where hash_after of one record differs from hash_before of the next."""
    index: int  # Position of the later record in append order
    record_id: str
    action: AuditAction
    expected: str
    actual: str


def find_chain_breaks(records: List[AuditRecord]) -> List[ChainBreak]:
    """
    Walk records in append order and report every broken link.

    Links where either side carries no digest are skipped.
    """
    breaks = []
    for index in range(1, len(records)):
        previous, current = records[index - 1], records[index]
        if previous.hash_after is None or current.hash_before is None:
            continue
        if not digests_equal(previous.hash_after, current.hash_before):
            breaks.append(ChainBreak(
                index=index,
                record_id=current.id,
                action=current.action,
                expected=previous.hash_after,
                actual=current.hash_before,
            ))
    return breaks


def count_links(records: List[AuditRecord]) -> int:
    """Number of adjacent pairs that carry digests on both sides."""
    return sum(
        1
        for previous, current in zip(records, records[1:])
        if previous.hash_after is not None and current.hash_before is not None
    )


def verify_chain(records: List[AuditRecord]) -> None:
    """
    Verify that the chain of a document is unbroken.

    Raises:
        IntegrityMismatch: On the first broken link
    """
    breaks = find_chain_breaks(records)
    if breaks:
        first = breaks[0]
        raise IntegrityMismatch(
            f"Hash chain broken before record #{first.index + 1} ({first.action.value}): "
            f"expected {short_digest(first.expected)}, found {short_digest(first.actual)}",
            expected=first.expected,
            actual=first.actual,
            index=first.index,
        )


def latest_digest(records: List[AuditRecord]) -> Optional[str]:
    """Most recent recorded digest of the document bytes."""
    for record in reversed(records):
        if record.hash_after is not None:
            return record.hash_after
    return None


def verify_document(current_bytes: bytes, records: List[AuditRecord]) -> str:
    """
    Verify the chain and that the stored bytes match its latest digest.

    Returns:
        Digest of the current bytes

    Raises:
        IntegrityMismatch: If the chain is broken or the bytes changed after
            the last recorded action
    """
    verify_chain(records)

    current = compute_digest(current_bytes)
    expected = latest_digest(records)
    if expected is not None and not digests_equal(expected, current):
        raise IntegrityMismatch(
            f"Stored document does not match the last recorded digest: "
            f"expected {short_digest(expected)}, found {short_digest(current)}",
            expected=expected,
            actual=current,
            index=len(records),
        )
    return current


class AuditLog:
    """
    Append-only audit record store, one chain per document.

    Records are never mutated or removed.
    """

    def __init__(self):
        self._records: Dict[str, List[AuditRecord]] = defaultdict(list)
        self._lock = threading.Lock()

    def append(
        self,
        document_id: str,
        action: AuditAction,
        hash_before: Optional[str] = None,
        hash_after: Optional[str] = None,
        actor: Optional[ActorInfo] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditRecord:
        """Append a record; signed records must carry both digests."""
        if action == AuditAction.SIGNED and (hash_before is None or hash_after is None):
            raise IntegrityMismatch(
                "Signed records must carry hash_before and hash_after",
                expected=hash_before,
                actual=hash_after,
            )

        with self._lock:
            chain = self._records[document_id]
            record = AuditRecord(
                id=str(uuid.uuid4()),
                document_id=document_id,
                sequence=len(chain) + 1,
                action=action,
                hash_before=hash_before,
                hash_after=hash_after,
                timestamp=utc_now(),
                actor=actor or ActorInfo(),
                details=dict(details or {}),
            )
            chain.append(record)

        logger.info(
            f"Audit {action.value} #{record.sequence} for document {document_id}: "
            f"{short_digest(hash_before)} -> {short_digest(hash_after)}"
        )
        return record

    def record_mutation(
        self,
        document_id: str,
        action: AuditAction,
        before: Optional[bytes],
        after: Optional[bytes],
        actor: Optional[ActorInfo] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditRecord:
        """
        Hash the byte snapshots taken around an action and append the record.

        Pass the same bytes as before and after for actions that do not
        change the document bytes; they still link the chain.
        """
        return self.append(
            document_id,
            action,
            hash_before=compute_digest(before) if before is not None else None,
            hash_after=compute_digest(after) if after is not None else None,
            actor=actor,
            details=details,
        )

    def records(self, document_id: str) -> List[AuditRecord]:
        """Records of a document in append order."""
        with self._lock:
            return list(self._records.get(document_id, ()))

    def history(self, document_id: str) -> List[AuditRecord]:
        """Records of a document, newest first."""
        return sorted(
            self.records(document_id),
            key=lambda r: (r.timestamp, r.sequence),
            reverse=True,
        )


# Singleton instance
_audit_log: Optional[AuditLog] = None


def get_audit_log() -> AuditLog:
    """Get the audit log singleton."""
    global _audit_log
    if _audit_log is None:
        _audit_log = AuditLog()
    return _audit_log
