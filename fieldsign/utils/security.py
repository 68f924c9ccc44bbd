"""
Security utilities: document digests and constant-time comparison.
"""
import hashlib
import secrets
from typing import Optional


def compute_bytes_hash(data: bytes) -> str:
    """Compute SHA-256 hash of bytes."""
    return hashlib.sha256(data).hexdigest()


def digests_equal(expected: Optional[str], actual: Optional[str]) -> bool:
    """
    Compare two hex digests without leaking the matching prefix length.

    Missing digests never match.
    """
    if expected is None or actual is None:
        return False
    return secrets.compare_digest(expected.lower().encode(), actual.lower().encode())


def verify_bytes_hash(data: bytes, expected_hash: str) -> bool:
    """Verify bytes against a stored SHA-256 hex digest."""
    return digests_equal(expected_hash, compute_bytes_hash(data))
