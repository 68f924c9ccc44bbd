"""
Tests for security utilities.
"""
from fieldsign.utils.security import (
    compute_bytes_hash,
    digests_equal,
    verify_bytes_hash,
)

# Known SHA-256 hash for "Hello, World!"
HELLO_HASH = "dffd6021bb2bd5b0af676290809ec3a53191dd81c7f70a4b28688a362182986f"


class TestBytesHashing:
    """Tests for hash computation."""

    def test_compute_bytes_hash(self):
        """Bytes hash is computed correctly."""
        assert compute_bytes_hash(b"Hello, World!") == HELLO_HASH

    def test_different_content_different_hash(self):
        """Different content produces different hash."""
        assert compute_bytes_hash(b"Content 1") != compute_bytes_hash(b"Content 2")

    def test_single_bit_changes_hash(self):
        assert compute_bytes_hash(b"Hello, World!") != compute_bytes_hash(b"Hello, World\x20")


class TestDigestComparison:
    """Tests for digests_equal() and verify_bytes_hash()."""

    def test_equal(self):
        assert digests_equal(HELLO_HASH, HELLO_HASH) is True

    def test_case_insensitive(self):
        assert digests_equal(HELLO_HASH.upper(), HELLO_HASH) is True

    def test_different(self):
        assert digests_equal(HELLO_HASH, "0" * 64) is False

    def test_missing_never_matches(self):
        """None on either side is a mismatch, even None vs None."""
        assert digests_equal(None, HELLO_HASH) is False
        assert digests_equal(HELLO_HASH, None) is False
        assert digests_equal(None, None) is False

    def test_verify_bytes_hash(self):
        assert verify_bytes_hash(b"Hello, World!", HELLO_HASH) is True
        assert verify_bytes_hash(b"Hello, World?", HELLO_HASH) is False
