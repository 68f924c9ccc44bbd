"""
Core error taxonomy.

Every failure raised by the placement, embedding and audit code derives from
SigningError and carries a stable machine-readable code next to the message.
The HTTP layer maps these to responses in app exception handlers.
"""
from typing import Optional


class SigningError(Exception):
    """Base class for signing core errors."""

    code = "SIGNING_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details or {}


class InvalidGeometry(SigningError):
    """Percentage out of range, zero-area container or page."""

    code = "INVALID_GEOMETRY"


class UnsupportedAssetFormat(SigningError):
    """Embedded image asset is not a supported raster encoding."""

    code = "UNSUPPORTED_ASSET_FORMAT"


class MissingPageGeometry(SigningError):
    """Field references a page that the document does not have."""

    code = "MISSING_PAGE_GEOMETRY"

    def __init__(self, page_number: int, page_count: int):
        super().__init__(
            f"Page {page_number} has no geometry. Document has {page_count} pages.",
            details={"page_number": page_number, "page_count": page_count},
        )
        self.page_number = page_number
        self.page_count = page_count


class IntegrityMismatch(SigningError):
    """A digest did not match the expected link of the hash chain."""

    code = "INTEGRITY_MISMATCH"

    def __init__(
        self,
        message: str,
        expected: Optional[str],
        actual: Optional[str],
        index: Optional[int] = None,
    ):
        super().__init__(
            message,
            details={"expected": expected, "actual": actual, "index": index},
        )
        self.expected = expected
        self.actual = actual
        self.index = index


class EmptyFieldSet(SigningError):
    """Signing was requested but no field carries a value."""

    code = "EMPTY_FIELD_SET"


class InvalidFieldValue(SigningError):
    """Field value cannot be rendered for its field type."""

    code = "INVALID_FIELD_VALUE"


class InvalidDocument(SigningError):
    """Document bytes cannot be parsed as PDF."""

    code = "INVALID_DOCUMENT"


class InvalidStateTransition(SigningError):
    """Document lifecycle does not allow the requested step."""

    code = "INVALID_STATE_TRANSITION"
