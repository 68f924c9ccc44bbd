"""
Field embedding engine.

Turns placed fields into drawing operations in PDF space (points, origin
bottom-left). Each field type has its own renderer; the renderers only
append operations to a PageDrawing and never touch the PDF itself, so the
whole signing pass can be computed and validated before any byte is written.
"""
import base64
import binascii
import io
import logging
from dataclasses import dataclass, field as dataclass_field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError

from fieldsign.errors import (
    EmptyFieldSet,
    InvalidFieldValue,
    MissingPageGeometry,
    UnsupportedAssetFormat,
)
from fieldsign.models import FieldType, strip_data_url
from fieldsign.pdf.coordinates import (
    NormalizedPosition,
    PageGeometry,
    TargetRectangle,
    to_target_units,
)
from fieldsign.pdf.fit import fit
from fieldsign.utils.datetime_utils import format_date_value, utc_now

logger = logging.getLogger(__name__)

FONT_SIZE_CAP = 12.0  # Max text size in points
FONT_SIZE_RATIO = 0.7  # Text size relative to field height
TEXT_INSET = 2.0  # Left padding in points
CHECKMARK_SCALE = 0.6  # Checkmark size relative to the shorter field side
RADIO_RADIUS_SCALE = 0.3  # Radio dot radius relative to the shorter field side
DEFAULT_DATE_FORMAT = "%Y-%m-%d"

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
JPEG_MAGIC = b"\xff\xd8\xff"

FALSY_STRINGS = {"", "false", "0", "off", "no"}


@dataclass
class Field:
    """
    A field placed on a document.

    Owned by its document; a field with value None is not embedded.
    """
    id: str
    document_id: str
    field_type: FieldType
    position: NormalizedPosition
    value: Any = None
    label: str = ""
    required: bool = True
    created_at: datetime = dataclass_field(default_factory=utc_now)
    signed_at: Optional[datetime] = None
    signed_by_ip: Optional[str] = None
    sequence: int = 0  # Creation order within the store

    @property
    def has_value(self) -> bool:
        return self.value is not None


# Draw operations (PDF points, origin bottom-left)
@dataclass(frozen=True)
class ImageDraw:
    x: float
    y: float
    width: float
    height: float
    data: bytes


@dataclass(frozen=True)
class TextDraw:
    x: float
    y: float  # Baseline
    text: str
    font_size: float


@dataclass(frozen=True)
class CheckmarkDraw:
    x: float  # Lower-left corner of the mark's square
    y: float
    size: float


@dataclass(frozen=True)
class CircleDraw:
    center_x: float
    center_y: float
    radius: float


DrawOperation = Union[ImageDraw, TextDraw, CheckmarkDraw, CircleDraw]


@dataclass
class PageDrawing:
    """Ordered draw operations accumulated for one page."""
    page_number: int
    width_units: float
    height_units: float
    operations: List[DrawOperation] = dataclass_field(default_factory=list)


@dataclass(frozen=True)
class DecodedAsset:
    data: bytes
    width: int
    height: int
    format: str


def is_truthy(value: Any) -> bool:
    """Truthiness of a checkbox/radio value; "false"/"0"/"off"/"no" are falsy."""
    if isinstance(value, str):
        return value.strip().lower() not in FALSY_STRINGS
    return bool(value)


def decode_asset(value: Union[str, bytes]) -> DecodedAsset:
    """
    Decode an image value into raw bytes and intrinsic dimensions.

    Args:
        value: Base64 string (optionally with data URL prefix) or raw bytes

    Raises:
        UnsupportedAssetFormat: If the value is not a PNG or JPEG image
    """
    if isinstance(value, (bytes, bytearray)):
        data = bytes(value)
    elif isinstance(value, str):
        try:
            data = base64.b64decode(strip_data_url(value.strip()), validate=True)
        except (binascii.Error, ValueError) as e:
            raise UnsupportedAssetFormat(f"Image is not valid base64: {e}")
    else:
        raise UnsupportedAssetFormat(
            f"Image value must be base64 text or bytes, got {type(value).__name__}"
        )

    if data.startswith(PNG_MAGIC):
        image_format = "PNG"
    elif data.startswith(JPEG_MAGIC):
        image_format = "JPEG"
    else:
        raise UnsupportedAssetFormat(
            "Image header does not match a supported encoding (PNG, JPEG)",
            details={"header": data[:8].hex()},
        )

    try:
        with Image.open(io.BytesIO(data)) as img:
            detected = img.format
            width, height = img.size
            img.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise UnsupportedAssetFormat(f"Failed to decode {image_format} image: {e}")

    if detected != image_format:
        raise UnsupportedAssetFormat(
            f"Image header says {image_format} but content decodes as {detected}"
        )

    return DecodedAsset(data=data, width=width, height=height, format=image_format)


def _embed_image(drawing: PageDrawing, field: Field, rect: TargetRectangle, **_) -> None:
    asset = decode_asset(field.value)
    fitted = fit(asset.width, asset.height, rect.width, rect.height)
    drawing.operations.append(ImageDraw(
        x=rect.x + fitted.offset_x,
        y=rect.y + fitted.offset_y,
        width=fitted.width,
        height=fitted.height,
        data=asset.data,
    ))


def _draw_text_line(drawing: PageDrawing, text: str, rect: TargetRectangle) -> None:
    font_size = min(rect.height * FONT_SIZE_RATIO, FONT_SIZE_CAP)
    drawing.operations.append(TextDraw(
        x=rect.x + TEXT_INSET,
        y=rect.y + (rect.height - font_size) / 2,
        text=text,
        font_size=font_size,
    ))


def _embed_text(drawing: PageDrawing, field: Field, rect: TargetRectangle, **_) -> None:
    _draw_text_line(drawing, str(field.value), rect)


def _embed_date(
    drawing: PageDrawing,
    field: Field,
    rect: TargetRectangle,
    date_format: str = DEFAULT_DATE_FORMAT,
    **_,
) -> None:
    rendered = format_date_value(field.value, date_format)
    if rendered is None:
        raise InvalidFieldValue(
            f"Date field {field.id} has a value that is not a date",
            details={"field_id": field.id},
        )
    _draw_text_line(drawing, rendered, rect)


def _embed_checkbox(drawing: PageDrawing, field: Field, rect: TargetRectangle, **_) -> None:
    if not is_truthy(field.value):
        return
    center_x, center_y = rect.center
    size = rect.shorter_side * CHECKMARK_SCALE
    drawing.operations.append(CheckmarkDraw(
        x=center_x - size / 2,
        y=center_y - size / 2,
        size=size,
    ))


def _embed_radio(drawing: PageDrawing, field: Field, rect: TargetRectangle, **_) -> None:
    if not is_truthy(field.value):
        return
    center_x, center_y = rect.center
    drawing.operations.append(CircleDraw(
        center_x=center_x,
        center_y=center_y,
        radius=rect.shorter_side * RADIO_RADIUS_SCALE,
    ))


RENDERERS: Dict[FieldType, Callable[..., None]] = {
    FieldType.SIGNATURE: _embed_image,
    FieldType.IMAGE: _embed_image,
    FieldType.TEXT: _embed_text,
    FieldType.DATE: _embed_date,
    FieldType.CHECKBOX: _embed_checkbox,
    FieldType.RADIO: _embed_radio,
}


def embed_field(
    drawing: PageDrawing,
    field: Field,
    rect: TargetRectangle,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> PageDrawing:
    """
    Render one field into the page drawing.

    Returns the same drawing so passes can be written as a fold.
    """
    renderer = RENDERERS[FieldType(field.field_type)]
    renderer(drawing, field, rect, date_format=date_format)
    return drawing


def processing_order(fields: Iterable[Field]) -> List[Field]:
    """Stable processing order: creation time, then creation sequence, then id."""
    return sorted(fields, key=lambda f: (f.created_at, f.sequence, f.id))


def build_page_drawings(
    fields: Iterable[Field],
    geometries: Iterable[PageGeometry],
    date_format: str = DEFAULT_DATE_FORMAT,
) -> Tuple[List[PageDrawing], List[Field]]:
    """
    Compute draw operations for every valued field of a document.

    Args:
        fields: All fields of the document
        geometries: Page geometry, one per page
        date_format: strftime pattern for date fields

    Returns:
        Tuple of (page drawings ordered by page, fields that were processed)

    Raises:
        EmptyFieldSet: If no field has a value
        MissingPageGeometry: If a field is bound to an unknown page
        InvalidGeometry, UnsupportedAssetFormat, InvalidFieldValue: From the
            transform and the renderers; nothing is partially applied
    """
    pages = {g.page_number: g for g in geometries}
    valued = [f for f in processing_order(fields) if f.has_value]
    if not valued:
        raise EmptyFieldSet("No fields with values to sign")

    drawings: Dict[int, PageDrawing] = {}
    for field in valued:
        page_number = field.position.page_number
        geometry = pages.get(page_number)
        if geometry is None:
            raise MissingPageGeometry(page_number, len(pages))

        rect = to_target_units(field.position, geometry.width_units, geometry.height_units)
        drawing = drawings.get(page_number) or PageDrawing(
            page_number=page_number,
            width_units=geometry.width_units,
            height_units=geometry.height_units,
        )
        drawings[page_number] = embed_field(drawing, field, rect, date_format=date_format)

        logger.debug(
            f"Embedded {FieldType(field.field_type).value} field {field.id} on page {page_number} at "
            f"({rect.x:.1f}, {rect.y:.1f}) size ({rect.width:.1f}x{rect.height:.1f})"
        )

    return [drawings[n] for n in sorted(drawings)], valued
