"""
Coordinate transformations between the editing space and PDF space.

Editing space (browser/image): origin at top-left, Y increases downward.
Positions are stored as fractions (0-1) of the page so they survive any
render resolution.

PDF space: origin at bottom-left, Y increases upward, units are points
(1 point = 1/72 inch). Drawing primitives are positioned by their lower-left
corner.
"""
from dataclasses import dataclass, replace
from typing import Dict, Tuple

from fieldsign.errors import InvalidGeometry
from fieldsign.models import FieldType

# Tolerance for the "field stays on its page" invariant
POSITION_TOLERANCE = 1e-9


@dataclass(frozen=True)
class NormalizedPosition:
    """
    Resolution-independent placement of a field.

    All values are fractions of the page width/height, measured from the
    top-left corner of the page.
    """
    page_number: int  # 1-indexed page number
    x_percent: float
    y_percent: float
    width_percent: float
    height_percent: float

    def to_dict(self) -> dict:
        return {
            "page_number": self.page_number,
            "x_percent": self.x_percent,
            "y_percent": self.y_percent,
            "width_percent": self.width_percent,
            "height_percent": self.height_percent,
        }


@dataclass(frozen=True)
class PixelRect:
    """Rectangle in container pixels, origin top-left."""
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class ContainerSize:
    """Size of the rendered page container in pixels."""
    width: float
    height: float


@dataclass(frozen=True)
class PageGeometry:
    """Size of a PDF page in points, as parsed from the document."""
    page_number: int
    width_units: float
    height_units: float


@dataclass(frozen=True)
class TargetRectangle:
    """Rectangle in PDF points, origin bottom-left."""
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    @property
    def shorter_side(self) -> float:
        return min(self.width, self.height)


# Default sizes for newly dropped fields (fractions of the page)
DEFAULT_FIELD_SIZES: Dict[FieldType, Tuple[float, float]] = {
    FieldType.SIGNATURE: (0.25, 0.08),
    FieldType.TEXT: (0.2, 0.04),
    FieldType.DATE: (0.15, 0.04),
    FieldType.CHECKBOX: (0.03, 0.03),
    FieldType.RADIO: (0.03, 0.03),
    FieldType.IMAGE: (0.2, 0.15),
}


def _require_positive_size(width: float, height: float, what: str) -> None:
    if not width > 0 or not height > 0:
        raise InvalidGeometry(
            f"{what} must have a positive size, got {width}x{height}",
            details={"width": width, "height": height},
        )


def to_normalized(
    rect: PixelRect,
    container: ContainerSize,
    page_number: int = 1,
) -> NormalizedPosition:
    """
    Convert a pixel rectangle to fractions of its container.

    Used when a field is dropped, dragged or resized in the editor.

    Raises:
        InvalidGeometry: If the container has zero (or negative) area
    """
    _require_positive_size(container.width, container.height, "Container")

    return NormalizedPosition(
        page_number=page_number,
        x_percent=rect.x / container.width,
        y_percent=rect.y / container.height,
        width_percent=rect.width / container.width,
        height_percent=rect.height / container.height,
    )


def to_pixels(position: NormalizedPosition, container: ContainerSize) -> PixelRect:
    """
    Convert a normalized position back to pixels of the current container.

    Both spaces share the top-left origin, so there is no axis flip.
    """
    return PixelRect(
        x=position.x_percent * container.width,
        y=position.y_percent * container.height,
        width=position.width_percent * container.width,
        height=position.height_percent * container.height,
    )


def to_target_units(
    position: NormalizedPosition,
    page_width_units: float,
    page_height_units: float,
) -> TargetRectangle:
    """
    Transform a normalized position to a PDF rectangle in points.

    The Y axis is inverted: y_percent is the distance of the box top from the
    page top, while PDF places a box by its lower-left corner measured from
    the page bottom. The box height is subtracted so the box does not shift
    upward by its own height.

    Raises:
        InvalidGeometry: If the page has zero area or a percentage lies
            outside [0, 1]
    """
    _require_positive_size(page_width_units, page_height_units, "Page")

    for name in ("x_percent", "y_percent", "width_percent", "height_percent"):
        value = getattr(position, name)
        if not 0 <= value <= 1:
            raise InvalidGeometry(
                f"{name} must be between 0 and 1, got {value}",
                details={name: value},
            )

    pdf_x = position.x_percent * page_width_units
    pdf_width = position.width_percent * page_width_units
    pdf_height = position.height_percent * page_height_units

    # Flip Y: distance from top -> distance from bottom, then drop by box height
    pdf_y = page_height_units - (position.y_percent * page_height_units) - pdf_height

    return TargetRectangle(x=pdf_x, y=pdf_y, width=pdf_width, height=pdf_height)


def to_top_left(rect: TargetRectangle, page_height_units: float) -> Tuple[float, float, float, float]:
    """
    Convert a bottom-left PDF rectangle to (x0, y0, x1, y1) with top-left origin.

    PyMuPDF addresses page content from the top-left corner.
    """
    y_top = page_height_units - rect.y - rect.height
    return rect.x, y_top, rect.x + rect.width, y_top + rect.height


def clamp(position: NormalizedPosition) -> NormalizedPosition:
    """
    Re-project a position so the field stays on its page.

    Order: the offset is clamped into the page first, then width/height are
    reduced to fit from that offset. A width or height of 1 or more caps to
    exactly 1 and forces the corresponding offset to 0. Width and height are
    never increased and the result is idempotent.
    """
    x, width = _clamp_axis(position.x_percent, position.width_percent)
    y, height = _clamp_axis(position.y_percent, position.height_percent)
    return replace(
        position,
        x_percent=x,
        y_percent=y,
        width_percent=width,
        height_percent=height,
    )


def _clamp_axis(offset: float, size: float) -> Tuple[float, float]:
    if size >= 1:
        return 0.0, 1.0
    size = max(size, 0.0)
    offset = min(max(offset, 0.0), 1.0)
    size = min(size, 1.0 - offset)
    return offset, size


def validate_position(position: NormalizedPosition) -> None:
    """
    Validate a position before it is stored on a field.

    Raises:
        InvalidGeometry: If the page number is not positive, a value is
            outside [0, 1], the size is not positive or the box extends past
            the page edge
    """
    if not isinstance(position.page_number, int) or position.page_number < 1:
        raise InvalidGeometry(
            f"Invalid page number: {position.page_number}. Must be an integer >= 1.",
            details={"page_number": position.page_number},
        )

    values = {
        "x_percent": position.x_percent,
        "y_percent": position.y_percent,
        "width_percent": position.width_percent,
        "height_percent": position.height_percent,
    }
    for name, value in values.items():
        if not 0 <= value <= 1:
            raise InvalidGeometry(
                "Position percentages must be between 0 and 1, "
                f"{name}={value}",
                details={name: value},
            )

    if position.width_percent <= 0 or position.height_percent <= 0:
        raise InvalidGeometry(
            f"Field size must be positive, got "
            f"{position.width_percent}x{position.height_percent}",
            details={
                "width_percent": position.width_percent,
                "height_percent": position.height_percent,
            },
        )

    if position.x_percent + position.width_percent > 1 + POSITION_TOLERANCE:
        raise InvalidGeometry(
            f"Field extends past the right page edge: "
            f"x({position.x_percent}) + width({position.width_percent}) > 1",
            details={"x_percent": position.x_percent, "width_percent": position.width_percent},
        )

    if position.y_percent + position.height_percent > 1 + POSITION_TOLERANCE:
        raise InvalidGeometry(
            f"Field extends past the bottom page edge: "
            f"y({position.y_percent}) + height({position.height_percent}) > 1",
            details={"y_percent": position.y_percent, "height_percent": position.height_percent},
        )


def default_position(
    field_type: FieldType,
    page_number: int,
    x_percent: float,
    y_percent: float,
) -> NormalizedPosition:
    """Position of the default size for a field type dropped at (x, y)."""
    width, height = DEFAULT_FIELD_SIZES[field_type]
    return clamp(NormalizedPosition(
        page_number=page_number,
        x_percent=x_percent,
        y_percent=y_percent,
        width_percent=width,
        height_percent=height,
    ))
