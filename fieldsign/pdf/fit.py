"""
Aspect-preserving fit of an asset inside a box (CSS object-fit: contain).
"""
from dataclasses import dataclass

from fieldsign.errors import InvalidGeometry


@dataclass(frozen=True)
class FitResult:
    """Fitted size and the offsets that center it inside the box."""
    width: float
    height: float
    offset_x: float
    offset_y: float


def fit(
    asset_width: float,
    asset_height: float,
    box_width: float,
    box_height: float,
) -> FitResult:
    """
    Largest centered rectangle with the asset's aspect ratio that fits the box.

    Raises:
        InvalidGeometry: If any dimension is zero or negative
    """
    if asset_width <= 0 or asset_height <= 0:
        raise InvalidGeometry(
            f"Asset must have a positive size, got {asset_width}x{asset_height}",
            details={"asset_width": asset_width, "asset_height": asset_height},
        )
    if box_width <= 0 or box_height <= 0:
        raise InvalidGeometry(
            f"Box must have a positive size, got {box_width}x{box_height}",
            details={"box_width": box_width, "box_height": box_height},
        )

    asset_ratio = asset_width / asset_height
    box_ratio = box_width / box_height

    if asset_ratio > box_ratio:
        # Asset is wider than the box - constrained by width
        fit_width = box_width
        fit_height = min(box_width / asset_ratio, box_height)
    else:
        # Asset is taller (or same ratio) - constrained by height
        fit_height = box_height
        fit_width = min(box_height * asset_ratio, box_width)

    return FitResult(
        width=fit_width,
        height=fit_height,
        offset_x=(box_width - fit_width) / 2,
        offset_y=(box_height - fit_height) / 2,
    )
