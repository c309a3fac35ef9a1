"""Request validation: image bounds, asset rules and layout proportions."""

from .lib import (
    DimensionCheck,
    LayoutCheck,
    validate_asset_dimensions,
    validate_image_dimensions,
    validate_layout_proportions,
)

__all__ = [
    "DimensionCheck",
    "LayoutCheck",
    "validate_image_dimensions",
    "validate_asset_dimensions",
    "validate_layout_proportions",
]
