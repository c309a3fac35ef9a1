"""Dimension and layout validation for generation requests."""

from dataclasses import dataclass, field

from frameforge.session.models import AssetType
from frameforge.wireframe.models import ComponentType, WireframeComponent

IMAGE_MIN_SIZE = 64
IMAGE_MAX_SIZE = 2048

ICON_MIN_SIZE = 64
ICON_MAX_SIZE = 512
ICON_PREFERRED_SIZE = 256
ICON_ASPECT_TOLERANCE = 0.2

BANNER_WIDTH_RANGE = (800, 2000)
BANNER_HEIGHT_RANGE = (200, 600)
BANNER_ASPECT_RANGE = (2.5, 4.0)
BANNER_PREFERRED = (1200, 400)

MOCKUP_DIMENSION_RANGE = (400, 2000)
MOCKUP_PREFERRED = (1920, 1080)


@dataclass
class DimensionCheck:
    """Outcome of a dimension check.

    Attributes:
        valid: True if the dimensions are acceptable.
        reason: Why they were rejected.
        recommended: Suggested (width, height) when rejected.
    """

    valid: bool
    reason: str | None = None
    recommended: tuple[int, int] | None = None


@dataclass
class LayoutCheck:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def validate_image_dimensions(width: int, height: int) -> DimensionCheck:
    """Check free-form generation dimensions against the engine limits."""
    for label, value in (("width", width), ("height", height)):
        if not IMAGE_MIN_SIZE <= value <= IMAGE_MAX_SIZE:
            return DimensionCheck(
                valid=False,
                reason=(
                    f"Image {label} must be between {IMAGE_MIN_SIZE} and "
                    f"{IMAGE_MAX_SIZE}px (got {value})"
                ),
            )
    return DimensionCheck(valid=True)


def _within(value: float, bounds: tuple[float, float]) -> bool:
    return bounds[0] <= value <= bounds[1]


def validate_asset_dimensions(
    asset_type: AssetType | str, width: int, height: int
) -> DimensionCheck:
    """Check dimensions against the rules for an asset type.

    Icons must be roughly square within 64..512px, banners wide
    (2.5:1 to 4:1) within fixed bounds, mockups at least 400px per side.
    """
    kind = AssetType(asset_type)

    if kind == AssetType.ICON:
        if not (_within(width, (ICON_MIN_SIZE, ICON_MAX_SIZE))
                and _within(height, (ICON_MIN_SIZE, ICON_MAX_SIZE))):
            reason = f"Icon dimensions must be between {ICON_MIN_SIZE}px and {ICON_MAX_SIZE}px"
        elif abs(width / height - 1) > ICON_ASPECT_TOLERANCE:
            reason = "Icons should be roughly square (aspect ratio 1:1)"
        else:
            return DimensionCheck(valid=True)
        return DimensionCheck(
            valid=False,
            reason=reason,
            recommended=(ICON_PREFERRED_SIZE, ICON_PREFERRED_SIZE),
        )

    if kind == AssetType.BANNER:
        if (_within(width, BANNER_WIDTH_RANGE)
                and _within(height, BANNER_HEIGHT_RANGE)
                and _within(width / height, BANNER_ASPECT_RANGE)):
            return DimensionCheck(valid=True)
        return DimensionCheck(
            valid=False,
            reason=(
                f"Banner width should be {BANNER_WIDTH_RANGE[0]}-{BANNER_WIDTH_RANGE[1]}px "
                f"and height {BANNER_HEIGHT_RANGE[0]}-{BANNER_HEIGHT_RANGE[1]}px, "
                "with ~3:1 aspect ratio"
            ),
            recommended=BANNER_PREFERRED,
        )

    if _within(width, MOCKUP_DIMENSION_RANGE) and _within(height, MOCKUP_DIMENSION_RANGE):
        return DimensionCheck(valid=True)
    return DimensionCheck(
        valid=False,
        reason=(
            f"Mockup dimensions should be at least {MOCKUP_DIMENSION_RANGE[0]}px "
            "in each dimension"
        ),
        recommended=MOCKUP_PREFERRED,
    )


def validate_layout_proportions(
    canvas_width: float,
    canvas_height: float,
    components: list[WireframeComponent],
) -> LayoutCheck:
    """Check that edge components leave room for content.

    Only top-level components are considered.
    """
    check = LayoutCheck()

    def width_of(c: WireframeComponent) -> float:
        return c.dimensions.width if c.dimensions else 0.0

    def height_of(c: WireframeComponent | None) -> float:
        return c.dimensions.height if c and c.dimensions else 0.0

    sidebar_width = sum(width_of(c) for c in components if c.type == ComponentType.SIDEBAR)
    if sidebar_width >= canvas_width:
        check.errors.append(
            f"Sidebar width ({sidebar_width:g}px) exceeds canvas width ({canvas_width:g}px)"
        )
    if sidebar_width > canvas_width * 0.6:
        check.warnings.append(
            f"Sidebars occupy more than 60% of canvas width "
            f"({sidebar_width:g}px / {canvas_width:g}px)"
        )

    header = next((c for c in components if c.type == ComponentType.HEADER), None)
    footer = next((c for c in components if c.type == ComponentType.FOOTER), None)
    reserved = height_of(header) + height_of(footer)
    if reserved >= canvas_height:
        check.errors.append(
            f"Header + footer height ({reserved:g}px) exceeds canvas height ({canvas_height:g}px)"
        )
    if reserved > canvas_height * 0.4:
        check.warnings.append("Header and footer occupy more than 40% of canvas height")

    return check


__all__ = [
    "DimensionCheck",
    "LayoutCheck",
    "validate_image_dimensions",
    "validate_asset_dimensions",
    "validate_layout_proportions",
]
