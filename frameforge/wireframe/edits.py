"""Proportion adjustments and plain-language refinements of components.

Both operations return updated deep copies; callers decide how the
change is recorded and persisted.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any

from .lib import apply_component_update
from .models import ComponentType, Position, Wireframe, WireframeComponent

# Deltas never shrink a side below this.
MIN_ADJUSTED_SIDE = 50
DEFAULT_SPACING = 16

NARROW_WIDTH = 200
WIDE_WIDTH = 300
TALL_HEIGHT = 800

_COLUMNS = re.compile(r"(\d+)\s*columns?")
_SPACING = re.compile(r"spacing\s*:?\s*(\d+)")


# =============================================================================
# Proportions
# =============================================================================


@dataclass
class ProportionAdjustment:
    """Requested size and spacing changes.

    Attributes:
        width_delta: Pixels to add to the width, may be negative.
        height_delta: Pixels to add to the height, may be negative.
        width_percent: Set the width to this share of the canvas (0-100).
        height_percent: Set the height to this share of the canvas (0-100).
        spacing_delta: Pixels to add to the ``spacing`` property.
    """

    width_delta: float | None = None
    height_delta: float | None = None
    width_percent: float | None = None
    height_percent: float | None = None
    spacing_delta: float | None = None

    def is_empty(self) -> bool:
        return all(value is None for value in self.to_dict().values())

    def to_dict(self) -> dict[str, float | None]:
        return {
            "width_delta": self.width_delta,
            "height_delta": self.height_delta,
            "width_percent": self.width_percent,
            "height_percent": self.height_percent,
            "spacing_delta": self.spacing_delta,
        }

    def validate(self) -> None:
        """Raises ValueError for percentages outside 0-100."""
        for name in ("width_percent", "height_percent"):
            value = getattr(self, name)
            if value is not None and not 0 <= value <= 100:
                raise ValueError(f"{name} must be between 0 and 100, got {value:g}")


def adjust_proportions(
    component: WireframeComponent,
    adjustment: ProportionAdjustment,
    canvas_width: int,
    canvas_height: int,
) -> WireframeComponent:
    """Apply a ProportionAdjustment to a copy of ``component``.

    Deltas are applied first and clamped to MIN_ADJUSTED_SIDE. A percent
    then overrides the delta on the same axis and is remembered in the
    ``width_percent``/``height_percent`` properties. A component without
    dimensions starts from 0x0.

    Raises:
        ValueError: If a percentage is out of range.
    """
    adjustment.validate()
    width = component.dimensions.width if component.dimensions else 0
    height = component.dimensions.height if component.dimensions else 0
    properties: dict[str, Any] = {}

    if adjustment.width_delta is not None:
        width = max(MIN_ADJUSTED_SIDE, width + adjustment.width_delta)
    if adjustment.height_delta is not None:
        height = max(MIN_ADJUSTED_SIDE, height + adjustment.height_delta)

    if adjustment.width_percent is not None:
        width = math.floor(canvas_width * adjustment.width_percent / 100)
        properties["width_percent"] = adjustment.width_percent
    if adjustment.height_percent is not None:
        height = math.floor(canvas_height * adjustment.height_percent / 100)
        properties["height_percent"] = adjustment.height_percent

    if adjustment.spacing_delta is not None:
        current = component.properties.get("spacing", DEFAULT_SPACING)
        properties["spacing"] = max(0, current + adjustment.spacing_delta)

    resized = (
        adjustment.width_delta is not None
        or adjustment.height_delta is not None
        or adjustment.width_percent is not None
        or adjustment.height_percent is not None
    )
    return apply_component_update(
        component,
        properties=properties or None,
        dimensions={"width": width, "height": height} if resized else None,
    )


def _translate(component: WireframeComponent, dx: float) -> None:
    if component.position is not None:
        component.position = Position(x=component.position.x + dx, y=component.position.y)
    for child in component.children:
        _translate(child, dx)


def shift_following(
    wireframe: Wireframe, component_id: str, delta: float
) -> list[WireframeComponent]:
    """Copies of the top-level components right of ``component_id``, moved by ``delta``.

    Only positioned siblings whose x is greater than the target's are
    moved, together with their children, so columns to the right follow
    a width change. Nested targets move nothing. The wireframe itself is
    not modified.
    """
    target = next((c for c in wireframe.components if c.id == component_id), None)
    if target is None or target.position is None or delta == 0:
        return []

    shifted = []
    for component in wireframe.components:
        if component.id == component_id or component.position is None:
            continue
        if component.position.x > target.position.x:
            moved = component.model_copy(deep=True)
            _translate(moved, delta)
            shifted.append(moved)
    return shifted


# =============================================================================
# Refinements
# =============================================================================


@dataclass
class Refinement:
    """Changes understood from a refinement request."""

    properties: dict[str, Any] = field(default_factory=dict)
    dimensions: dict[str, float] = field(default_factory=dict)
    new_slots: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.properties or self.dimensions or self.new_slots)

    def describe(self) -> list[str]:
        changes = [f"{key} -> {value:g}" for key, value in self.dimensions.items()]
        changes += [f"{key} -> {value}" for key, value in self.properties.items()]
        changes += [f"added {slot} section" for slot in self.new_slots]
        return changes


def parse_refinement(description: str) -> Refinement:
    """Understand a short instruction such as "make it narrower" or "4 columns".

    Recognized phrases:
        - "profile section" / "user section": add a profile content child
        - "narrower" / "smaller width", "wider" / "larger width"
        - "taller" / "larger height"
        - "<n> columns", "spacing <n>"
    """
    normalized = description.lower().strip()
    refinement = Refinement()

    if "profile section" in normalized or "user section" in normalized:
        refinement.new_slots.append("profile")

    if "narrower" in normalized or "smaller width" in normalized:
        refinement.dimensions["width"] = NARROW_WIDTH
    if "wider" in normalized or "larger width" in normalized:
        refinement.dimensions["width"] = WIDE_WIDTH
    if "taller" in normalized or "larger height" in normalized:
        refinement.dimensions["height"] = TALL_HEIGHT

    if match := _COLUMNS.search(normalized):
        refinement.properties["columns"] = int(match.group(1))
    if match := _SPACING.search(normalized):
        refinement.properties["spacing"] = int(match.group(1))

    return refinement


def apply_refinement(
    component: WireframeComponent, refinement: Refinement
) -> WireframeComponent:
    """Apply a Refinement to a copy of ``component``.

    Missing dimensions start from 0x0. A slot child is only added once;
    its id is ``<component id>-<slot>``.
    """
    dimensions = None
    if refinement.dimensions:
        dimensions = dict(refinement.dimensions)
        if component.dimensions is None:
            dimensions = {"width": 0, "height": 0, **dimensions}

    refined = apply_component_update(
        component,
        properties=refinement.properties or None,
        dimensions=dimensions,
    )

    existing = {child.id for child in refined.children}
    for slot in refinement.new_slots:
        child_id = f"{refined.id}-{slot}"
        if child_id in existing:
            continue
        refined.children.append(
            WireframeComponent(
                id=child_id, type=ComponentType.CONTENT, properties={"slot": slot}
            )
        )
    return refined


__all__ = [
    "MIN_ADJUSTED_SIDE",
    "ProportionAdjustment",
    "Refinement",
    "adjust_proportions",
    "apply_refinement",
    "parse_refinement",
    "shift_following",
]
