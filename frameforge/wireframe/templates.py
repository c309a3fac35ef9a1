"""Wireframe layout templates.

Matching a free-text description to a template is a pure function; so is
laying a template out on a canvas. Neither touches session state.
"""

from dataclasses import dataclass, field
from typing import Any, Literal

from .models import (
    ComponentType,
    Dimensions,
    Position,
    Wireframe,
    WireframeComponent,
)

Placement = Literal["left", "right", "top", "bottom", "center"]

DEFAULT_CANVAS = (1200, 800)
GRID_ROWS = 2


@dataclass(frozen=True)
class ComponentSpec:
    """How one top-level component of a template is sized and placed."""

    type: ComponentType
    width_px: int | None = None
    height_px: int | None = None
    width_percent: float | None = None
    position: Placement = "center"
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WireframeTemplate:
    """A named layout pattern."""

    name: str
    description: str
    layout_pattern: str
    components: tuple[ComponentSpec, ...]
    width: int = DEFAULT_CANVAS[0]
    height: int = DEFAULT_CANVAS[1]


# =============================================================================
# Template Table
# =============================================================================

WIREFRAME_TEMPLATES: dict[str, WireframeTemplate] = {
    "dashboard": WireframeTemplate(
        name="Dashboard",
        description="Standard dashboard layout with sidebar, header, and card grid",
        layout_pattern="sidebar-header-grid",
        components=(
            ComponentSpec(ComponentType.SIDEBAR, width_px=240, position="left"),
            ComponentSpec(ComponentType.HEADER, height_px=64, position="top"),
            ComponentSpec(ComponentType.GRID, properties={"columns": 3, "spacing": 16}),
        ),
    ),
    "sidebar-header-content": WireframeTemplate(
        name="Sidebar Header Content",
        description="Classic layout with sidebar, header, and main content area",
        layout_pattern="sidebar-header-content",
        components=(
            ComponentSpec(ComponentType.SIDEBAR, width_px=240, position="left"),
            ComponentSpec(ComponentType.HEADER, height_px=64, position="top"),
            ComponentSpec(ComponentType.CONTENT),
        ),
    ),
    "split-view": WireframeTemplate(
        name="Split View",
        description="Two-panel layout for comparison or detail views",
        layout_pattern="split-content",
        components=(
            ComponentSpec(ComponentType.HEADER, height_px=64, position="top"),
            ComponentSpec(ComponentType.CONTAINER, width_percent=50, position="left"),
            ComponentSpec(ComponentType.CONTAINER, width_percent=50, position="right"),
        ),
    ),
    "card-grid": WireframeTemplate(
        name="Card Grid",
        description="Simple card grid layout without sidebar or header",
        layout_pattern="grid",
        components=(
            ComponentSpec(ComponentType.GRID, properties={"columns": 4, "spacing": 24}),
        ),
    ),
    "header-footer": WireframeTemplate(
        name="Header Footer",
        description="Basic layout with header, content, and footer",
        layout_pattern="header-content-footer",
        components=(
            ComponentSpec(ComponentType.HEADER, height_px=64, position="top"),
            ComponentSpec(ComponentType.CONTENT),
            ComponentSpec(ComponentType.FOOTER, height_px=48, position="bottom"),
        ),
    ),
    "full-sidebar": WireframeTemplate(
        name="Full Sidebar",
        description="Layout with prominent sidebar and content area",
        layout_pattern="sidebar-content",
        components=(
            ComponentSpec(ComponentType.SIDEBAR, width_px=320, position="left"),
            ComponentSpec(ComponentType.CONTENT),
        ),
    ),
    "minimal": WireframeTemplate(
        name="Minimal",
        description="Single content area for focused interfaces",
        layout_pattern="content",
        components=(ComponentSpec(ComponentType.CONTENT),),
    ),
}


def get_template(name: str) -> WireframeTemplate | None:
    return WIREFRAME_TEMPLATES.get(name.lower())


def list_templates() -> list[str]:
    return list(WIREFRAME_TEMPLATES)


def match_template(description: str) -> WireframeTemplate | None:
    """Pick a template by keywords in the description.

    Rules are checked in order; the first match wins. Returns None when no
    keyword applies.
    """
    text = description.lower()

    if "dashboard" in text:
        return WIREFRAME_TEMPLATES["dashboard"]
    if "split" in text:
        return WIREFRAME_TEMPLATES["split-view"]
    if "card" in text and "grid" in text:
        return WIREFRAME_TEMPLATES["card-grid"]
    if "minimal" in text or "simple" in text:
        return WIREFRAME_TEMPLATES["minimal"]
    if "sidebar" in text and "header" in text:
        return WIREFRAME_TEMPLATES["sidebar-header-content"]
    if "sidebar" in text:
        return WIREFRAME_TEMPLATES["full-sidebar"]
    if "header" in text and "footer" in text:
        return WIREFRAME_TEMPLATES["header-footer"]
    return None


# =============================================================================
# Layout
# =============================================================================


def _grid_cards(
    grid_id: str,
    origin: tuple[float, float],
    size: tuple[float, float],
    columns: int,
    spacing: float,
) -> list[WireframeComponent]:
    """Fill a grid area with GRID_ROWS rows of equally sized cards."""
    x0, y0 = origin
    width, height = size
    card_w = max(0.0, (width - spacing * (columns + 1)) / columns)
    card_h = max(0.0, (height - spacing * (GRID_ROWS + 1)) / GRID_ROWS)

    cards = []
    for row in range(GRID_ROWS):
        for col in range(columns):
            number = row * columns + col + 1
            cards.append(
                WireframeComponent(
                    id=f"{grid_id}-card-{number}",
                    type=ComponentType.CARD,
                    position=Position(
                        x=x0 + spacing + col * (card_w + spacing),
                        y=y0 + spacing + row * (card_h + spacing),
                    ),
                    dimensions=Dimensions(width=card_w, height=card_h),
                )
            )
    return cards


def layout_template(
    template: WireframeTemplate,
    width: int | None = None,
    height: int | None = None,
) -> list[WireframeComponent]:
    """Lay a template out on a canvas.

    Edge components (left/right sidebars, top headers, bottom footers)
    claim their fixed size first; everything else shares the remaining
    central area. Percent widths split the central area horizontally.
    """
    canvas_w = width or template.width
    canvas_h = height or template.height
    specs = template.components

    sidebars = [s for s in specs if s.type == ComponentType.SIDEBAR]
    left = sum(s.width_px or 0 for s in sidebars if s.position == "left")
    right = sum(s.width_px or 0 for s in sidebars if s.position == "right")
    top = sum(s.height_px or 0 for s in specs if s.position == "top")
    bottom = sum(s.height_px or 0 for s in specs if s.position == "bottom")

    main_x, main_y = float(left), float(top)
    main_w = float(max(0, canvas_w - left - right))
    main_h = float(max(0, canvas_h - top - bottom))

    counters: dict[str, int] = {}
    percent_cursor = main_x
    components: list[WireframeComponent] = []

    for spec in specs:
        kind = ComponentType(spec.type).value
        counters[kind] = counters.get(kind, 0) + 1
        component_id = f"{kind}-{counters[kind]}"

        if spec.type == ComponentType.SIDEBAR:
            w = float(spec.width_px or 240)
            x = 0.0 if spec.position == "left" else float(canvas_w) - w
            origin, size = (x, 0.0), (w, float(canvas_h))
        elif spec.position == "top":
            origin, size = (main_x, 0.0), (main_w, float(spec.height_px or 64))
        elif spec.position == "bottom":
            h = float(spec.height_px or 48)
            origin, size = (main_x, float(canvas_h) - h), (main_w, h)
        elif spec.width_percent is not None:
            w = main_w * spec.width_percent / 100
            origin, size = (percent_cursor, main_y), (w, main_h)
            percent_cursor += w
        else:
            origin, size = (main_x, main_y), (main_w, main_h)

        children: list[WireframeComponent] = []
        if spec.type == ComponentType.GRID:
            children = _grid_cards(
                component_id,
                origin,
                size,
                columns=int(spec.properties.get("columns", 3)),
                spacing=float(spec.properties.get("spacing", 16)),
            )

        components.append(
            WireframeComponent(
                id=component_id,
                type=spec.type,
                position=Position(x=origin[0], y=origin[1]),
                dimensions=Dimensions(width=size[0], height=size[1]),
                properties=dict(spec.properties),
                children=children,
            )
        )

    return components


def build_wireframe(
    description: str,
    session_id: str,
    width: int | None = None,
    height: int | None = None,
) -> tuple[Wireframe, WireframeTemplate]:
    """Build a new wireframe from a description.

    Falls back to the minimal template when no keyword matches.

    Returns:
        The wireframe and the template that produced it.
    """
    template = match_template(description) or WIREFRAME_TEMPLATES["minimal"]
    canvas_w = width or template.width
    canvas_h = height or template.height
    wireframe = Wireframe.create(
        session_id=session_id,
        description=description,
        components=layout_template(template, canvas_w, canvas_h),
        width=canvas_w,
        height=canvas_h,
    )
    return wireframe, template


__all__ = [
    "ComponentSpec",
    "WireframeTemplate",
    "WIREFRAME_TEMPLATES",
    "get_template",
    "list_templates",
    "match_template",
    "layout_template",
    "build_wireframe",
]
