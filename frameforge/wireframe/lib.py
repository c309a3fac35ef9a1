"""Tree helpers for wireframe components."""

import json
from collections.abc import Iterable, Iterator
from typing import Any

from .models import ComponentType, Dimensions, Position, Wireframe, WireframeComponent


def iter_components(
    components: Iterable[WireframeComponent],
) -> Iterator[WireframeComponent]:
    """Walk a component forest depth-first, parents before children."""
    for component in components:
        yield component
        yield from iter_components(component.children)


def find_component(
    wireframe: Wireframe, component_id: str
) -> WireframeComponent | None:
    for component in iter_components(wireframe.components):
        if component.id == component_id:
            return component
    return None


def find_components_by_type(
    wireframe: Wireframe, component_type: ComponentType | str
) -> list[WireframeComponent]:
    wanted = ComponentType(component_type).value
    return [c for c in iter_components(wireframe.components) if c.type == wanted]


def _replace_in(
    components: list[WireframeComponent], replacement: WireframeComponent
) -> bool:
    for i, component in enumerate(components):
        if component.id == replacement.id:
            components[i] = replacement
            return True
        if _replace_in(component.children, replacement):
            return True
    return False


def replace_component(wireframe: Wireframe, replacement: WireframeComponent) -> bool:
    """Swap the component with the same id for ``replacement``, in place.

    Returns:
        True if a component was replaced, False if the id is unknown.
    """
    replaced = _replace_in(wireframe.components, replacement)
    if replaced:
        wireframe.touch()
    return replaced


def apply_component_update(
    component: WireframeComponent,
    properties: dict[str, Any] | None = None,
    dimensions: dict[str, float] | None = None,
    position: dict[str, float] | None = None,
) -> WireframeComponent:
    """Return an updated deep copy of a component.

    Properties are merged key by key; a ``None`` value removes the key.
    Dimensions and position are merged onto the existing values and
    validated as a whole.

    Raises:
        ValueError: If the merged dimensions or position are incomplete
            or invalid.
    """
    updated = component.model_copy(deep=True)

    if properties:
        for key, value in properties.items():
            if value is None:
                updated.properties.pop(key, None)
            else:
                updated.properties[key] = value

    if dimensions:
        current = updated.dimensions.model_dump() if updated.dimensions else {}
        updated.dimensions = Dimensions.model_validate({**current, **dimensions})

    if position:
        current = updated.position.model_dump() if updated.position else {}
        updated.position = Position.model_validate({**current, **position})

    return updated


def _fmt(value: float) -> str:
    return f"{value:g}"


def describe_component(component: WireframeComponent) -> str:
    """Human-readable summary of one component."""
    lines = [f"Component: {component.type}", f"ID: {component.id}"]

    if component.position:
        lines.append(
            f"Position: ({_fmt(component.position.x)}, {_fmt(component.position.y)})"
        )
    if component.dimensions:
        lines.append(
            f"Dimensions: {_fmt(component.dimensions.width)}"
            f"x{_fmt(component.dimensions.height)}"
        )
    if component.properties:
        lines.append("Properties:")
        for key, value in component.properties.items():
            lines.append(f"  - {key}: {json.dumps(value)}")
    if component.children:
        lines.append(f"Children: {len(component.children)} component(s)")
        for child in component.children:
            lines.append(f"  - {child.type} ({child.id})")

    return "\n".join(lines)


def render_outline(wireframe: Wireframe) -> str:
    """Indented text tree of a wireframe, one component per line."""
    lines = [
        f"Wireframe {wireframe.id} "
        f"({wireframe.metadata.width}x{wireframe.metadata.height})"
    ]

    def visit(components: list[WireframeComponent], depth: int) -> None:
        for component in components:
            size = ""
            if component.dimensions:
                size = (
                    f" {_fmt(component.dimensions.width)}"
                    f"x{_fmt(component.dimensions.height)}"
                )
            lines.append(f"{'  ' * depth}- {component.id} [{component.type}]{size}")
            visit(component.children, depth + 1)

    visit(wireframe.components, 1)
    return "\n".join(lines)


__all__ = [
    "iter_components",
    "find_component",
    "find_components_by_type",
    "replace_component",
    "apply_component_update",
    "describe_component",
    "render_outline",
]
