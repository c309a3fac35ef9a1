"""Wireframe tree models.

A Wireframe owns an ordered forest of WireframeComponents. Children are
exclusively owned by their parent, so the structure is always a tree.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


class ComponentType(str, Enum):
    """Closed vocabulary of wireframe component kinds."""

    SIDEBAR = "sidebar"
    HEADER = "header"
    FOOTER = "footer"
    GRID = "grid"
    CARD = "card"
    CONTAINER = "container"
    CONTENT = "content"


class Position(BaseModel):
    """Top-left corner on the canvas, in pixels."""

    x: float = Field(..., description="Horizontal offset in pixels")
    y: float = Field(..., description="Vertical offset in pixels")


class Dimensions(BaseModel):
    """Component size in pixels."""

    width: float = Field(..., ge=0, description="Width in pixels")
    height: float = Field(..., ge=0, description="Height in pixels")


class WireframeComponent(BaseModel):
    """Recursive component node.

    Attributes:
        id: Identifier, unique within its wireframe.
        type: Component kind.
        position: Optional canvas position.
        dimensions: Optional size.
        properties: Open property bag (columns, spacing, slots, labels...).
        children: Nested components owned by this one.
    """

    id: str = Field(..., min_length=1, description="Component identifier")
    type: ComponentType = Field(..., description="Component kind")
    position: Position | None = Field(default=None)
    dimensions: Dimensions | None = Field(default=None)
    properties: dict[str, Any] = Field(default_factory=dict)
    children: list["WireframeComponent"] = Field(default_factory=list)

    model_config = {
        "use_enum_values": True,
    }


class WireframeMetadata(BaseModel):
    """Canvas size and timestamps."""

    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Wireframe(BaseModel):
    """A wireframe belonging to one session."""

    id: str
    session_id: str
    description: str = ""
    components: list[WireframeComponent] = Field(default_factory=list)
    metadata: WireframeMetadata

    @model_validator(mode="after")
    def _check_unique_ids(self) -> "Wireframe":
        seen: set[str] = set()
        stack = list(self.components)
        while stack:
            component = stack.pop()
            if component.id in seen:
                raise ValueError(f"Duplicate component id: {component.id}")
            seen.add(component.id)
            stack.extend(component.children)
        return self

    @classmethod
    def create(
        cls,
        session_id: str,
        description: str,
        components: list[WireframeComponent],
        width: int,
        height: int,
    ) -> "Wireframe":
        """Factory method to create a new wireframe with generated ID."""
        return cls(
            id=f"wf-{uuid4().hex[:12]}",
            session_id=session_id,
            description=description,
            components=components,
            metadata=WireframeMetadata(width=width, height=height),
        )

    def touch(self) -> None:
        """Update the updated_at timestamp."""
        self.metadata.updated_at = datetime.now(UTC)


__all__ = [
    "ComponentType",
    "Position",
    "Dimensions",
    "WireframeComponent",
    "WireframeMetadata",
    "Wireframe",
]
