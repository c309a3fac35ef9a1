"""Data models for component version history."""

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from frameforge.wireframe import WireframeComponent


class ChangeType(str, Enum):
    """Why a version was recorded."""

    CREATED = "created"
    UPDATED = "updated"
    RESTORED = "restored"


def new_version_id() -> str:
    """Generate ``v-<epoch-ms>-<7 random chars>``."""
    return f"v-{int(time.time() * 1000)}-{uuid4().hex[:7]}"


@dataclass
class ComponentVersion:
    """Immutable snapshot of one component.

    Attributes:
        version_id: Unique version identifier.
        component_id: Component the snapshot belongs to.
        wireframe_id: Wireframe the component belongs to.
        timestamp: When the version was recorded.
        change_type: created, updated or restored.
        change_description: Free-text description of the change.
        component_state: Deep copy of the component at record time.
        previous_version_id: For restores, the version that was restored.
    """

    version_id: str
    component_id: str
    wireframe_id: str
    timestamp: datetime
    change_type: ChangeType
    change_description: str
    component_state: WireframeComponent
    previous_version_id: str | None = None

    @classmethod
    def create(
        cls,
        wireframe_id: str,
        component: WireframeComponent,
        change_type: ChangeType,
        change_description: str,
        previous_version_id: str | None = None,
    ) -> "ComponentVersion":
        """Factory method snapshotting ``component`` under a new version id."""
        return cls(
            version_id=new_version_id(),
            component_id=component.id,
            wireframe_id=wireframe_id,
            timestamp=datetime.now(UTC),
            change_type=ChangeType(change_type),
            change_description=change_description,
            component_state=component.model_copy(deep=True),
            previous_version_id=previous_version_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version_id": self.version_id,
            "component_id": self.component_id,
            "wireframe_id": self.wireframe_id,
            "timestamp": self.timestamp.isoformat(),
            "change_type": self.change_type.value,
            "change_description": self.change_description,
            "component_state": self.component_state.model_dump(mode="json"),
            "previous_version_id": self.previous_version_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ComponentVersion":
        return cls(
            version_id=data["version_id"],
            component_id=data["component_id"],
            wireframe_id=data["wireframe_id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            change_type=ChangeType(data["change_type"]),
            change_description=data.get("change_description", ""),
            component_state=WireframeComponent.model_validate(data["component_state"]),
            previous_version_id=data.get("previous_version_id"),
        )

    def summary(self) -> "VersionSummary":
        return VersionSummary(
            version_id=self.version_id,
            timestamp=self.timestamp,
            change_type=self.change_type,
            change_description=self.change_description,
        )


@dataclass
class VersionSummary:
    """Listing entry for a version, without the component state."""

    version_id: str
    timestamp: datetime
    change_type: ChangeType
    change_description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "version_id": self.version_id,
            "timestamp": self.timestamp.isoformat(),
            "change_type": self.change_type.value,
            "change_description": self.change_description,
        }


@dataclass
class VersionHistory:
    """Append-only version log for one (session, wireframe, component)."""

    wireframe_id: str
    component_id: str
    versions: list[ComponentVersion] = field(default_factory=list)
    current_version_id: str | None = None

    def append(self, version: ComponentVersion) -> None:
        self.versions.append(version)
        self.current_version_id = version.version_id

    def find(self, version_id: str) -> ComponentVersion | None:
        for version in self.versions:
            if version.version_id == version_id:
                return version
        return None

    @property
    def current(self) -> ComponentVersion | None:
        return self.versions[-1] if self.versions else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "wireframe_id": self.wireframe_id,
            "component_id": self.component_id,
            "versions": [v.to_dict() for v in self.versions],
            "current_version_id": self.current_version_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VersionHistory":
        return cls(
            wireframe_id=data["wireframe_id"],
            component_id=data["component_id"],
            versions=[ComponentVersion.from_dict(v) for v in data.get("versions", [])],
            current_version_id=data.get("current_version_id"),
        )


__all__ = [
    "ChangeType",
    "ComponentVersion",
    "VersionHistory",
    "VersionSummary",
    "new_version_id",
]
