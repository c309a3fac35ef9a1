"""Data models for generation sessions.

A Session is persisted as ``session.json`` with snake_case keys. Image
payloads are either inline base64 (``image_base64``) or a path relative
to the session directory (``image_path``); saving always converts the
former into the latter.
"""

import base64
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import uuid4

from frameforge.wireframe import Wireframe

# =============================================================================
# Image Payloads
# =============================================================================


@dataclass
class InlineImage:
    """Base64 image data held in memory, not yet written to disk."""

    data: str

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.data)

    def materialize(self, path: Path) -> "StoredImage":
        """The stored form of this image once its bytes live at ``path``."""
        return StoredImage(path=path)


@dataclass
class StoredImage:
    """Image persisted on disk.

    Attributes:
        path: Location relative to the session directory.
        cached: Base64 data loaded on first read. Never serialized.
    """

    path: Path
    cached: str | None = field(default=None, compare=False, repr=False)


ImagePayload = InlineImage | StoredImage


# =============================================================================
# Generation Results
# =============================================================================


@dataclass
class GenerationMetadata:
    """Parameters and timing of one generation."""

    prompt: str
    width: int
    height: int
    steps: int
    guidance_scale: float
    latency_ms: float
    engine_name: str
    model_name: str
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    seed: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GenerationMetadata":
        return cls(
            prompt=data.get("prompt", ""),
            width=int(data["width"]),
            height=int(data["height"]),
            steps=int(data.get("steps", 0)),
            guidance_scale=float(data.get("guidance_scale", 0.0)),
            latency_ms=float(data.get("latency_ms", 0.0)),
            engine_name=data.get("engine_name", ""),
            model_name=data.get("model_name", ""),
            timestamp=data.get("timestamp", ""),
            seed=data.get("seed"),
        )


@dataclass
class GenerationResult:
    """An image and the metadata it was generated with."""

    image: ImagePayload | None
    metadata: GenerationMetadata

    @classmethod
    def inline(cls, image_base64: str, metadata: GenerationMetadata) -> "GenerationResult":
        return cls(image=InlineImage(image_base64), metadata=metadata)

    @property
    def needs_migration(self) -> bool:
        return isinstance(self.image, InlineImage)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"metadata": self.metadata.to_dict()}
        if isinstance(self.image, InlineImage):
            data["image_base64"] = self.image.data
        elif isinstance(self.image, StoredImage):
            data["image_path"] = self.image.path.as_posix()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GenerationResult":
        image: ImagePayload | None = None
        if data.get("image_base64"):
            image = InlineImage(data["image_base64"])
        elif data.get("image_path"):
            image = StoredImage(Path(data["image_path"]))
        return cls(image=image, metadata=GenerationMetadata.from_dict(data["metadata"]))


# =============================================================================
# Iterations
# =============================================================================


@dataclass
class Iteration:
    """One generation turn in a session.

    Attributes:
        index: Zero-based position, assigned on append and never renumbered.
        prompt: Prompt that produced the result.
        result: Image and generation metadata.
        timestamp: When the iteration was appended.
        rolled_back_to: Set when the user rolled back to this iteration.
        metadata: Variant-batch linkage (variant_set_id, variant_count,
            base_variant_id, is_variant_generation).
    """

    index: int
    prompt: str
    result: GenerationResult
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    rolled_back_to: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "index": self.index,
            "prompt": self.prompt,
            "result": self.result.to_dict(),
            "timestamp": self.timestamp.isoformat(),
        }
        if self.rolled_back_to:
            data["rolled_back_to"] = True
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Iteration":
        return cls(
            index=int(data["index"]),
            prompt=data["prompt"],
            result=GenerationResult.from_dict(data["result"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            rolled_back_to=bool(data.get("rolled_back_to", False)),
            metadata=dict(data.get("metadata") or {}),
        )


# =============================================================================
# Asset Sessions
# =============================================================================


class AssetType(str, Enum):
    """Kinds of asset produced through variant generation."""

    ICON = "icon"
    BANNER = "banner"
    MOCKUP = "mockup"


@dataclass
class VariantMetadata:
    width: int
    height: int
    steps: int
    latency_ms: float


@dataclass
class Variant:
    """One candidate image in a variant batch. Image data stays inline."""

    id: str
    image_base64: str
    seed: int
    prompt: str
    metadata: VariantMetadata

    @classmethod
    def create(
        cls, image_base64: str, seed: int, prompt: str, metadata: VariantMetadata
    ) -> "Variant":
        """Factory method to create a new variant with generated ID."""
        return cls(
            id=f"var-{uuid4().hex[:12]}",
            image_base64=image_base64,
            seed=seed,
            prompt=prompt,
            metadata=metadata,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Variant":
        return cls(
            id=data["id"],
            image_base64=data["image_base64"],
            seed=int(data["seed"]),
            prompt=data["prompt"],
            metadata=VariantMetadata(**data["metadata"]),
        )


@dataclass
class Refinement:
    """A refined variant derived from a base variant."""

    variant_id: str
    refinement_prompt: str
    base_variant_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Refinement":
        return cls(
            variant_id=data["variant_id"],
            refinement_prompt=data["refinement_prompt"],
            base_variant_id=data["base_variant_id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass
class AssetSession:
    """Variant exploration for a single asset."""

    type: AssetType
    variants: list[Variant] = field(default_factory=list)
    selected_variant_id: str | None = None
    refinements: list[Refinement] = field(default_factory=list)

    def find_variant(self, variant_id: str) -> Variant | None:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None

    @property
    def selected_variant(self) -> Variant | None:
        if self.selected_variant_id is None:
            return None
        return self.find_variant(self.selected_variant_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "variants": [v.to_dict() for v in self.variants],
            "selected_variant_id": self.selected_variant_id,
            "refinements": [r.to_dict() for r in self.refinements],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssetSession":
        return cls(
            type=AssetType(data["type"]),
            variants=[Variant.from_dict(v) for v in data.get("variants", [])],
            selected_variant_id=data.get("selected_variant_id"),
            refinements=[Refinement.from_dict(r) for r in data.get("refinements", [])],
        )


# =============================================================================
# Sessions
# =============================================================================


@dataclass
class SessionMetadata:
    total_iterations: int = 0
    last_prompt: str | None = None


@dataclass
class Session:
    """A durable multi-turn generation session.

    Attributes:
        id: Unique session identifier.
        created_at: Creation timestamp.
        updated_at: Timestamp of the last save.
        iterations: Ordered generation turns, indices contiguous from 0.
        metadata: Iteration count and last prompt.
        current_asset: Active variant exploration, if any.
        current_wireframe: Active wireframe, if any.
    """

    id: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    iterations: list[Iteration] = field(default_factory=list)
    metadata: SessionMetadata = field(default_factory=SessionMetadata)
    current_asset: AssetSession | None = None
    current_wireframe: Wireframe | None = None

    @classmethod
    def create(cls) -> "Session":
        """Factory method to create a new session with generated ID."""
        return cls(id=str(uuid4()))

    def touch(self) -> None:
        """Update updated_at timestamp."""
        self.updated_at = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "iterations": [it.to_dict() for it in self.iterations],
            "metadata": asdict(self.metadata),
        }
        if self.current_asset is not None:
            data["current_asset"] = self.current_asset.to_dict()
        if self.current_wireframe is not None:
            data["current_wireframe"] = self.current_wireframe.model_dump(mode="json")
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        metadata = data.get("metadata") or {}
        asset = data.get("current_asset")
        wireframe = data.get("current_wireframe")
        return cls(
            id=data["id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            iterations=[Iteration.from_dict(it) for it in data["iterations"]],
            metadata=SessionMetadata(
                total_iterations=int(metadata.get("total_iterations", 0)),
                last_prompt=metadata.get("last_prompt"),
            ),
            current_asset=AssetSession.from_dict(asset) if asset else None,
            current_wireframe=Wireframe.model_validate(wireframe) if wireframe else None,
        )


@dataclass
class SessionSummary:
    """Listing entry for a persisted session."""

    id: str
    created_at: datetime
    updated_at: datetime
    total_iterations: int
    last_prompt: str | None = None

    @classmethod
    def from_session(cls, session: Session) -> "SessionSummary":
        return cls(
            id=session.id,
            created_at=session.created_at,
            updated_at=session.updated_at,
            total_iterations=session.metadata.total_iterations,
            last_prompt=session.metadata.last_prompt,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "total_iterations": self.total_iterations,
            "last_prompt": self.last_prompt,
        }


__all__ = [
    "InlineImage",
    "StoredImage",
    "ImagePayload",
    "GenerationMetadata",
    "GenerationResult",
    "Iteration",
    "AssetType",
    "VariantMetadata",
    "Variant",
    "Refinement",
    "AssetSession",
    "SessionMetadata",
    "Session",
    "SessionSummary",
]
