"""Generation engine interface."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from typing import Any

from frameforge.session.models import GenerationResult

ProgressCallback = Callable[[str, int, int], None]
"""Called as ``on_progress(step_label, current, total)``."""


# =============================================================================
# Errors
# =============================================================================


class EngineError(Exception):
    """Generation failed."""


class EngineNotReadyError(EngineError):
    """Dependencies, interpreter or model weights are missing."""


class EngineTimeoutError(EngineError):
    """The generation subprocess exceeded its hard timeout and was killed."""

    def __init__(self, timeout_ms: int):
        super().__init__(f"Generation subprocess timeout after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class GenerationOptions:
    """Parameters for one image generation.

    Unset steps and guidance scale fall back to engine defaults.
    """

    prompt: str
    width: int
    height: int
    steps: int | None = None
    guidance_scale: float | None = None
    seed: int | None = None


@dataclass
class DependencyStatus:
    name: str
    installed: bool
    version: str | None = None


@dataclass
class EngineStatus:
    """Readiness report for an engine.

    Attributes:
        ready: True when generation can run.
        engine_name: Display name of the engine.
        dependencies: Per-dependency install state.
        model_path: Location of the model weights, when present.
        error: Why the engine is not ready.
    """

    ready: bool
    engine_name: str
    dependencies: list[DependencyStatus] = field(default_factory=list)
    model_path: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# =============================================================================
# Engine Interface
# =============================================================================


class ImageEngine(ABC):
    """Abstract image generation backend."""

    def __init__(self, name: str):
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the engine.

        Raises:
            EngineNotReadyError: If the engine cannot run.
        """

    @abstractmethod
    async def check_status(self) -> EngineStatus:
        """Report readiness without raising."""

    @abstractmethod
    async def generate(
        self,
        options: GenerationOptions,
        on_progress: ProgressCallback | None = None,
    ) -> GenerationResult:
        """Generate one image.

        Returns:
            Result with an inline base64 image and generation metadata.

        Raises:
            EngineError: On non-zero exit or invalid input.
            EngineTimeoutError: If the hard timeout elapsed.
        """

    @abstractmethod
    async def cleanup(self) -> None:
        """Release resources held by the engine."""


__all__ = [
    "ProgressCallback",
    "EngineError",
    "EngineNotReadyError",
    "EngineTimeoutError",
    "GenerationOptions",
    "DependencyStatus",
    "EngineStatus",
    "ImageEngine",
]
