"""Root pytest configuration and fixtures.

This module provides:
- Environment setup (loads .env)
- A 1x1 PNG and GenerationResult factory for session tests
- A fake generation engine standing in for the MLX subprocess
- Session manager and tool context fixtures on temporary storage
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from dotenv import load_dotenv

from frameforge.engine import (
    EngineStatus,
    GenerationOptions,
    ImageEngine,
    ProgressCallback,
    RetryConfig,
)
from frameforge.mcp import ToolContext
from frameforge.session import GenerationMetadata, GenerationResult, SessionManager
from frameforge.versions import ComponentVersionManager

# Load environment variables from .env file
load_dotenv()


# =============================================================================
# Configuration Constants
# =============================================================================

ONE_PIXEL_PNG = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


# =============================================================================
# Fake Engine
# =============================================================================


class FakeEngine(ImageEngine):
    """In-process engine returning a 1x1 PNG.

    Attributes:
        calls: Options of every generate() call, in order.
        failures: Exceptions raised by the next generate() calls, FIFO.
        ready: Value reported by check_status().
    """

    def __init__(self, ready: bool = True):
        super().__init__("fake")
        self.calls: list[GenerationOptions] = []
        self.failures: list[Exception] = []
        self.ready = ready

    async def initialize(self) -> None:
        pass

    async def check_status(self) -> EngineStatus:
        return EngineStatus(
            ready=self.ready,
            engine_name=self.name,
            error=None if self.ready else "Model fake not downloaded",
        )

    async def generate(
        self,
        options: GenerationOptions,
        on_progress: ProgressCallback | None = None,
    ) -> GenerationResult:
        self.calls.append(options)
        if self.failures:
            raise self.failures.pop(0)
        if on_progress is not None:
            on_progress("Generating (step 1/1)", 1, 1)
        return GenerationResult.inline(
            ONE_PIXEL_PNG,
            GenerationMetadata(
                prompt=options.prompt,
                width=options.width,
                height=options.height,
                steps=options.steps or 20,
                guidance_scale=options.guidance_scale or 7.5,
                latency_ms=1.0,
                engine_name=self.name,
                model_name="fake-model",
                seed=options.seed,
            ),
        )

    async def cleanup(self) -> None:
        pass


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def one_pixel_png() -> str:
    """Base64 of a valid 1x1 PNG."""
    return ONE_PIXEL_PNG


@pytest.fixture
def make_result() -> Callable[[str], GenerationResult]:
    """Factory for GenerationResults carrying an inline 1x1 PNG."""

    def factory(prompt: str = "test prompt") -> GenerationResult:
        return GenerationResult.inline(
            ONE_PIXEL_PNG,
            GenerationMetadata(
                prompt=prompt,
                width=1,
                height=1,
                steps=20,
                guidance_scale=7.5,
                latency_ms=12.0,
                engine_name="fake",
                model_name="fake-model",
            ),
        )

    return factory


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
async def session_manager(tmp_path: Path) -> SessionManager:
    manager = SessionManager(tmp_path / "sessions")
    await manager.initialize()
    return manager


@pytest.fixture
async def tool_context(session_manager: SessionManager, fake_engine: FakeEngine) -> ToolContext:
    """Tool context on temporary storage with the fake engine.

    Retries do not sleep.
    """
    return ToolContext(
        sessions=session_manager,
        engine=fake_engine,
        versions=ComponentVersionManager(session_manager.storage_dir),
        retry=RetryConfig(base_delay=0.0, max_delay=0.0),
        generation_timeout=5.0,
    )
