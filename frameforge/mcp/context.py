"""Shared state handed to every tool handler."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from frameforge.config import get_engine_config
from frameforge.engine import (
    GenerationOptions,
    ImageEngine,
    MLXEngine,
    RetryConfig,
    RetryStrategy,
    with_timeout,
)
from frameforge.session import GenerationResult, Session, SessionManager, SessionNotFoundError
from frameforge.versions import ComponentVersionManager, WireframeUndoRedoManager

logger = logging.getLogger(__name__)

# Overall deadline for one generation including retries.
GENERATION_TIMEOUT = 300.0


@dataclass
class ToolContext:
    """Services used by the tool handlers.

    One instance is built per server. Undo/redo managers are created per
    session on first use and live as long as the context.

    Attributes:
        sessions: Session store.
        engine: Image generation backend.
        versions: Component version store.
        retry: Retry policy for generation calls.
        generation_timeout: Deadline in seconds for one generation.
    """

    sessions: SessionManager
    engine: ImageEngine
    versions: ComponentVersionManager
    retry: RetryConfig = field(default_factory=RetryConfig)
    generation_timeout: float = GENERATION_TIMEOUT
    _undo_managers: dict[str, WireframeUndoRedoManager] = field(
        default_factory=dict, init=False, repr=False
    )

    @classmethod
    def create(
        cls,
        storage_dir: Path | str | None = None,
        engine: ImageEngine | None = None,
    ) -> "ToolContext":
        """Build a context from configuration.

        Args:
            storage_dir: Session storage root override.
            engine: Engine override; defaults to the MLX engine.
        """
        sessions = SessionManager(storage_dir)
        if engine is None:
            config = get_engine_config()
            engine = MLXEngine(config)
            retry = RetryConfig(max_attempts=config.max_retries)
        else:
            retry = RetryConfig()
        return cls(
            sessions=sessions,
            engine=engine,
            versions=ComponentVersionManager(sessions.storage_dir),
            retry=retry,
        )

    async def initialize(self) -> None:
        """Prepare storage. Engine readiness is reported, not required."""
        await self.sessions.initialize()
        status = await self.engine.check_status()
        if not status.ready:
            logger.warning(f"Engine {self.engine.name} not ready: {status.error}")

    async def require_session(self, session_id: str) -> Session:
        """Load a session or raise SessionNotFoundError."""
        session = await self.sessions.load_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def undo_manager(self, session_id: str) -> WireframeUndoRedoManager:
        manager = self._undo_managers.get(session_id)
        if manager is None:
            manager = WireframeUndoRedoManager(session_id, self.versions)
            self._undo_managers[session_id] = manager
        return manager

    def forget_session(self, session_id: str) -> None:
        """Drop per-session state held by the context."""
        self._undo_managers.pop(session_id, None)

    async def generate(
        self, options: GenerationOptions, operation_name: str = "generation"
    ) -> GenerationResult:
        """Run one generation with retry and an overall deadline."""

        def on_retry(attempt: int, error: BaseException, delay: float) -> None:
            logger.info(
                f"{operation_name}: retry {attempt}/{self.retry.max_attempts - 1} "
                f"in {delay:.1f}s after: {error}"
            )

        strategy = RetryStrategy(self.retry)
        return await with_timeout(
            strategy.run(lambda: self.engine.generate(options), on_retry=on_retry),
            timeout=self.generation_timeout,
            operation_name=operation_name,
        )


__all__ = ["ToolContext", "GENERATION_TIMEOUT"]
