"""Session Manager for frameforge.

Owns durable Session state and coordinates the iteration history, the
variant cache and the metrics collector. One instance is created at
startup and passed to every tool handler.

On-disk layout, one directory per sanitized session id::

    <storage>/<session_id>/session.json
    <storage>/<session_id>/images/<index>.png
    <storage>/<session_id>/wireframes/wireframe-<wireframe_id>.json
    <storage>/<session_id>/versions/<wireframe_id>/<component_id>.json

Sessions written by older releases as a single ``<storage>/<id>.json``
file are read and moved to the directory layout on first load.
"""

import base64
import logging
from pathlib import Path
from typing import Any

import aiofiles.os

from frameforge.config import get_session_storage_dir
from frameforge.core.fs import (
    read_bytes,
    read_json,
    remove_path,
    safe_segment,
    write_bytes_atomic,
    write_json_atomic,
)
from frameforge.metrics import MetricsCollector, MetricsSnapshot
from frameforge.wireframe import Wireframe

from .cache import VariantCache, build_variant_cache_key
from .errors import (
    ImageNotFoundError,
    IterationNotFoundError,
    SessionNotFoundError,
    SessionValidationError,
)
from .history import IterationHistory
from .models import (
    GenerationResult,
    InlineImage,
    Iteration,
    Session,
    SessionSummary,
    StoredImage,
    Variant,
)

logger = logging.getLogger(__name__)

SESSION_FILE = "session.json"
IMAGES_DIR = "images"
WIREFRAMES_DIR = "wireframes"


# =============================================================================
# Validation
# =============================================================================


def _is_nonempty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def validate_session_data(data: Any) -> None:
    """Check the shape of raw persisted session data.

    Raises:
        SessionValidationError: Describing the first problem found.
    """
    if not isinstance(data, dict):
        raise SessionValidationError("Invalid session data: not an object")
    for key in ("id", "created_at", "updated_at"):
        if not _is_nonempty_str(data.get(key)):
            raise SessionValidationError(f"Invalid session data: missing or invalid {key}")
    if not isinstance(data.get("iterations"), list):
        raise SessionValidationError("Invalid session data: iterations must be a list")
    metadata = data.get("metadata")
    if not isinstance(metadata, dict):
        raise SessionValidationError("Invalid session data: missing or invalid metadata")
    total = metadata.get("total_iterations")
    if isinstance(total, bool) or not isinstance(total, (int, float)):
        raise SessionValidationError(
            "Invalid session data: metadata.total_iterations must be a number"
        )


# =============================================================================
# Session Manager
# =============================================================================


class SessionManager:
    """Durable session store with resident-session cache.

    Example:
        >>> manager = SessionManager(Path("/tmp/sessions"))
        >>> await manager.initialize()
        >>> session = await manager.create_session()
        >>> manager.add_iteration_to_session(session.id, "a red fox", result)
        >>> await manager.save_session(session)

    Concurrent saves of the same session are not coordinated: each write
    is atomic and the last one to finish wins.

    Args:
        storage_dir: Storage root. Defaults to SESSION_STORAGE_DIR.
        metrics: Metrics collector. A fresh one is created if omitted.
    """

    def __init__(
        self,
        storage_dir: Path | str | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._storage_dir = get_session_storage_dir(storage_dir)
        self._metrics = metrics or MetricsCollector()
        self._active: dict[str, Session] = {}
        self._histories: dict[str, IterationHistory] = {}
        self._variant_cache = VariantCache()

    @property
    def storage_dir(self) -> Path:
        return self._storage_dir

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    async def initialize(self) -> None:
        """Create the storage root. I/O errors propagate."""
        await aiofiles.os.makedirs(self._storage_dir, exist_ok=True)
        logger.info(f"Session storage initialized at {self._storage_dir}")

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------

    def session_dir(self, session_id: str) -> Path:
        """Directory holding everything persisted for a session.

        Raises:
            ValueError: If the id has no usable characters.
        """
        return self._storage_dir / safe_segment(session_id)

    def _legacy_file(self, session_id: str) -> Path:
        return self._storage_dir / f"{safe_segment(session_id)}.json"

    def _wireframe_file(self, session_id: str, wireframe_id: str) -> Path:
        return (
            self.session_dir(session_id)
            / WIREFRAMES_DIR
            / f"wireframe-{safe_segment(wireframe_id)}.json"
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _activate(self, session: Session) -> None:
        self._active[session.id] = session
        self._histories[session.id] = IterationHistory.from_iterations(
            session.id, session.iterations
        )

    async def create_session(self) -> Session:
        """Create, register and persist a new session."""
        session = Session.create()
        self._activate(session)
        self._metrics.record_session_created(session.id)
        await self.save_session(session)
        logger.info(f"Created session {session.id}")
        return session

    async def load_session(self, session_id: str) -> Session | None:
        """Return a session, reading it from disk if it is not resident.

        Missing, unparseable or structurally invalid data yields None and
        a warning. Permission and other OS errors propagate.
        """
        active = self._active.get(session_id)
        if active is not None:
            return active

        try:
            session_dir = self.session_dir(session_id)
        except ValueError:
            logger.warning(f"Rejected session id {session_id!r}")
            return None

        legacy = False
        source = session_dir / SESSION_FILE
        try:
            data = await read_json(source)
        except FileNotFoundError:
            source = self._legacy_file(session_id)
            legacy = True
            try:
                data = await read_json(source)
            except FileNotFoundError:
                return None
            except ValueError as e:
                logger.warning(f"Corrupted session file {source}: {e}")
                return None
        except ValueError as e:
            logger.warning(f"Corrupted session file {source}: {e}")
            return None

        try:
            validate_session_data(data)
            session = Session.from_dict(data)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Invalid session data in {source}: {e}")
            return None

        self._activate(session)

        if legacy:
            logger.info(f"Migrating legacy session file {source}")
            await self.save_session(session)
            await remove_path(source)
        elif any(it.result.needs_migration for it in session.iterations):
            await self.save_session(session)

        return session

    async def save_session(self, session: Session) -> None:
        """Persist a session.

        Inline images are written to ``images/<index>.png`` and replaced
        by their stored form before the session file is written. I/O
        errors propagate.
        """
        session_dir = self.session_dir(session.id)

        for iteration in session.iterations:
            image = iteration.result.image
            if isinstance(image, InlineImage):
                relative = Path(IMAGES_DIR) / f"{iteration.index}.png"
                await write_bytes_atomic(session_dir / relative, image.to_bytes())
                iteration.result.image = image.materialize(relative)

        session.touch()
        try:
            await write_json_atomic(session_dir / SESSION_FILE, session.to_dict())
        except OSError as e:
            logger.error(f"Failed to save session {session.id}: {e}")
            raise

        active = self._active.get(session.id)
        if active is None:
            self._activate(session)
        elif active is not session:
            self._active[session.id] = session
            self._histories[session.id] = IterationHistory.from_iterations(
                session.id, session.iterations
            )

    async def delete_session(self, session_id: str) -> bool:
        """Remove a session and everything derived from it.

        Returns:
            True if anything was removed. Deleting an unknown session is a
            no-op that returns False.
        """
        self._metrics.record_session_closed(session_id)
        was_active = self._active.pop(session_id, None) is not None
        self._histories.pop(session_id, None)
        self._variant_cache.clear(session_id)

        try:
            session_dir = self.session_dir(session_id)
        except ValueError:
            return was_active

        removed_dir = await remove_path(session_dir)
        removed_legacy = await remove_path(self._legacy_file(session_id))
        removed = was_active or removed_dir or removed_legacy
        if removed:
            logger.info(f"Deleted session {session_id}")
        return removed

    async def list_sessions(self) -> list[SessionSummary]:
        """All persisted sessions, newest first.

        Sessions that cannot be read or validated are skipped.
        """
        if not await aiofiles.os.path.isdir(self._storage_dir):
            return []

        candidates: dict[str, Path] = {}
        for name in sorted(await aiofiles.os.listdir(self._storage_dir)):
            path = self._storage_dir / name
            if await aiofiles.os.path.isfile(path / SESSION_FILE):
                candidates[name] = path / SESSION_FILE
            elif path.suffix == ".json" and await aiofiles.os.path.isfile(path):
                candidates.setdefault(path.stem, path)

        summaries = []
        for session_id, path in candidates.items():
            active = self._active.get(session_id)
            if active is not None:
                summaries.append(SessionSummary.from_session(active))
                continue
            try:
                data = await read_json(path)
                validate_session_data(data)
                summaries.append(SessionSummary.from_session(Session.from_dict(data)))
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.warning(f"Skipping unreadable session {path}: {e}")

        summaries.sort(key=lambda s: s.created_at, reverse=True)
        return summaries

    # -------------------------------------------------------------------------
    # Iterations
    # -------------------------------------------------------------------------

    def get_active_session(self, session_id: str) -> Session | None:
        return self._active.get(session_id)

    def get_active_history(self, session_id: str) -> IterationHistory | None:
        return self._histories.get(session_id)

    def add_iteration_to_session(
        self, session_id: str, prompt: str, result: GenerationResult
    ) -> Iteration | None:
        """Append an iteration to an active session.

        The same Iteration object lands in the history and in the
        session; metadata and updated_at are refreshed. Nothing is saved.

        Returns:
            The new iteration, or None if the session is not active.
        """
        session = self._active.get(session_id)
        history = self._histories.get(session_id)
        if session is None or history is None:
            return None

        iteration = history.add_iteration(prompt, result)
        session.iterations.append(iteration)
        session.metadata.total_iterations = history.size
        session.metadata.last_prompt = prompt
        session.touch()
        return iteration

    def truncate_iterations(self, session_id: str, index: int) -> list[Iteration]:
        """Drop every iteration after ``index`` from an active session.

        Raises:
            SessionNotFoundError: If the session is not active.
            IndexError: If ``index`` is out of range.
        """
        session = self._active.get(session_id)
        history = self._histories.get(session_id)
        if session is None or history is None:
            raise SessionNotFoundError(session_id)

        removed = history.truncate_after(index)
        del session.iterations[index + 1 :]
        session.metadata.total_iterations = history.size
        if session.iterations:
            session.metadata.last_prompt = session.iterations[-1].prompt
        session.touch()
        return removed

    async def load_iteration_image(self, session_id: str, index: int) -> str:
        """Base64 image data for an iteration, read from disk once.

        Raises:
            SessionNotFoundError: Unknown session.
            IterationNotFoundError: No iteration at ``index``.
            ImageNotFoundError: No image, or the stored file is missing.
        """
        session = await self.load_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        if index < 0 or index >= len(session.iterations):
            raise IterationNotFoundError(session_id, index)
        iteration = session.iterations[index]

        image = iteration.result.image
        if isinstance(image, InlineImage):
            return image.data
        if not isinstance(image, StoredImage):
            raise ImageNotFoundError(session_id, index, "no image recorded")
        if image.cached is not None:
            return image.cached

        path = image.path
        if not path.is_absolute():
            path = self.session_dir(session_id) / path
        try:
            data = await read_bytes(path)
        except FileNotFoundError as e:
            raise ImageNotFoundError(session_id, index, str(path)) from e

        image.cached = base64.b64encode(data).decode("ascii")
        return image.cached

    # -------------------------------------------------------------------------
    # Variant Cache
    # -------------------------------------------------------------------------

    @staticmethod
    def build_variant_cache_key(
        asset_type: str, description: str, width: int, height: int
    ) -> str:
        return build_variant_cache_key(asset_type, description, width, height)

    def get_variant_cache(self, session_id: str, key: str) -> list[Variant] | None:
        variants = self._variant_cache.get(session_id, key)
        if variants is not None:
            logger.debug(f"Variant cache hit: {key}")
        return variants

    def set_variant_cache(self, session_id: str, key: str, variants: list[Variant]) -> None:
        self._variant_cache.set(session_id, key, variants)
        logger.debug(f"Cached {len(variants)} variants: {key}")

    def clear_variant_cache(self, session_id: str) -> None:
        self._variant_cache.clear(session_id)
        logger.info(f"Cleared variant cache for session {session_id}")

    # -------------------------------------------------------------------------
    # Wireframes
    # -------------------------------------------------------------------------

    async def save_wireframe(self, session_id: str, wireframe: Wireframe) -> None:
        """Persist a wireframe under its session.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        if await self.load_session(session_id) is None:
            raise SessionNotFoundError(session_id)

        path = self._wireframe_file(session_id, wireframe.id)
        await write_json_atomic(path, wireframe.model_dump(mode="json"))
        logger.info(f"Saved wireframe {wireframe.id} to session {session_id}")

    async def load_wireframe(self, session_id: str, wireframe_id: str) -> Wireframe | None:
        """Read a stored wireframe.

        Missing, unparseable or invalid files yield None; the latter two
        are logged.
        """
        path = self._wireframe_file(session_id, wireframe_id)
        try:
            data = await read_json(path)
        except FileNotFoundError:
            return None
        except ValueError as e:
            logger.warning(f"Corrupted wireframe file {path}: {e}")
            return None
        try:
            return Wireframe.model_validate(data)
        except ValueError as e:
            logger.warning(f"Invalid wireframe data in {path}: {e}")
            return None

    async def list_wireframes(self, session_id: str) -> list[str]:
        directory = self.session_dir(session_id) / WIREFRAMES_DIR
        if not await aiofiles.os.path.isdir(directory):
            return []
        names = await aiofiles.os.listdir(directory)
        return sorted(
            name[len("wireframe-") : -len(".json")]
            for name in names
            if name.startswith("wireframe-") and name.endswith(".json")
        )

    async def delete_wireframe(self, session_id: str, wireframe_id: str) -> bool:
        removed = await remove_path(self._wireframe_file(session_id, wireframe_id))
        if removed:
            logger.info(f"Deleted wireframe {wireframe_id} from session {session_id}")
        return removed

    # -------------------------------------------------------------------------
    # Metrics
    # -------------------------------------------------------------------------

    def record_metric(
        self,
        operation_name: str,
        duration_ms: float,
        success: bool = True,
        error_type: str | None = None,
        session_id: str | None = None,
    ) -> None:
        self._metrics.record_operation(
            operation_name, duration_ms, success, error_type, session_id
        )

    def get_active_session_count(self) -> int:
        return self._metrics.get_active_session_count()

    def get_metrics_snapshot(self) -> MetricsSnapshot:
        return self._metrics.get_snapshot()

    def get_metrics_summary(self) -> str:
        return self._metrics.get_summary()


__all__ = ["SessionManager", "validate_session_data"]
