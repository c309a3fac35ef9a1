"""Component Version Manager.

Persists one append-only version log per (session, wireframe, component)
at ``<storage>/<session>/versions/<wireframe>/<component>.json``. Entries
are never rewritten or removed; restoring an old version appends a new
one.
"""

import asyncio
import logging
from pathlib import Path

import aiofiles.os

from frameforge.core.fs import read_json, safe_segment, write_json_atomic
from frameforge.wireframe import WireframeComponent

from .models import ChangeType, ComponentVersion, VersionHistory, VersionSummary

logger = logging.getLogger(__name__)

CORRUPT_SUFFIX = ".corrupt"


class ComponentVersionManager:
    """Reads and appends component version logs.

    Appends to the same log are serialized with a per-file lock so that
    interleaved read-modify-write cycles cannot drop a version.

    Example:
        >>> versions = ComponentVersionManager(Path("~/.frameforge/sessions"))
        >>> v1 = await versions.record_version(
        ...     "s1", "wf-1", sidebar, ChangeType.CREATED, "Initial layout"
        ... )
        >>> await versions.restore_version("s1", "wf-1", "sidebar-1", v1.version_id)

    Args:
        storage_dir: Session storage root shared with the SessionManager.
    """

    def __init__(self, storage_dir: Path):
        self._storage_dir = Path(storage_dir)
        self._locks: dict[Path, asyncio.Lock] = {}

    @property
    def storage_dir(self) -> Path:
        return self._storage_dir

    def _history_path(
        self, session_id: str, wireframe_id: str, component_id: str
    ) -> Path:
        return (
            self._storage_dir
            / safe_segment(session_id)
            / "versions"
            / safe_segment(wireframe_id)
            / f"{safe_segment(component_id)}.json"
        )

    def _lock_for(self, path: Path) -> asyncio.Lock:
        lock = self._locks.get(path)
        if lock is None:
            lock = self._locks[path] = asyncio.Lock()
        return lock

    async def _parse_history(self, path: Path) -> VersionHistory:
        return VersionHistory.from_dict(await read_json(path))

    async def _read_history(self, path: Path) -> VersionHistory | None:
        """Missing and corrupted logs both read as None."""
        try:
            return await self._parse_history(path)
        except FileNotFoundError:
            return None
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Corrupted version log {path}: {e}")
            return None

    async def _set_aside(self, path: Path, error: Exception) -> None:
        """Move a corrupted log out of the way, keeping it for inspection."""
        target = path.with_name(f"{path.name}{CORRUPT_SUFFIX}")
        logger.warning(f"Corrupted version log {path} moved to {target.name}: {error}")
        await aiofiles.os.replace(path, target)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def record_version(
        self,
        session_id: str,
        wireframe_id: str,
        component: WireframeComponent,
        change_type: ChangeType | str,
        change_description: str,
        previous_version_id: str | None = None,
    ) -> ComponentVersion:
        """Snapshot a component and append it to its log.

        Creates the log on first use and moves the current pointer to the
        new version. A corrupted log is renamed with a ``.corrupt`` suffix
        and a fresh one is started.
        """
        version = ComponentVersion.create(
            wireframe_id=wireframe_id,
            component=component,
            change_type=ChangeType(change_type),
            change_description=change_description,
            previous_version_id=previous_version_id,
        )
        path = self._history_path(session_id, wireframe_id, component.id)

        async with self._lock_for(path):
            try:
                history = await self._parse_history(path)
            except FileNotFoundError:
                history = None
            except (ValueError, KeyError, TypeError) as e:
                await self._set_aside(path, e)
                history = None
            if history is None:
                history = VersionHistory(wireframe_id=wireframe_id, component_id=component.id)
            history.append(version)
            await write_json_atomic(path, history.to_dict())

        logger.debug(
            f"Recorded {version.change_type.value} version {version.version_id} "
            f"for {wireframe_id}/{component.id}"
        )
        return version

    async def restore_version(
        self,
        session_id: str,
        wireframe_id: str,
        component_id: str,
        version_id: str,
    ) -> ComponentVersion | None:
        """Append a "restored" copy of an earlier version.

        Returns:
            The new version, or None if the target version does not exist.
        """
        target = await self.get_version(session_id, wireframe_id, component_id, version_id)
        if target is None:
            return None

        return await self.record_version(
            session_id,
            wireframe_id,
            target.component_state,
            ChangeType.RESTORED,
            f"Restored from version {version_id}",
            previous_version_id=target.version_id,
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_history(
        self, session_id: str, wireframe_id: str, component_id: str
    ) -> VersionHistory | None:
        path = self._history_path(session_id, wireframe_id, component_id)
        return await self._read_history(path)

    async def get_version(
        self,
        session_id: str,
        wireframe_id: str,
        component_id: str,
        version_id: str,
    ) -> ComponentVersion | None:
        history = await self.get_history(session_id, wireframe_id, component_id)
        if history is None:
            return None
        return history.find(version_id)

    async def list_versions(
        self, session_id: str, wireframe_id: str, component_id: str
    ) -> list[VersionSummary]:
        history = await self.get_history(session_id, wireframe_id, component_id)
        if history is None:
            return []
        return [version.summary() for version in history.versions]


__all__ = ["ComponentVersionManager"]
