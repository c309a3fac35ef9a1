"""Component version history and wireframe undo/redo.

Example:
    >>> from frameforge.versions import ComponentVersionManager, WireframeUndoRedoManager
    >>> versions = ComponentVersionManager(storage_dir)
    >>> undo = WireframeUndoRedoManager("session-1", versions)
    >>> await undo.record_change("wf-1", sidebar, "Initial sidebar")
    >>> await undo.record_change("wf-1", wider_sidebar, "Widen sidebar")
    >>> previous = await undo.undo()  # sidebar state before widening
"""

from .lib import ComponentVersionManager
from .models import (
    ChangeType,
    ComponentVersion,
    VersionHistory,
    VersionSummary,
    new_version_id,
)
from .undo import UndoRedoState, WireframeUndoRedoManager

__all__ = [
    "ChangeType",
    "ComponentVersion",
    "ComponentVersionManager",
    "UndoRedoState",
    "VersionHistory",
    "VersionSummary",
    "WireframeUndoRedoManager",
    "new_version_id",
]
