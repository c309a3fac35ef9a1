"""Wireframe undo/redo over the component version log.

The stacks only hold pointers into version logs; undoing never deletes
a version, it just moves which version is considered current.
"""

import logging
from dataclasses import dataclass

from frameforge.wireframe import WireframeComponent

from .lib import ComponentVersionManager
from .models import ChangeType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UndoRedoState:
    """Pointer to one recorded component version."""

    wireframe_id: str
    component_id: str
    version_id: str


class WireframeUndoRedoManager:
    """Undo/redo stacks for wireframe edits in one session.

    Every recorded change pushes onto the undo stack and clears the redo
    stack. The top of the undo stack is the current state, so undo needs
    at least two entries to have something to return to.

    Args:
        session_id: Session whose version logs are used.
        version_manager: Shared version store.
    """

    def __init__(self, session_id: str, version_manager: ComponentVersionManager):
        self._session_id = session_id
        self._versions = version_manager
        self._undo_stack: list[UndoRedoState] = []
        self._redo_stack: list[UndoRedoState] = []

    @property
    def session_id(self) -> str:
        return self._session_id

    async def record_change(
        self,
        wireframe_id: str,
        component: WireframeComponent,
        change_description: str,
    ) -> UndoRedoState:
        """Record an "updated" version and push it as the current state."""
        version = await self._versions.record_version(
            self._session_id,
            wireframe_id,
            component,
            ChangeType.UPDATED,
            change_description,
        )
        state = UndoRedoState(
            wireframe_id=wireframe_id,
            component_id=component.id,
            version_id=version.version_id,
        )
        self._undo_stack.append(state)
        self._redo_stack.clear()
        return state

    def push_state(self, state: UndoRedoState) -> None:
        """Push a pointer to an already recorded version.

        Used for baselines and restores that were written to the version
        log directly. Clears the redo stack like any other edit.
        """
        self._undo_stack.append(state)
        self._redo_stack.clear()

    async def _state_of(self, state: UndoRedoState) -> WireframeComponent | None:
        version = await self._versions.get_version(
            self._session_id, state.wireframe_id, state.component_id, state.version_id
        )
        return version.component_state if version else None

    async def undo(self) -> WireframeComponent | None:
        """Move the current state to the redo stack.

        Returns:
            The component state now on top of the undo stack, or None if
            the stack was or became empty.
        """
        if not self._undo_stack:
            return None

        self._redo_stack.append(self._undo_stack.pop())
        if not self._undo_stack:
            return None

        return await self._state_of(self._undo_stack[-1])

    async def redo(self) -> WireframeComponent | None:
        """Move the most recently undone state back onto the undo stack."""
        if not self._redo_stack:
            return None

        state = self._redo_stack.pop()
        self._undo_stack.append(state)
        return await self._state_of(state)

    def peek(self) -> UndoRedoState | None:
        """The current state pointer, if any."""
        return self._undo_stack[-1] if self._undo_stack else None

    def peek_redo(self) -> UndoRedoState | None:
        return self._redo_stack[-1] if self._redo_stack else None

    def can_undo(self) -> bool:
        return len(self._undo_stack) > 1

    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    def clear(self) -> None:
        self._undo_stack.clear()
        self._redo_stack.clear()

    def get_undo_stack_size(self) -> int:
        return len(self._undo_stack)

    def get_redo_stack_size(self) -> int:
        return len(self._redo_stack)


__all__ = ["UndoRedoState", "WireframeUndoRedoManager"]
