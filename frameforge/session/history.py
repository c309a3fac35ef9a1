"""In-memory iteration history with an undo/redo cursor.

The history holds the same Iteration objects as the active Session, so a
flag set through one is visible through the other. Not thread-safe; it
relies on the single-threaded event loop.
"""

import logging

from .models import GenerationResult, Iteration

logger = logging.getLogger(__name__)


class IterationHistory:
    """Append-only iteration log for one session.

    The cursor points at the current iteration (-1 when empty). Appending
    moves it to the end, which discards any redo position.

    Example:
        >>> history = IterationHistory("session-1")
        >>> history.add_iteration("red", red_result)
        >>> history.add_iteration("blue", blue_result)
        >>> history.undo().prompt
        'red'
        >>> history.redo().prompt
        'blue'
    """

    def __init__(self, session_id: str):
        self.session_id = session_id
        self._iterations: list[Iteration] = []
        self._cursor = -1

    @classmethod
    def from_iterations(cls, session_id: str, iterations: list[Iteration]) -> "IterationHistory":
        """Index an existing, already ordered list of iterations.

        The objects are shared, not copied. The cursor is placed at the end.
        """
        history = cls(session_id)
        history._iterations = list(iterations)
        history._cursor = len(iterations) - 1
        return history

    def add_iteration(self, prompt: str, result: GenerationResult) -> Iteration:
        """Append a new iteration with the next index."""
        iteration = Iteration(index=len(self._iterations), prompt=prompt, result=result)
        self._iterations.append(iteration)
        self._cursor = len(self._iterations) - 1
        return iteration

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_iteration(self, index: int) -> Iteration | None:
        if index < 0 or index >= len(self._iterations):
            return None
        return self._iterations[index]

    def get_last_n(self, n: int) -> list[Iteration]:
        """The last ``n`` iterations in order. Never raises."""
        if n <= 0:
            return []
        return self._iterations[-n:]

    def get_all_iterations(self) -> list[Iteration]:
        return list(self._iterations)

    def get_current_iteration(self) -> Iteration | None:
        return self.get_iteration(self._cursor)

    def get_current_index(self) -> int:
        return self._cursor

    @property
    def size(self) -> int:
        return len(self._iterations)

    def __len__(self) -> int:
        return len(self._iterations)

    # -------------------------------------------------------------------------
    # Cursor
    # -------------------------------------------------------------------------

    def can_undo(self) -> bool:
        return self._cursor > 0

    def can_redo(self) -> bool:
        return self._cursor < len(self._iterations) - 1

    def undo(self) -> Iteration | None:
        """Step the cursor back. Returns the new current iteration."""
        if not self.can_undo():
            return None
        self._cursor -= 1
        return self._iterations[self._cursor]

    def redo(self) -> Iteration | None:
        """Step the cursor forward. Returns the new current iteration."""
        if not self.can_redo():
            return None
        self._cursor += 1
        return self._iterations[self._cursor]

    # -------------------------------------------------------------------------
    # Rollback
    # -------------------------------------------------------------------------

    def mark_rolled_back_to(self, index: int) -> Iteration:
        """Flag an iteration as a rollback target.

        Neither the number of iterations nor the cursor changes.

        Raises:
            IndexError: If ``index`` is out of range.
        """
        iteration = self.get_iteration(index)
        if iteration is None:
            raise IndexError(f"Invalid iteration index: {index}")
        iteration.rolled_back_to = True
        return iteration

    def truncate_after(self, index: int) -> list[Iteration]:
        """Drop every iteration after ``index`` and move the cursor to it.

        Returns:
            The removed iterations.

        Raises:
            IndexError: If ``index`` is out of range.
        """
        if self.get_iteration(index) is None:
            raise IndexError(f"Invalid iteration index: {index}")
        removed = self._iterations[index + 1 :]
        del self._iterations[index + 1 :]
        self._cursor = index
        if removed:
            logger.debug(
                f"Dropped {len(removed)} iterations after {index} "
                f"in session {self.session_id}"
            )
        return removed

    def clear(self) -> None:
        self._iterations.clear()
        self._cursor = -1


__all__ = ["IterationHistory"]
