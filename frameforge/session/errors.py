"""Session error types."""


class SessionError(Exception):
    """Base class for session store errors."""


class SessionNotFoundError(SessionError):
    """No persisted or active session with the given id."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class IterationNotFoundError(SessionError):
    """The session has no iteration at the given index."""

    def __init__(self, session_id: str, index: int):
        super().__init__(f"Iteration {index} not found in session {session_id}")
        self.session_id = session_id
        self.index = index


class ImageNotFoundError(SessionError):
    """An iteration has no image, or its stored image file is missing."""

    def __init__(self, session_id: str, index: int, detail: str = ""):
        message = f"Image for iteration {index} not found in session {session_id}"
        super().__init__(f"{message}: {detail}" if detail else message)
        self.session_id = session_id
        self.index = index


class SessionValidationError(SessionError, ValueError):
    """Persisted session data does not have the expected shape."""


__all__ = [
    "SessionError",
    "SessionNotFoundError",
    "IterationNotFoundError",
    "ImageNotFoundError",
    "SessionValidationError",
]
