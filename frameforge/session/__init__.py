"""Session persistence and iteration history for frameforge.

This module owns the durable Session entity: ordered generation
iterations with undo/redo, lazy image loading, per-session variant
caching and wireframe storage.

Example:
    >>> from frameforge.session import SessionManager
    >>> manager = SessionManager()
    >>> await manager.initialize()
    >>> session = await manager.create_session()
    >>> manager.add_iteration_to_session(session.id, "a red fox", result)
    >>> await manager.save_session(session)
    >>> image_b64 = await manager.load_iteration_image(session.id, 0)

Storage:
    Each session lives in its own directory under SESSION_STORAGE_DIR
    (default ~/.frameforge/sessions). Images are written to
    images/<index>.png on save and loaded lazily.
"""

from .cache import VariantCache, VariantCacheEntry, build_variant_cache_key
from .errors import (
    ImageNotFoundError,
    IterationNotFoundError,
    SessionError,
    SessionNotFoundError,
    SessionValidationError,
)
from .history import IterationHistory
from .lib import SessionManager, validate_session_data
from .models import (
    AssetSession,
    AssetType,
    GenerationMetadata,
    GenerationResult,
    ImagePayload,
    InlineImage,
    Iteration,
    Refinement,
    Session,
    SessionMetadata,
    SessionSummary,
    StoredImage,
    Variant,
    VariantMetadata,
)

__all__ = [
    # Manager
    "SessionManager",
    "validate_session_data",
    # History and cache
    "IterationHistory",
    "VariantCache",
    "VariantCacheEntry",
    "build_variant_cache_key",
    # Models
    "AssetSession",
    "AssetType",
    "GenerationMetadata",
    "GenerationResult",
    "ImagePayload",
    "InlineImage",
    "Iteration",
    "Refinement",
    "Session",
    "SessionMetadata",
    "SessionSummary",
    "StoredImage",
    "Variant",
    "VariantMetadata",
    # Errors
    "SessionError",
    "SessionNotFoundError",
    "IterationNotFoundError",
    "ImageNotFoundError",
    "SessionValidationError",
]
