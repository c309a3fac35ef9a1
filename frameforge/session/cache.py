"""Per-session cache of generated variant sets."""

import re
import time
from dataclasses import dataclass, field

from .models import Variant

_WHITESPACE = re.compile(r"\s+")


def build_variant_cache_key(
    asset_type: str, description: str, width: int, height: int
) -> str:
    """Content-derived key: ``{type}:{normalized description}:{w}x{h}``.

    The description is lowercased, trimmed and has runs of whitespace
    collapsed, so cosmetic differences hit the same entry.
    """
    normalized = _WHITESPACE.sub(" ", description.strip().lower())
    return f"{asset_type}:{normalized}:{width}x{height}"


@dataclass
class VariantCacheEntry:
    variants: list[Variant]
    timestamp: float = field(default_factory=time.time)


class VariantCache:
    """session id -> (cache key -> variant set).

    Entries never expire on their own; they are dropped when the owning
    session is deleted or explicitly cleared.
    """

    def __init__(self):
        self._entries: dict[str, dict[str, VariantCacheEntry]] = {}

    def get(self, session_id: str, key: str) -> list[Variant] | None:
        entry = self._entries.get(session_id, {}).get(key)
        return entry.variants if entry else None

    def set(self, session_id: str, key: str, variants: list[Variant]) -> None:
        self._entries.setdefault(session_id, {})[key] = VariantCacheEntry(
            variants=list(variants)
        )

    def clear(self, session_id: str) -> None:
        self._entries.pop(session_id, None)

    def size(self, session_id: str | None = None) -> int:
        """Number of cached keys for one session, or across all sessions."""
        if session_id is not None:
            return len(self._entries.get(session_id, {}))
        return sum(len(keys) for keys in self._entries.values())


__all__ = ["VariantCache", "VariantCacheEntry", "build_variant_cache_key"]
