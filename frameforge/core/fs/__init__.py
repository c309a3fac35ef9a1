"""Async file storage primitives for frameforge."""

from .lib import (
    read_bytes,
    read_json,
    remove_path,
    safe_segment,
    write_bytes_atomic,
    write_json_atomic,
)

__all__ = [
    "read_bytes",
    "read_json",
    "remove_path",
    "safe_segment",
    "write_bytes_atomic",
    "write_json_atomic",
]
