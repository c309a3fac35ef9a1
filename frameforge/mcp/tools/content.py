"""Content block builders and argument checks shared by tool handlers."""

import json
from typing import Any

from mcp.types import ImageContent, TextContent

from ..errors import ToolValidationError

PNG_MIME_TYPE = "image/png"
SVG_MIME_TYPE = "image/svg+xml"


def text(value: str) -> TextContent:
    return TextContent(type="text", text=value)


def json_text(payload: Any) -> TextContent:
    """Pretty-printed JSON block for machine-readable results."""
    return TextContent(type="text", text=json.dumps(payload, indent=2, default=str))


def image(data: str, mime_type: str = PNG_MIME_TYPE) -> ImageContent:
    return ImageContent(type="image", data=data, mimeType=mime_type)


def require_text(value: str | None, name: str) -> str:
    """Return a stripped non-empty argument or raise ToolValidationError."""
    if value is None or not value.strip():
        raise ToolValidationError(f"{name} is required and cannot be empty")
    return value.strip()


def require_index(value: int, name: str = "iteration_index") -> int:
    if value < 0:
        raise ToolValidationError(f"{name} must be a non-negative number")
    return value


__all__ = [
    "PNG_MIME_TYPE",
    "SVG_MIME_TYPE",
    "text",
    "json_text",
    "image",
    "require_text",
    "require_index",
]
