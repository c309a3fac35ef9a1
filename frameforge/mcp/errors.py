"""Error categorization and the tool-call error boundary.

Every tool handler runs inside :func:`tool_boundary`: it is timed, the
outcome is recorded as an operation metric, and any exception is turned
into a text block the assistant can show to the user. Nothing raised by a
handler reaches the protocol layer.
"""

import functools
import logging
import re
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from mcp.types import ImageContent, TextContent

from frameforge.session import SessionError

logger = logging.getLogger(__name__)

Content = TextContent | ImageContent


class ErrorCategory(str, Enum):
    SETUP = "setup"
    RUNTIME = "runtime"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    SYSTEM = "system"


class ErrorSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


class ToolValidationError(ValueError):
    """A tool argument failed validation. Rendered as ``Error: <message>``."""


@dataclass
class StructuredError:
    """A categorized, user-presentable error.

    Attributes:
        category: Broad error class.
        severity: How bad it is; fatal errors block further work.
        user_message: Plain-language explanation.
        technical_message: ``ExceptionType: message`` for logs.
        suggested_action: What the user can do about it.
        retryable: Whether retrying may help.
        context: Extra data attached by the caller.
    """

    category: ErrorCategory
    severity: ErrorSeverity
    user_message: str
    technical_message: str
    suggested_action: str | None = None
    retryable: bool = True
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def is_fatal(self) -> bool:
        return self.severity == ErrorSeverity.FATAL

    @property
    def is_retryable(self) -> bool:
        return self.retryable and not self.is_fatal


@dataclass(frozen=True)
class ErrorPattern:
    pattern: re.Pattern[str]
    category: ErrorCategory
    severity: ErrorSeverity
    user_message: str
    suggested_action: str | None
    retryable: bool


def _pattern(
    regex: str,
    category: ErrorCategory,
    severity: ErrorSeverity,
    user_message: str,
    suggested_action: str | None,
    retryable: bool,
) -> ErrorPattern:
    return ErrorPattern(
        re.compile(regex, re.IGNORECASE),
        category,
        severity,
        user_message,
        suggested_action,
        retryable,
    )


# Checked in order; the first match wins.
ERROR_PATTERNS: tuple[ErrorPattern, ...] = (
    _pattern(
        r"Python not found|command not found.*python",
        ErrorCategory.SETUP,
        ErrorSeverity.FATAL,
        "I couldn't find Python on your system. Install Python 3.9 or newer, then try again.",
        "Set PYTHON_PATH to a working interpreter",
        False,
    ),
    _pattern(
        r"Python \d+\.\d+\+? required",
        ErrorCategory.SETUP,
        ErrorSeverity.ERROR,
        "Your Python version is too old for the generation engine.",
        "Point PYTHON_PATH at a newer interpreter",
        False,
    ),
    _pattern(
        r"Missing dependencies:.*mlx|No module named 'mlx'",
        ErrorCategory.SETUP,
        ErrorSeverity.ERROR,
        "I'm missing the MLX library needed for image generation.",
        "Run `pip install mlx` in the engine's interpreter",
        False,
    ),
    _pattern(
        r"Metal device not found|mlx.*Metal.*not available",
        ErrorCategory.SYSTEM,
        ErrorSeverity.FATAL,
        "MLX requires Apple Silicon with Metal support.",
        "Run the server on a Mac with an Apple Silicon chip",
        False,
    ),
    _pattern(
        r"Missing dependencies:.*PIL|No module named 'PIL'",
        ErrorCategory.SETUP,
        ErrorSeverity.ERROR,
        "I'm missing the Pillow library needed for image processing.",
        "Run `pip install pillow` in the engine's interpreter",
        False,
    ),
    _pattern(
        r"Model .* not downloaded|model files not found",
        ErrorCategory.SETUP,
        ErrorSeverity.ERROR,
        "The image model hasn't been downloaded yet. This is a one-time download (~5-7GB).",
        "Download the model into the Hugging Face cache (MODEL_CACHE_DIR)",
        False,
    ),
    _pattern(
        r"Out of memory|OutOfMemoryError|MemoryError",
        ErrorCategory.RUNTIME,
        ErrorSeverity.ERROR,
        "Your system ran out of memory during generation.",
        "Try a smaller image size (512x512) or close other applications",
        True,
    ),
    _pattern(
        r"timeout|timed out",
        ErrorCategory.TIMEOUT,
        ErrorSeverity.WARNING,
        "Generation took too long and was cancelled.",
        "Try simpler settings (fewer steps, smaller image) and try again",
        True,
    ),
    _pattern(
        r"network.*error|connection.*refused|ECONNREFUSED",
        ErrorCategory.RUNTIME,
        ErrorSeverity.WARNING,
        "A network connection failed.",
        "Check your internet connection and try again",
        True,
    ),
    _pattern(
        r"permission denied|EACCES|EPERM",
        ErrorCategory.SYSTEM,
        ErrorSeverity.ERROR,
        "I don't have permission to access required files or directories.",
        "Check permissions on SESSION_STORAGE_DIR",
        False,
    ),
    _pattern(
        r"quota.*exceeded|rate.*limit|too many requests|429",
        ErrorCategory.RUNTIME,
        ErrorSeverity.ERROR,
        "The usage limit was reached. Please wait a few minutes and try again.",
        "Wait 5-10 minutes before retrying",
        True,
    ),
)


def categorize_error(
    error: BaseException | str, context: dict[str, Any] | None = None
) -> StructuredError:
    """Map an error to a StructuredError using ERROR_PATTERNS.

    Unmatched errors become a generic retryable runtime error.
    """
    if isinstance(error, BaseException):
        message = str(error)
        technical = f"{type(error).__name__}: {message}"
    else:
        message = technical = str(error)

    for entry in ERROR_PATTERNS:
        if entry.pattern.search(message):
            return StructuredError(
                category=entry.category,
                severity=entry.severity,
                user_message=entry.user_message,
                technical_message=technical,
                suggested_action=entry.suggested_action,
                retryable=entry.retryable,
                context=context or {},
            )

    return StructuredError(
        category=ErrorCategory.RUNTIME,
        severity=ErrorSeverity.ERROR,
        user_message="Something went wrong during the operation.",
        technical_message=technical,
        suggested_action="Check the error details and try again",
        retryable=True,
        context=context or {},
    )


def format_for_mcp(error: StructuredError) -> str:
    """Render a StructuredError as a text block for the assistant."""
    text = f"Error: {error.user_message}"
    if error.suggested_action:
        text += f"\n\nSuggested action: {error.suggested_action}"
    if error.is_fatal:
        text += "\n\nThis issue must be resolved before continuing."
    elif error.retryable:
        text += "\n\nYou can retry this operation after fixing the issue."
    text += f"\n\nDetails: {error.technical_message}"
    return text


def tool_boundary(
    operation_name: str,
) -> Callable[[Callable[..., Awaitable[list[Content]]]], Callable[..., Awaitable[list[Content]]]]:
    """Wrap a tool handler with timing, metrics and error conversion.

    The handler's first argument must be the ToolContext. A ``session_id``
    keyword, when present, attributes the metric to that session.

    Args:
        operation_name: Metric name for the operation.
    """

    def decorator(
        fn: Callable[..., Awaitable[list[Content]]],
    ) -> Callable[..., Awaitable[list[Content]]]:
        @functools.wraps(fn)
        async def wrapper(ctx, *args, **kwargs) -> list[Content]:
            session_id = kwargs.get("session_id")
            start = time.perf_counter()
            error_type: str | None = None
            try:
                return await fn(ctx, *args, **kwargs)
            except (ToolValidationError, SessionError) as e:
                error_type = type(e).__name__
                logger.info(f"{operation_name} rejected: {e}")
                return [TextContent(type="text", text=f"Error: {e}")]
            except Exception as e:
                error_type = type(e).__name__
                structured = categorize_error(e, {"operation": operation_name})
                logger.error(
                    f"{operation_name} failed [{structured.category.value}]: "
                    f"{structured.technical_message}"
                )
                return [TextContent(type="text", text=format_for_mcp(structured))]
            finally:
                duration_ms = (time.perf_counter() - start) * 1000
                ctx.sessions.record_metric(
                    operation_name,
                    duration_ms,
                    success=error_type is None,
                    error_type=error_type,
                    session_id=session_id,
                )

        return wrapper

    return decorator


__all__ = [
    "Content",
    "ErrorCategory",
    "ErrorSeverity",
    "ErrorPattern",
    "ERROR_PATTERNS",
    "StructuredError",
    "ToolValidationError",
    "categorize_error",
    "format_for_mcp",
    "tool_boundary",
]
