"""Image generation engines.

The MLX engine runs Stable Diffusion in a child interpreter; retry and
timeout helpers wrap any awaitable generation call.
"""

from .base import (
    DependencyStatus,
    EngineError,
    EngineNotReadyError,
    EngineStatus,
    EngineTimeoutError,
    GenerationOptions,
    ImageEngine,
    ProgressCallback,
)
from .catalog import AVAILABLE_MODELS, ModelAvailability, ModelInfo, list_models
from .mlx import MLXEngine, model_argument, parse_progress, sanitize_prompt
from .retry import (
    RETRYABLE_PATTERNS,
    RetryConfig,
    RetryStrategy,
    is_retryable_error,
    retry_with_backoff,
)
from .timeout import OperationTimeoutError, with_timeout

__all__ = [
    # Interface
    "ImageEngine",
    "GenerationOptions",
    "EngineStatus",
    "DependencyStatus",
    "ProgressCallback",
    # Errors
    "EngineError",
    "EngineNotReadyError",
    "EngineTimeoutError",
    "OperationTimeoutError",
    # MLX
    "MLXEngine",
    "sanitize_prompt",
    "model_argument",
    "parse_progress",
    # Models
    "AVAILABLE_MODELS",
    "ModelInfo",
    "ModelAvailability",
    "list_models",
    # Resilience
    "RETRYABLE_PATTERNS",
    "RetryConfig",
    "RetryStrategy",
    "is_retryable_error",
    "retry_with_backoff",
    "with_timeout",
]
