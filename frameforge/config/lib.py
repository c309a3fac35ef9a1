"""Centralized environment configuration management for frameforge.

Provides a unified interface for all environment variables with:
- Single `get_environment()` function for all configuration
- Type-safe enum with metadata (default, type, description)
- Consistent resolution: override > environment > default

Example:
    >>> from frameforge.config import EnvVar, get_environment
    >>>
    >>> steps = get_environment(EnvVar.DEFAULT_INFERENCE_STEPS)  # Returns int
    >>> storage = get_environment(EnvVar.SESSION_STORAGE_DIR)  # Returns Path
    >>>
    >>> # Override at runtime
    >>> steps = get_environment(EnvVar.DEFAULT_INFERENCE_STEPS, override=30)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, overload

# =============================================================================
# Environment Variable Configuration
# =============================================================================


@dataclass(frozen=True)
class EnvConfig:
    """Metadata for an environment variable.

    Attributes:
        name: Environment variable name (e.g., "MCP_PORT").
        default: Default value if not set in environment.
        var_type: Python type for value conversion (str, int, float, bool, Path).
        description: Human-readable description.
        category: Grouping category for documentation.
    """

    name: str
    default: Any
    var_type: type
    description: str = ""
    category: str = "general"


class EnvVar(Enum):
    """All environment variables used by frameforge.

    Categories:
        - storage: Session persistence
        - engine: Generation subprocess and model
        - generation: Default generation parameters
        - logging: Log level and destination
        - service: MCP bind address and port
    """

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------
    SESSION_STORAGE_DIR = EnvConfig(
        name="SESSION_STORAGE_DIR",
        default=None,  # Computed from home directory
        var_type=Path,
        description="Root directory for persisted sessions",
        category="storage",
    )

    # -------------------------------------------------------------------------
    # Engine
    # -------------------------------------------------------------------------
    PYTHON_PATH = EnvConfig(
        name="PYTHON_PATH",
        default="python3",
        var_type=str,
        description="Python interpreter used to run the generation subprocess",
        category="engine",
    )
    PYTHON_MIN_VERSION = EnvConfig(
        name="PYTHON_MIN_VERSION",
        default="3.9",
        var_type=str,
        description="Minimum interpreter version for the generation subprocess",
        category="engine",
    )
    MODEL_NAME = EnvConfig(
        name="MODEL_NAME",
        default="stabilityai/stable-diffusion-2-1",
        var_type=str,
        description="Diffusion model identifier",
        category="engine",
    )
    MODEL_CACHE_DIR = EnvConfig(
        name="MODEL_CACHE_DIR",
        default=None,  # Computed from home directory
        var_type=Path,
        description="Model weights cache directory",
        category="engine",
    )
    SUBPROCESS_TIMEOUT_MS = EnvConfig(
        name="SUBPROCESS_TIMEOUT_MS",
        default=120000,
        var_type=int,
        description="Hard timeout for one generation subprocess (ms)",
        category="engine",
    )
    ENGINE_MAX_RETRIES = EnvConfig(
        name="ENGINE_MAX_RETRIES",
        default=3,
        var_type=int,
        description="Attempts for transient generation failures",
        category="engine",
    )

    # -------------------------------------------------------------------------
    # Generation Defaults
    # -------------------------------------------------------------------------
    DEFAULT_IMAGE_WIDTH = EnvConfig(
        name="DEFAULT_IMAGE_WIDTH",
        default=512,
        var_type=int,
        description="Default image width in pixels",
        category="generation",
    )
    DEFAULT_IMAGE_HEIGHT = EnvConfig(
        name="DEFAULT_IMAGE_HEIGHT",
        default=512,
        var_type=int,
        description="Default image height in pixels",
        category="generation",
    )
    DEFAULT_INFERENCE_STEPS = EnvConfig(
        name="DEFAULT_INFERENCE_STEPS",
        default=20,
        var_type=int,
        description="Default number of diffusion steps",
        category="generation",
    )
    DEFAULT_GUIDANCE_SCALE = EnvConfig(
        name="DEFAULT_GUIDANCE_SCALE",
        default=7.5,
        var_type=float,
        description="Default classifier-free guidance scale",
        category="generation",
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    LOG_LEVEL = EnvConfig(
        name="LOG_LEVEL",
        default="info",
        var_type=str,
        description="Log level (debug, info, warning, error)",
        category="logging",
    )
    LOG_FILE = EnvConfig(
        name="LOG_FILE",
        default=None,
        var_type=Path,
        description="Optional log file in addition to stderr",
        category="logging",
    )

    # -------------------------------------------------------------------------
    # Service
    # -------------------------------------------------------------------------
    MCP_HOST = EnvConfig(
        name="MCP_HOST",
        default="127.0.0.1",
        var_type=str,
        description="MCP server bind address for HTTP/SSE transports",
        category="service",
    )
    MCP_PORT = EnvConfig(
        name="MCP_PORT",
        default=18090,
        var_type=int,
        description="MCP server port for HTTP/SSE transports",
        category="service",
    )


# =============================================================================
# Type Conversion Helpers
# =============================================================================


def _parse_bool(value: str) -> bool | None:
    """Parse string to boolean.

    Recognizes: true/false, 1/0, yes/no (case-insensitive).
    Returns None for unrecognized values.
    """
    normalized = value.lower().strip()
    if normalized in ("true", "1", "yes"):
        return True
    if normalized in ("false", "0", "no"):
        return False
    return None


def _convert_value(value: str | None, var_type: type, default: Any) -> Any:
    """Convert string value to target type.

    Args:
        value: Raw string value from environment (or None).
        var_type: Target Python type.
        default: Default value if conversion fails or value is None.

    Returns:
        Converted value or default.
    """
    if value is None or value == "":
        return default

    if var_type is str:
        return value

    if var_type is int:
        try:
            return int(value)
        except ValueError:
            return default

    if var_type is float:
        try:
            return float(value)
        except ValueError:
            return default

    if var_type is bool:
        result = _parse_bool(value)
        return result if result is not None else default

    if var_type is Path:
        return Path(value).expanduser()

    return value


# =============================================================================
# Main Interface
# =============================================================================


@overload
def get_environment(env_var: EnvVar, override: int) -> int: ...
@overload
def get_environment(env_var: EnvVar, override: float) -> float: ...
@overload
def get_environment(env_var: EnvVar, override: str) -> str: ...
@overload
def get_environment(env_var: EnvVar, override: Path) -> Path: ...
@overload
def get_environment(env_var: EnvVar, override: None = None) -> Any: ...


def get_environment(env_var: EnvVar, override: Any = None) -> Any:
    """Get environment variable value with type conversion.

    Resolution priority:
        1. Explicit override parameter (highest)
        2. Environment variable value
        3. Default from EnvConfig (lowest)

    Args:
        env_var: Environment variable enum member.
        override: Optional override value (bypasses env lookup).

    Returns:
        Value converted to the appropriate type.
    """
    config: EnvConfig = env_var.value

    if override is not None:
        return override

    raw_value = os.environ.get(config.name)
    return _convert_value(raw_value, config.var_type, config.default)


def get_environment_info(env_var: EnvVar) -> EnvConfig:
    """Get metadata for an environment variable."""
    return env_var.value


def list_environment_variables(category: str | None = None) -> list[EnvVar]:
    """List all environment variables, optionally filtered by category.

    Args:
        category: Filter by category (storage, engine, generation, logging,
            service). None returns all variables.

    Returns:
        List of EnvVar enum members.
    """
    if category is None:
        return list(EnvVar)

    return [var for var in EnvVar if var.value.category == category]


# =============================================================================
# Convenience Functions
# =============================================================================


def get_session_storage_dir(override: Path | str | None = None) -> Path:
    """Get the session storage root.

    Resolution: override > SESSION_STORAGE_DIR > ~/.frameforge/sessions
    """
    if override is not None:
        return Path(override).expanduser()

    env_path = get_environment(EnvVar.SESSION_STORAGE_DIR)
    if env_path:
        return env_path

    return Path.home() / ".frameforge" / "sessions"


def get_model_cache_dir(override: Path | str | None = None) -> Path:
    """Get the model weights cache directory.

    Resolution: override > MODEL_CACHE_DIR > ~/.cache/huggingface/hub
    """
    if override is not None:
        return Path(override).expanduser()

    env_path = get_environment(EnvVar.MODEL_CACHE_DIR)
    if env_path:
        return env_path

    return Path.home() / ".cache" / "huggingface" / "hub"


# =============================================================================
# Engine Configuration
# =============================================================================

MAX_IMAGE_SIDE = 2048
MAX_INFERENCE_STEPS = 100


@dataclass
class EngineConfig:
    """Resolved configuration for the generation engine.

    Attributes:
        python_path: Interpreter for the generation subprocess.
        python_min_version: Minimum interpreter version required.
        model_name: Diffusion model identifier.
        model_cache_dir: Model weights cache directory.
        width: Default image width.
        height: Default image height.
        steps: Default diffusion steps.
        guidance_scale: Default guidance scale.
        timeout_ms: Hard subprocess timeout in milliseconds.
        max_retries: Attempts for transient failures.
    """

    python_path: str = "python3"
    python_min_version: str = "3.9"
    model_name: str = "stabilityai/stable-diffusion-2-1"
    model_cache_dir: Path | None = None
    width: int = 512
    height: int = 512
    steps: int = 20
    guidance_scale: float = 7.5
    timeout_ms: int = 120000
    max_retries: int = 3

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create config from environment variables."""
        return cls(
            python_path=get_environment(EnvVar.PYTHON_PATH),
            python_min_version=get_environment(EnvVar.PYTHON_MIN_VERSION),
            model_name=get_environment(EnvVar.MODEL_NAME),
            model_cache_dir=get_model_cache_dir(),
            width=get_environment(EnvVar.DEFAULT_IMAGE_WIDTH),
            height=get_environment(EnvVar.DEFAULT_IMAGE_HEIGHT),
            steps=get_environment(EnvVar.DEFAULT_INFERENCE_STEPS),
            guidance_scale=get_environment(EnvVar.DEFAULT_GUIDANCE_SCALE),
            timeout_ms=get_environment(EnvVar.SUBPROCESS_TIMEOUT_MS),
            max_retries=get_environment(EnvVar.ENGINE_MAX_RETRIES),
        )


def validate_engine_config(config: EngineConfig) -> None:
    """Check an EngineConfig for out-of-range values.

    Raises:
        ValueError: Listing every invalid field.
    """
    errors = []
    if not 1 <= config.width <= MAX_IMAGE_SIDE:
        errors.append(f"width must be 1-{MAX_IMAGE_SIDE}, got {config.width}")
    if not 1 <= config.height <= MAX_IMAGE_SIDE:
        errors.append(f"height must be 1-{MAX_IMAGE_SIDE}, got {config.height}")
    if not 1 <= config.steps <= MAX_INFERENCE_STEPS:
        errors.append(f"steps must be 1-{MAX_INFERENCE_STEPS}, got {config.steps}")
    if config.guidance_scale <= 0:
        errors.append(f"guidance_scale must be positive, got {config.guidance_scale}")
    if config.timeout_ms <= 0:
        errors.append(f"timeout_ms must be positive, got {config.timeout_ms}")
    if config.max_retries < 1:
        errors.append(f"max_retries must be at least 1, got {config.max_retries}")

    if errors:
        raise ValueError("Invalid engine configuration: " + "; ".join(errors))


def get_engine_config() -> EngineConfig:
    """Resolve and validate the engine configuration from the environment."""
    config = EngineConfig.from_env()
    validate_engine_config(config)
    return config


__all__ = [
    # Core types
    "EnvConfig",
    "EnvVar",
    "EngineConfig",
    # Main interface
    "get_environment",
    "get_environment_info",
    # Convenience functions
    "get_session_storage_dir",
    "get_model_cache_dir",
    "get_engine_config",
    "validate_engine_config",
    # Introspection
    "list_environment_variables",
]
