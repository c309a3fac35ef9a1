"""Centralized configuration management for frameforge.

Provides unified access to all configuration via the `get_environment()` function.

Example:
    >>> from frameforge.config import EnvVar, get_environment
    >>>
    >>> timeout = get_environment(EnvVar.SUBPROCESS_TIMEOUT_MS)  # Returns int
    >>> storage = get_session_storage_dir()  # ~/.frameforge/sessions by default
    >>>
    >>> for var in list_environment_variables("engine"):
    ...     info = get_environment_info(var)
    ...     print(f"{info.name}: {info.description}")

Environment Variable Categories:
    storage: Session persistence root
    engine: Generation subprocess, model and timeouts
    generation: Default width, height, steps and guidance
    logging: Log level and optional log file
    service: MCP bind address and port
"""

from .lib import (
    EngineConfig,
    EnvConfig,
    EnvVar,
    get_engine_config,
    get_environment,
    get_environment_info,
    get_model_cache_dir,
    get_session_storage_dir,
    list_environment_variables,
    validate_engine_config,
)

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
