"""MCP (Model Context Protocol) server for frameforge.

Exposes image generation, iteration history, asset variants and
wireframe editing to LLM clients like Claude Desktop.

Example:
    # Start server in STDIO mode (for Claude Desktop)
    >>> from frameforge.mcp import run_server
    >>> run_server()

    # Start server in HTTP mode
    >>> from frameforge.mcp import ServerConfig, run_server
    >>> run_server(ServerConfig.from_env(transport="http", port=18090))

    # Create server for testing
    >>> from frameforge.mcp import ToolContext, create_server
    >>> server = create_server(ToolContext.create(storage_dir=tmp_path))

Available Tools:
    - status, get_metrics: Health and operation metrics
    - create_session, list_sessions, delete_session: Session lifecycle
    - generate_image, list_iterations, preview_iteration,
      rollback_iteration, undo, redo: Image iterations
    - generate_variants, select_variant, refine_asset: Asset variants
    - generate_wireframe, show_component, update_component,
      list_component_versions, restore_component_version,
      undo_wireframe: Wireframes and component versions
"""

from .context import ToolContext
from .errors import (
    ErrorCategory,
    ErrorSeverity,
    StructuredError,
    ToolValidationError,
    categorize_error,
    format_for_mcp,
    tool_boundary,
)
from .lib import (
    ServerConfig,
    TransportType,
    get_server_capabilities,
    get_server_version,
)
from .server import create_server, run_server

__all__ = [
    # Server
    "create_server",
    "run_server",
    "ToolContext",
    # Configuration
    "ServerConfig",
    "TransportType",
    # Errors
    "ErrorCategory",
    "ErrorSeverity",
    "StructuredError",
    "ToolValidationError",
    "categorize_error",
    "format_for_mcp",
    "tool_boundary",
    # Utilities
    "get_server_version",
    "get_server_capabilities",
]
