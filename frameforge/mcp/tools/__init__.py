"""MCP tool handlers.

Each handler takes the ToolContext first and returns MCP content blocks.
"""

from .assets import generate_variants, refine_asset, select_variant
from .iterations import (
    compare_iterations,
    export_image,
    generate_image,
    list_iterations,
    preview_iteration,
    redo,
    resolve_iteration_reference,
    rollback_iteration,
    undo,
)
from .sessions import create_session, delete_session, list_sessions
from .status import get_metrics, list_available_models, status
from .wireframes import (
    adjust_proportions,
    generate_wireframe,
    list_component_versions,
    refine_component,
    restore_component_version,
    show_component,
    undo_wireframe,
    update_component,
)

__all__ = [
    "status",
    "get_metrics",
    "list_available_models",
    "create_session",
    "list_sessions",
    "delete_session",
    "generate_image",
    "list_iterations",
    "preview_iteration",
    "compare_iterations",
    "resolve_iteration_reference",
    "export_image",
    "rollback_iteration",
    "undo",
    "redo",
    "generate_variants",
    "select_variant",
    "refine_asset",
    "generate_wireframe",
    "show_component",
    "update_component",
    "adjust_proportions",
    "refine_component",
    "list_component_versions",
    "restore_component_version",
    "undo_wireframe",
]
