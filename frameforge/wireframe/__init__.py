"""Wireframe models, templates and tree helpers.

Example:
    >>> from frameforge.wireframe import build_wireframe, find_component
    >>> wireframe, template = build_wireframe("admin dashboard", session_id="s1")
    >>> template.name
    'Dashboard'
    >>> find_component(wireframe, "sidebar-1").dimensions.width
    240.0
"""

from .edits import (
    MIN_ADJUSTED_SIDE,
    ProportionAdjustment,
    Refinement,
    adjust_proportions,
    apply_refinement,
    parse_refinement,
    shift_following,
)
from .lib import (
    apply_component_update,
    describe_component,
    find_component,
    find_components_by_type,
    iter_components,
    render_outline,
    replace_component,
)
from .models import (
    ComponentType,
    Dimensions,
    Position,
    Wireframe,
    WireframeComponent,
    WireframeMetadata,
)
from .templates import (
    WIREFRAME_TEMPLATES,
    ComponentSpec,
    WireframeTemplate,
    build_wireframe,
    get_template,
    layout_template,
    list_templates,
    match_template,
)

__all__ = [
    # Models
    "ComponentType",
    "Dimensions",
    "Position",
    "Wireframe",
    "WireframeComponent",
    "WireframeMetadata",
    # Templates
    "WIREFRAME_TEMPLATES",
    "ComponentSpec",
    "WireframeTemplate",
    "build_wireframe",
    "get_template",
    "layout_template",
    "list_templates",
    "match_template",
    # Tree helpers
    "apply_component_update",
    "describe_component",
    "find_component",
    "find_components_by_type",
    "iter_components",
    "render_outline",
    "replace_component",
    # Edits
    "MIN_ADJUSTED_SIDE",
    "ProportionAdjustment",
    "Refinement",
    "adjust_proportions",
    "apply_refinement",
    "parse_refinement",
    "shift_following",
]
