"""Wireframe generation, component editing and version tools.

Every component edit is recorded in the component's version log and on
the session's undo stack. Before the first edit of a component the
version it currently has is pushed as a baseline, so undoing that edit
has a state to return to.
"""

import logging
from typing import Any

from frameforge.session import Session
from frameforge.validation import validate_layout_proportions
from frameforge.versions import ChangeType, UndoRedoState
from frameforge.wireframe import (
    ProportionAdjustment,
    Wireframe,
    WireframeComponent,
    apply_component_update,
    apply_refinement,
    build_wireframe,
    describe_component,
    find_component,
    find_components_by_type,
    iter_components,
    parse_refinement,
    render_outline,
    replace_component,
    shift_following,
)
from frameforge.wireframe import adjust_proportions as resize_component

from ..context import ToolContext
from ..errors import Content, ToolValidationError, tool_boundary
from .content import json_text, require_text, text

logger = logging.getLogger(__name__)

UNDO_ACTIONS = ("undo", "redo", "status")


# =============================================================================
# Helpers
# =============================================================================


async def _resolve_wireframe(
    ctx: ToolContext, session: Session, wireframe_id: str | None
) -> Wireframe:
    """Load the requested wireframe, or the session's current one."""
    if wireframe_id is None:
        if session.current_wireframe is None:
            raise ToolValidationError(
                f"No wireframes found for session {session.id}. "
                "Generate one first using generate_wireframe."
            )
        wireframe_id = session.current_wireframe.id

    wireframe = await ctx.sessions.load_wireframe(session.id, wireframe_id)
    if wireframe is None:
        raise ToolValidationError(f"Wireframe {wireframe_id} not found")
    return wireframe


def _require_component(wireframe: Wireframe, component_id: str) -> WireframeComponent:
    component = find_component(wireframe, component_id)
    if component is None:
        raise ToolValidationError(f"Component with ID '{component_id}' not found")
    return component


def _find_target(
    wireframe: Wireframe, component_id: str | None, component_type: str | None
) -> WireframeComponent:
    """Component by id, or the first one of a type in depth-first order."""
    if component_id:
        return _require_component(wireframe, component_id)
    if not component_type:
        raise ToolValidationError("Provide component_id or component_type")
    try:
        matches = find_components_by_type(wireframe, component_type)
    except ValueError:
        raise ToolValidationError(f"Unknown component type: {component_type}") from None
    if not matches:
        raise ToolValidationError(f"No components of type '{component_type}' found")
    return matches[0]


async def _commit(ctx: ToolContext, session: Session, wireframe: Wireframe) -> None:
    """Persist a wireframe and keep the session's copy in step."""
    await ctx.sessions.save_wireframe(session.id, wireframe)
    current = session.current_wireframe
    if current is None or current.id == wireframe.id:
        session.current_wireframe = wireframe
        await ctx.sessions.save_session(session)


async def _ensure_baseline(
    ctx: ToolContext, session_id: str, wireframe: Wireframe, component: WireframeComponent
) -> None:
    """Push the component's current version unless it is already on top."""
    manager = ctx.undo_manager(session_id)
    top = manager.peek()
    if top is not None and (top.wireframe_id, top.component_id) == (wireframe.id, component.id):
        return

    history = await ctx.versions.get_history(session_id, wireframe.id, component.id)
    current = history.current if history else None
    if current is None:
        current = await ctx.versions.record_version(
            session_id, wireframe.id, component, ChangeType.CREATED, f"Initial {component.type}"
        )
    manager.push_state(UndoRedoState(wireframe.id, component.id, current.version_id))


async def _record_edit(
    ctx: ToolContext,
    session_id: str,
    wireframe: Wireframe,
    component: WireframeComponent,
    updated: WireframeComponent,
    description: str,
) -> None:
    """Version and stack an edit, then apply it to the in-memory wireframe."""
    await _ensure_baseline(ctx, session_id, wireframe, component)
    await ctx.undo_manager(session_id).record_change(wireframe.id, updated, description)
    replace_component(wireframe, updated)


def _layout_warnings(wireframe: Wireframe) -> str:
    layout = validate_layout_proportions(
        wireframe.metadata.width, wireframe.metadata.height, wireframe.components
    )
    return "".join(f"\n\nWarning: {w}" for w in layout.errors + layout.warnings)


# =============================================================================
# Tools
# =============================================================================


@tool_boundary("generate_wireframe")
async def generate_wireframe(
    ctx: ToolContext,
    session_id: str,
    description: str,
    width: int | None = None,
    height: int | None = None,
) -> list[Content]:
    """Lay out a wireframe from a description and record initial versions."""
    session_id = require_text(session_id, "session_id")
    description = require_text(description, "description")
    session = await ctx.require_session(session_id)

    wireframe, template = build_wireframe(description, session.id, width, height)
    for component in iter_components(wireframe.components):
        await ctx.versions.record_version(
            session.id, wireframe.id, component, ChangeType.CREATED, f"Initial {component.type}"
        )

    session.current_wireframe = wireframe
    await _commit(ctx, session, wireframe)
    logger.info(f"Session {session.id}: wireframe {wireframe.id} from '{template.name}'")

    return [
        text(f"Generated wireframe using template '{template.name}'\n\n{render_outline(wireframe)}"),
        json_text(wireframe.model_dump(mode="json")),
    ]


@tool_boundary("show_component")
async def show_component(
    ctx: ToolContext,
    session_id: str,
    component_id: str | None = None,
    component_type: str | None = None,
    wireframe_id: str | None = None,
) -> list[Content]:
    """Describe one component by id, or every component of a type."""
    session_id = require_text(session_id, "session_id")
    session = await ctx.require_session(session_id)
    wireframe = await _resolve_wireframe(ctx, session, wireframe_id)

    if component_id:
        return [text(describe_component(_require_component(wireframe, component_id)))]

    if component_type:
        try:
            matches = find_components_by_type(wireframe, component_type)
        except ValueError:
            raise ToolValidationError(f"Unknown component type: {component_type}") from None
        if not matches:
            return [text(f"No components of type '{component_type}' found")]
        return [text("\n\n---\n\n".join(describe_component(c) for c in matches))]

    return [text(render_outline(wireframe))]


@tool_boundary("update_component")
async def update_component(
    ctx: ToolContext,
    session_id: str,
    component_id: str,
    properties: dict[str, Any] | None = None,
    dimensions: dict[str, float] | None = None,
    position: dict[str, float] | None = None,
    wireframe_id: str | None = None,
) -> list[Content]:
    """Edit one component and record the change for undo."""
    session_id = require_text(session_id, "session_id")
    component_id = require_text(component_id, "component_id")
    if properties is None and dimensions is None and position is None:
        raise ToolValidationError("Provide at least one of properties, dimensions or position")

    session = await ctx.require_session(session_id)
    wireframe = await _resolve_wireframe(ctx, session, wireframe_id)
    component = _require_component(wireframe, component_id)

    try:
        updated = apply_component_update(component, properties, dimensions, position)
    except ValueError as e:
        raise ToolValidationError(str(e)) from e

    changed = [
        name
        for name, value in (
            ("properties", properties),
            ("dimensions", dimensions),
            ("position", position),
        )
        if value is not None
    ]
    await _record_edit(
        ctx, session.id, wireframe, component, updated, f"Updated {', '.join(changed)}"
    )
    await _commit(ctx, session, wireframe)

    return [
        text(
            f"Updated component {component_id}\n\n{describe_component(updated)}"
            f"{_layout_warnings(wireframe)}"
        )
    ]


@tool_boundary("list_component_versions")
async def list_component_versions(
    ctx: ToolContext,
    session_id: str,
    component_id: str,
    wireframe_id: str | None = None,
) -> list[Content]:
    session_id = require_text(session_id, "session_id")
    component_id = require_text(component_id, "component_id")
    session = await ctx.require_session(session_id)
    wireframe = await _resolve_wireframe(ctx, session, wireframe_id)

    versions = await ctx.versions.list_versions(session.id, wireframe.id, component_id)
    if not versions:
        return [text(f"No versions recorded for component {component_id}")]

    lines = [f"{len(versions)} version(s) of {component_id}:"]
    for summary in versions:
        lines.append(
            f"- {summary.version_id} [{summary.change_type.value}] "
            f"{summary.change_description} ({summary.timestamp:%Y-%m-%d %H:%M:%S})"
        )
    return [text("\n".join(lines)), json_text([v.to_dict() for v in versions])]


@tool_boundary("restore_component_version")
async def restore_component_version(
    ctx: ToolContext,
    session_id: str,
    component_id: str,
    version_id: str,
    wireframe_id: str | None = None,
) -> list[Content]:
    """Bring back an earlier version as a new "restored" version."""
    session_id = require_text(session_id, "session_id")
    component_id = require_text(component_id, "component_id")
    version_id = require_text(version_id, "version_id")
    session = await ctx.require_session(session_id)
    wireframe = await _resolve_wireframe(ctx, session, wireframe_id)
    component = _require_component(wireframe, component_id)

    await _ensure_baseline(ctx, session.id, wireframe, component)
    restored = await ctx.versions.restore_version(
        session.id, wireframe.id, component_id, version_id
    )
    if restored is None:
        raise ToolValidationError(f"Version {version_id} not found for component {component_id}")

    ctx.undo_manager(session.id).push_state(
        UndoRedoState(wireframe.id, component_id, restored.version_id)
    )
    replace_component(wireframe, restored.component_state)
    await _commit(ctx, session, wireframe)

    return [
        text(
            f"Restored {component_id} to version {version_id} "
            f"(new version {restored.version_id})\n\n"
            f"{describe_component(restored.component_state)}"
        )
    ]


@tool_boundary("undo_wireframe")
async def undo_wireframe(
    ctx: ToolContext, session_id: str, action: str = "undo"
) -> list[Content]:
    """Undo, redo or report on wireframe component edits."""
    session_id = require_text(session_id, "session_id")
    if action not in UNDO_ACTIONS:
        raise ToolValidationError(f"Unknown action: {action}. Use 'undo', 'redo', or 'status'")
    session = await ctx.require_session(session_id)
    manager = ctx.undo_manager(session.id)

    if action == "status":
        undo_depth = max(manager.get_undo_stack_size() - 1, 0)
        redo_depth = manager.get_redo_stack_size()
        return [
            text(
                "Undo/Redo Status:\n"
                f"- Undo available: {'Yes' if manager.can_undo() else 'No'} ({undo_depth} states)\n"
                f"- Redo available: {'Yes' if manager.can_redo() else 'No'} ({redo_depth} states)"
            )
        ]

    if action == "undo":
        if not manager.can_undo():
            return [text("Nothing to undo")]
        state = await manager.undo()
    else:
        if not manager.can_redo():
            return [text("Nothing to redo")]
        state = await manager.redo()

    pointer = manager.peek()
    if state is None or pointer is None:
        raise ToolValidationError("Recorded version is missing from the version log")

    wireframe = await _resolve_wireframe(ctx, session, pointer.wireframe_id)
    replace_component(wireframe, state)
    await _commit(ctx, session, wireframe)

    return [
        text(
            f"{action.capitalize()} successful\n\n"
            f"Session ID: {session.id}\n"
            f"Wireframe ID: {wireframe.id}\n"
            f"Component: {state.id}\n"
            f"Undo stack depth: {manager.get_undo_stack_size()}\n"
            f"Redo stack depth: {manager.get_redo_stack_size()}"
        ),
        text(describe_component(state)),
    ]


@tool_boundary("adjust_proportions")
async def adjust_proportions(
    ctx: ToolContext,
    session_id: str,
    component_id: str | None = None,
    component_type: str | None = None,
    width_delta: float | None = None,
    height_delta: float | None = None,
    width_percent: float | None = None,
    height_percent: float | None = None,
    spacing_delta: float | None = None,
    wireframe_id: str | None = None,
) -> list[Content]:
    """Resize a component or change its spacing.

    When the width changes, top-level components to the right of a
    top-level target move by the same amount. Each moved component is a
    separate undoable change.
    """
    session_id = require_text(session_id, "session_id")
    adjustment = ProportionAdjustment(
        width_delta=width_delta,
        height_delta=height_delta,
        width_percent=width_percent,
        height_percent=height_percent,
        spacing_delta=spacing_delta,
    )
    if adjustment.is_empty():
        raise ToolValidationError(
            "Provide at least one of width_delta, height_delta, width_percent, "
            "height_percent or spacing_delta"
        )

    session = await ctx.require_session(session_id)
    wireframe = await _resolve_wireframe(ctx, session, wireframe_id)
    component = _find_target(wireframe, component_id, component_type)

    try:
        adjusted = resize_component(
            component, adjustment, wireframe.metadata.width, wireframe.metadata.height
        )
    except ValueError as e:
        raise ToolValidationError(str(e)) from e

    applied = ", ".join(
        f"{name}={value:g}" for name, value in adjustment.to_dict().items() if value is not None
    )
    await _record_edit(
        ctx, session.id, wireframe, component, adjusted, f"Adjusted proportions ({applied})"
    )

    old_width = component.dimensions.width if component.dimensions else 0
    width_change = (adjusted.dimensions.width if adjusted.dimensions else 0) - old_width
    moved = []
    for neighbour in shift_following(wireframe, component.id, width_change):
        await _record_edit(
            ctx,
            session.id,
            wireframe,
            _require_component(wireframe, neighbour.id),
            neighbour,
            f"Moved {width_change:+g}px after resizing {component.id}",
        )
        moved.append(neighbour.id)

    await _commit(ctx, session, wireframe)
    logger.info(f"Session {session.id}: adjusted {component.id} ({applied})")

    message = (
        f"Adjusted proportions of {component.id} ({applied})\n\n{describe_component(adjusted)}"
    )
    if moved:
        message += f"\n\nMoved {width_change:+g}px: {', '.join(moved)}"
    return [text(message + _layout_warnings(wireframe))]


@tool_boundary("refine_component")
async def refine_component(
    ctx: ToolContext,
    session_id: str,
    instruction: str,
    component_id: str | None = None,
    component_type: str | None = None,
    wireframe_id: str | None = None,
) -> list[Content]:
    """Apply a short plain-language change such as "make it narrower"."""
    session_id = require_text(session_id, "session_id")
    instruction = require_text(instruction, "instruction")
    refinement = parse_refinement(instruction)
    if refinement.is_empty():
        raise ToolValidationError(
            f"Could not understand refinement: {instruction}. Try 'narrower', 'wider', "
            "'taller', '4 columns', 'spacing 24' or 'add profile section'"
        )

    session = await ctx.require_session(session_id)
    wireframe = await _resolve_wireframe(ctx, session, wireframe_id)
    component = _find_target(wireframe, component_id, component_type)

    try:
        refined = apply_refinement(component, refinement)
    except ValueError as e:
        raise ToolValidationError(str(e)) from e

    added = {c.id for c in refined.children} - {c.id for c in component.children}
    taken = sorted(i for i in added if find_component(wireframe, i) is not None)
    if taken:
        raise ToolValidationError(f"Component id already in use: {', '.join(taken)}")

    await _record_edit(ctx, session.id, wireframe, component, refined, f"Refined: {instruction}")
    await _commit(ctx, session, wireframe)
    logger.info(f"Session {session.id}: refined {component.id} with '{instruction}'")

    return [
        text(
            f"Refined {component.type} ({component.id})\n"
            f"Changes: {'; '.join(refinement.describe())}\n\n"
            f"{describe_component(refined)}{_layout_warnings(wireframe)}"
        )
    ]


__all__ = [
    "generate_wireframe",
    "show_component",
    "update_component",
    "adjust_proportions",
    "refine_component",
    "list_component_versions",
    "restore_component_version",
    "undo_wireframe",
]
