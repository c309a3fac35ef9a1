"""Image generation and iteration history tools.

Undo and redo move the in-memory cursor of a session's iteration
history; rollback marks a target iteration and can optionally discard
every later iteration.
"""

import base64
import logging
import re

from frameforge.config import EnvVar, get_environment
from frameforge.engine import GenerationOptions
from frameforge.session import InlineImage, Iteration, IterationNotFoundError
from frameforge.validation import validate_image_dimensions

from ..context import ToolContext
from ..errors import Content, ToolValidationError, tool_boundary
from .content import SVG_MIME_TYPE, image, json_text, require_index, require_text, text

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("png", "svg")
EXPORT_RESOLUTIONS = {"1x": 1, "2x": 2, "3x": 3}

# "2", "#2", "v2", "version 2", "iteration 2"
_NUMERIC_REFERENCE = re.compile(r"^(?:#|v|version|iteration)?\s*(\d+)$", re.IGNORECASE)


def _iteration_payload(iteration: Iteration, current_index: int) -> dict:
    meta = iteration.result.metadata
    return {
        "index": iteration.index,
        "prompt": iteration.prompt,
        "timestamp": iteration.timestamp.isoformat(),
        "is_current": iteration.index == current_index,
        "rolled_back_to": iteration.rolled_back_to,
        "width": meta.width,
        "height": meta.height,
        "steps": meta.steps,
        "seed": meta.seed,
        "latency_ms": round(meta.latency_ms),
    }


def _history(ctx: ToolContext, session_id: str):
    history = ctx.sessions.get_active_history(session_id)
    if history is None:
        raise ToolValidationError(f"session history not found for: {session_id}")
    return history


def _require_iteration(history, index: int) -> Iteration:
    iteration = history.get_iteration(index)
    if iteration is None:
        raise ToolValidationError(f"iteration index out of range: {index}")
    return iteration


@tool_boundary("generate_image")
async def generate_image(
    ctx: ToolContext,
    session_id: str,
    prompt: str,
    width: int | None = None,
    height: int | None = None,
    steps: int | None = None,
    guidance_scale: float | None = None,
    seed: int | None = None,
) -> list[Content]:
    """Generate an image and append it to the session as a new iteration."""
    session_id = require_text(session_id, "session_id")
    prompt = require_text(prompt, "prompt")
    width = width or get_environment(EnvVar.DEFAULT_IMAGE_WIDTH)
    height = height or get_environment(EnvVar.DEFAULT_IMAGE_HEIGHT)
    check = validate_image_dimensions(width, height)
    if not check.valid:
        raise ToolValidationError(check.reason)

    session = await ctx.require_session(session_id)
    result = await ctx.generate(
        GenerationOptions(
            prompt=prompt,
            width=width,
            height=height,
            steps=steps,
            guidance_scale=guidance_scale,
            seed=seed,
        ),
        operation_name="generate_image",
    )
    if not isinstance(result.image, InlineImage):
        raise RuntimeError("Engine returned no image data")
    image_data = result.image.data

    iteration = ctx.sessions.add_iteration_to_session(session.id, prompt, result)
    await ctx.sessions.save_session(session)
    logger.info(f"Session {session.id}: iteration {iteration.index} generated")

    meta = result.metadata
    return [
        text(
            f"Generated iteration {iteration.index} for session {session.id}\n\n"
            f'Prompt: "{prompt}"\n'
            f"Size: {meta.width}x{meta.height}, steps {meta.steps}, "
            f"guidance {meta.guidance_scale:g}\n"
            f"Latency: {meta.latency_ms:.0f}ms"
        ),
        image(image_data),
    ]


@tool_boundary("list_iterations")
async def list_iterations(
    ctx: ToolContext, session_id: str, limit: int | None = None
) -> list[Content]:
    session_id = require_text(session_id, "session_id")
    await ctx.require_session(session_id)
    history = _history(ctx, session_id)

    if history.size == 0:
        return [text(f"No iterations yet in session {session_id}")]

    iterations = history.get_last_n(limit) if limit else history.get_all_iterations()
    current = history.get_current_index()
    lines = [f"Session {session_id}: {history.size} iteration(s), current #{current}"]
    for iteration in iterations:
        badges = ""
        if iteration.index == current:
            badges += " [current]"
        if iteration.rolled_back_to:
            badges += " [rolled back]"
        lines.append(f'#{iteration.index}{badges} "{iteration.prompt}"')

    return [
        text("\n".join(lines)),
        json_text([_iteration_payload(i, current) for i in iterations]),
    ]


@tool_boundary("preview_iteration")
async def preview_iteration(
    ctx: ToolContext, session_id: str, iteration_index: int
) -> list[Content]:
    """Show an iteration without moving the cursor."""
    session_id = require_text(session_id, "session_id")
    require_index(iteration_index)
    await ctx.require_session(session_id)
    history = _history(ctx, session_id)

    iteration = _require_iteration(history, iteration_index)

    data = await ctx.sessions.load_iteration_image(session_id, iteration_index)
    return [
        json_text(_iteration_payload(iteration, history.get_current_index())),
        image(data),
    ]


@tool_boundary("rollback_iteration")
async def rollback_iteration(
    ctx: ToolContext,
    session_id: str,
    iteration_index: int,
    discard_later: bool = False,
) -> list[Content]:
    """Mark an iteration as the rollback target.

    With ``discard_later`` every iteration after the target is dropped
    and the cursor moves to the target.
    """
    session_id = require_text(session_id, "session_id")
    require_index(iteration_index)
    session = await ctx.require_session(session_id)
    history = _history(ctx, session_id)

    try:
        target = history.mark_rolled_back_to(iteration_index)
    except IndexError as e:
        raise IterationNotFoundError(session_id, iteration_index) from e

    discarded = []
    if discard_later:
        discarded = ctx.sessions.truncate_iterations(session_id, iteration_index)
    await ctx.sessions.save_session(session)

    data = await ctx.sessions.load_iteration_image(session_id, target.index)
    message = f'Rolled back to iteration {target.index}: "{target.prompt}"'
    if discarded:
        message += f"\nDiscarded {len(discarded)} later iteration(s)"
    return [text(message), image(data)]


async def _move_cursor(ctx: ToolContext, session_id: str, forward: bool) -> list[Content]:
    session_id = require_text(session_id, "session_id")
    await ctx.require_session(session_id)
    history = _history(ctx, session_id)

    if forward:
        if not history.can_redo():
            raise ToolValidationError("cannot redo, no undone iterations available")
        iteration = history.redo()
    else:
        if not history.can_undo():
            raise ToolValidationError("cannot undo, no previous iterations available")
        iteration = history.undo()

    data = await ctx.sessions.load_iteration_image(session_id, iteration.index)
    payload = _iteration_payload(iteration, history.get_current_index())
    payload.update(can_undo=history.can_undo(), can_redo=history.can_redo())
    return [json_text(payload), image(data)]


@tool_boundary("undo")
async def undo(ctx: ToolContext, session_id: str) -> list[Content]:
    return await _move_cursor(ctx, session_id, forward=False)


@tool_boundary("redo")
async def redo(ctx: ToolContext, session_id: str) -> list[Content]:
    return await _move_cursor(ctx, session_id, forward=True)


# =============================================================================
# Comparison, References and Export
# =============================================================================


def _difference(a, b) -> str:
    return "(same)" if a == b else f"A: {a} | B: {b}"


@tool_boundary("compare_iterations")
async def compare_iterations(
    ctx: ToolContext, session_id: str, iteration_a: int, iteration_b: int
) -> list[Content]:
    """Side-by-side A/B view of two iterations: parameter diff and both images."""
    session_id = require_text(session_id, "session_id")
    require_index(iteration_a, "iteration_a")
    require_index(iteration_b, "iteration_b")
    await ctx.require_session(session_id)
    history = _history(ctx, session_id)
    first = _require_iteration(history, iteration_a)
    second = _require_iteration(history, iteration_b)
    a, b = first.result.metadata, second.result.metadata

    if first.prompt == second.prompt:
        prompt_diff = "(same prompt)"
    else:
        prompt_diff = f'A: "{first.prompt}"\nB: "{second.prompt}"'

    summary = (
        f"A/B comparison in session {session_id}\n"
        f"Iteration A: {first.index} ({first.timestamp:%Y-%m-%d %H:%M:%S})\n"
        f"Iteration B: {second.index} ({second.timestamp:%Y-%m-%d %H:%M:%S})\n\n"
        f"Prompt:\n{prompt_diff}\n\n"
        "Parameters:\n"
        f"- Dimensions: {_difference(f'{a.width}x{a.height}', f'{b.width}x{b.height}')}\n"
        f"- Steps: {_difference(a.steps, b.steps)}\n"
        f"- Guidance scale: {_difference(f'{a.guidance_scale:g}', f'{b.guidance_scale:g}')}\n"
        f"- Seed: {_difference(a.seed, b.seed)}\n\n"
        f"Latency: A {a.latency_ms:.0f}ms, B {b.latency_ms:.0f}ms"
    )
    return [
        text(summary),
        image(await ctx.sessions.load_iteration_image(session_id, first.index)),
        image(await ctx.sessions.load_iteration_image(session_id, second.index)),
    ]


@tool_boundary("resolve_iteration_reference")
async def resolve_iteration_reference(
    ctx: ToolContext, session_id: str, reference: str
) -> list[Content]:
    """Turn "2", "version 2" or a prompt fragment into an iteration index.

    Numbers are looked up directly. Anything else is matched as a
    case-insensitive substring of the prompts and must match exactly one
    iteration.
    """
    session_id = require_text(session_id, "session_id")
    reference = require_text(reference, "reference")
    await ctx.require_session(session_id)
    history = _history(ctx, session_id)

    numeric = _NUMERIC_REFERENCE.match(reference)
    if numeric:
        index = int(numeric.group(1))
        iteration = history.get_iteration(index)
        if iteration is None:
            raise ToolValidationError(f"iteration {index} not found")
    else:
        needle = reference.lower()
        matches = [i for i in history.get_all_iterations() if needle in i.prompt.lower()]
        if not matches:
            raise ToolValidationError(f'no iterations found matching "{reference}"')
        if len(matches) > 1:
            listing = "\n".join(f'- Iteration {m.index}: "{m.prompt}"' for m in matches)
            raise ToolValidationError(
                f'multiple matches found for "{reference}":\n\n{listing}\n\n'
                "Please use a more specific reference."
            )
        iteration = matches[0]

    logger.info(f"Session {session_id}: resolved '{reference}' to iteration {iteration.index}")
    return [
        json_text(
            {
                "resolved": True,
                "iteration_index": iteration.index,
                "prompt": iteration.prompt,
                "timestamp": iteration.timestamp.isoformat(),
            }
        )
    ]


def _svg_document(png_base64: str, width: int, height: int, scale: int) -> str:
    """SVG that embeds the PNG; scaling only changes the display size."""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width * scale}" '
        f'height="{height * scale}" viewBox="0 0 {width} {height}">\n'
        f'  <image href="data:image/png;base64,{png_base64}" '
        f'width="{width}" height="{height}"/>\n'
        "</svg>\n"
    )


@tool_boundary("export_image")
async def export_image(
    ctx: ToolContext,
    session_id: str,
    iteration_index: int,
    export_format: str = "png",
    resolution: str = "1x",
) -> list[Content]:
    """Return an iteration's image as PNG, or as SVG at 1x, 2x or 3x.

    PNG is only offered at 1x since scaling it would need resampling.
    """
    session_id = require_text(session_id, "session_id")
    require_index(iteration_index)
    export_format = export_format.strip().lower()
    if export_format not in EXPORT_FORMATS:
        raise ToolValidationError(f"Unknown format: {export_format}. Use 'png' or 'svg'")
    scale = EXPORT_RESOLUTIONS.get(resolution.strip().lower())
    if scale is None:
        raise ToolValidationError(f"Unknown resolution: {resolution}. Use '1x', '2x' or '3x'")
    if export_format == "png" and scale != 1:
        raise ToolValidationError(
            f"PNG export is only available at 1x; use format 'svg' for {resolution}"
        )

    await ctx.require_session(session_id)
    iteration = _require_iteration(_history(ctx, session_id), iteration_index)
    data = await ctx.sessions.load_iteration_image(session_id, iteration_index)
    meta = iteration.result.metadata

    if export_format == "svg":
        svg = _svg_document(data, meta.width, meta.height, scale)
        block = image(base64.b64encode(svg.encode("utf-8")).decode("ascii"), SVG_MIME_TYPE)
    else:
        block = image(data)

    logger.info(
        f"Session {session_id}: exported iteration {iteration_index} "
        f"as {export_format} @{scale}x"
    )
    return [
        text(
            f"Exported iteration {iteration_index} of session {session_id}\n"
            f"Format: {export_format.upper()}\n"
            f"Resolution: @{scale}x ({meta.width * scale}x{meta.height * scale})\n"
            f'Prompt: "{iteration.prompt}"'
        ),
        block,
    ]


__all__ = [
    "generate_image",
    "list_iterations",
    "preview_iteration",
    "rollback_iteration",
    "undo",
    "redo",
    "compare_iterations",
    "resolve_iteration_reference",
    "export_image",
]
