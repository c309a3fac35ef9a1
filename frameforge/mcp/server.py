"""FastMCP server for frameforge.

Exposes conversational image generation with per-session iteration
history, asset variants and editable wireframes with version history.

Usage:
    # STDIO mode (for Claude Desktop)
    python -m frameforge.mcp.server

    # HTTP mode
    python -m frameforge.mcp.server --transport http --port 18090

    # Via CLI
    python . mcp run
"""

import argparse
import asyncio
import logging
import sys
from typing import Any

from dotenv import load_dotenv
from fastmcp import FastMCP
from mcp.types import ImageContent, TextContent

from frameforge.core.log import setup_logging

from . import tools
from .context import ToolContext
from .lib import ServerConfig, TransportType, get_server_version

logger = logging.getLogger(__name__)

ToolResult = list[TextContent | ImageContent]


# =============================================================================
# Server Instructions (LLM Guidance)
# =============================================================================

SERVER_INSTRUCTIONS = """\
## FrameForge MCP Server

Generates images and UI wireframes conversationally. Every result is kept in
a session so the user can step back, compare and refine.

### Quick Start
1. `status()` -> check the engine is ready
   (`list_available_models()` shows which models are downloaded)
2. `create_session()` -> get a session_id
3. `generate_image(session_id, prompt)` -> first iteration
4. Iterate with new prompts; use `undo`/`redo` to move between results

### Image Iterations
- `list_iterations(session_id)` - Prompts and the current position
- `preview_iteration(session_id, iteration_index)` - Look without moving
- `compare_iterations(session_id, iteration_a, iteration_b)` - A/B view
- `resolve_iteration_reference(session_id, reference)` - "the blue one" -> index
- `export_image(session_id, iteration_index, format="png", resolution="1x")`
- `rollback_iteration(session_id, iteration_index, discard_later=False)`

### Assets
- `generate_variants(session_id, description, asset_type="icon", count=3)`
- `select_variant(session_id, variant_id)`
- `refine_asset(session_id, instruction)` - Refine the selected variant

### Wireframes
- `generate_wireframe(session_id, description)` - Layout from a template
- `show_component(session_id, component_id)` - Inspect a component
- `update_component(session_id, component_id, properties, dimensions, position)`
- `adjust_proportions(session_id, component_id, width_delta=..., spacing_delta=...)`
- `refine_component(session_id, instruction, component_id)` - "make it narrower"
- `list_component_versions` / `restore_component_version`
- `undo_wireframe(session_id, action="undo"|"redo"|"status")`
"""


# =============================================================================
# Server Factory
# =============================================================================


def create_server(ctx: ToolContext, name: str = "frameforge-mcp") -> FastMCP:
    """Create a FastMCP server bound to a tool context.

    Args:
        ctx: Shared services for the tool handlers.
        name: Server display name.

    Returns:
        Configured FastMCP server instance.
    """
    mcp = FastMCP(name=name, instructions=SERVER_INSTRUCTIONS)

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    @mcp.tool
    async def status() -> ToolResult:
        """Report engine readiness, storage and active sessions."""
        return await tools.status(ctx)

    @mcp.tool
    async def get_metrics() -> ToolResult:
        """Operation latency and error metrics for this server run."""
        return await tools.get_metrics(ctx)

    @mcp.tool
    async def list_available_models() -> ToolResult:
        """List MLX-compatible Stable Diffusion models and which are downloaded."""
        return await tools.list_available_models(ctx)

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    @mcp.tool
    async def create_session() -> ToolResult:
        """Start a new session. Returns its session_id."""
        return await tools.create_session(ctx)

    @mcp.tool
    async def list_sessions() -> ToolResult:
        """List saved sessions, newest first by creation time."""
        return await tools.list_sessions(ctx)

    @mcp.tool
    async def delete_session(session_id: str) -> ToolResult:
        """Delete a session with its images, wireframes and versions."""
        return await tools.delete_session(ctx, session_id=session_id)

    # -------------------------------------------------------------------------
    # Image Iterations
    # -------------------------------------------------------------------------

    @mcp.tool
    async def generate_image(
        session_id: str,
        prompt: str,
        width: int | None = None,
        height: int | None = None,
        steps: int | None = None,
        guidance_scale: float | None = None,
        seed: int | None = None,
    ) -> ToolResult:
        """Generate an image and add it to the session as a new iteration.

        Args:
            session_id: Session from create_session.
            prompt: What to draw.
            width: Image width in pixels (64-2048).
            height: Image height in pixels (64-2048).
            steps: Diffusion steps (default 20).
            guidance_scale: Prompt adherence (default 7.5).
            seed: Fix the seed to reproduce a result.
        """
        return await tools.generate_image(
            ctx,
            session_id=session_id,
            prompt=prompt,
            width=width,
            height=height,
            steps=steps,
            guidance_scale=guidance_scale,
            seed=seed,
        )

    @mcp.tool
    async def list_iterations(session_id: str, limit: int | None = None) -> ToolResult:
        """List a session's iterations. ``limit`` keeps only the most recent."""
        return await tools.list_iterations(ctx, session_id=session_id, limit=limit)

    @mcp.tool
    async def preview_iteration(session_id: str, iteration_index: int) -> ToolResult:
        """Show an iteration's image and metadata without changing the current one."""
        return await tools.preview_iteration(
            ctx, session_id=session_id, iteration_index=iteration_index
        )

    @mcp.tool
    async def compare_iterations(
        session_id: str, iteration_a: int, iteration_b: int
    ) -> ToolResult:
        """Compare two iterations side by side: prompt and parameter diff plus both images."""
        return await tools.compare_iterations(
            ctx, session_id=session_id, iteration_a=iteration_a, iteration_b=iteration_b
        )

    @mcp.tool
    async def resolve_iteration_reference(session_id: str, reference: str) -> ToolResult:
        """Turn "2", "version 2" or a prompt fragment into an iteration index."""
        return await tools.resolve_iteration_reference(
            ctx, session_id=session_id, reference=reference
        )

    @mcp.tool
    async def export_image(
        session_id: str,
        iteration_index: int,
        format: str = "png",
        resolution: str = "1x",
    ) -> ToolResult:
        """Export an iteration's image.

        Args:
            session_id: Session owning the iteration.
            iteration_index: Iteration to export.
            format: "png" (1x only) or "svg" (the PNG embedded in an SVG).
            resolution: "1x", "2x" or "3x"; scales the SVG display size.
        """
        return await tools.export_image(
            ctx,
            session_id=session_id,
            iteration_index=iteration_index,
            export_format=format,
            resolution=resolution,
        )

    @mcp.tool
    async def rollback_iteration(
        session_id: str, iteration_index: int, discard_later: bool = False
    ) -> ToolResult:
        """Go back to an earlier iteration.

        Args:
            session_id: Session to roll back.
            iteration_index: Iteration to return to.
            discard_later: Permanently drop every later iteration.
        """
        return await tools.rollback_iteration(
            ctx,
            session_id=session_id,
            iteration_index=iteration_index,
            discard_later=discard_later,
        )

    @mcp.tool
    async def undo(session_id: str) -> ToolResult:
        """Step back to the previous iteration."""
        return await tools.undo(ctx, session_id=session_id)

    @mcp.tool
    async def redo(session_id: str) -> ToolResult:
        """Step forward to the next iteration after an undo."""
        return await tools.redo(ctx, session_id=session_id)

    # -------------------------------------------------------------------------
    # Assets
    # -------------------------------------------------------------------------

    @mcp.tool
    async def generate_variants(
        session_id: str,
        description: str,
        asset_type: str = "icon",
        count: int = 3,
        width: int | None = None,
        height: int | None = None,
    ) -> ToolResult:
        """Generate several candidate images for an asset.

        Args:
            session_id: Session to attach the asset to.
            description: What the asset shows.
            asset_type: icon, banner or mockup.
            count: Number of variants (1-4).
            width: Override the asset type's default width.
            height: Override the asset type's default height.
        """
        return await tools.generate_variants(
            ctx,
            session_id=session_id,
            description=description,
            asset_type=asset_type,
            count=count,
            width=width,
            height=height,
        )

    @mcp.tool
    async def select_variant(session_id: str, variant_id: str) -> ToolResult:
        """Choose a variant for refinement."""
        return await tools.select_variant(ctx, session_id=session_id, variant_id=variant_id)

    @mcp.tool
    async def refine_asset(session_id: str, instruction: str) -> ToolResult:
        """Regenerate the selected variant with an additional instruction."""
        return await tools.refine_asset(ctx, session_id=session_id, instruction=instruction)

    # -------------------------------------------------------------------------
    # Wireframes
    # -------------------------------------------------------------------------

    @mcp.tool
    async def generate_wireframe(
        session_id: str,
        description: str,
        width: int | None = None,
        height: int | None = None,
    ) -> ToolResult:
        """Lay out a wireframe from a description (dashboard, split view, ...)."""
        return await tools.generate_wireframe(
            ctx, session_id=session_id, description=description, width=width, height=height
        )

    @mcp.tool
    async def show_component(
        session_id: str,
        component_id: str | None = None,
        component_type: str | None = None,
        wireframe_id: str | None = None,
    ) -> ToolResult:
        """Describe a component by id, all components of a type, or the whole outline."""
        return await tools.show_component(
            ctx,
            session_id=session_id,
            component_id=component_id,
            component_type=component_type,
            wireframe_id=wireframe_id,
        )

    @mcp.tool
    async def update_component(
        session_id: str,
        component_id: str,
        properties: dict[str, Any] | None = None,
        dimensions: dict[str, float] | None = None,
        position: dict[str, float] | None = None,
        wireframe_id: str | None = None,
    ) -> ToolResult:
        """Edit a component. The change can be undone with undo_wireframe.

        Args:
            session_id: Session owning the wireframe.
            component_id: Component to edit, e.g. "sidebar-1".
            properties: Keys to set; a null value removes the key.
            dimensions: New width and/or height.
            position: New x and/or y.
            wireframe_id: Defaults to the session's current wireframe.
        """
        return await tools.update_component(
            ctx,
            session_id=session_id,
            component_id=component_id,
            properties=properties,
            dimensions=dimensions,
            position=position,
            wireframe_id=wireframe_id,
        )

    @mcp.tool
    async def adjust_proportions(
        session_id: str,
        component_id: str | None = None,
        component_type: str | None = None,
        width_delta: float | None = None,
        height_delta: float | None = None,
        width_percent: float | None = None,
        height_percent: float | None = None,
        spacing_delta: float | None = None,
        wireframe_id: str | None = None,
    ) -> ToolResult:
        """Resize a component or change its spacing; neighbours to the right follow.

        Args:
            session_id: Session owning the wireframe.
            component_id: Component to adjust.
            component_type: Adjust the first component of this type instead.
            width_delta: Pixels to add to the width (min 50).
            height_delta: Pixels to add to the height (min 50).
            width_percent: Set the width to a share of the canvas (0-100).
            height_percent: Set the height to a share of the canvas (0-100).
            spacing_delta: Pixels to add to the spacing (min 0).
            wireframe_id: Defaults to the session's current wireframe.
        """
        return await tools.adjust_proportions(
            ctx,
            session_id=session_id,
            component_id=component_id,
            component_type=component_type,
            width_delta=width_delta,
            height_delta=height_delta,
            width_percent=width_percent,
            height_percent=height_percent,
            spacing_delta=spacing_delta,
            wireframe_id=wireframe_id,
        )

    @mcp.tool
    async def refine_component(
        session_id: str,
        instruction: str,
        component_id: str | None = None,
        component_type: str | None = None,
        wireframe_id: str | None = None,
    ) -> ToolResult:
        """Refine a component from a short instruction.

        Understands "narrower", "wider", "taller", "4 columns", "spacing 24"
        and "add profile section".
        """
        return await tools.refine_component(
            ctx,
            session_id=session_id,
            instruction=instruction,
            component_id=component_id,
            component_type=component_type,
            wireframe_id=wireframe_id,
        )

    @mcp.tool
    async def list_component_versions(
        session_id: str, component_id: str, wireframe_id: str | None = None
    ) -> ToolResult:
        """List every recorded version of a component, oldest first."""
        return await tools.list_component_versions(
            ctx, session_id=session_id, component_id=component_id, wireframe_id=wireframe_id
        )

    @mcp.tool
    async def restore_component_version(
        session_id: str,
        component_id: str,
        version_id: str,
        wireframe_id: str | None = None,
    ) -> ToolResult:
        """Restore a component to an earlier version."""
        return await tools.restore_component_version(
            ctx,
            session_id=session_id,
            component_id=component_id,
            version_id=version_id,
            wireframe_id=wireframe_id,
        )

    @mcp.tool
    async def undo_wireframe(session_id: str, action: str = "undo") -> ToolResult:
        """Undo or redo wireframe edits, or show the undo status.

        Args:
            session_id: Session owning the wireframe.
            action: "undo", "redo" or "status".
        """
        return await tools.undo_wireframe(ctx, session_id=session_id, action=action)

    return mcp


# =============================================================================
# Runner
# =============================================================================


def run_server(config: ServerConfig | None = None, ctx: ToolContext | None = None) -> None:
    """Run the MCP server until the transport closes.

    Args:
        config: Transport and storage settings; read from the
            environment if omitted.
        ctx: Tool context; built from ``config`` if omitted.
    """
    from .health import log_startup_status

    config = config or ServerConfig.from_env()
    ctx = ctx or ToolContext.create(storage_dir=config.storage_dir)
    logger.info(f"Starting frameforge-mcp server v{get_server_version()}")
    logger.info(f"Transport: {config.transport.value}")

    async def startup() -> None:
        await ctx.sessions.initialize()
        await log_startup_status(ctx)

    asyncio.run(startup())
    mcp = create_server(ctx)

    if config.transport == TransportType.STDIO:
        logger.info("Running in STDIO mode (for Claude Desktop)")
        mcp.run()
    elif config.transport == TransportType.HTTP:
        logger.info(f"Running in HTTP mode at {config.url}")
        mcp.run(transport="http", host=config.host, port=config.port, path=config.path)
    elif config.transport == TransportType.SSE:
        logger.info(f"Running in SSE mode at {config.url}")
        mcp.run(transport="sse", host=config.host, port=config.port)
    else:
        raise ValueError(f"Unknown transport: {config.transport}")


# =============================================================================
# CLI Entry Point
# =============================================================================


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for MCP server.

    Flags override the environment; see ServerConfig.from_env.

    Args:
        argv: Command line arguments (uses sys.argv if None).

    Returns:
        Exit code (0 for success).
    """
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="frameforge-mcp",
        description="MCP server for conversational image and wireframe generation",
    )
    parser.add_argument(
        "--transport",
        "-t",
        type=str,
        choices=[t.value for t in TransportType],
        default=None,
        help="Transport type (default: stdio)",
    )
    parser.add_argument("--host", type=str, default=None, help="Bind address (default: MCP_HOST)")
    parser.add_argument(
        "--port", "-p", type=int, default=None, help="Port for HTTP/SSE (default: MCP_PORT)"
    )
    parser.add_argument(
        "--storage-dir",
        type=str,
        default=None,
        help="Session storage root (default: SESSION_STORAGE_DIR)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)
    config = ServerConfig.from_env(
        transport=args.transport,
        host=args.host,
        port=args.port,
        storage_dir=args.storage_dir,
        log_level="debug" if args.verbose else None,
    )

    setup_logging(level=config.log_level, log_file=config.log_file)

    try:
        run_server(config)
        return 0
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        return 0
    except Exception as e:
        logger.error(f"Server error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
