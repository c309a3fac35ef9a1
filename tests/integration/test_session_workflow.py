"""Integration tests for session workflows across a server restart.

Each test drives the tool handlers against one context, then builds a
second context on the same storage directory, as a restarted server
would, and checks what survived:

1. Image iterations, their files and the undo cursor
2. Asset variants, selection and refinements
3. Wireframes and component version logs
"""

import json

import pytest

from frameforge.engine import RetryConfig
from frameforge.mcp import ToolContext
from frameforge.mcp.tools import (
    create_session,
    generate_image,
    generate_variants,
    generate_wireframe,
    list_component_versions,
    list_iterations,
    refine_asset,
    restore_component_version,
    rollback_iteration,
    select_variant,
    show_component,
    undo,
    undo_wireframe,
    update_component,
)
from frameforge.session import SessionManager
from frameforge.versions import ComponentVersionManager


async def _restart(ctx: ToolContext) -> ToolContext:
    """A fresh context over the same storage, sharing nothing in memory."""
    sessions = SessionManager(ctx.sessions.storage_dir)
    await sessions.initialize()
    return ToolContext(
        sessions=sessions,
        engine=ctx.engine,
        versions=ComponentVersionManager(sessions.storage_dir),
        retry=RetryConfig(base_delay=0.0, max_delay=0.0),
        generation_timeout=5.0,
    )


async def _new_session(ctx: ToolContext) -> str:
    content = await create_session(ctx)
    return json.loads(content[1].text)["session_id"]


@pytest.mark.integration
class TestImageSessionRestart:
    @pytest.mark.asyncio
    async def test_iterations_survive_restart(self, tool_context, one_pixel_png):
        session_id = await _new_session(tool_context)
        for prompt in ("a red fox", "a blue fox", "a green fox"):
            await generate_image(tool_context, session_id=session_id, prompt=prompt)
        await rollback_iteration(tool_context, session_id=session_id, iteration_index=1)

        restarted = await _restart(tool_context)
        listing = await list_iterations(restarted, session_id=session_id)

        payload = json.loads(listing[1].text)
        assert [p["prompt"] for p in payload] == ["a red fox", "a blue fox", "a green fox"]
        assert [p["rolled_back_to"] for p in payload] == [False, True, False]
        assert payload[-1]["is_current"]

        moved = await undo(restarted, session_id=session_id)
        assert json.loads(moved[0].text)["prompt"] == "a blue fox"
        assert moved[1].data == one_pixel_png

    @pytest.mark.asyncio
    async def test_session_file_holds_no_image_data(self, tool_context, one_pixel_png):
        session_id = await _new_session(tool_context)
        await generate_image(tool_context, session_id=session_id, prompt="fox")

        session_file = tool_context.sessions.session_dir(session_id) / "session.json"
        assert one_pixel_png not in session_file.read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_discard_later_is_persisted(self, tool_context):
        session_id = await _new_session(tool_context)
        for prompt in ("one", "two", "three"):
            await generate_image(tool_context, session_id=session_id, prompt=prompt)
        await rollback_iteration(
            tool_context, session_id=session_id, iteration_index=0, discard_later=True
        )

        restarted = await _restart(tool_context)
        session = await restarted.sessions.load_session(session_id)

        assert [i.prompt for i in session.iterations] == ["one"]
        assert session.metadata.total_iterations == 1


@pytest.mark.integration
class TestAssetSessionRestart:
    @pytest.mark.asyncio
    async def test_selection_and_refinement_survive_restart(self, tool_context, fake_engine):
        session_id = await _new_session(tool_context)
        await generate_variants(
            tool_context, session_id=session_id, description="paper plane", count=2
        )
        session = await tool_context.sessions.load_session(session_id)
        chosen = session.current_asset.variants[1].id
        await select_variant(tool_context, session_id=session_id, variant_id=chosen)

        restarted = await _restart(tool_context)
        refined = await refine_asset(restarted, session_id=session_id, instruction="origami")

        payload = json.loads(refined[1].text)
        assert payload["base_variant_id"] == chosen
        session = await restarted.sessions.load_session(session_id)
        assert len(session.current_asset.variants) == 3
        assert session.current_asset.selected_variant_id == payload["variant_id"]

    @pytest.mark.asyncio
    async def test_variant_cache_is_not_persisted(self, tool_context, fake_engine):
        session_id = await _new_session(tool_context)
        await generate_variants(tool_context, session_id=session_id, description="owl", count=1)

        restarted = await _restart(tool_context)
        content = await generate_variants(
            restarted, session_id=session_id, description="owl", count=1
        )

        assert content[0].text.startswith("Generated 1 icon variant(s)")
        assert len(fake_engine.calls) == 2


@pytest.mark.integration
class TestWireframeSessionRestart:
    @pytest.mark.asyncio
    async def test_edits_and_versions_survive_restart(self, tool_context):
        session_id = await _new_session(tool_context)
        await generate_wireframe(tool_context, session_id=session_id, description="dashboard")
        await update_component(
            tool_context,
            session_id=session_id,
            component_id="header-1",
            dimensions={"height": 96},
        )

        restarted = await _restart(tool_context)
        shown = await show_component(restarted, session_id=session_id, component_id="header-1")
        assert "Dimensions: 960x96" in shown[0].text

        versions = await list_component_versions(
            restarted, session_id=session_id, component_id="header-1"
        )
        entries = json.loads(versions[1].text)
        assert [e["change_type"] for e in entries] == ["created", "updated"]

    @pytest.mark.asyncio
    async def test_undo_stack_is_per_process(self, tool_context):
        session_id = await _new_session(tool_context)
        await generate_wireframe(tool_context, session_id=session_id, description="dashboard")
        await update_component(
            tool_context,
            session_id=session_id,
            component_id="sidebar-1",
            dimensions={"width": 300},
        )

        restarted = await _restart(tool_context)
        assert (await undo_wireframe(restarted, session_id=session_id))[0].text == "Nothing to undo"

        entries = json.loads(
            (
                await list_component_versions(
                    restarted, session_id=session_id, component_id="sidebar-1"
                )
            )[1].text
        )
        restored = await restore_component_version(
            restarted,
            session_id=session_id,
            component_id="sidebar-1",
            version_id=entries[0]["version_id"],
        )
        assert "Dimensions: 240x800" in restored[0].text

        undone = await undo_wireframe(restarted, session_id=session_id)
        assert "Dimensions: 300x800" in undone[1].text
