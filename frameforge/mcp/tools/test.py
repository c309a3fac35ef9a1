"""Tests for MCP tool handlers, called directly without the protocol."""

import base64
import json

import pytest

from frameforge.engine.mlx import model_cache_path

from . import (
    adjust_proportions,
    compare_iterations,
    create_session,
    delete_session,
    export_image,
    generate_image,
    generate_variants,
    generate_wireframe,
    get_metrics,
    list_available_models,
    list_component_versions,
    list_iterations,
    list_sessions,
    preview_iteration,
    redo,
    refine_asset,
    refine_component,
    resolve_iteration_reference,
    restore_component_version,
    rollback_iteration,
    select_variant,
    show_component,
    undo,
    undo_wireframe,
    update_component,
)


async def _new_session(ctx) -> str:
    content = await create_session(ctx)
    return json.loads(content[1].text)["session_id"]


async def _generate(ctx, session_id, *prompts):
    for prompt in prompts:
        await generate_image(ctx, session_id=session_id, prompt=prompt)


# =============================================================================
# Sessions
# =============================================================================


class TestSessionTools:
    @pytest.mark.asyncio
    async def test_create_list_delete(self, tool_context):
        session_id = await _new_session(tool_context)

        listed = await list_sessions(tool_context)
        assert session_id in listed[0].text

        deleted = await delete_session(tool_context, session_id=session_id)
        assert deleted[0].text == f"Deleted session {session_id}"

        assert (await list_sessions(tool_context))[0].text == "No sessions found"

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, tool_context):
        content = await delete_session(tool_context, session_id="ghost")
        assert "nothing to delete" in content[0].text

    @pytest.mark.asyncio
    async def test_metrics_record_tool_calls(self, tool_context):
        await _new_session(tool_context)
        content = await get_metrics(tool_context)

        assert "create_session" in content[0].text
        snapshot = json.loads(content[1].text)
        assert "create_session" in snapshot["operation_metrics"]

    @pytest.mark.asyncio
    async def test_list_available_models(self, tool_context, monkeypatch, tmp_path):
        monkeypatch.setenv("MODEL_CACHE_DIR", str(tmp_path))
        monkeypatch.delenv("MODEL_NAME", raising=False)
        model_cache_path(tmp_path, "stabilityai/stable-diffusion-2-1").mkdir()

        content = await list_available_models(tool_context)

        assert "Stable Diffusion 2.1 [RECOMMENDED] [ACTIVE] [DOWNLOADED]" in content[0].text
        payload = {m["id"]: m for m in json.loads(content[1].text)}
        assert payload["sd-1.5"]["downloaded"] is False
        assert payload["sd-1.5"]["active"] is False


# =============================================================================
# Image Iterations
# =============================================================================


class TestGenerateImage:
    @pytest.mark.asyncio
    async def test_appends_and_persists_iteration(self, tool_context, fake_engine):
        session_id = await _new_session(tool_context)

        content = await generate_image(
            tool_context, session_id=session_id, prompt="a red fox", width=256, height=256
        )

        assert content[0].text.startswith(f"Generated iteration 0 for session {session_id}")
        assert content[1].type == "image"
        assert fake_engine.calls[0].width == 256
        image_file = tool_context.sessions.session_dir(session_id) / "images" / "0.png"
        assert image_file.exists()

    @pytest.mark.asyncio
    async def test_rejects_empty_prompt(self, tool_context, fake_engine):
        session_id = await _new_session(tool_context)

        content = await generate_image(tool_context, session_id=session_id, prompt="  ")

        assert content[0].text == "Error: prompt is required and cannot be empty"
        assert fake_engine.calls == []

    @pytest.mark.asyncio
    async def test_rejects_out_of_range_dimensions(self, tool_context):
        session_id = await _new_session(tool_context)

        content = await generate_image(
            tool_context, session_id=session_id, prompt="fox", width=4096, height=512
        )

        assert content[0].text.startswith("Error: Image width must be between 64 and 2048px")

    @pytest.mark.asyncio
    async def test_retries_transient_engine_failure(self, tool_context, fake_engine):
        session_id = await _new_session(tool_context)
        fake_engine.failures = [RuntimeError("503 Service Unavailable")]

        content = await generate_image(tool_context, session_id=session_id, prompt="fox")

        assert content[0].text.startswith("Generated iteration 0")
        assert len(fake_engine.calls) == 2

    @pytest.mark.asyncio
    async def test_setup_failure_is_explained(self, tool_context, fake_engine):
        session_id = await _new_session(tool_context)
        fake_engine.failures = [RuntimeError("Missing dependencies: mlx")]

        content = await generate_image(tool_context, session_id=session_id, prompt="fox")

        assert "MLX library" in content[0].text
        assert len(fake_engine.calls) == 1
        assert tool_context.sessions.get_active_history(session_id).size == 0


class TestIterationTools:
    @pytest.mark.asyncio
    async def test_list_iterations_marks_current(self, tool_context):
        session_id = await _new_session(tool_context)
        await _generate(tool_context, session_id, "red", "blue")

        content = await list_iterations(tool_context, session_id=session_id)

        assert '#1 [current] "blue"' in content[0].text
        payload = json.loads(content[1].text)
        assert [p["prompt"] for p in payload] == ["red", "blue"]

    @pytest.mark.asyncio
    async def test_preview_does_not_move_cursor(self, tool_context, one_pixel_png):
        session_id = await _new_session(tool_context)
        await _generate(tool_context, session_id, "red", "blue")

        content = await preview_iteration(tool_context, session_id=session_id, iteration_index=0)

        assert json.loads(content[0].text)["prompt"] == "red"
        assert content[1].data == one_pixel_png
        assert tool_context.sessions.get_active_history(session_id).get_current_index() == 1

    @pytest.mark.asyncio
    async def test_preview_out_of_range(self, tool_context):
        session_id = await _new_session(tool_context)
        content = await preview_iteration(tool_context, session_id=session_id, iteration_index=3)
        assert content[0].text == "Error: iteration index out of range: 3"

    @pytest.mark.asyncio
    async def test_undo_redo(self, tool_context):
        session_id = await _new_session(tool_context)
        await _generate(tool_context, session_id, "red", "blue")

        undone = json.loads((await undo(tool_context, session_id=session_id))[0].text)
        assert undone["prompt"] == "red"
        assert undone["can_redo"] is True

        redone = json.loads((await redo(tool_context, session_id=session_id))[0].text)
        assert redone["prompt"] == "blue"
        assert redone["can_redo"] is False

    @pytest.mark.asyncio
    async def test_undo_at_start(self, tool_context):
        session_id = await _new_session(tool_context)
        await _generate(tool_context, session_id, "red")

        content = await undo(tool_context, session_id=session_id)

        assert content[0].text == "Error: cannot undo, no previous iterations available"

    @pytest.mark.asyncio
    async def test_rollback_marks_without_discarding(self, tool_context):
        session_id = await _new_session(tool_context)
        await _generate(tool_context, session_id, "a", "b", "c")

        content = await rollback_iteration(tool_context, session_id=session_id, iteration_index=0)

        assert content[0].text == 'Rolled back to iteration 0: "a"'
        history = tool_context.sessions.get_active_history(session_id)
        assert history.size == 3
        assert history.get_iteration(0).rolled_back_to

    @pytest.mark.asyncio
    async def test_rollback_discard_later(self, tool_context):
        session_id = await _new_session(tool_context)
        await _generate(tool_context, session_id, "a", "b", "c")

        content = await rollback_iteration(
            tool_context, session_id=session_id, iteration_index=1, discard_later=True
        )

        assert "Discarded 1 later iteration(s)" in content[0].text
        session = await tool_context.sessions.load_session(session_id)
        assert [i.prompt for i in session.iterations] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_rollback_invalid_index(self, tool_context):
        session_id = await _new_session(tool_context)
        content = await rollback_iteration(tool_context, session_id=session_id, iteration_index=5)
        assert content[0].text == f"Error: Iteration 5 not found in session {session_id}"


class TestComparisonAndExportTools:
    @pytest.mark.asyncio
    async def test_compare_iterations(self, tool_context):
        session_id = await _new_session(tool_context)
        for prompt, side in (("red", 512), ("blue", 256)):
            await generate_image(
                tool_context, session_id=session_id, prompt=prompt, width=side, height=side
            )

        content = await compare_iterations(
            tool_context, session_id=session_id, iteration_a=0, iteration_b=1
        )

        summary = content[0].text
        assert 'A: "red"\nB: "blue"' in summary
        assert "Dimensions: A: 512x512 | B: 256x256" in summary
        assert "Steps: (same)" in summary
        assert [c.type for c in content[1:]] == ["image", "image"]

    @pytest.mark.asyncio
    async def test_compare_same_prompt_and_missing_iteration(self, tool_context):
        session_id = await _new_session(tool_context)
        await _generate(tool_context, session_id, "red", "red")

        same = await compare_iterations(
            tool_context, session_id=session_id, iteration_a=0, iteration_b=1
        )
        missing = await compare_iterations(
            tool_context, session_id=session_id, iteration_a=0, iteration_b=4
        )

        assert "(same prompt)" in same[0].text
        assert missing[0].text == "Error: iteration index out of range: 4"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("reference", "expected"), [("1", 1), ("version 1", 1), ("#0", 0), ("BLUE", 1)]
    )
    async def test_resolve_reference(self, tool_context, reference, expected):
        session_id = await _new_session(tool_context)
        await _generate(tool_context, session_id, "red glassmorphism card", "blue card")

        content = await resolve_iteration_reference(
            tool_context, session_id=session_id, reference=reference
        )

        payload = json.loads(content[0].text)
        assert payload["resolved"] is True
        assert payload["iteration_index"] == expected

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("reference", "message"),
        [
            ("7", "Error: iteration 7 not found"),
            ("green", 'Error: no iterations found matching "green"'),
            ("card", 'Error: multiple matches found for "card"'),
        ],
    )
    async def test_unresolvable_reference(self, tool_context, reference, message):
        session_id = await _new_session(tool_context)
        await _generate(tool_context, session_id, "red card", "blue card")

        content = await resolve_iteration_reference(
            tool_context, session_id=session_id, reference=reference
        )

        assert content[0].text.startswith(message)

    @pytest.mark.asyncio
    async def test_export_png(self, tool_context, one_pixel_png):
        session_id = await _new_session(tool_context)
        await _generate(tool_context, session_id, "red")

        content = await export_image(tool_context, session_id=session_id, iteration_index=0)

        assert "Format: PNG" in content[0].text
        assert content[1].mimeType == "image/png"
        assert content[1].data == one_pixel_png

    @pytest.mark.asyncio
    async def test_export_svg_scales_display_size(self, tool_context, one_pixel_png):
        session_id = await _new_session(tool_context)
        await generate_image(tool_context, session_id=session_id, prompt="red", width=64, height=64)

        content = await export_image(
            tool_context,
            session_id=session_id,
            iteration_index=0,
            export_format="SVG",
            resolution="3x",
        )

        assert "Resolution: @3x (192x192)" in content[0].text
        assert content[1].mimeType == "image/svg+xml"
        svg = base64.b64decode(content[1].data).decode("utf-8")
        assert 'width="192" height="192" viewBox="0 0 64 64"' in svg
        assert f"data:image/png;base64,{one_pixel_png}" in svg

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("export_format", "resolution", "message"),
        [
            ("gif", "1x", "Error: Unknown format: gif"),
            ("svg", "4x", "Error: Unknown resolution: 4x"),
            ("png", "2x", "Error: PNG export is only available at 1x"),
        ],
    )
    async def test_export_rejects_options(self, tool_context, export_format, resolution, message):
        session_id = await _new_session(tool_context)
        await _generate(tool_context, session_id, "red")

        content = await export_image(
            tool_context,
            session_id=session_id,
            iteration_index=0,
            export_format=export_format,
            resolution=resolution,
        )

        assert content[0].text.startswith(message)


# =============================================================================
# Assets
# =============================================================================


class TestAssetTools:
    @pytest.mark.asyncio
    async def test_variants_are_cached(self, tool_context, fake_engine):
        session_id = await _new_session(tool_context)

        first = await generate_variants(
            tool_context, session_id=session_id, description="Rocket Ship", count=2
        )
        second = await generate_variants(
            tool_context, session_id=session_id, description="  rocket   ship ", count=2
        )

        assert first[0].text.startswith("Generated 2 icon variant(s)")
        assert second[0].text.startswith("Loaded 2 icon variant(s) from cache")
        assert len(fake_engine.calls) == 2
        assert len(second) == 3

    @pytest.mark.asyncio
    async def test_invalid_asset_type(self, tool_context):
        session_id = await _new_session(tool_context)
        content = await generate_variants(
            tool_context, session_id=session_id, description="x", asset_type="poster"
        )
        assert content[0].text.startswith("Error: Invalid asset_type 'poster'")

    @pytest.mark.asyncio
    async def test_banner_dimension_rules(self, tool_context):
        session_id = await _new_session(tool_context)
        content = await generate_variants(
            tool_context,
            session_id=session_id,
            description="sale",
            asset_type="banner",
            width=1000,
            height=500,
        )
        assert "recommended: 1200x400" in content[0].text

    @pytest.mark.asyncio
    async def test_select_and_refine(self, tool_context, fake_engine):
        session_id = await _new_session(tool_context)
        await generate_variants(tool_context, session_id=session_id, description="owl", count=1)
        session = await tool_context.sessions.load_session(session_id)
        base_id = session.current_asset.variants[0].id

        selected = await select_variant(tool_context, session_id=session_id, variant_id=base_id)
        assert selected[0].text.startswith(f"Selected variant {base_id}")

        refined = await refine_asset(
            tool_context, session_id=session_id, instruction="make it blue"
        )
        payload = json.loads(refined[1].text)
        assert payload["base_variant_id"] == base_id
        assert fake_engine.calls[-1].prompt.endswith(", make it blue")
        assert fake_engine.calls[-1].steps == 20

        session = await tool_context.sessions.load_session(session_id)
        assert session.current_asset.selected_variant_id == payload["variant_id"]
        assert session.current_asset.refinements[0].base_variant_id == base_id

    @pytest.mark.asyncio
    async def test_refine_without_selection(self, tool_context):
        session_id = await _new_session(tool_context)
        await generate_variants(tool_context, session_id=session_id, description="owl", count=1)

        content = await refine_asset(tool_context, session_id=session_id, instruction="bluer")

        assert content[0].text.startswith("No variant selected")

    @pytest.mark.asyncio
    async def test_select_unknown_variant(self, tool_context):
        session_id = await _new_session(tool_context)
        await generate_variants(tool_context, session_id=session_id, description="owl", count=1)

        content = await select_variant(tool_context, session_id=session_id, variant_id="var-x")

        assert content[0].text.startswith("Error: Variant var-x not found. Available variants:")


# =============================================================================
# Wireframes
# =============================================================================


class TestWireframeTools:
    @pytest.mark.asyncio
    async def test_generate_records_created_versions(self, tool_context):
        session_id = await _new_session(tool_context)

        content = await generate_wireframe(
            tool_context, session_id=session_id, description="admin dashboard"
        )

        assert "template 'Dashboard'" in content[0].text
        versions = await list_component_versions(
            tool_context, session_id=session_id, component_id="sidebar-1"
        )
        assert "[created] Initial sidebar" in versions[0].text

    @pytest.mark.asyncio
    async def test_no_wireframe_yet(self, tool_context):
        session_id = await _new_session(tool_context)
        content = await show_component(tool_context, session_id=session_id, component_id="x")
        assert content[0].text.startswith(f"Error: No wireframes found for session {session_id}")

    @pytest.mark.asyncio
    async def test_show_component_by_type(self, tool_context):
        session_id = await _new_session(tool_context)
        await generate_wireframe(tool_context, session_id=session_id, description="card grid")

        content = await show_component(tool_context, session_id=session_id, component_type="card")

        assert content[0].text.count("Component: card") == 8

    @pytest.mark.asyncio
    async def test_update_undo_redo(self, tool_context):
        session_id = await _new_session(tool_context)
        await generate_wireframe(tool_context, session_id=session_id, description="dashboard")

        updated = await update_component(
            tool_context,
            session_id=session_id,
            component_id="sidebar-1",
            dimensions={"width": 320},
            properties={"collapsed": True},
        )
        assert "Dimensions: 320x800" in updated[0].text

        undone = await undo_wireframe(tool_context, session_id=session_id, action="undo")
        assert "Dimensions: 240x800" in undone[1].text

        redone = await undo_wireframe(tool_context, session_id=session_id, action="redo")
        assert "Dimensions: 320x800" in redone[1].text

        session = await tool_context.sessions.load_session(session_id)
        wireframe = await tool_context.sessions.load_wireframe(
            session_id, session.current_wireframe.id
        )
        sidebar = wireframe.components[0]
        assert sidebar.dimensions.width == 320
        assert sidebar.properties["collapsed"] is True

    @pytest.mark.asyncio
    async def test_undo_status_and_empty_stack(self, tool_context):
        session_id = await _new_session(tool_context)
        await generate_wireframe(tool_context, session_id=session_id, description="dashboard")

        assert (await undo_wireframe(tool_context, session_id=session_id))[0].text == "Nothing to undo"

        await update_component(
            tool_context, session_id=session_id, component_id="header-1", dimensions={"height": 80}
        )
        status = await undo_wireframe(tool_context, session_id=session_id, action="status")
        assert "Undo available: Yes (1 states)" in status[0].text
        assert "Redo available: No (0 states)" in status[0].text

    @pytest.mark.asyncio
    async def test_unknown_undo_action(self, tool_context):
        session_id = await _new_session(tool_context)
        content = await undo_wireframe(tool_context, session_id=session_id, action="rewind")
        assert content[0].text.startswith("Error: Unknown action: rewind")

    @pytest.mark.asyncio
    async def test_invalid_dimensions_rejected(self, tool_context):
        session_id = await _new_session(tool_context)
        await generate_wireframe(tool_context, session_id=session_id, description="dashboard")

        content = await update_component(
            tool_context, session_id=session_id, component_id="sidebar-1", dimensions={"width": -5}
        )

        assert content[0].text.startswith("Error:")
        versions = await tool_context.versions.list_versions(
            session_id,
            (await tool_context.sessions.load_session(session_id)).current_wireframe.id,
            "sidebar-1",
        )
        assert len(versions) == 1

    @pytest.mark.asyncio
    async def test_restore_version(self, tool_context):
        session_id = await _new_session(tool_context)
        await generate_wireframe(tool_context, session_id=session_id, description="dashboard")
        session = await tool_context.sessions.load_session(session_id)
        wireframe_id = session.current_wireframe.id
        original = (await tool_context.versions.list_versions(session_id, wireframe_id, "sidebar-1"))[0]

        await update_component(
            tool_context, session_id=session_id, component_id="sidebar-1", dimensions={"width": 400}
        )
        content = await restore_component_version(
            tool_context,
            session_id=session_id,
            component_id="sidebar-1",
            version_id=original.version_id,
        )

        assert "Dimensions: 240x800" in content[0].text
        versions = await tool_context.versions.list_versions(session_id, wireframe_id, "sidebar-1")
        assert [v.change_type.value for v in versions] == ["created", "updated", "restored"]

    @pytest.mark.asyncio
    async def test_restore_unknown_version(self, tool_context):
        session_id = await _new_session(tool_context)
        await generate_wireframe(tool_context, session_id=session_id, description="dashboard")

        content = await restore_component_version(
            tool_context, session_id=session_id, component_id="sidebar-1", version_id="v-0-nope"
        )

        assert content[0].text == "Error: Version v-0-nope not found for component sidebar-1"


class TestWireframeEditTools:
    @pytest.mark.asyncio
    async def test_adjust_width_moves_columns_to_the_right(self, tool_context):
        session_id = await _new_session(tool_context)
        await generate_wireframe(tool_context, session_id=session_id, description="dashboard")

        content = await adjust_proportions(
            tool_context, session_id=session_id, component_id="sidebar-1", width_delta=60
        )

        assert "Dimensions: 300x800" in content[0].text
        assert "Moved +60px: header-1, grid-1" in content[0].text
        session = await tool_context.sessions.load_session(session_id)
        wireframe_id = session.current_wireframe.id
        wireframe = await tool_context.sessions.load_wireframe(session_id, wireframe_id)
        header, grid = wireframe.components[1], wireframe.components[2]
        assert header.position.x == 300
        assert grid.children[0].position.x == 316

        versions = await tool_context.versions.list_versions(session_id, wireframe_id, "header-1")
        assert versions[-1].change_description == "Moved +60px after resizing sidebar-1"

    @pytest.mark.asyncio
    async def test_adjust_spacing_by_type_and_undo(self, tool_context):
        session_id = await _new_session(tool_context)
        await generate_wireframe(tool_context, session_id=session_id, description="dashboard")

        content = await adjust_proportions(
            tool_context, session_id=session_id, component_type="grid", spacing_delta=8
        )
        assert "  - spacing: 24" in content[0].text
        assert "Moved" not in content[0].text

        undone = await undo_wireframe(tool_context, session_id=session_id, action="undo")
        assert "  - spacing: 16" in undone[1].text

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("arguments", "message"),
        [
            ({"component_id": "sidebar-1"}, "Error: Provide at least one of width_delta"),
            ({"width_delta": 10}, "Error: Provide component_id or component_type"),
            (
                {"component_id": "sidebar-1", "width_percent": 150},
                "Error: width_percent must be between 0 and 100, got 150",
            ),
            ({"component_type": "footer", "width_delta": 10}, "Error: No components of type"),
        ],
    )
    async def test_adjust_rejects_bad_requests(self, tool_context, arguments, message):
        session_id = await _new_session(tool_context)
        await generate_wireframe(tool_context, session_id=session_id, description="dashboard")

        content = await adjust_proportions(tool_context, session_id=session_id, **arguments)

        assert content[0].text.startswith(message)

    @pytest.mark.asyncio
    async def test_refine_component_and_undo(self, tool_context):
        session_id = await _new_session(tool_context)
        await generate_wireframe(tool_context, session_id=session_id, description="dashboard")

        content = await refine_component(
            tool_context,
            session_id=session_id,
            component_type="sidebar",
            instruction="Make it narrower and add a profile section",
        )

        assert "Changes: width -> 200; added profile section" in content[0].text
        assert "  - content (sidebar-1-profile)" in content[0].text
        versions = await list_component_versions(
            tool_context, session_id=session_id, component_id="sidebar-1"
        )
        assert "Refined: Make it narrower and add a profile section" in versions[0].text

        undone = await undo_wireframe(tool_context, session_id=session_id, action="undo")
        assert "Dimensions: 240x800" in undone[1].text
        assert "Children" not in undone[1].text

    @pytest.mark.asyncio
    async def test_refine_grid_columns(self, tool_context):
        session_id = await _new_session(tool_context)
        await generate_wireframe(tool_context, session_id=session_id, description="dashboard")

        content = await refine_component(
            tool_context, session_id=session_id, component_id="grid-1", instruction="4 columns"
        )

        assert "  - columns: 4" in content[0].text

    @pytest.mark.asyncio
    async def test_refine_not_understood(self, tool_context):
        session_id = await _new_session(tool_context)
        await generate_wireframe(tool_context, session_id=session_id, description="dashboard")

        content = await refine_component(
            tool_context,
            session_id=session_id,
            component_id="sidebar-1",
            instruction="make it pop",
        )

        assert content[0].text.startswith("Error: Could not understand refinement: make it pop")
