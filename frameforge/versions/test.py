"""Tests for component version history and wireframe undo/redo."""

import asyncio
import json
import re

import pytest

from frameforge.wireframe import WireframeComponent, apply_component_update

from .lib import ComponentVersionManager
from .models import ChangeType, ComponentVersion, new_version_id
from .undo import WireframeUndoRedoManager

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def versions(tmp_path):
    return ComponentVersionManager(tmp_path)


@pytest.fixture
def sidebar():
    return WireframeComponent(
        id="sidebar-1",
        type="sidebar",
        dimensions={"width": 240, "height": 800},
        properties={"items": ["home"]},
    )


def widened(component: WireframeComponent, width: float) -> WireframeComponent:
    return apply_component_update(component, dimensions={"width": width})


# =============================================================================
# Models
# =============================================================================


class TestModels:
    @pytest.mark.unit
    def test_version_id_format(self):
        assert re.fullmatch(r"v-\d{13}-[0-9a-f]{7}", new_version_id())

    @pytest.mark.unit
    def test_snapshot_is_deep_copy(self, sidebar):
        version = ComponentVersion.create("wf", sidebar, ChangeType.CREATED, "init")
        sidebar.properties["items"].append("settings")

        assert version.component_state.properties["items"] == ["home"]

    @pytest.mark.unit
    def test_dict_round_trip(self, sidebar):
        version = ComponentVersion.create("wf", sidebar, "updated", "resize")
        assert ComponentVersion.from_dict(version.to_dict()) == version


# =============================================================================
# ComponentVersionManager
# =============================================================================


class TestComponentVersionManager:
    @pytest.mark.asyncio
    async def test_record_creates_log(self, versions, sidebar, tmp_path):
        version = await versions.record_version(
            "s1", "wf-1", sidebar, ChangeType.CREATED, "Initial layout"
        )

        path = tmp_path / "s1" / "versions" / "wf-1" / "sidebar-1.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["current_version_id"] == version.version_id
        assert len(data["versions"]) == 1

    @pytest.mark.asyncio
    async def test_log_is_append_only_and_ordered(self, versions, sidebar):
        recorded = []
        for width in (240, 260, 280):
            recorded.append(
                await versions.record_version(
                    "s1", "wf-1", widened(sidebar, width), "updated", f"width {width}"
                )
            )

        history = await versions.get_history("s1", "wf-1", "sidebar-1")

        assert [v.version_id for v in history.versions] == [
            v.version_id for v in recorded
        ]
        timestamps = [v.timestamp for v in history.versions]
        assert timestamps == sorted(timestamps)
        assert history.current_version_id == recorded[-1].version_id

    @pytest.mark.asyncio
    async def test_concurrent_records_are_not_lost(self, versions, sidebar):
        await asyncio.gather(
            *(
                versions.record_version("s1", "wf-1", widened(sidebar, w), "updated", "x")
                for w in range(100, 110)
            )
        )
        assert len(await versions.list_versions("s1", "wf-1", "sidebar-1")) == 10

    @pytest.mark.asyncio
    async def test_missing_history(self, versions):
        assert await versions.get_history("s1", "wf-1", "nope") is None
        assert await versions.get_version("s1", "wf-1", "nope", "v-1") is None
        assert await versions.list_versions("s1", "wf-1", "nope") == []

    @pytest.mark.asyncio
    async def test_list_versions_summaries(self, versions, sidebar):
        await versions.record_version("s1", "wf-1", sidebar, "created", "Initial")
        summaries = await versions.list_versions("s1", "wf-1", "sidebar-1")

        assert summaries[0].change_type is ChangeType.CREATED
        assert summaries[0].to_dict()["change_description"] == "Initial"
        assert "component_state" not in summaries[0].to_dict()

    @pytest.mark.asyncio
    async def test_restore_appends_new_version(self, versions, sidebar):
        first = await versions.record_version("s1", "wf-1", sidebar, "created", "v1")
        await versions.record_version("s1", "wf-1", widened(sidebar, 400), "updated", "v2")

        restored = await versions.restore_version(
            "s1", "wf-1", "sidebar-1", first.version_id
        )

        history = await versions.get_history("s1", "wf-1", "sidebar-1")
        assert len(history.versions) == 3
        assert restored.change_type is ChangeType.RESTORED
        assert restored.previous_version_id == first.version_id
        assert restored.change_description == f"Restored from version {first.version_id}"
        assert restored.component_state.dimensions.width == 240
        assert history.current_version_id == restored.version_id

    @pytest.mark.asyncio
    async def test_restore_unknown_version(self, versions, sidebar):
        await versions.record_version("s1", "wf-1", sidebar, "created", "v1")
        assert await versions.restore_version("s1", "wf-1", "sidebar-1", "v-0") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"versions": []}'])
    async def test_corrupted_log_reads_as_empty(self, versions, tmp_path, content):
        path = tmp_path / "s1" / "versions" / "wf-1" / "sidebar-1.json"
        path.parent.mkdir(parents=True)
        path.write_text(content, encoding="utf-8")

        assert await versions.list_versions("s1", "wf-1", "sidebar-1") == []
        assert await versions.get_history("s1", "wf-1", "sidebar-1") is None
        assert await versions.get_version("s1", "wf-1", "sidebar-1", "v-1") is None

    @pytest.mark.asyncio
    async def test_record_over_corrupted_log_starts_fresh(
        self, versions, sidebar, tmp_path
    ):
        path = tmp_path / "s1" / "versions" / "wf-1" / "sidebar-1.json"
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")

        version = await versions.record_version("s1", "wf-1", sidebar, "created", "v1")

        summaries = await versions.list_versions("s1", "wf-1", "sidebar-1")
        assert [s.version_id for s in summaries] == [version.version_id]
        set_aside = path.with_name("sidebar-1.json.corrupt")
        assert set_aside.read_text(encoding="utf-8") == "{not json"


# =============================================================================
# WireframeUndoRedoManager
# =============================================================================


class TestWireframeUndoRedo:
    @pytest.fixture
    def undo(self, versions):
        return WireframeUndoRedoManager("s1", versions)

    @pytest.mark.asyncio
    async def test_empty_stacks(self, undo):
        assert await undo.undo() is None
        assert await undo.redo() is None
        assert not undo.can_undo()
        assert not undo.can_redo()

    @pytest.mark.asyncio
    async def test_undo_returns_previous_state(self, undo, sidebar):
        await undo.record_change("wf-1", sidebar, "initial")
        await undo.record_change("wf-1", widened(sidebar, 300), "wider")
        assert undo.can_undo()

        previous = await undo.undo()

        assert previous.dimensions.width == 240
        assert undo.get_undo_stack_size() == 1
        assert undo.get_redo_stack_size() == 1
        assert not undo.can_undo()
        assert undo.can_redo()

    @pytest.mark.asyncio
    async def test_undo_to_empty_returns_none(self, undo, sidebar):
        await undo.record_change("wf-1", sidebar, "initial")
        assert await undo.undo() is None
        assert undo.get_redo_stack_size() == 1

    @pytest.mark.asyncio
    async def test_redo_restores_undone_state(self, undo, sidebar):
        await undo.record_change("wf-1", sidebar, "initial")
        await undo.record_change("wf-1", widened(sidebar, 300), "wider")
        await undo.undo()

        redone = await undo.redo()

        assert redone.dimensions.width == 300
        assert undo.get_undo_stack_size() == 2
        assert not undo.can_redo()

    @pytest.mark.asyncio
    async def test_new_change_clears_redo(self, undo, sidebar):
        await undo.record_change("wf-1", sidebar, "initial")
        await undo.record_change("wf-1", widened(sidebar, 300), "wider")
        await undo.undo()
        await undo.record_change("wf-1", widened(sidebar, 500), "widest")

        assert not undo.can_redo()
        assert await undo.redo() is None

    @pytest.mark.asyncio
    async def test_history_survives_undo(self, undo, versions, sidebar):
        await undo.record_change("wf-1", sidebar, "initial")
        await undo.record_change("wf-1", widened(sidebar, 300), "wider")
        await undo.undo()

        assert len(await versions.list_versions("s1", "wf-1", "sidebar-1")) == 2

    @pytest.mark.asyncio
    async def test_clear(self, undo, sidebar):
        await undo.record_change("wf-1", sidebar, "initial")
        undo.clear()
        assert undo.get_undo_stack_size() == 0
        assert undo.peek() is None
