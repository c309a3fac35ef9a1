"""Tests for session persistence and iteration history.

Tests cover:
- IterationHistory cursor and rollback semantics
- Variant cache keys and isolation
- SessionManager create/load/save/delete/list
- Inline image migration and lazy loading
- Corrupted and legacy session files
"""

import asyncio
import base64
import json

import pytest

from frameforge.metrics import MetricsCollector
from frameforge.wireframe import build_wireframe

from .cache import VariantCache, build_variant_cache_key
from .errors import (
    ImageNotFoundError,
    IterationNotFoundError,
    SessionNotFoundError,
    SessionValidationError,
)
from .history import IterationHistory
from .lib import SessionManager, validate_session_data
from .models import (
    InlineImage,
    Session,
    StoredImage,
    Variant,
    VariantMetadata,
)

# =============================================================================
# IterationHistory
# =============================================================================


class TestIterationHistory:
    @pytest.mark.unit
    def test_empty(self):
        history = IterationHistory("s")
        assert history.size == 0
        assert history.get_current_index() == -1
        assert history.get_current_iteration() is None
        assert not history.can_undo()
        assert not history.can_redo()
        assert history.undo() is None
        assert history.redo() is None

    @pytest.mark.unit
    def test_indices_are_contiguous(self, make_result):
        history = IterationHistory("s")
        for prompt in ("a", "b", "c", "d"):
            history.add_iteration(prompt, make_result(prompt))

        assert [it.index for it in history.get_all_iterations()] == [0, 1, 2, 3]
        assert history.get_current_index() == 3

    @pytest.mark.unit
    def test_red_blue_undo_redo(self, make_result):
        history = IterationHistory("s")
        history.add_iteration("red", make_result("red"))
        blue = history.add_iteration("blue", make_result("blue"))

        assert history.undo().prompt == "red"
        assert history.can_redo()
        assert history.redo() is blue
        assert not history.can_redo()

    @pytest.mark.unit
    def test_add_after_undo_moves_cursor_to_end(self, make_result):
        history = IterationHistory("s")
        history.add_iteration("a", make_result("a"))
        history.add_iteration("b", make_result("b"))
        history.undo()

        history.add_iteration("c", make_result("c"))

        assert history.get_current_index() == 2
        assert not history.can_redo()
        assert history.size == 3

    @pytest.mark.unit
    def test_get_iteration_out_of_range(self, make_result):
        history = IterationHistory("s")
        history.add_iteration("a", make_result("a"))
        assert history.get_iteration(-1) is None
        assert history.get_iteration(1) is None

    @pytest.mark.unit
    def test_get_last_n_clamps(self, make_result):
        history = IterationHistory("s")
        for prompt in "abc":
            history.add_iteration(prompt, make_result(prompt))

        assert history.get_last_n(0) == []
        assert history.get_last_n(-5) == []
        assert [it.prompt for it in history.get_last_n(2)] == ["b", "c"]
        assert len(history.get_last_n(10)) == 3

    @pytest.mark.unit
    def test_mark_rolled_back_keeps_size_and_cursor(self, make_result):
        history = IterationHistory("s")
        for prompt in "abc":
            history.add_iteration(prompt, make_result(prompt))

        history.mark_rolled_back_to(0)

        assert history.get_iteration(0).rolled_back_to is True
        assert history.size == 3
        assert history.get_current_index() == 2

    @pytest.mark.unit
    def test_mark_rolled_back_invalid(self):
        with pytest.raises(IndexError, match="Invalid iteration index"):
            IterationHistory("s").mark_rolled_back_to(0)

    @pytest.mark.unit
    def test_truncate_after(self, make_result):
        history = IterationHistory("s")
        for prompt in "abcd":
            history.add_iteration(prompt, make_result(prompt))

        removed = history.truncate_after(1)

        assert [it.prompt for it in removed] == ["c", "d"]
        assert history.size == 2
        assert history.get_current_index() == 1

    @pytest.mark.unit
    def test_clear_resets_cursor(self, make_result):
        history = IterationHistory("s")
        history.add_iteration("a", make_result("a"))
        history.clear()
        assert history.size == 0
        assert history.get_current_index() == -1


# =============================================================================
# Variant cache
# =============================================================================


def _variant(seed: int) -> Variant:
    return Variant.create(
        image_base64="AAAA",
        seed=seed,
        prompt="icon",
        metadata=VariantMetadata(width=256, height=256, steps=20, latency_ms=10),
    )


class TestVariantCache:
    @pytest.mark.unit
    def test_key_normalizes_description(self):
        a = build_variant_cache_key("icon", "  Blue   Rocket ", 256, 256)
        b = build_variant_cache_key("icon", "blue rocket", 256, 256)
        assert a == b == "icon:blue rocket:256x256"

    @pytest.mark.unit
    def test_key_distinguishes_dimensions_and_type(self):
        base = build_variant_cache_key("icon", "rocket", 256, 256)
        assert build_variant_cache_key("icon", "rocket", 512, 512) != base
        assert build_variant_cache_key("banner", "rocket", 256, 256) != base

    @pytest.mark.unit
    def test_sessions_are_isolated(self):
        cache = VariantCache()
        cache.set("a", "k", [_variant(1)])

        assert cache.get("b", "k") is None
        assert cache.get("a", "k")[0].seed == 1

    @pytest.mark.unit
    def test_set_overwrites_and_clear(self):
        cache = VariantCache()
        cache.set("a", "k", [_variant(1)])
        cache.set("a", "k", [_variant(2), _variant(3)])

        assert [v.seed for v in cache.get("a", "k")] == [2, 3]
        cache.clear("a")
        assert cache.get("a", "k") is None
        assert cache.size() == 0


# =============================================================================
# Validation
# =============================================================================


class TestValidateSessionData:
    @pytest.mark.unit
    def test_accepts_serialized_session(self):
        validate_session_data(Session.create().to_dict())

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "data, problem",
        [
            ({"invalid": "structure"}, "id"),
            ([], "not an object"),
            ({"id": "x", "created_at": "", "updated_at": "t"}, "created_at"),
            (
                {"id": "x", "created_at": "t", "updated_at": "t", "iterations": {}},
                "iterations",
            ),
            (
                {
                    "id": "x",
                    "created_at": "t",
                    "updated_at": "t",
                    "iterations": [],
                    "metadata": {"total_iterations": "3"},
                },
                "total_iterations",
            ),
        ],
    )
    def test_rejects(self, data, problem):
        with pytest.raises(SessionValidationError, match=problem):
            validate_session_data(data)


# =============================================================================
# SessionManager
# =============================================================================


@pytest.fixture
async def manager(tmp_path):
    manager = SessionManager(tmp_path / "sessions")
    await manager.initialize()
    return manager


class TestCreateAndLoad:
    @pytest.mark.asyncio
    async def test_create_persists_and_registers(self, manager):
        session = await manager.create_session()

        assert (manager.session_dir(session.id) / "session.json").is_file()
        assert manager.get_active_session(session.id) is session
        assert manager.get_active_session_count() == 1

    @pytest.mark.asyncio
    async def test_load_returns_resident_object(self, manager):
        session = await manager.create_session()
        assert await manager.load_session(session.id) is session

    @pytest.mark.asyncio
    async def test_load_missing(self, manager):
        assert await manager.load_session("does-not-exist") is None

    @pytest.mark.asyncio
    async def test_load_unusable_id(self, manager):
        assert await manager.load_session("../..") is None

    @pytest.mark.asyncio
    async def test_load_invalid_structure(self, manager):
        session_dir = manager.storage_dir / "broken"
        session_dir.mkdir(parents=True)
        (session_dir / "session.json").write_text(json.dumps({"invalid": "structure"}))

        assert await manager.load_session("broken") is None

    @pytest.mark.asyncio
    async def test_load_unparseable(self, manager):
        session_dir = manager.storage_dir / "garbled"
        session_dir.mkdir(parents=True)
        (session_dir / "session.json").write_text("{ not json")

        assert await manager.load_session("garbled") is None


class TestIterations:
    @pytest.mark.asyncio
    async def test_add_iteration_mirrors_history(self, manager, make_result):
        session = await manager.create_session()

        iteration = manager.add_iteration_to_session(session.id, "red", make_result("red"))

        history = manager.get_active_history(session.id)
        assert history.get_iteration(0) is iteration
        assert session.iterations[0] is iteration
        assert session.metadata.total_iterations == 1
        assert session.metadata.last_prompt == "red"

    @pytest.mark.asyncio
    async def test_add_iteration_inactive_session(self, manager, make_result):
        assert manager.add_iteration_to_session("nope", "red", make_result("red")) is None

    @pytest.mark.asyncio
    async def test_rolled_back_flag_visible_in_session(self, manager, make_result):
        session = await manager.create_session()
        manager.add_iteration_to_session(session.id, "a", make_result("a"))
        manager.add_iteration_to_session(session.id, "b", make_result("b"))

        manager.get_active_history(session.id).mark_rolled_back_to(0)

        assert session.iterations[0].rolled_back_to is True

    @pytest.mark.asyncio
    async def test_truncate_iterations(self, manager, make_result):
        session = await manager.create_session()
        for prompt in "abc":
            manager.add_iteration_to_session(session.id, prompt, make_result(prompt))

        removed = manager.truncate_iterations(session.id, 0)

        assert [it.prompt for it in removed] == ["b", "c"]
        assert [it.prompt for it in session.iterations] == ["a"]
        assert session.metadata.total_iterations == 1
        assert manager.get_active_history(session.id).size == 1

    @pytest.mark.asyncio
    async def test_truncate_inactive_session(self, manager):
        with pytest.raises(SessionNotFoundError):
            manager.truncate_iterations("nope", 0)


class TestImageMigration:
    @pytest.mark.asyncio
    async def test_save_moves_inline_image_to_disk(
        self, manager, make_result, one_pixel_png
    ):
        session = await manager.create_session()
        manager.add_iteration_to_session(session.id, "pixel", make_result("pixel"))

        await manager.save_session(session)

        image_file = manager.session_dir(session.id) / "images" / "0.png"
        assert image_file.read_bytes() == base64.b64decode(one_pixel_png)
        assert isinstance(session.iterations[0].result.image, StoredImage)

        stored = json.loads(
            (manager.session_dir(session.id) / "session.json").read_text()
        )
        result = stored["iterations"][0]["result"]
        assert "image_base64" not in result
        assert result["image_path"] == "images/0.png"
        assert stored["metadata"]["total_iterations"] == 1

    @pytest.mark.asyncio
    async def test_round_trip_with_lazy_load(
        self, manager, make_result, one_pixel_png, tmp_path
    ):
        session = await manager.create_session()
        manager.add_iteration_to_session(session.id, "pixel", make_result("pixel"))
        await manager.save_session(session)

        fresh = SessionManager(tmp_path / "sessions")
        loaded = await fresh.load_session(session.id)

        assert loaded is not None
        assert loaded.iterations[0].prompt == "pixel"
        assert loaded.iterations[0].result.image.cached is None
        assert await fresh.load_iteration_image(session.id, 0) == one_pixel_png
        assert loaded.iterations[0].result.image.cached == one_pixel_png

    @pytest.mark.asyncio
    async def test_inline_blob_on_disk_triggers_resave(
        self, manager, make_result, tmp_path
    ):
        session = Session.create()
        session.iterations.append(_inline_iteration(make_result("x")))
        session.metadata.total_iterations = 1
        session_dir = manager.storage_dir / session.id
        session_dir.mkdir(parents=True)
        (session_dir / "session.json").write_text(json.dumps(session.to_dict()))

        loaded = await manager.load_session(session.id)

        assert isinstance(loaded.iterations[0].result.image, StoredImage)
        assert (session_dir / "images" / "0.png").is_file()
        on_disk = json.loads((session_dir / "session.json").read_text())
        assert "image_base64" not in on_disk["iterations"][0]["result"]

    @pytest.mark.asyncio
    async def test_load_image_errors(self, manager, make_result):
        with pytest.raises(SessionNotFoundError):
            await manager.load_iteration_image("nope", 0)

        session = await manager.create_session()
        with pytest.raises(IterationNotFoundError):
            await manager.load_iteration_image(session.id, 0)

        manager.add_iteration_to_session(session.id, "a", make_result("a"))
        await manager.save_session(session)
        (manager.session_dir(session.id) / "images" / "0.png").unlink()
        with pytest.raises(ImageNotFoundError):
            await manager.load_iteration_image(session.id, 0)

    @pytest.mark.asyncio
    async def test_inline_image_served_before_save(
        self, manager, make_result, one_pixel_png
    ):
        session = await manager.create_session()
        manager.add_iteration_to_session(session.id, "a", make_result("a"))
        assert isinstance(session.iterations[0].result.image, InlineImage)
        assert await manager.load_iteration_image(session.id, 0) == one_pixel_png


def _inline_iteration(result):
    history = IterationHistory("tmp")
    return history.add_iteration("x", result)


class TestLegacySessions:
    @pytest.mark.asyncio
    async def test_legacy_file_is_migrated(self, manager, make_result):
        session = Session.create()
        session.iterations.append(_inline_iteration(make_result("x")))
        session.metadata.total_iterations = 1
        legacy = manager.storage_dir / f"{session.id}.json"
        legacy.write_text(json.dumps(session.to_dict()))

        loaded = await manager.load_session(session.id)

        assert loaded is not None
        assert not legacy.exists()
        assert (manager.storage_dir / session.id / "session.json").is_file()
        assert (manager.storage_dir / session.id / "images" / "0.png").is_file()

    @pytest.mark.asyncio
    async def test_corrupted_legacy_file(self, manager):
        (manager.storage_dir / "old.json").write_text("[]")
        assert await manager.load_session("old") is None


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_saves_last_write_wins(self, manager, tmp_path):
        session = await manager.create_session()
        first = Session.from_dict(session.to_dict())
        second = Session.from_dict(session.to_dict())
        first.metadata.last_prompt = "first"
        second.metadata.last_prompt = "second"

        await asyncio.gather(manager.save_session(first), manager.save_session(second))

        fresh = SessionManager(tmp_path / "sessions")
        loaded = await fresh.load_session(session.id)
        assert loaded is not None
        assert loaded.metadata.last_prompt in {"first", "second"}
        leftovers = [
            p.name for p in manager.session_dir(session.id).iterdir() if p.suffix == ".tmp"
        ]
        assert leftovers == []


class TestDeleteAndList:
    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, manager):
        assert await manager.delete_session("ghost") is False
        assert manager.metrics.get_snapshot().total_sessions_closed == 0

    @pytest.mark.asyncio
    async def test_delete_removes_everything(self, manager):
        session = await manager.create_session()
        manager.set_variant_cache(session.id, "k", [_variant(1)])

        assert await manager.delete_session(session.id) is True

        assert not manager.session_dir(session.id).exists()
        assert manager.get_active_session(session.id) is None
        assert manager.get_variant_cache(session.id, "k") is None
        assert manager.get_active_session_count() == 0
        assert await manager.load_session(session.id) is None

    @pytest.mark.asyncio
    async def test_delete_legacy_file(self, manager):
        legacy = manager.storage_dir / "legacy-1.json"
        legacy.write_text("{}")
        assert await manager.delete_session("legacy-1") is True
        assert not legacy.exists()

    @pytest.mark.asyncio
    async def test_list_newest_first_skipping_corrupt(self, manager, tmp_path):
        first = await manager.create_session()
        second = await manager.create_session()
        bad = manager.storage_dir / "bad"
        bad.mkdir()
        (bad / "session.json").write_text("nope")

        fresh = SessionManager(tmp_path / "sessions")
        listed = await fresh.list_sessions()

        assert [s.id for s in listed] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_list_empty_storage(self, tmp_path):
        assert await SessionManager(tmp_path / "none").list_sessions() == []


class TestVariantCacheOnManager:
    @pytest.mark.asyncio
    async def test_isolated_between_sessions(self, manager):
        a = await manager.create_session()
        b = await manager.create_session()
        key = manager.build_variant_cache_key("icon", "Rocket", 256, 256)
        manager.set_variant_cache(a.id, key, [_variant(1)])

        assert manager.get_variant_cache(b.id, key) is None
        assert manager.get_variant_cache(a.id, key)[0].seed == 1


class TestWireframes:
    @pytest.mark.asyncio
    async def test_save_load_list_delete(self, manager):
        session = await manager.create_session()
        wireframe, _ = build_wireframe("dashboard", session.id)

        await manager.save_wireframe(session.id, wireframe)

        assert await manager.list_wireframes(session.id) == [wireframe.id]
        assert await manager.load_wireframe(session.id, wireframe.id) == wireframe
        assert await manager.delete_wireframe(session.id, wireframe.id) is True
        assert await manager.load_wireframe(session.id, wireframe.id) is None
        assert await manager.list_wireframes(session.id) == []

    @pytest.mark.asyncio
    async def test_save_requires_session(self, manager):
        wireframe, _ = build_wireframe("dashboard", "nope")
        with pytest.raises(SessionNotFoundError):
            await manager.save_wireframe("nope", wireframe)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "content",
        ["{not json", json.dumps({"id": "broken", "components": "nope"})],
        ids=["unparseable", "invalid"],
    )
    async def test_unreadable_file_loads_as_none(self, manager, content, caplog):
        session = await manager.create_session()
        path = manager.session_dir(session.id) / "wireframes" / "wireframe-broken.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)

        assert await manager.load_wireframe(session.id, "broken") is None
        assert "wireframe" in caplog.text
        assert await manager.list_wireframes(session.id) == ["broken"]


class TestMetricsPassthrough:
    @pytest.mark.asyncio
    async def test_record_metric(self, tmp_path):
        metrics = MetricsCollector()
        manager = SessionManager(tmp_path, metrics=metrics)
        manager.record_metric("list_sessions", 5.0)

        assert metrics.get_operation_metrics("list_sessions").total_operations == 1
        assert "list_sessions" in manager.get_metrics_summary()
        assert manager.get_metrics_snapshot().operation_metrics

    @pytest.mark.asyncio
    async def test_reloading_does_not_count_as_created(self, tmp_path):
        metrics = MetricsCollector()
        first = SessionManager(tmp_path, metrics=metrics)
        session = await first.create_session()

        second = SessionManager(tmp_path, metrics=metrics)
        loaded = await second.load_session(session.id)
        await second.save_session(loaded)

        assert loaded.id == session.id
        assert metrics.get_snapshot().total_sessions_created == 1
