"""Tests for async file storage primitives."""

import asyncio
import json

import pytest

from .lib import (
    read_bytes,
    read_json,
    remove_path,
    safe_segment,
    write_bytes_atomic,
    write_json_atomic,
)


class TestSafeSegment:
    @pytest.mark.unit
    def test_keeps_safe_characters(self):
        assert safe_segment("abc-123_XYZ") == "abc-123_XYZ"

    @pytest.mark.unit
    def test_strips_traversal(self):
        assert safe_segment("../../etc/passwd") == "etcpasswd"

    @pytest.mark.unit
    def test_rejects_empty_result(self):
        with pytest.raises(ValueError, match="no usable characters"):
            safe_segment("../..")


class TestAtomicWrites:
    @pytest.mark.asyncio
    async def test_json_round_trip(self, tmp_path):
        target = tmp_path / "nested" / "data.json"
        await write_json_atomic(target, {"a": [1, 2], "b": "é"})

        assert await read_json(target) == {"a": [1, 2], "b": "é"}
        assert list(target.parent.iterdir()) == [target]

    @pytest.mark.asyncio
    async def test_bytes_round_trip(self, tmp_path):
        target = tmp_path / "blob.bin"
        await write_bytes_atomic(target, b"\x00\x01\x02")
        assert await read_bytes(target) == b"\x00\x01\x02"

    @pytest.mark.asyncio
    async def test_concurrent_writers_leave_one_complete_file(self, tmp_path):
        target = tmp_path / "race.json"
        payloads = [{"writer": i, "fill": "x" * 10000} for i in range(10)]

        await asyncio.gather(*(write_json_atomic(target, p) for p in payloads))

        result = json.loads(target.read_text(encoding="utf-8"))
        assert result in payloads
        assert [p.name for p in tmp_path.iterdir()] == ["race.json"]

    @pytest.mark.asyncio
    async def test_read_missing_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await read_json(tmp_path / "missing.json")

    @pytest.mark.asyncio
    async def test_read_corrupt_raises(self, tmp_path):
        target = tmp_path / "bad.json"
        target.write_text("{not json", encoding="utf-8")
        with pytest.raises(json.JSONDecodeError):
            await read_json(target)


class TestRemovePath:
    @pytest.mark.asyncio
    async def test_removes_tree(self, tmp_path):
        tree = tmp_path / "tree"
        (tree / "sub").mkdir(parents=True)
        (tree / "sub" / "f.txt").write_text("x")

        assert await remove_path(tree) is True
        assert not tree.exists()

    @pytest.mark.asyncio
    async def test_removes_file(self, tmp_path):
        target = tmp_path / "f.json"
        target.write_text("{}")
        assert await remove_path(target) is True
        assert not target.exists()

    @pytest.mark.asyncio
    async def test_missing_is_noop(self, tmp_path):
        assert await remove_path(tmp_path / "ghost") is False
