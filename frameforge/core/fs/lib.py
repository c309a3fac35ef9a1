"""Async file storage primitives.

Every write goes to a uniquely named temporary file in the target
directory and is then renamed over the destination, so a reader never
observes a partially written file. With concurrent writers to the same
path the last rename wins.
"""

import asyncio
import json
import re
import shutil
from pathlib import Path
from typing import Any
from uuid import uuid4

import aiofiles
import aiofiles.os

__all__ = [
    "safe_segment",
    "write_bytes_atomic",
    "write_json_atomic",
    "read_bytes",
    "read_json",
    "remove_path",
]

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def safe_segment(value: str) -> str:
    """Reduce an identifier to a safe single path segment.

    Keeps ASCII letters, digits, ``-`` and ``_``; everything else is dropped.

    Raises:
        ValueError: If nothing is left after sanitizing.
    """
    cleaned = _UNSAFE_CHARS.sub("", value)
    if not cleaned:
        raise ValueError(f"Identifier has no usable characters: {value!r}")
    return cleaned


async def write_bytes_atomic(path: Path, data: bytes) -> None:
    """Write bytes to ``path`` via a temporary file and rename."""
    await aiofiles.os.makedirs(path.parent, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
    try:
        async with aiofiles.open(tmp_path, "wb") as f:
            await f.write(data)
        await aiofiles.os.replace(tmp_path, path)
    except BaseException:
        if await aiofiles.os.path.exists(tmp_path):
            await aiofiles.os.remove(tmp_path)
        raise


async def write_json_atomic(path: Path, payload: Any) -> None:
    """Serialize ``payload`` as indented JSON and write it atomically."""
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    await write_bytes_atomic(path, text.encode("utf-8"))


async def read_bytes(path: Path) -> bytes:
    async with aiofiles.open(path, "rb") as f:
        return await f.read()


async def read_json(path: Path) -> Any:
    """Read and parse a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the content is not valid JSON.
    """
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        content = await f.read()
    return json.loads(content)


async def remove_path(path: Path) -> bool:
    """Remove a file or a directory tree.

    Returns:
        True if something was removed, False if the path did not exist.
    """
    if await aiofiles.os.path.isdir(path):
        await asyncio.to_thread(shutil.rmtree, path)
        return True
    if await aiofiles.os.path.exists(path):
        await aiofiles.os.remove(path)
        return True
    return False
