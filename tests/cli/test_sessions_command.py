"""Tests for the sessions and mcp CLI commands."""

import subprocess
import sys
from pathlib import Path

import pytest

from frameforge.session import SessionManager

REPO_ROOT = Path(__file__).resolve().parents[2]


def run_cli(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, ".", *args],
        capture_output=True,
        text=True,
        cwd=REPO_ROOT,
        timeout=60,
    )


@pytest.mark.integration
def test_sessions_list_empty_storage(tmp_path):
    result = run_cli("sessions", "--storage-dir", str(tmp_path), "list")

    assert result.returncode == 0
    assert "No sessions in" in result.stdout


@pytest.mark.integration
@pytest.mark.asyncio
async def test_sessions_show_and_delete(tmp_path, make_result):
    manager = SessionManager(tmp_path)
    await manager.initialize()
    session = await manager.create_session()
    manager.add_iteration_to_session(session.id, "a lighthouse", make_result("a lighthouse"))
    await manager.save_session(session)

    listed = run_cli("sessions", "--storage-dir", str(tmp_path), "list")
    assert session.id in listed.stdout
    assert '"a lighthouse"' in listed.stdout

    shown = run_cli("sessions", "--storage-dir", str(tmp_path), "show", session.id)
    assert shown.returncode == 0
    assert '#0 "a lighthouse"' in shown.stdout

    deleted = run_cli("sessions", "--storage-dir", str(tmp_path), "delete", session.id)
    assert deleted.returncode == 0
    assert not (tmp_path / session.id).exists()


@pytest.mark.integration
def test_sessions_show_missing(tmp_path):
    result = run_cli("sessions", "--storage-dir", str(tmp_path), "show", "nope")
    assert result.returncode == 1


@pytest.mark.integration
def test_mcp_info_lists_tools():
    result = run_cli("mcp", "info")

    assert result.returncode == 0
    assert "Frameforge MCP Server" in result.stdout
    assert "- undo_wireframe" in result.stdout
