"""Unit tests for MCP server module.

Tests cover:
- Server configuration
- Error categorization and the tool boundary
- Health reporting
- Tool registration and calls over the MCP protocol
"""

import base64
import json

import pytest

from .errors import (
    ErrorCategory,
    ErrorSeverity,
    ToolValidationError,
    categorize_error,
    format_for_mcp,
    tool_boundary,
)
from .health import HealthStatus, format_startup_banner, get_server_health
from .lib import (
    ServerConfig,
    TransportType,
    get_server_capabilities,
    get_server_version,
)
from .server import create_server

EXPECTED_TOOLS = {
    "status",
    "get_metrics",
    "list_available_models",
    "create_session",
    "list_sessions",
    "delete_session",
    "generate_image",
    "list_iterations",
    "preview_iteration",
    "compare_iterations",
    "resolve_iteration_reference",
    "export_image",
    "rollback_iteration",
    "undo",
    "redo",
    "generate_variants",
    "select_variant",
    "refine_asset",
    "generate_wireframe",
    "show_component",
    "update_component",
    "adjust_proportions",
    "refine_component",
    "list_component_versions",
    "restore_component_version",
    "undo_wireframe",
}


# =============================================================================
# Configuration Tests
# =============================================================================


class TestServerConfig:
    """Tests for ServerConfig dataclass."""

    @pytest.mark.unit
    def test_default_config(self):
        config = ServerConfig()

        assert config.transport == TransportType.STDIO
        assert config.host == "127.0.0.1"
        assert config.port == 18090
        assert config.url is None

    @pytest.mark.unit
    def test_from_env_reads_port_and_storage(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MCP_PORT", "19000")
        monkeypatch.setenv("SESSION_STORAGE_DIR", str(tmp_path))
        config = ServerConfig.from_env(transport="http")

        assert config.port == 19000
        assert config.storage_dir == tmp_path
        assert config.transport == TransportType.HTTP
        assert config.url == "http://127.0.0.1:19000/mcp"

    @pytest.mark.unit
    def test_none_overrides_keep_environment(self, monkeypatch):
        monkeypatch.setenv("MCP_HOST", "0.0.0.0")
        config = ServerConfig.from_env(host=None, port=None, log_level="debug")

        assert config.host == "0.0.0.0"
        assert config.log_level == "debug"

    @pytest.mark.unit
    def test_transport_from_string(self):
        assert TransportType("stdio") == TransportType.STDIO
        assert TransportType("sse") == TransportType.SSE


class TestServerUtilities:
    @pytest.mark.unit
    def test_get_server_version(self):
        assert len(get_server_version().split(".")) >= 2

    @pytest.mark.unit
    def test_get_server_capabilities(self):
        caps = get_server_capabilities()
        assert caps["tools"] is True
        assert caps["resources"] is False


# =============================================================================
# Error Handling Tests
# =============================================================================


class TestCategorizeError:
    @pytest.mark.unit
    def test_python_missing_is_fatal_setup(self):
        error = categorize_error(RuntimeError("Python not found at /usr/bin/python3"))

        assert error.category == ErrorCategory.SETUP
        assert error.severity == ErrorSeverity.FATAL
        assert not error.is_retryable
        assert error.technical_message.startswith("RuntimeError: ")

    @pytest.mark.unit
    def test_missing_model(self):
        error = categorize_error("Model org/model not downloaded")
        assert error.category == ErrorCategory.SETUP
        assert "downloaded" in error.user_message

    @pytest.mark.unit
    def test_timeout_is_retryable(self):
        error = categorize_error(TimeoutError("Operation 'x' timed out after 10ms"))
        assert error.category == ErrorCategory.TIMEOUT
        assert error.is_retryable

    @pytest.mark.unit
    def test_unknown_error_falls_back(self):
        error = categorize_error(KeyError("boom"), {"operation": "undo"})
        assert error.category == ErrorCategory.RUNTIME
        assert error.user_message == "Something went wrong during the operation."
        assert error.context == {"operation": "undo"}

    @pytest.mark.unit
    def test_format_for_mcp(self):
        fatal = format_for_mcp(categorize_error("Python not found"))
        assert fatal.startswith("Error: I couldn't find Python")
        assert "must be resolved" in fatal

        retry = format_for_mcp(categorize_error("Out of memory"))
        assert "You can retry" in retry


class TestToolBoundary:
    @pytest.mark.asyncio
    async def test_records_success_metric(self, tool_context):
        @tool_boundary("sample")
        async def handler(ctx, session_id=None):
            return []

        await handler(tool_context, session_id="s1")

        metrics = tool_context.sessions.metrics.get_operation_metrics("sample")
        assert metrics.total_operations == 1
        assert metrics.successful_operations == 1

    @pytest.mark.asyncio
    async def test_validation_error_becomes_text(self, tool_context):
        @tool_boundary("sample")
        async def handler(ctx):
            raise ToolValidationError("prompt is required")

        content = await handler(tool_context)

        assert content[0].text == "Error: prompt is required"
        metrics = tool_context.sessions.metrics.get_operation_metrics("sample")
        assert metrics.errors_by_type == {"ToolValidationError": 1}

    @pytest.mark.asyncio
    async def test_unexpected_error_is_categorized(self, tool_context):
        @tool_boundary("sample")
        async def handler(ctx):
            raise RuntimeError("Out of memory")

        content = await handler(tool_context)

        assert "ran out of memory" in content[0].text
        assert "RuntimeError: Out of memory" in content[0].text


# =============================================================================
# Health Tests
# =============================================================================


class TestHealth:
    @pytest.mark.asyncio
    async def test_healthy(self, tool_context):
        health = await get_server_health(tool_context)

        assert health.status == HealthStatus.HEALTHY
        assert health.to_dict()["capabilities"]["generate_image"] is True

    @pytest.mark.asyncio
    async def test_engine_not_ready_is_degraded(self, tool_context, fake_engine):
        fake_engine.ready = False
        health = await get_server_health(tool_context)

        assert health.status == HealthStatus.DEGRADED
        assert health.engine.message == "Model fake not downloaded"
        assert "Action Required" in format_startup_banner(health)

    @pytest.mark.asyncio
    async def test_missing_storage_is_unhealthy(self, tool_context, tmp_path):
        tool_context.sessions._storage_dir = tmp_path / "missing"
        health = await get_server_health(tool_context)

        assert health.status == HealthStatus.UNHEALTHY


# =============================================================================
# Tool Registration Tests
# =============================================================================


class TestToolRegistration:
    @pytest.mark.asyncio
    async def test_all_tools_registered(self, tool_context):
        server = create_server(tool_context)
        tools = await server.get_tools()

        assert set(tools) == EXPECTED_TOOLS

    @pytest.mark.unit
    def test_servers_do_not_share_state(self, tool_context):
        assert create_server(tool_context) is not create_server(tool_context)


# =============================================================================
# MCP Protocol Integration Tests
# =============================================================================


@pytest.mark.mcp
class TestMCPProtocol:
    """Integration tests using the in-process MCP client."""

    @pytest.mark.asyncio
    async def test_client_can_list_tools(self, mcp_client):
        tools = await mcp_client.list_tools()
        assert EXPECTED_TOOLS <= {t.name for t in tools}

    @pytest.mark.asyncio
    async def test_status(self, mcp_client):
        result = await mcp_client.call_tool("status", {})
        payload = json.loads(result.content[1].text)

        assert payload["status"] == "healthy"
        assert payload["services"]["engine"]["available"] is True

    @pytest.mark.asyncio
    async def test_generate_and_undo_round_trip(self, mcp_client):
        created = await mcp_client.call_tool("create_session", {})
        session_id = json.loads(created.content[1].text)["session_id"]

        for prompt in ("red", "blue"):
            result = await mcp_client.call_tool(
                "generate_image", {"session_id": session_id, "prompt": prompt}
            )
            assert result.content[1].type == "image"
            assert result.content[1].mimeType == "image/png"

        undone = await mcp_client.call_tool("undo", {"session_id": session_id})
        payload = json.loads(undone.content[0].text)
        assert payload["index"] == 0
        assert payload["prompt"] == "red"
        assert payload["can_redo"] is True

    @pytest.mark.asyncio
    async def test_unknown_session_is_reported_as_text(self, mcp_client):
        result = await mcp_client.call_tool(
            "list_iterations", {"session_id": "does-not-exist"}
        )
        assert result.content[0].text == "Error: Session not found: does-not-exist"

    @pytest.mark.asyncio
    async def test_wireframe_edit_over_protocol(self, mcp_client):
        created = await mcp_client.call_tool("create_session", {})
        session_id = json.loads(created.content[1].text)["session_id"]

        await mcp_client.call_tool(
            "generate_wireframe", {"session_id": session_id, "description": "admin dashboard"}
        )
        updated = await mcp_client.call_tool(
            "update_component",
            {
                "session_id": session_id,
                "component_id": "sidebar-1",
                "dimensions": {"width": 300},
            },
        )
        assert "Dimensions: 300x800" in updated.content[0].text

        undone = await mcp_client.call_tool(
            "undo_wireframe", {"session_id": session_id, "action": "undo"}
        )
        assert undone.content[0].text.startswith("Undo successful")
        assert "Dimensions: 240x800" in undone.content[1].text

    @pytest.mark.asyncio
    async def test_export_svg_over_protocol(self, mcp_client):
        created = await mcp_client.call_tool("create_session", {})
        session_id = json.loads(created.content[1].text)["session_id"]
        await mcp_client.call_tool("generate_image", {"session_id": session_id, "prompt": "red"})

        result = await mcp_client.call_tool(
            "export_image",
            {"session_id": session_id, "iteration_index": 0, "format": "svg", "resolution": "2x"},
        )

        assert result.content[1].mimeType == "image/svg+xml"
        svg = base64.b64decode(result.content[1].data).decode("utf-8")
        assert svg.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert 'href="data:image/png;base64,' in svg
