"""Pytest fixtures for MCP server tests.

Provides a server bound to a temporary tool context and a connected
in-process client for protocol testing.
"""

from __future__ import annotations

from typing import AsyncGenerator

import pytest
from fastmcp import Client, FastMCP

from .context import ToolContext
from .server import create_server


@pytest.fixture
def mcp_server(tool_context: ToolContext) -> FastMCP:
    """Create MCP server instance for testing."""
    return create_server(tool_context)


@pytest.fixture
async def mcp_client(mcp_server: FastMCP) -> AsyncGenerator[Client, None]:
    """Create connected MCP client for testing.

    Args:
        mcp_server: The MCP server instance.

    Yields:
        Connected Client instance for testing.
    """
    async with Client(mcp_server) as client:
        yield client
