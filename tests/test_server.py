"""Tests for the MCP transport adapter."""

import pytest
from mcp.types import TextContent, Tool

from imagegen.api.server import ToolCallError, build_server, handle_call, to_mcp_tools


def test_to_mcp_tools(router):
    tools = to_mcp_tools(router)

    assert all(isinstance(tool, Tool) for tool in tools)
    assert tools[0].name == "generate-image"
    assert tools[0].inputSchema["required"] == ["prompt"]


def test_build_server(router):
    server = build_server(router)
    assert server.name == "imagegen-mcp"


@pytest.mark.asyncio
async def test_handle_call_success(router):
    content = await handle_call(router, "get-config-status", {})

    assert len(content) == 1
    assert isinstance(content[0], TextContent)
    assert content[0].text.startswith("Configuration Status:")


@pytest.mark.asyncio
async def test_handle_call_none_arguments(router):
    content = await handle_call(router, "list-supported-models", None)
    assert content[0].text.startswith("Supported Models:")


@pytest.mark.asyncio
async def test_handle_call_error_raises(router):
    with pytest.raises(ToolCallError, match="Unknown tool: nope"):
        await handle_call(router, "nope", {})


@pytest.mark.asyncio
async def test_handle_call_failure_text(router):
    with pytest.raises(ToolCallError) as exc_info:
        await handle_call(router, "generate-image", {"prompt": "a red fox", "background": "green"})

    assert str(exc_info.value).startswith("Failed to generate image: Unsupported background: green")
