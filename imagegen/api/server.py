"""MCP stdio server adapter.

Architectural role:
    Exposes `ToolRouter` through the official `mcp` SDK. Framing, JSON-RPC and
    capability negotiation belong to the SDK; this module only maps tool
    listings and tool results.

Request lifecycle:
    1. SDK delivers `tools/call` with a name and arguments.
    2. `handle_call` runs `ToolRouter.dispatch` in a worker thread (the
       generation path uses blocking `requests` and file I/O).
    3. Success -> `[TextContent]`. Failure -> `ToolCallError` is raised, which
       the SDK turns into a result with `isError: true` and the same text.

Side effects:
    stdout carries the protocol; all logging must go to stderr.
"""

import asyncio
import logging

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from imagegen.config import settings


logger = logging.getLogger(__name__)


class ToolCallError(Exception):
    """Carries a rendered failure message back through the SDK."""


def to_mcp_tools(router) -> list:
    return [
        Tool(name=tool["name"], description=tool["description"], inputSchema=tool["inputSchema"])
        for tool in router.list_tools()
    ]


async def handle_call(router, name: str, arguments: dict | None) -> list:
    response = await asyncio.to_thread(router.dispatch, name, arguments or {})
    if response.is_error:
        raise ToolCallError(response.text)
    return [TextContent(type="text", text=response.text)]


def build_server(router) -> Server:
    server = Server(settings.SERVER_NAME, version=settings.SERVER_VERSION)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return to_mcp_tools(router)

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> list[TextContent]:
        logger.debug("Tool call: %s", name)
        return await handle_call(router, name, arguments)

    return server


async def run_stdio(router) -> None:
    server = build_server(router)
    logger.info("Starting MCP server...")
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
