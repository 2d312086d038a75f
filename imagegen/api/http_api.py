"""HTTP adapter exposing the tool router over FastAPI.

Endpoint responsibilities:
    - `GET /v1/tools`: tool catalog (same names and schemas as MCP).
    - `POST /v1/tools/{name}`: JSON object body of arguments; returns the
      MCP-shaped result `{"content": [{"type": "text", "text": ...}], "isError": ...}`.

Input validation behavior:
    - Unknown tool -> HTTP 404.
    - Body that is not a JSON object -> HTTP 400.
    - Argument problems are rendered by the router with `isError: true`.

Side effects:
    Generation requests write images to the output directory and update the
    credential record, exactly as through the MCP transport.
"""

import asyncio

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from imagegen.config import settings


def create_app(router) -> FastAPI:
    app = FastAPI(title=settings.SERVER_NAME, version=settings.SERVER_VERSION)
    tool_names = {tool["name"] for tool in router.list_tools()}

    @app.get("/v1/tools")
    def list_tools():
        return {"tools": router.list_tools()}

    @app.post("/v1/tools/{name}")
    async def call_tool(name: str, request: Request):
        if name not in tool_names:
            return JSONResponse(status_code=404, content={"error": f"Unknown tool: {name}"})

        body = await request.body()
        arguments = {}
        if body.strip():
            try:
                arguments = await request.json()
            except ValueError:
                return JSONResponse(status_code=400, content={"error": "Body must be JSON"})
        if not isinstance(arguments, dict):
            return JSONResponse(status_code=400, content={"error": "Arguments must be a JSON object"})

        response = await asyncio.to_thread(router.dispatch, name, arguments)
        return {
            "content": [{"type": "text", "text": response.text}],
            "isError": response.is_error,
        }

    return app
