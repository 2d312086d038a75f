"""Transport adapter package.

Architectural role:
- `router`: tool catalog, argument checks and text rendering.
- `server`: MCP stdio transport over the router.
- `http_api`: FastAPI transport over the same router.
- `bootstrap`: component wiring and startup checks.
- `cli`: process entry point.
"""
