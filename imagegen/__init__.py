"""OpenAI image generation exposed as MCP tools.

Subpackages:
    - `config`: runtime settings and the persisted credential record.
    - `storage`: bounded-retention output directory.
    - `image`: parameter validation, Responses API client, generation service.
    - `api`: tool router plus MCP and HTTP transports.
    - `core`: error taxonomy and result contracts.
"""

__version__ = "1.0.0"
