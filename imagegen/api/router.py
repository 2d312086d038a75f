"""Transport-neutral tool catalog and dispatcher.

Architectural role:
    - Declares the tool catalog (names, descriptions, JSON input schemas).
    - Checks argument shape with pydantic models.
    - Delegates to `ImageGenerationService` or `CredentialStore`.
    - Renders every outcome as human-readable text.

Both transports (`imagegen.api.server` for MCP, `imagegen.api.http_api`
for HTTP) call `ToolRouter.dispatch` and only translate `ToolResponse` into
their own wire shapes.

Request lifecycle:
    1. Look up the tool; unknown names produce an error response.
    2. Parse arguments into the tool's pydantic model.
    3. Call the service/store; typed errors raised before I/O and failure
       envelopes are rendered the same way.
    4. Return `ToolResponse(text, is_error)`.

Response formatting:
    - Success: multi-line summary of paths, ids and resolved parameters.
    - Failure: `<headline>: <message>` followed by a bulleted suggestion list.

Security considerations:
    API keys are masked to `sk-...<last 4>`. No tracebacks are rendered.
"""

import logging
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from imagegen.config import settings
from imagegen.core.errors import ImageToolError, UnsupportedModel


logger = logging.getLogger(__name__)


# ============================================================
# Argument models
# ============================================================

class _ToolArgs(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class GenerateImageArgs(_ToolArgs):
    prompt: str
    size: str | None = None
    quality: str | None = None
    format: str | None = None
    background: str | None = None
    compression: float | None = None


class ConfigureServerArgs(_ToolArgs):
    api_key: str
    organization: str | None = None
    model: str | None = None


class EditImageArgs(_ToolArgs):
    edit_prompt: str
    previous_response_id: str | None = None
    image_id: str | None = None


class StreamImageArgs(_ToolArgs):
    prompt: str
    partial_images: int | None = None
    size: str | None = None


# ============================================================
# Tool catalog
# ============================================================

def _prompt_schema(description):
    return {
        "type": "string",
        "minLength": 1,
        "maxLength": settings.MAX_PROMPT_LENGTH,
        "description": description,
    }


TOOLS = [
    {
        "name": "generate-image",
        "description": "Generate images using OpenAI's image generation API",
        "inputSchema": {
            "type": "object",
            "properties": {
                "prompt": _prompt_schema("Image description/prompt"),
                "size": {
                    "type": "string",
                    "enum": list(settings.SUPPORTED_SIZES),
                    "default": settings.DEFAULT_SIZE,
                    "description": "Image dimensions",
                },
                "quality": {
                    "type": "string",
                    "enum": list(settings.SUPPORTED_QUALITIES),
                    "default": settings.DEFAULT_QUALITY,
                    "description": "Image quality setting",
                },
                "format": {
                    "type": "string",
                    "enum": list(settings.SUPPORTED_FORMATS),
                    "default": settings.DEFAULT_FORMAT,
                    "description": "Output file format",
                },
                "background": {
                    "type": "string",
                    "enum": list(settings.SUPPORTED_BACKGROUNDS),
                    "default": settings.DEFAULT_BACKGROUND,
                    "description": "Background setting",
                },
                "compression": {
                    "type": "number",
                    "minimum": 0,
                    "maximum": 100,
                    "description": "Compression level for JPEG/WebP (0-100%)",
                },
            },
            "required": ["prompt"],
        },
    },
    {
        "name": "configure-server",
        "description": "Configure OpenAI API settings and credentials",
        "inputSchema": {
            "type": "object",
            "properties": {
                "apiKey": {"type": "string", "description": "OpenAI API key"},
                "organization": {
                    "type": "string",
                    "description": "OpenAI organization ID (required for image generation)",
                },
                "model": {
                    "type": "string",
                    "enum": list(settings.SUPPORTED_MODELS),
                    "default": settings.DEFAULT_MODEL,
                    "description": "Model used to call the image generation tool",
                },
            },
            "required": ["apiKey"],
        },
    },
    {
        "name": "edit-image",
        "description": "Edit existing images using previous response ID for multi-turn editing",
        "inputSchema": {
            "type": "object",
            "properties": {
                "editPrompt": _prompt_schema("Edit instructions"),
                "previousResponseId": {
                    "type": "string",
                    "description": "Previous response ID for multi-turn editing",
                },
                "imageId": {
                    "type": "string",
                    "description": "Specific image ID to edit (alternative to previousResponseId)",
                },
            },
            "required": ["editPrompt"],
        },
    },
    {
        "name": "stream-image",
        "description": "Generate images with streaming for faster visual feedback",
        "inputSchema": {
            "type": "object",
            "properties": {
                "prompt": _prompt_schema("Image description/prompt"),
                "partialImages": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 3,
                    "default": settings.DEFAULT_PARTIAL_IMAGES,
                    "description": "Number of partial images during streaming",
                },
                "size": {
                    "type": "string",
                    "enum": list(settings.SUPPORTED_SIZES),
                    "default": settings.DEFAULT_SIZE,
                    "description": "Image dimensions",
                },
            },
            "required": ["prompt"],
        },
    },
    {
        "name": "get-config-status",
        "description": "Check current configuration status",
        "inputSchema": {"type": "object", "properties": {}, "required": []},
    },
    {
        "name": "list-supported-models",
        "description": "List all supported OpenAI models for image generation",
        "inputSchema": {"type": "object", "properties": {}, "required": []},
    },
]


# ============================================================
# Rendering helpers
# ============================================================

@dataclass
class ToolResponse:
    text: str
    is_error: bool = False


def mask_key(api_key: str) -> str:
    if not api_key or len(api_key) < 8:
        return "***"
    return f"{api_key[:3]}...{api_key[-4:]}"


def render_failure(headline, message, suggestions) -> ToolResponse:
    text = f"{headline}: {message}"
    if suggestions:
        text += "\n\nSuggestions:\n" + "\n".join(f"- {s}" for s in suggestions)
    return ToolResponse(text, is_error=True)


def _render_validation_error(tool_name, error: ValidationError) -> ToolResponse:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "arguments"
        problems.append(f"{location}: {item.get('msg')}")
    return render_failure(
        f"Invalid arguments for {tool_name}",
        "; ".join(problems),
        ["Check the tool's input schema"],
    )


_FAILURE_HEADLINES = {
    "generate-image": "Failed to generate image",
    "configure-server": "Failed to configure server",
    "edit-image": "Failed to edit image",
    "stream-image": "Failed to stream image",
    "get-config-status": "Failed to read configuration",
    "list-supported-models": "Failed to read configuration",
}


# ============================================================
# Router
# ============================================================

class ToolRouter:
    """Dispatch named tool calls to the generation service and credential store."""

    def __init__(self, credentials, generator):
        self.credentials = credentials
        self.generator = generator
        self._handlers = {
            "generate-image": self._generate_image,
            "configure-server": self._configure_server,
            "edit-image": self._edit_image,
            "stream-image": self._stream_image,
            "get-config-status": self._get_config_status,
            "list-supported-models": self._list_supported_models,
        }

    def list_tools(self) -> list:
        return [dict(tool) for tool in TOOLS]

    def dispatch(self, name: str, arguments: dict | None) -> ToolResponse:
        handler = self._handlers.get(name)
        if handler is None:
            return ToolResponse(f"Error: Unknown tool: {name}", is_error=True)

        try:
            return handler(arguments or {})
        except ValidationError as e:
            return _render_validation_error(name, e)
        except ImageToolError as e:
            logger.info("%s rejected: %s", name, e.kind.value)
            return render_failure(_FAILURE_HEADLINES[name], e.message, e.suggestions)

    # =========================================================
    # HANDLERS
    # =========================================================

    def _generate_image(self, arguments) -> ToolResponse:
        args = GenerateImageArgs.model_validate(arguments)
        result = self.generator.generate_image(
            args.prompt,
            size=args.size,
            quality=args.quality,
            fmt=args.format,
            background=args.background,
            compression=args.compression,
        )

        if not result.success:
            return render_failure("Failed to generate image", result.error.message, result.error.suggestions)

        image = result.image
        meta = image.metadata
        return ToolResponse(
            "Image generated successfully!\n\n"
            f"File: {image.file_name}\n"
            f"Path: {image.file_path}\n"
            f"Size: {meta.size}\n"
            f"Quality: {meta.quality}\n"
            f"Format: {meta.format}\n"
            f"Background: {meta.background}\n"
            f"Model: {meta.model}\n"
            f"Response ID: {image.response_id}\n"
            f"Image ID: {image.image_id}\n\n"
            f"Original prompt: {meta.prompt}\n"
            f"Revised prompt: {image.revised_prompt or meta.prompt}"
        )

    def _configure_server(self, arguments) -> ToolResponse:
        args = ConfigureServerArgs.model_validate(arguments)

        # Reject an unknown model before anything is persisted.
        if args.model and args.model not in settings.SUPPORTED_MODELS:
            raise UnsupportedModel(args.model, settings.SUPPORTED_MODELS)

        self.credentials.update_key(args.api_key, args.organization)
        if args.model:
            self.credentials.update_model(args.model)

        return ToolResponse(
            "Server configured successfully!\n\n"
            f"API Key: {mask_key(args.api_key)}\n"
            f"Organization: {args.organization or 'Not set'}\n"
            f"Model: {self.credentials.get_model()}\n\n"
            "Configuration status: configured\n"
            "You can now use the image generation tools."
        )

    def _edit_image(self, arguments) -> ToolResponse:
        args = EditImageArgs.model_validate(arguments)
        result = self.generator.edit_image(
            args.edit_prompt,
            previous_response_id=args.previous_response_id,
            image_id=args.image_id,
        )

        if not result.success:
            return render_failure("Failed to edit image", result.error.message, result.error.suggestions)

        image = result.image
        return ToolResponse(
            "Image edited successfully!\n\n"
            f"File: {image.file_name}\n"
            f"Path: {image.file_path}\n"
            f"Response ID: {image.response_id}\n"
            f"Image ID: {image.image_id}\n\n"
            f"Edit prompt: {args.edit_prompt}\n"
            f"Revised prompt: {image.revised_prompt or args.edit_prompt}"
        )

    def _stream_image(self, arguments) -> ToolResponse:
        args = StreamImageArgs.model_validate(arguments)
        result = self.generator.stream_image(
            args.prompt,
            size=args.size,
            partial_images=args.partial_images,
        )

        if not result.success:
            return render_failure("Failed to stream image", result.error.message, result.error.suggestions)

        image = result.image
        partials = image.partial_image_paths
        text = (
            "Image streamed successfully!\n\n"
            f"Final image: {image.file_path}\n"
            f"Partial images: {len(partials)}\n"
            f"Response ID: {image.response_id}\n\n"
            f"Original prompt: {args.prompt}\n"
            f"Revised prompt: {image.revised_prompt or args.prompt}"
        )
        if partials:
            text += "\n\nPartial image paths:\n" + "\n".join(f"- {p}" for p in partials)
        return ToolResponse(text)

    def _get_config_status(self, arguments) -> ToolResponse:
        status = self.credentials.status()
        ready = (
            "Ready to generate images!"
            if status.configured
            else "Please configure the server with your OpenAI API key first."
        )
        return ToolResponse(
            "Configuration Status:\n\n"
            f"Configured: {'Yes' if status.configured else 'No'}\n"
            f"Has API Key: {'Yes' if status.has_api_key else 'No'}\n"
            f"Model: {status.model}\n"
            f"Organization: {status.organization or 'Not set'}\n"
            f"Last Used: {status.last_used_at or 'Never'}\n\n"
            f"{ready}"
        )

    def _list_supported_models(self, arguments) -> ToolResponse:
        current = self.credentials.get_model()
        lines = "\n".join(
            f"{'● ' if model == current else '○ '}{model}"
            for model in settings.SUPPORTED_MODELS
        )
        return ToolResponse(
            "Supported Models:\n\n"
            f"{lines}\n\n"
            f"Current Model: {current}\n"
            f"Image Generation Model: {settings.IMAGE_MODEL}\n\n"
            "Note: The model above is used to call the image generation tool,\n"
            f"but the actual image generation is always performed by {settings.IMAGE_MODEL}."
        )
