"""Generation operations returning the Result Envelope.

Role in pipeline:
    - Receives tool arguments from `imagegen.api.router`.
    - Validates and defaults them (`imagegen.image.validation`).
    - Calls the Responses API through `OpenAIImageClient`.
    - Writes the returned payload through `OutputStore`.
    - Records `lastUsedAt` on the credential store after a success.

Error handling strategy:
    - Validation errors are raised before any upstream call or artifact write.
    - Everything after validation runs inside one boundary: any
      `ImageToolError` (missing key, upstream failure, bad payload, write
      failure) becomes `GenerationResult.fail(...)`. Nothing past validation
      is raised to the router.
    - Failing to persist `lastUsedAt` after a saved image is logged only; the
      image exists and the caller gets the success variant.

Multi-turn / streaming:
    - `edit_image` continues an earlier response (`previous_response_id`) or
      references an earlier image-generation call (`image_id`).
    - `stream_image` consumes SSE events; every partial frame is written as
      its own artifact and the final image is written last.

Determinism:
    Output content and identifiers are upstream-dependent; filenames embed
    wall-clock time and a random suffix.
"""

import os
import logging

from imagegen.config import settings
from imagegen.core.errors import (
    ConfigurationError,
    ImageToolError,
    InvalidCredential,
    InvalidPayload,
)
from imagegen.core.results import GeneratedImage, GenerationResult, ImageMetadata
from imagegen.core.timeutil import format_timestamp, utc_now
from imagegen.image.client import OpenAIImageClient
from imagegen.image.validation import (
    GenerationDefaults,
    validate_edit_params,
    validate_generate_params,
    validate_stream_params,
)


logger = logging.getLogger(__name__)


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def find_image_call(response: dict) -> dict:
    """Return the first completed `image_generation_call` output item.

    Raises:
        InvalidPayload: no such item, or it carries no image data.
    """
    output = response.get("output") if isinstance(response, dict) else None
    if not isinstance(output, list):
        output = []

    for item in output:
        if isinstance(item, dict) and item.get("type") == "image_generation_call":
            if item.get("result"):
                return item
    raise InvalidPayload("No image generated in response")


class ImageGenerationService:
    """Generation client shared by all transports."""

    def __init__(self, credentials, outputs, client_factory=OpenAIImageClient):
        self.credentials = credentials
        self.outputs = outputs
        self._client_factory = client_factory

    # =========================================================
    # HELPERS
    # =========================================================

    def _defaults(self) -> GenerationDefaults:
        record = self.credentials.load()
        return GenerationDefaults(
            size=record.default_size,
            quality=record.default_quality,
            format=record.default_format,
        )

    def _client(self):
        api_key = self.credentials.get_api_key()
        if not api_key:
            raise InvalidCredential(
                "OpenAI API key not configured. Please run configure-server first."
            )
        return self._client_factory(
            api_key=api_key,
            organization=self.credentials.get_organization(),
        )

    def _metadata(self, prompt, call, response_id, size, quality, fmt, background):
        return ImageMetadata(
            prompt=prompt,
            revised_prompt=call.get("revised_prompt") or prompt,
            size=size,
            quality=quality,
            format=fmt,
            background=background,
            model=self.credentials.get_model(),
            image_model=settings.IMAGE_MODEL,
            timestamp=format_timestamp(utc_now()),
            response_id=response_id or "",
            image_id=call.get("id") or "",
        )

    def _finish(self, call, metadata, partial_paths=None) -> GenerationResult:
        path = self.outputs.write(call["result"], metadata.format, metadata)

        try:
            self.credentials.touch_last_used()
        except ConfigurationError:
            logger.exception("Image saved but lastUsedAt could not be persisted")

        return GenerationResult.ok(GeneratedImage(
            file_path=path,
            file_name=os.path.basename(path),
            response_id=metadata.response_id,
            image_id=metadata.image_id,
            revised_prompt=call.get("revised_prompt"),
            metadata=metadata,
            partial_image_paths=list(partial_paths or []),
        ))

    @staticmethod
    def _failure(operation, error: ImageToolError) -> GenerationResult:
        logger.warning("%s failed: %s (%s)", operation, error.message, error.kind.value)
        return GenerationResult.fail(error.to_info())

    # =========================================================
    # OPERATIONS
    # =========================================================

    def generate_image(self, prompt, size=None, quality=None, fmt=None,
                       background=None, compression=None) -> GenerationResult:
        """Generate one image from a text prompt.

        Raises:
            InvalidParameter (and its Unsupported* subclasses) before any I/O.
        """
        params = validate_generate_params(
            prompt, size=size, quality=quality, fmt=fmt,
            background=background, compression=compression,
            defaults=self._defaults(),
        )

        try:
            client = self._client()
            response = client.create_response(
                self.credentials.get_model(),
                params.prompt,
                {
                    "size": params.size,
                    "quality": params.quality,
                    "output_format": params.format,
                    "background": params.background,
                    "output_compression": params.compression,
                },
            )
            call = find_image_call(response)
            metadata = self._metadata(
                params.prompt, call, response.get("id"),
                params.size, params.quality, params.format, params.background,
            )
            return self._finish(call, metadata)
        except ImageToolError as e:
            return self._failure("generate-image", e)

    def edit_image(self, edit_prompt, previous_response_id=None,
                   image_id=None) -> GenerationResult:
        """Edit an earlier image through a multi-turn Responses API call."""
        params = validate_edit_params(
            edit_prompt,
            previous_response_id=previous_response_id,
            image_id=image_id,
        )
        defaults = self._defaults()

        try:
            client = self._client()
            response = client.create_response(
                self.credentials.get_model(),
                params.edit_prompt,
                {
                    "size": defaults.size,
                    "quality": defaults.quality,
                    "output_format": defaults.format,
                    "background": defaults.background,
                },
                previous_response_id=params.previous_response_id,
                image_id=params.image_id,
            )
            call = find_image_call(response)
            metadata = self._metadata(
                params.edit_prompt, call, response.get("id"),
                defaults.size, defaults.quality, defaults.format, defaults.background,
            )
            return self._finish(call, metadata)
        except ImageToolError as e:
            return self._failure("edit-image", e)

    def stream_image(self, prompt, size=None, partial_images=None) -> GenerationResult:
        """Generate an image, saving partial frames as they stream in."""
        defaults = self._defaults()
        params = validate_stream_params(
            prompt, size=size, partial_images=partial_images, defaults=defaults,
        )

        try:
            client = self._client()
            events = client.stream_response(
                self.credentials.get_model(),
                params.prompt,
                {
                    "size": params.size,
                    "quality": defaults.quality,
                    "output_format": defaults.format,
                    "background": defaults.background,
                    "partial_images": params.partial_images,
                },
            )

            response_id = None
            final_call = None
            partial_paths = []

            for event in events:
                event_type = event.get("type")

                if event_type in ("response.created", "response.in_progress"):
                    response_id = _as_dict(event.get("response")).get("id") or response_id

                elif event_type == "response.image_generation_call.partial_image":
                    partial_paths.append(
                        self.outputs.write(event.get("partial_image_b64"), defaults.format)
                    )

                elif event_type == "response.output_item.done":
                    item = _as_dict(event.get("item"))
                    if item.get("type") == "image_generation_call" and item.get("result"):
                        final_call = item

                elif event_type == "response.completed":
                    completed = _as_dict(event.get("response"))
                    response_id = completed.get("id") or response_id
                    if final_call is None:
                        final_call = find_image_call(completed)

            if final_call is None:
                raise InvalidPayload("No image generated in stream")

            metadata = self._metadata(
                params.prompt, final_call, response_id,
                params.size, defaults.quality, defaults.format, defaults.background,
            )
            return self._finish(final_call, metadata, partial_paths)
        except ImageToolError as e:
            return self._failure("stream-image", e)
