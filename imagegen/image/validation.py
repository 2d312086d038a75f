"""Parameter validation and defaulting for generation requests.

Role in pipeline:
    Runs first in every `ImageGenerationService` operation, before any
    network or file I/O. A failure here raises a typed error naming the
    rejected field; nothing has been sent upstream or written to disk.

Defaulting:
    - size / quality / format: the credential record's defaults.
    - background: `auto`.
    - partial images (streaming): 2.

Determinism:
    Pure functions of their inputs.
"""

from dataclasses import dataclass

from imagegen.config import settings
from imagegen.core.errors import (
    InvalidParameter,
    UnsupportedBackground,
    UnsupportedFormat,
    UnsupportedQuality,
    UnsupportedSize,
)


@dataclass
class GenerationDefaults:
    size: str = settings.DEFAULT_SIZE
    quality: str = settings.DEFAULT_QUALITY
    format: str = settings.DEFAULT_FORMAT
    background: str = settings.DEFAULT_BACKGROUND


@dataclass
class GenerateParams:
    prompt: str
    size: str
    quality: str
    format: str
    background: str
    compression: int | None = None


@dataclass
class EditParams:
    edit_prompt: str
    previous_response_id: str | None = None
    image_id: str | None = None


@dataclass
class StreamParams:
    prompt: str
    size: str
    partial_images: int


def validate_prompt(prompt, field="prompt") -> str:
    if not isinstance(prompt, str) or not prompt:
        raise InvalidParameter(f"{field} cannot be empty", detail={"field": field})
    if not prompt.strip():
        raise InvalidParameter(
            f"{field} cannot be only whitespace", detail={"field": field}
        )
    if len(prompt) > settings.MAX_PROMPT_LENGTH:
        raise InvalidParameter(
            f"{field} too long (max {settings.MAX_PROMPT_LENGTH} characters)",
            detail={"field": field},
        )
    return prompt


def _choose(value, default, supported, error_cls):
    value = default if value in (None, "") else value
    if value not in supported:
        raise error_cls(value, supported)
    return value


def _bounded_int(value, field, low, high):
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidParameter(
            f"{field} must be a number between {low} and {high}",
            detail={"field": field, "value": value},
        )
    if value < low or value > high:
        raise InvalidParameter(
            f"{field} must be between {low} and {high}",
            detail={"field": field, "value": value},
        )
    return int(value)


def validate_generate_params(prompt, size=None, quality=None, fmt=None,
                             background=None, compression=None,
                             defaults: GenerationDefaults | None = None) -> GenerateParams:
    """Resolve defaults and check every value against the supported sets.

    Raises:
        InvalidParameter: bad prompt or compression outside 0-100.
        UnsupportedSize / UnsupportedQuality / UnsupportedFormat /
        UnsupportedBackground: value outside its fixed set.
    """
    defaults = defaults or GenerationDefaults()

    params = GenerateParams(
        prompt=validate_prompt(prompt),
        size=_choose(size, defaults.size, settings.SUPPORTED_SIZES, UnsupportedSize),
        quality=_choose(quality, defaults.quality, settings.SUPPORTED_QUALITIES, UnsupportedQuality),
        format=_choose(fmt, defaults.format, settings.SUPPORTED_FORMATS, UnsupportedFormat),
        background=_choose(background, defaults.background, settings.SUPPORTED_BACKGROUNDS, UnsupportedBackground),
    )

    if compression is not None:
        params.compression = _bounded_int(compression, "compression", 0, 100)

    return params


def validate_edit_params(edit_prompt, previous_response_id=None, image_id=None) -> EditParams:
    """Check the edit prompt; a response id takes precedence over an image id."""
    validate_prompt(edit_prompt, field="editPrompt")

    for field, value in (("previousResponseId", previous_response_id), ("imageId", image_id)):
        if value is not None and not isinstance(value, str):
            raise InvalidParameter(f"{field} must be a string", detail={"field": field})

    return EditParams(
        edit_prompt=edit_prompt,
        previous_response_id=previous_response_id or None,
        image_id=None if previous_response_id else (image_id or None),
    )


def validate_stream_params(prompt, size=None, partial_images=None,
                           defaults: GenerationDefaults | None = None) -> StreamParams:
    defaults = defaults or GenerationDefaults()

    if partial_images is None:
        partial_images = settings.DEFAULT_PARTIAL_IMAGES

    return StreamParams(
        prompt=validate_prompt(prompt),
        size=_choose(size, defaults.size, settings.SUPPORTED_SIZES, UnsupportedSize),
        partial_images=_bounded_int(partial_images, "partialImages", 1, 3),
    )
