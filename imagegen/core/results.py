"""Result Envelope data contracts for generation operations.

Architectural role:
    Every generation operation in `imagegen.image.service` returns a
    `GenerationResult`. The router renders it without inspecting exceptions.

Invariants:
    Exactly one of `image` / `error` is populated. `GenerationResult.ok` and
    `GenerationResult.fail` are the only constructors callers should use.

Determinism:
    The data classes are purely structural and state-free.
"""

from dataclasses import dataclass, field

from imagegen.core.errors import ErrorInfo


@dataclass
class ImageMetadata:
    """Resolved parameters echoed back with a generated artifact."""

    prompt: str
    revised_prompt: str
    size: str
    quality: str
    format: str
    background: str
    model: str
    image_model: str
    timestamp: str
    response_id: str
    image_id: str


@dataclass
class GeneratedImage:
    """Success variant: artifact location plus upstream identifiers.

    Attributes:
        file_path: Absolute path of the written artifact.
        file_name: Basename of `file_path`.
        response_id: Upstream response id, usable as `previous_response_id`.
        image_id: Upstream image-generation-call id.
        revised_prompt: Prompt as rewritten upstream, if any.
        metadata: Resolved generation parameters.
        partial_image_paths: Partial frames written during streaming.
    """

    file_path: str
    file_name: str
    response_id: str
    image_id: str
    revised_prompt: str | None
    metadata: ImageMetadata
    partial_image_paths: list = field(default_factory=list)


@dataclass
class GenerationResult:
    """Discriminated success/failure value."""

    image: GeneratedImage | None = None
    error: ErrorInfo | None = None

    def __post_init__(self):
        if (self.image is None) == (self.error is None):
            raise ValueError("GenerationResult requires exactly one of image/error")

    @property
    def success(self) -> bool:
        return self.image is not None

    @classmethod
    def ok(cls, image: GeneratedImage) -> "GenerationResult":
        return cls(image=image)

    @classmethod
    def fail(cls, error: ErrorInfo) -> "GenerationResult":
        return cls(error=error)
