"""Closed error taxonomy shared by stores, generation and transport layers.

Architectural role:
    Defines the `ErrorKind` enumeration and the typed exception hierarchy used
    by every component. `ErrorInfo` is the failure half of the Result Envelope
    (`imagegen.core.results`) and carries the same fields.

Failure categories:
    - Fatal: invalid input, credential persistence failures, payload write
      failures. Raised as `ImageToolError` subclasses.
    - Advisory: listing, pruning and probe failures. Never raised; the owning
      component logs them and degrades to an empty/false result.

Upstream classification:
    `classify_upstream_error` is the only function that inspects upstream
    error text. Structured status codes and OpenAI error codes are checked
    first; substring matching is the fallback.

Security considerations:
    Messages must never include API keys. Callers pass sanitized text only.
"""

from dataclasses import dataclass, field
from enum import Enum


class ErrorKind(str, Enum):
    """Machine-readable failure kinds rendered by the tool router."""

    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
    UNSUPPORTED_MODEL = "UNSUPPORTED_MODEL"
    UNSUPPORTED_SIZE = "UNSUPPORTED_SIZE"
    UNSUPPORTED_QUALITY = "UNSUPPORTED_QUALITY"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    UNSUPPORTED_BACKGROUND = "UNSUPPORTED_BACKGROUND"
    INVALID_PARAMETER = "INVALID_PARAMETER"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    WRITE_FAILED = "WRITE_FAILED"
    DIRECTORY_INACCESSIBLE = "DIRECTORY_INACCESSIBLE"
    CONFIG_SAVE_FAILED = "CONFIG_SAVE_FAILED"
    UPSTREAM_RATE_LIMITED = "UPSTREAM_RATE_LIMITED"
    UPSTREAM_BILLING = "UPSTREAM_BILLING"
    UPSTREAM_QUOTA = "UPSTREAM_QUOTA"
    UPSTREAM_AUTH = "UPSTREAM_AUTH"
    UPSTREAM_MODEL = "UPSTREAM_MODEL"
    UPSTREAM_PROMPT_REJECTED = "UPSTREAM_PROMPT_REJECTED"
    UPSTREAM_FAILURE = "UPSTREAM_FAILURE"


GENERIC_SUGGESTIONS = [
    "Check your API key",
    "Verify your prompt",
    "Try again later",
]


@dataclass
class ErrorInfo:
    """Failure variant of the Result Envelope.

    Attributes:
        kind: Closed error kind.
        message: Human-readable message, free of secrets.
        detail: Optional structured detail (field name, status code, ...).
        suggestions: Remediation hints rendered as a bulleted list.
    """

    kind: ErrorKind
    message: str
    detail: dict = field(default_factory=dict)
    suggestions: list = field(default_factory=list)


# ============================================================
# Exception hierarchy
# ============================================================

class ImageToolError(Exception):
    """Base class for every typed failure raised by this package."""

    kind = ErrorKind.UPSTREAM_FAILURE
    default_suggestions: list = GENERIC_SUGGESTIONS

    def __init__(self, message: str, detail: dict | None = None,
                 suggestions: list | None = None, kind: ErrorKind | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}
        if kind is not None:
            self.kind = kind
        self.suggestions = list(
            suggestions if suggestions is not None else self.default_suggestions
        )

    def to_info(self) -> "ErrorInfo":
        """Project the exception onto the envelope's `ErrorInfo`."""
        return ErrorInfo(
            kind=self.kind,
            message=self.message,
            detail=dict(self.detail),
            suggestions=list(self.suggestions),
        )


class InvalidCredential(ImageToolError):
    kind = ErrorKind.INVALID_CREDENTIAL
    default_suggestions = [
        "Configure your OpenAI API key using configure-server",
        "Verify your API key is valid",
    ]


class InvalidParameter(ImageToolError):
    kind = ErrorKind.INVALID_PARAMETER
    default_suggestions = ["Review the tool arguments and try again"]


class UnsupportedValue(InvalidParameter):
    """A value outside one of the fixed enumerated sets.

    The rejected field name is kept in `detail["field"]` and appears in the
    message.
    """

    field = "value"
    plural = "values"

    def __init__(self, value, supported):
        supported = list(supported)
        message = (
            f"Unsupported {self.field}: {value}. "
            f"Supported {self.plural}: {', '.join(supported)}"
        )
        super().__init__(
            message,
            detail={"field": self.field, "value": value, "supported": supported},
            suggestions=[f"Use one of: {', '.join(supported)}"],
        )


class UnsupportedModel(UnsupportedValue):
    kind = ErrorKind.UNSUPPORTED_MODEL
    field = "model"
    plural = "models"


class UnsupportedSize(UnsupportedValue):
    kind = ErrorKind.UNSUPPORTED_SIZE
    field = "size"
    plural = "sizes"


class UnsupportedQuality(UnsupportedValue):
    kind = ErrorKind.UNSUPPORTED_QUALITY
    field = "quality"
    plural = "qualities"


class UnsupportedFormat(UnsupportedValue):
    kind = ErrorKind.UNSUPPORTED_FORMAT
    field = "format"
    plural = "formats"


class UnsupportedBackground(UnsupportedValue):
    kind = ErrorKind.UNSUPPORTED_BACKGROUND
    field = "background"
    plural = "backgrounds"


class InvalidPayload(ImageToolError):
    kind = ErrorKind.INVALID_PAYLOAD
    default_suggestions = ["Try the request again", "Try a different prompt"]


class WriteFailed(ImageToolError):
    kind = ErrorKind.WRITE_FAILED
    default_suggestions = [
        "Check free disk space",
        "Check write permissions on the output directory",
    ]


class DirectoryInaccessible(ImageToolError):
    kind = ErrorKind.DIRECTORY_INACCESSIBLE
    default_suggestions = [
        "Create the output directory or set IMAGEGEN_OUTPUT_DIR",
        "Check permissions on the output directory",
    ]


class ConfigurationError(ImageToolError):
    """Credentials could not be persisted."""

    kind = ErrorKind.CONFIG_SAVE_FAILED
    default_suggestions = [
        "Check permissions on the configuration file",
        "Set IMAGEGEN_CONFIG_PATH to a writable location",
    ]


class UpstreamFailure(ImageToolError):
    """Network or API error from the image provider.

    Construct through `UpstreamFailure.classified` so the kind and
    suggestions come from `classify_upstream_error`.
    """

    kind = ErrorKind.UPSTREAM_FAILURE

    @classmethod
    def classified(cls, message: str, status_code: int | None = None,
                   code: str | None = None):
        kind, suggestions = classify_upstream_error(message, status_code, code)
        detail = {}
        if status_code is not None:
            detail["status_code"] = status_code
        if code:
            detail["code"] = code
        return cls(message, detail=detail, suggestions=suggestions, kind=kind)


# ============================================================
# Upstream classification
# ============================================================

_SUGGESTIONS = {
    ErrorKind.UPSTREAM_RATE_LIMITED: [
        "Wait a moment before retrying",
        "Reduce the number of concurrent requests",
    ],
    ErrorKind.UPSTREAM_BILLING: [
        "Check your OpenAI billing status",
        "Add payment method to your OpenAI account",
    ],
    ErrorKind.UPSTREAM_QUOTA: [
        "Check your API usage limits",
        "Upgrade your OpenAI plan if needed",
    ],
    ErrorKind.UPSTREAM_AUTH: [
        "Configure your OpenAI API key using configure-server",
        "Verify your API key is valid",
        "Verify your organization is verified for image generation",
    ],
    ErrorKind.UPSTREAM_MODEL: [
        "Try using a different model",
        "Check if the model is available",
    ],
    ErrorKind.UPSTREAM_PROMPT_REJECTED: [
        "Review your prompt for inappropriate content",
        "Try a different prompt",
    ],
    ErrorKind.UPSTREAM_FAILURE: GENERIC_SUGGESTIONS,
}

_STRUCTURED_CODES = {
    "rate_limit_exceeded": ErrorKind.UPSTREAM_RATE_LIMITED,
    "billing_hard_limit_reached": ErrorKind.UPSTREAM_BILLING,
    "billing_not_active": ErrorKind.UPSTREAM_BILLING,
    "insufficient_quota": ErrorKind.UPSTREAM_QUOTA,
    "invalid_api_key": ErrorKind.UPSTREAM_AUTH,
    "model_not_found": ErrorKind.UPSTREAM_MODEL,
    "content_policy_violation": ErrorKind.UPSTREAM_PROMPT_REJECTED,
    "moderation_blocked": ErrorKind.UPSTREAM_PROMPT_REJECTED,
}

# Checked in order; first match wins.
_SUBSTRINGS = [
    ("rate limit", ErrorKind.UPSTREAM_RATE_LIMITED),
    ("billing", ErrorKind.UPSTREAM_BILLING),
    ("quota", ErrorKind.UPSTREAM_QUOTA),
    ("api key", ErrorKind.UPSTREAM_AUTH),
    ("model", ErrorKind.UPSTREAM_MODEL),
    ("safety", ErrorKind.UPSTREAM_PROMPT_REJECTED),
    ("prompt", ErrorKind.UPSTREAM_PROMPT_REJECTED),
]


def classify_upstream_error(message: str, status_code: int | None = None,
                            code: str | None = None):
    """Map an upstream failure to an `ErrorKind` and remediation suggestions.

    Args:
        message: Upstream error text (already free of secrets).
        status_code: HTTP status, when the failure came from a response.
        code: OpenAI error `code` field, when present.

    Returns:
        `(ErrorKind, list[str])`.

    Determinism:
        Pure function of its inputs.
    """
    kind = _STRUCTURED_CODES.get(code or "")

    if kind is None and status_code == 429:
        kind = ErrorKind.UPSTREAM_RATE_LIMITED
    if kind is None and status_code == 401:
        kind = ErrorKind.UPSTREAM_AUTH

    if kind is None:
        lowered = str(message or "").lower()
        for needle, candidate in _SUBSTRINGS:
            if needle in lowered:
                kind = candidate
                break

    if kind is None:
        kind = ErrorKind.UPSTREAM_FAILURE

    return kind, list(_SUGGESTIONS[kind])
