"""Process/runtime configuration for the image tool server.

Architectural role:
    Centralizes filesystem locations, upstream endpoint selection and fixed
    enumerations consumed by `credential_store`, `output_store`,
    `image.validation` and `image.client`.

Determinism:
    Values are resolved once at import time from the process environment (plus
    an optional `.env` file loaded through `python-dotenv`). Constructors in
    other modules accept explicit overrides, so tests never need to mutate
    the environment.

Failure behavior:
    Malformed numeric values fall back to their defaults instead of failing
    import.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_int(name, default):
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Persisted credential record (one per user).
CONFIG_PATH = os.path.expanduser(
    os.getenv("IMAGEGEN_CONFIG_PATH", os.path.join("~", ".imagegen-mcp.json"))
)

# User-visible directory receiving generated images.
OUTPUT_DIR = os.path.expanduser(
    os.getenv("IMAGEGEN_OUTPUT_DIR", os.path.join("~", "Desktop"))
)

# Retention count applied by the startup prune.
KEEP_IMAGES = _env_int("IMAGEGEN_KEEP_IMAGES", 50)

# Whether `configure-server` insists on an organization id.
REQUIRE_ORGANIZATION = _env_bool("IMAGEGEN_REQUIRE_ORGANIZATION", True)

# Upstream endpoint and per-request timeout (seconds).
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").rstrip("/")
REQUEST_TIMEOUT = _env_int("IMAGEGEN_REQUEST_TIMEOUT", 300)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
# Verbose request/response logging is opt-in.
DEBUG = os.getenv("DEBUG") == "true"


# ============================================================
# Fixed values
# ============================================================

SERVER_NAME = "imagegen-mcp"
SERVER_VERSION = "1.0.0"

# The preference model drives the Responses API call; the image itself is
# always produced by IMAGE_MODEL.
IMAGE_MODEL = "gpt-image-1"
KEY_PREFIX = "sk-"
FILE_PREFIX = "openai-image"
MAX_PROMPT_LENGTH = 4000

SUPPORTED_MODELS = (
    "gpt-4.1",
    "gpt-4.1-mini",
    "gpt-4o",
    "gpt-4o-mini",
)

SUPPORTED_SIZES = (
    "1024x1024",
    "1024x1536",
    "1536x1024",
    "auto",
)

SUPPORTED_QUALITIES = (
    "low",
    "medium",
    "high",
    "auto",
)

SUPPORTED_FORMATS = (
    "png",
    "jpeg",
    "webp",
)

SUPPORTED_BACKGROUNDS = (
    "transparent",
    "opaque",
    "auto",
)

DEFAULT_MODEL = "gpt-4.1"
DEFAULT_SIZE = "1024x1024"
DEFAULT_QUALITY = "auto"
DEFAULT_FORMAT = "png"
DEFAULT_BACKGROUND = "auto"
DEFAULT_PARTIAL_IMAGES = 2
