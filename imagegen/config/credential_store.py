"""Persisted per-user credential record with a self-healing load path.

Purpose of this abstraction:
    Keep the OpenAI API key, organization, preference model and generation
    defaults in one JSON file (`settings.CONFIG_PATH`), cached in memory for
    the lifetime of the owning process. The entry point creates one
    `CredentialStore` and injects it into the generation service and router.

State machine:
    - Unconfigured: no `apiKey` in the record.
    - Configured: `apiKey` present.
    `update_key` is the only transition into Configured. There is no
    unconfigure operation; a key can only be overwritten.

Persistence:
    - camelCase JSON keys, two-space indentation.
    - `createdAt` never changes after first write.
    - `updatedAt` strictly increases on every save.
    - A missing or corrupt file is replaced by a default record, written back
      immediately.
    - Out-of-set model or default values are reset to the built-in defaults
      on load; the rest of the record (key, organization) is kept.

Concurrency:
    Generation runs in worker threads and calls `touch_last_used`, so every
    load/mutate/save sequence holds `self._lock` (re-entrant).

Failure handling:
    - Read/parse failures on load are absorbed (default record).
    - Write failures raise `ConfigurationError`; callers must be able to tell
      that credentials were not persisted.
    - Mutations edit a copy; the cache only changes after a successful save.

Security considerations:
    The API key is never logged. Saves write a 0600 temp file in the same
    directory and `os.replace` it over the target, so the key is never
    world-readable and an interrupted save keeps the previous file.
"""

import os
import json
import tempfile
import threading
import logging
from dataclasses import dataclass
from datetime import timedelta

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from imagegen.config import settings
from imagegen.core.errors import ConfigurationError, InvalidCredential, UnsupportedModel
from imagegen.core.timeutil import format_timestamp, parse_timestamp, utc_now


logger = logging.getLogger(__name__)


def _or_default(value, supported, default, field):
    if value in supported:
        return value
    logger.warning("Stored %s %r is not supported; using %s", field, value, default)
    return default


class CredentialRecord(BaseModel):
    """On-disk credential record (camelCase aliases)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    api_key: str | None = None
    organization: str | None = None
    model: str = settings.DEFAULT_MODEL
    default_size: str = settings.DEFAULT_SIZE
    default_quality: str = settings.DEFAULT_QUALITY
    default_format: str = settings.DEFAULT_FORMAT
    last_used_at: str | None = None
    created_at: str
    updated_at: str

    # Out-of-set values fall back to the built-in default; the key is kept.
    @field_validator("model")
    @classmethod
    def _known_model(cls, value):
        return _or_default(value, settings.SUPPORTED_MODELS, settings.DEFAULT_MODEL, "model")

    @field_validator("default_size")
    @classmethod
    def _known_size(cls, value):
        return _or_default(value, settings.SUPPORTED_SIZES, settings.DEFAULT_SIZE, "defaultSize")

    @field_validator("default_quality")
    @classmethod
    def _known_quality(cls, value):
        return _or_default(value, settings.SUPPORTED_QUALITIES, settings.DEFAULT_QUALITY, "defaultQuality")

    @field_validator("default_format")
    @classmethod
    def _known_format(cls, value):
        return _or_default(value, settings.SUPPORTED_FORMATS, settings.DEFAULT_FORMAT, "defaultFormat")


@dataclass
class CredentialStatus:
    """Read-only projection returned by `CredentialStore.status`.

    `configured` and `has_api_key` always agree; both are kept because the
    tool protocol reports them as separate fields.
    """

    configured: bool
    has_api_key: bool
    model: str
    organization: str | None
    last_used_at: str | None


class CredentialStore:
    """Single-writer owner of the credential file."""

    def __init__(self, path=None, require_organization=None, clock=None):
        self.path = path or settings.CONFIG_PATH
        self.require_organization = (
            settings.REQUIRE_ORGANIZATION
            if require_organization is None
            else require_organization
        )
        self._clock = clock or utc_now
        self._record = None
        self._lock = threading.RLock()

    # =========================================================
    # LOAD / SAVE
    # =========================================================

    def load(self) -> CredentialRecord:
        """Return the cached record, reading (or creating) it on first use."""
        with self._lock:
            if self._record is not None:
                return self._record

            try:
                self._record = CredentialRecord.model_validate(self._read())
                return self._record
            except (OSError, ValueError):
                logger.info("No usable credential file at %s; creating defaults", self.path)

            record = self._create_default()
            self.save(record)
            return record

    def save(self, record: CredentialRecord) -> None:
        """Stamp `updatedAt`, persist and cache `record`.

        Raises:
            ConfigurationError: the file could not be written.
        """
        with self._lock:
            if self._record is not None:
                record.created_at = self._record.created_at
            record.updated_at = self._next_stamp(record.updated_at)

            data = record.model_dump(by_alias=True, exclude_none=True)
            try:
                self._write_atomic(data)
            except OSError as e:
                raise ConfigurationError(
                    f"Failed to save configuration: {e.strerror or e}",
                    detail={"path": self.path},
                ) from e

            self._record = record

    def _write_atomic(self, data):
        """Write `data` to a 0600 temp file beside the target, then swap it in.

        A failed write leaves the previous file untouched.
        """
        parent = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(parent, exist_ok=True)

        # mkstemp creates the file with mode 0600.
        fd, tmp_path = tempfile.mkstemp(dir=parent, prefix=".imagegen-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError:
            try:
                os.remove(tmp_path)
            except OSError:
                logger.warning("Could not remove temporary file %s", tmp_path)
            raise

    def clear_cache(self) -> None:
        with self._lock:
            self._record = None

    def _read(self):
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _create_default(self) -> CredentialRecord:
        now = format_timestamp(self._clock())
        return CredentialRecord(created_at=now, updated_at=now)

    def _next_stamp(self, previous):
        now = self._clock()
        if previous:
            try:
                last = parse_timestamp(previous)
            except ValueError:
                last = None
            if last is not None and now <= last:
                now = last + timedelta(milliseconds=1)
        return format_timestamp(now)

    # =========================================================
    # MUTATIONS
    # =========================================================

    def validate_key(self, candidate) -> bool:
        """Syntactic check only; the upstream API may still reject the key."""
        return (
            isinstance(candidate, str)
            and bool(candidate)
            and candidate.startswith(settings.KEY_PREFIX)
        )

    def update_key(self, api_key, organization=None) -> None:
        if not self.validate_key(api_key):
            raise InvalidCredential(
                f'Invalid API key format. API key must start with "{settings.KEY_PREFIX}"',
                detail={"field": "apiKey"},
            )
        if self.require_organization and not organization:
            raise InvalidCredential(
                "Organization ID is required for image generation",
                detail={"field": "organization"},
                suggestions=["Provide your OpenAI organization ID"],
            )

        with self._lock:
            record = self.load().model_copy()
            record.api_key = api_key
            record.organization = organization or None
            self.save(record)
        logger.info("API key updated (organization=%s)", organization or "none")

    def update_model(self, model) -> None:
        if model not in settings.SUPPORTED_MODELS:
            raise UnsupportedModel(model, settings.SUPPORTED_MODELS)

        with self._lock:
            record = self.load().model_copy()
            record.model = model
            self.save(record)

    def touch_last_used(self) -> None:
        with self._lock:
            record = self.load().model_copy()
            record.last_used_at = format_timestamp(self._clock())
            self.save(record)

    # =========================================================
    # READ-ONLY VIEWS
    # =========================================================

    def status(self) -> CredentialStatus:
        record = self.load()
        has_key = bool(record.api_key)
        return CredentialStatus(
            configured=has_key,
            has_api_key=has_key,
            model=record.model,
            organization=record.organization,
            last_used_at=record.last_used_at,
        )

    def get_api_key(self):
        return self.load().api_key

    def get_organization(self):
        return self.load().organization

    def get_model(self):
        return self.load().model

    def get_default_size(self):
        return self.load().default_size

    def get_default_quality(self):
        return self.load().default_quality

    def get_default_format(self):
        return self.load().default_format
