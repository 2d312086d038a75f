"""Bounded-retention store for generated image files.

Processing flow (write):
    1. Strictly decode the base64 payload; reject empty/undecodable data.
    2. Generate `openai-image-<timestamp>-<random>.<ext>`.
    3. Write bytes into the output directory and return the absolute path.

Naming convention:
    `<timestamp>` is ISO-8601 UTC with `:` and `.` replaced by `-`, so
    lexicographic order of filenames is chronological order. `<random>` is six
    base36 characters. `jpeg` is written as `.jpg`.

Ownership:
    Only files matching the naming convention and a known extension are ever
    listed or deleted. Everything else in the directory is left alone.

Error handling strategy:
    - Fatal: `InvalidPayload`, `WriteFailed`, `DirectoryInaccessible` are raised.
    - Advisory: listing, pruning and writability probes log and degrade to an
      empty list / `False` / skip; they never block the generate-and-save path.

Concurrency:
    No shared mutable state beyond the directory. Concurrent writes are safe
    through unique names. A prune running alongside a write may or may not see
    the new file.
"""

import os
import re
import base64
import binascii
import logging
import secrets
import stat
import string

from imagegen.config import settings
from imagegen.core.errors import DirectoryInaccessible, InvalidPayload, WriteFailed
from imagegen.core.timeutil import format_timestamp, utc_now


logger = logging.getLogger(__name__)


# ============================================================
# CONFIG
# ============================================================

ARTIFACT_EXTENSIONS = ("png", "jpg", "jpeg", "webp")
PROBE_FILENAME = ".imagegen-probe"
_BASE36 = string.digits + string.ascii_lowercase

ARTIFACT_PATTERN = re.compile(
    r"^" + re.escape(settings.FILE_PREFIX)
    + r"-\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z-[0-9a-z]{6}"
    + r"\.(" + "|".join(ARTIFACT_EXTENSIONS) + r")$"
)


def file_extension(fmt: str) -> str:
    """Map an output format to its file extension (`jpeg` -> `jpg`)."""
    fmt = (fmt or "").lower()
    if fmt == "jpeg":
        return "jpg"
    return fmt


def validate_format(fmt) -> bool:
    return isinstance(fmt, str) and fmt.lower() in settings.SUPPORTED_FORMATS


def is_artifact_name(name: str) -> bool:
    return bool(ARTIFACT_PATTERN.match(name))


class OutputStore:
    """Owner of artifact files inside one output directory."""

    def __init__(self, output_dir=None, clock=None):
        # Resolved once; later environment changes do not move the store.
        self.output_dir = os.path.abspath(
            os.path.expanduser(output_dir or settings.OUTPUT_DIR)
        )
        self._clock = clock or utc_now

    def resolve_output_directory(self) -> str:
        return self.output_dir

    # =========================================================
    # WRITE
    # =========================================================

    def generate_filename(self, fmt: str) -> str:
        timestamp = format_timestamp(self._clock()).replace(":", "-").replace(".", "-")
        suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
        return f"{settings.FILE_PREFIX}-{timestamp}-{suffix}.{file_extension(fmt)}"

    def write(self, payload_b64: str, fmt: str, metadata=None) -> str:
        """Decode `payload_b64` and store it as a new artifact.

        Args:
            payload_b64: Base64 image data from the upstream API.
            fmt: Output format (`png`, `jpeg`, `webp`).
            metadata: Optional `ImageMetadata`, used for logging only.

        Returns:
            Absolute path of the written file.

        Raises:
            InvalidPayload: payload empty or not valid base64.
            WriteFailed: the file could not be written.
        """
        if not isinstance(payload_b64, str) or not payload_b64.strip():
            raise InvalidPayload("Invalid base64 data provided")

        try:
            data = base64.b64decode(payload_b64.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidPayload(f"Invalid base64 data provided: {e}") from e

        if not data:
            raise InvalidPayload("Decoded image payload is empty")

        path = os.path.join(self.output_dir, self.generate_filename(fmt))

        try:
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            self._remove_partial(path)
            raise WriteFailed(
                f"Failed to save image to {self.output_dir}: {e.strerror or e}",
                detail={"path": path},
            ) from e

        if metadata is not None:
            logger.info(
                "Saved %s (%d bytes, size=%s, quality=%s, response=%s)",
                os.path.basename(path), len(data),
                metadata.size, metadata.quality, metadata.response_id,
            )
        else:
            logger.info("Saved %s (%d bytes)", os.path.basename(path), len(data))

        return path

    def _remove_partial(self, path):
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError:
            logger.warning("Could not remove partial file %s", path)

    # =========================================================
    # DIRECTORY CHECKS
    # =========================================================

    def ensure_accessible(self) -> None:
        """Raise `DirectoryInaccessible` unless the output directory is usable.

        Called at startup only; later permission changes surface on write.
        """
        try:
            st = os.stat(self.output_dir)
        except OSError as e:
            raise DirectoryInaccessible(
                f"Output directory not accessible: {self.output_dir}",
                detail={"path": self.output_dir},
            ) from e

        if not stat.S_ISDIR(st.st_mode) or not os.access(self.output_dir, os.X_OK):
            raise DirectoryInaccessible(
                f"Output directory not accessible: {self.output_dir}",
                detail={"path": self.output_dir},
            )

    def check_writable(self) -> bool:
        """Best-effort probe: write and delete a sentinel file."""
        probe = os.path.join(self.output_dir, PROBE_FILENAME)
        try:
            with open(probe, "w", encoding="utf-8") as f:
                f.write("probe")
            os.remove(probe)
            return True
        except OSError:
            logger.warning("Output directory %s is not writable", self.output_dir)
            return False

    # =========================================================
    # HISTORY / RETENTION
    # =========================================================

    def list_artifacts(self) -> list:
        """Return artifact paths, newest first. Empty on listing failure."""
        try:
            names = os.listdir(self.output_dir)
        except OSError:
            logger.exception("Failed to list output directory %s", self.output_dir)
            return []

        paths = [
            os.path.join(self.output_dir, name)
            for name in names
            if is_artifact_name(name)
        ]
        return sorted(paths, reverse=True)

    def prune(self, keep_count: int = None) -> list:
        """Delete every artifact beyond the newest `keep_count`.

        Recency is the filename timestamp only. A failing deletion is logged
        and skipped.

        Returns:
            Paths that were deleted.
        """
        if keep_count is None:
            keep_count = settings.KEEP_IMAGES
        keep_count = max(0, int(keep_count))

        history = self.list_artifacts()
        if len(history) <= keep_count:
            return []

        deleted = []
        for path in history[keep_count:]:
            try:
                os.remove(path)
                deleted.append(path)
            except OSError:
                logger.exception("Failed to delete old image %s", path)

        if deleted:
            logger.info("Pruned %d old image(s) from %s", len(deleted), self.output_dir)
        return deleted
