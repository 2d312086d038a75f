"""Tests for artifact writing, listing and retention."""

import os
import re

import pytest

from imagegen.core.errors import DirectoryInaccessible, ErrorKind, InvalidPayload, WriteFailed
from imagegen.storage.output_store import (
    OutputStore,
    file_extension,
    is_artifact_name,
    validate_format,
)

from conftest import PNG_B64, PNG_BYTES, FrozenClock


NAME_RE = re.compile(
    r"^openai-image-2026-01-02T03-04-05-678Z-[0-9a-z]{6}\.(png|jpg|webp)$"
)


def artifact_name(day, ext="png", suffix="abc123"):
    return f"openai-image-2026-01-{day:02d}T10-00-00-000Z-{suffix}.{ext}"


def touch(directory, name):
    path = os.path.join(directory, name)
    with open(path, "wb") as f:
        f.write(b"x")
    return path


class TestHelpers:

    @pytest.mark.parametrize("fmt,ext", [("png", "png"), ("jpeg", "jpg"), ("webp", "webp")])
    def test_file_extension(self, fmt, ext):
        assert file_extension(fmt) == ext

    def test_validate_format(self):
        assert validate_format("png")
        assert validate_format("jpeg")
        assert not validate_format("gif")
        assert not validate_format(None)

    def test_is_artifact_name(self):
        assert is_artifact_name(artifact_name(1))
        assert is_artifact_name(artifact_name(1, ext="jpg"))
        assert not is_artifact_name("holiday.png")
        assert not is_artifact_name(artifact_name(1, ext="gif"))
        assert not is_artifact_name("openai-image-latest.png")


class TestWrite:

    def test_writes_decoded_bytes(self, output_dir):
        store = OutputStore(output_dir=output_dir, clock=FrozenClock())
        path = store.write(PNG_B64, "png")

        assert os.path.isabs(path)
        assert os.path.dirname(path) == output_dir
        assert NAME_RE.match(os.path.basename(path))
        with open(path, "rb") as f:
            assert f.read() == PNG_BYTES

    def test_new_write_listed_first(self, output_dir):
        clock = FrozenClock()
        store = OutputStore(output_dir=output_dir, clock=clock)
        store.write(PNG_B64, "png")
        clock.advance(seconds=1)
        store.write(PNG_B64, "webp")
        clock.advance(seconds=1)
        newest = store.write(PNG_B64, "jpeg")

        history = store.list_artifacts()
        assert len(history) == 3
        assert history[0] == newest

    def test_resolve_output_directory(self, tmp_path):
        store = OutputStore(output_dir=str(tmp_path / "a" / ".." / "b"))
        assert store.resolve_output_directory() == str(tmp_path / "b")

    def test_jpeg_uses_jpg_extension(self, outputs):
        path = outputs.write(PNG_B64, "jpeg")
        assert path.endswith(".jpg")
        assert is_artifact_name(os.path.basename(path))

    def test_names_are_unique_within_same_millisecond(self, output_dir):
        store = OutputStore(output_dir=output_dir, clock=FrozenClock())
        paths = {store.write(PNG_B64, "png") for _ in range(20)}
        assert len(paths) == 20

    @pytest.mark.parametrize("payload", ["", "   ", None])
    def test_empty_payload_rejected(self, outputs, output_dir, payload):
        with pytest.raises(InvalidPayload) as exc_info:
            outputs.write(payload, "png")

        assert exc_info.value.kind == ErrorKind.INVALID_PAYLOAD
        assert os.listdir(output_dir) == []

    def test_invalid_base64_rejected(self, outputs, output_dir):
        with pytest.raises(InvalidPayload):
            outputs.write("this is not base64!!", "png")
        assert os.listdir(output_dir) == []

    def test_missing_directory_raises_write_failed(self, tmp_path):
        store = OutputStore(output_dir=str(tmp_path / "missing"))

        with pytest.raises(WriteFailed) as exc_info:
            store.write(PNG_B64, "png")

        assert exc_info.value.kind == ErrorKind.WRITE_FAILED


class TestListing:

    def test_newest_first_and_ignores_foreign_files(self, outputs, output_dir):
        touch(output_dir, artifact_name(2))
        touch(output_dir, artifact_name(5, ext="webp"))
        touch(output_dir, artifact_name(3, ext="jpg"))
        touch(output_dir, "notes.txt")
        touch(output_dir, "holiday.png")

        names = [os.path.basename(p) for p in outputs.list_artifacts()]

        assert names == [
            artifact_name(5, ext="webp"),
            artifact_name(3, ext="jpg"),
            artifact_name(2),
        ]

    def test_listing_failure_returns_empty(self, tmp_path):
        store = OutputStore(output_dir=str(tmp_path / "missing"))
        assert store.list_artifacts() == []


class TestPrune:

    def test_keeps_newest(self, outputs, output_dir):
        for day in range(1, 6):
            touch(output_dir, artifact_name(day))
        touch(output_dir, "keep-me.png")

        deleted = outputs.prune(3)

        assert sorted(os.path.basename(p) for p in deleted) == [artifact_name(1), artifact_name(2)]
        assert sorted(os.listdir(output_dir)) == sorted(
            [artifact_name(3), artifact_name(4), artifact_name(5), "keep-me.png"]
        )

    def test_nothing_deleted_when_under_limit(self, outputs, output_dir):
        for day in range(1, 3):
            touch(output_dir, artifact_name(day))

        assert outputs.prune(2) == []
        assert outputs.prune(10) == []
        assert len(os.listdir(output_dir)) == 2

    def test_deletion_failure_continues(self, outputs, output_dir, mocker):
        for day in range(1, 5):
            touch(output_dir, artifact_name(day))
        failing = os.path.join(output_dir, artifact_name(2))
        real_remove = os.remove

        def remove(path):
            if path == failing:
                raise PermissionError(13, "Permission denied")
            real_remove(path)

        mocker.patch("imagegen.storage.output_store.os.remove", side_effect=remove)

        deleted = outputs.prune(1)

        assert sorted(os.path.basename(p) for p in deleted) == [artifact_name(1), artifact_name(3)]
        assert os.path.exists(failing)


class TestDirectoryChecks:

    def test_accessible_directory(self, outputs):
        outputs.ensure_accessible()

    def test_missing_directory(self, tmp_path):
        store = OutputStore(output_dir=str(tmp_path / "missing"))
        with pytest.raises(DirectoryInaccessible) as exc_info:
            store.ensure_accessible()
        assert exc_info.value.kind == ErrorKind.DIRECTORY_INACCESSIBLE

    def test_file_instead_of_directory(self, tmp_path):
        path = tmp_path / "plain-file"
        path.write_text("x")
        store = OutputStore(output_dir=str(path))
        with pytest.raises(DirectoryInaccessible):
            store.ensure_accessible()

    def test_check_writable(self, outputs, output_dir):
        assert outputs.check_writable() is True
        assert os.listdir(output_dir) == []

    def test_check_writable_false_for_missing_directory(self, tmp_path):
        store = OutputStore(output_dir=str(tmp_path / "missing"))
        assert store.check_writable() is False
