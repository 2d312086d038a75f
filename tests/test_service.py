"""Tests for the generation service (upstream client faked)."""

import os

import pytest

from imagegen.config import settings
from imagegen.core.errors import (
    ConfigurationError,
    ErrorKind,
    InvalidParameter,
    InvalidPayload,
    UnsupportedSize,
    UpstreamFailure,
)
from imagegen.image.service import ImageGenerationService, find_image_call

from conftest import PNG_B64, PNG_BYTES, TEST_KEY, TEST_ORG, FakeImageClient, image_response


def read_bytes(path):
    with open(path, "rb") as f:
        return f.read()


class TestFindImageCall:

    def test_returns_first_call_with_result(self):
        response = image_response()
        assert find_image_call(response)["id"] == "ig_1"

    @pytest.mark.parametrize("response", [
        {},
        {"output": []},
        None,
        {"output": [{"type": "image_generation_call", "result": ""}]},
        ["output"],
        "text",
        {"output": "text"},
        {"output": 7},
    ])
    def test_missing_call(self, response):
        with pytest.raises(InvalidPayload, match="No image generated"):
            find_image_call(response)


class TestGenerateImage:

    def test_success(self, service, fake_client, output_dir):
        result = service.generate_image("a red fox", size="1536x1024", quality="high", fmt="jpeg")

        assert result.success
        image = result.image
        assert image.file_path.endswith(".jpg")
        assert os.path.dirname(image.file_path) == output_dir
        assert image.file_name == os.path.basename(image.file_path)
        assert read_bytes(image.file_path) == PNG_BYTES
        assert image.response_id == "resp_1"
        assert image.image_id == "ig_1"
        assert image.revised_prompt == "a revised prompt"
        assert image.metadata.model == settings.DEFAULT_MODEL
        assert image.metadata.image_model == settings.IMAGE_MODEL
        assert image.metadata.size == "1536x1024"

        assert fake_client.init_kwargs == {"api_key": TEST_KEY, "organization": TEST_ORG}
        call = fake_client.calls[0]
        assert call["model"] == settings.DEFAULT_MODEL
        assert call["tool_options"]["output_format"] == "jpeg"
        assert call["tool_options"]["quality"] == "high"

    def test_success_touches_last_used(self, service, configured_credentials):
        assert configured_credentials.status().last_used_at is None
        service.generate_image("a red fox")
        assert configured_credentials.status().last_used_at is not None

    def test_validation_error_raised_before_any_call(self, service, fake_client, output_dir):
        with pytest.raises(UnsupportedSize):
            service.generate_image("a red fox", size="512x512")

        with pytest.raises(InvalidParameter):
            service.generate_image("   ")

        assert fake_client.calls == []
        assert os.listdir(output_dir) == []

    def test_missing_key(self, credentials, outputs, fake_client, output_dir):
        service = ImageGenerationService(credentials, outputs, client_factory=fake_client)

        result = service.generate_image("a red fox")

        assert not result.success
        assert result.error.kind == ErrorKind.INVALID_CREDENTIAL
        assert "configure-server" in result.error.message
        assert fake_client.calls == []
        assert os.listdir(output_dir) == []

    def test_upstream_failure(self, configured_credentials, outputs, output_dir):
        client = FakeImageClient(error=UpstreamFailure.classified("Billing hard limit reached"))
        service = ImageGenerationService(configured_credentials, outputs, client_factory=client)

        result = service.generate_image("a red fox")

        assert not result.success
        assert result.error.kind == ErrorKind.UPSTREAM_BILLING
        assert result.error.suggestions
        assert os.listdir(output_dir) == []
        assert configured_credentials.status().last_used_at is None

    def test_response_without_image(self, configured_credentials, outputs, output_dir):
        client = FakeImageClient(response={"id": "resp_1", "output": [{"type": "message"}]})
        service = ImageGenerationService(configured_credentials, outputs, client_factory=client)

        result = service.generate_image("a red fox")

        assert result.error.kind == ErrorKind.INVALID_PAYLOAD
        assert result.error.message == "No image generated in response"
        assert os.listdir(output_dir) == []

    def test_non_object_response(self, configured_credentials, outputs, output_dir):
        client = FakeImageClient(response=["not", "an", "object"])
        service = ImageGenerationService(configured_credentials, outputs, client_factory=client)

        result = service.generate_image("a red fox")

        assert not result.success
        assert result.error.kind == ErrorKind.INVALID_PAYLOAD
        assert os.listdir(output_dir) == []

    def test_undecodable_payload(self, configured_credentials, outputs):
        client = FakeImageClient(response=image_response(result="%%%not-base64%%%"))
        service = ImageGenerationService(configured_credentials, outputs, client_factory=client)

        result = service.generate_image("a red fox")

        assert result.error.kind == ErrorKind.INVALID_PAYLOAD

    def test_last_used_failure_keeps_success(self, service, configured_credentials, mocker):
        mocker.patch.object(
            configured_credentials, "touch_last_used",
            side_effect=ConfigurationError("Failed to save configuration: read-only"),
        )

        result = service.generate_image("a red fox")

        assert result.success
        assert os.path.exists(result.image.file_path)

    def test_record_defaults_used(self, service, configured_credentials, fake_client):
        record = configured_credentials.load().model_copy()
        record.default_size = "1024x1536"
        record.default_format = "webp"
        configured_credentials.save(record)

        result = service.generate_image("a red fox")

        assert result.image.file_path.endswith(".webp")
        assert fake_client.calls[0]["tool_options"]["size"] == "1024x1536"


class TestEditImage:

    def test_previous_response(self, service, fake_client):
        result = service.edit_image("make it blue", previous_response_id="resp_0", image_id="ig_0")

        assert result.success
        call = fake_client.calls[0]
        assert call["prompt"] == "make it blue"
        assert call["previous_response_id"] == "resp_0"
        assert call["image_id"] is None

    def test_image_reference(self, service, fake_client):
        result = service.edit_image("make it blue", image_id="ig_0")

        assert result.success
        assert fake_client.calls[0]["image_id"] == "ig_0"
        assert result.image.metadata.prompt == "make it blue"

    def test_empty_edit_prompt(self, service):
        with pytest.raises(InvalidParameter):
            service.edit_image("")


class TestStreamImage:

    def stream_events(self, partial_count=2):
        events = [{"type": "response.created", "response": {"id": "resp_s"}}]
        for index in range(partial_count):
            events.append({
                "type": "response.image_generation_call.partial_image",
                "partial_image_index": index,
                "partial_image_b64": PNG_B64,
            })
        events.append({
            "type": "response.output_item.done",
            "item": {"type": "image_generation_call", "id": "ig_s", "result": PNG_B64,
                     "revised_prompt": "streamed"},
        })
        events.append({"type": "response.completed", "response": {"id": "resp_s", "output": []}})
        return events

    def test_partials_and_final_written(self, configured_credentials, outputs, output_dir):
        client = FakeImageClient(events=self.stream_events(partial_count=2))
        service = ImageGenerationService(configured_credentials, outputs, client_factory=client)

        result = service.stream_image("a red fox", partial_images=2)

        assert result.success
        image = result.image
        assert len(image.partial_image_paths) == 2
        assert image.response_id == "resp_s"
        assert image.image_id == "ig_s"
        assert image.revised_prompt == "streamed"
        assert len(os.listdir(output_dir)) == 3
        assert client.calls[0]["tool_options"]["partial_images"] == 2

    def test_final_from_completed_response(self, configured_credentials, outputs):
        events = [
            {"type": "response.created", "response": {"id": "resp_s"}},
            {"type": "response.completed", "response": image_response(response_id="resp_s")},
        ]
        client = FakeImageClient(events=events)
        service = ImageGenerationService(configured_credentials, outputs, client_factory=client)

        result = service.stream_image("a red fox")

        assert result.success
        assert result.image.partial_image_paths == []
        assert result.image.response_id == "resp_s"

    def test_stream_without_image(self, configured_credentials, outputs):
        client = FakeImageClient(events=[{"type": "response.created", "response": {"id": "r"}}])
        service = ImageGenerationService(configured_credentials, outputs, client_factory=client)

        result = service.stream_image("a red fox")

        assert result.error.kind == ErrorKind.INVALID_PAYLOAD

    def test_stream_upstream_error(self, configured_credentials, outputs):
        client = FakeImageClient(error=UpstreamFailure.classified("Rate limit reached", status_code=429))
        service = ImageGenerationService(configured_credentials, outputs, client_factory=client)

        result = service.stream_image("a red fox")

        assert result.error.kind == ErrorKind.UPSTREAM_RATE_LIMITED

    def test_partial_images_out_of_range(self, service):
        with pytest.raises(InvalidParameter):
            service.stream_image("a red fox", partial_images=5)

    def test_stream_events_with_odd_shapes(self, configured_credentials, outputs):
        events = [
            {"type": "response.created", "response": "resp"},
            {"type": "response.output_item.done", "item": ["x"]},
            {"type": "response.completed", "response": ["x"]},
        ]
        client = FakeImageClient(events=events)
        service = ImageGenerationService(configured_credentials, outputs, client_factory=client)

        result = service.stream_image("a red fox")

        assert result.error.kind == ErrorKind.INVALID_PAYLOAD
