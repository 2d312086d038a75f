"""Shared fixtures for the image tool server tests."""

import base64
from datetime import datetime, timedelta, timezone

import pytest

from imagegen.api.router import ToolRouter
from imagegen.config.credential_store import CredentialStore
from imagegen.image.service import ImageGenerationService
from imagegen.storage.output_store import OutputStore


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16 + b"IEND"
PNG_B64 = base64.b64encode(PNG_BYTES).decode("ascii")

TEST_KEY = "sk-test-0123456789abcd"
TEST_ORG = "org-test"


class FrozenClock:
    """Clock returning a fixed instant until advanced."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeImageClient:
    """Stands in for `OpenAIImageClient`; records every call."""

    def __init__(self, response=None, events=None, error=None):
        self.response = response
        self.events = events or []
        self.error = error
        self.calls = []
        self.init_kwargs = None

    def __call__(self, **kwargs):
        self.init_kwargs = kwargs
        return self

    def create_response(self, model, prompt, tool_options, previous_response_id=None, image_id=None):
        self.calls.append({
            "model": model,
            "prompt": prompt,
            "tool_options": tool_options,
            "previous_response_id": previous_response_id,
            "image_id": image_id,
        })
        if self.error is not None:
            raise self.error
        return self.response

    def stream_response(self, model, prompt, tool_options, previous_response_id=None):
        self.calls.append({"model": model, "prompt": prompt, "tool_options": tool_options})
        if self.error is not None:
            raise self.error
        yield from self.events


def image_response(response_id="resp_1", image_id="ig_1", result=PNG_B64, revised="a revised prompt"):
    return {
        "id": response_id,
        "output": [
            {"type": "message", "content": []},
            {
                "type": "image_generation_call",
                "id": image_id,
                "result": result,
                "revised_prompt": revised,
            },
        ],
    }


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def config_path(tmp_path):
    return str(tmp_path / "config" / "imagegen.json")


@pytest.fixture
def output_dir(tmp_path):
    path = tmp_path / "images"
    path.mkdir()
    return str(path)


@pytest.fixture
def credentials(config_path, clock):
    return CredentialStore(path=config_path, require_organization=True, clock=clock)


@pytest.fixture
def configured_credentials(credentials):
    credentials.update_key(TEST_KEY, TEST_ORG)
    return credentials


@pytest.fixture
def outputs(output_dir):
    return OutputStore(output_dir=output_dir)


@pytest.fixture
def fake_client():
    return FakeImageClient(response=image_response())


@pytest.fixture
def service(configured_credentials, outputs, fake_client):
    return ImageGenerationService(configured_credentials, outputs, client_factory=fake_client)


@pytest.fixture
def router(configured_credentials, service):
    return ToolRouter(configured_credentials, service)
