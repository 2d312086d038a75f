"""OpenAI Responses API transport for image generation.

Processing flow:
    1. Build a Responses API payload with the `image_generation` tool forced
       through `tool_choice`.
    2. Submit it with `requests` (optionally as a server-sent event stream).
    3. Return the parsed JSON response, or yield parsed SSE events.

Multi-turn editing:
    - `previous_response_id` continues an earlier response.
    - `image_id` references an earlier `image_generation_call` item directly.

Base64 and temporary files:
    - This module does not decode image payloads.
    - This module does not create files.

Retry behavior:
    No retry loop. Each call is attempted once with the configured timeout.

Error handling strategy:
    Non-2xx responses, transport failures and `error` stream events raise
    `UpstreamFailure`, classified through `classify_upstream_error`.

Security considerations:
    The API key is only placed in the `Authorization` header; it never
    appears in raised messages or logs.
"""

import json
import logging

import requests

from imagegen.config import settings
from imagegen.core.errors import UpstreamFailure


logger = logging.getLogger(__name__)


def _error_from_response(response) -> UpstreamFailure:
    """Build a classified `UpstreamFailure` from an HTTP error response."""
    message = None
    code = None
    try:
        body = response.json()
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            message = error.get("message")
            code = error.get("code") or error.get("type")
    except ValueError:
        pass

    if not message:
        message = f"Image request failed with status {response.status_code}"

    return UpstreamFailure.classified(message, status_code=response.status_code, code=code)


def _error_from_event(event: dict) -> UpstreamFailure:
    error = event.get("error")
    if not isinstance(error, dict):
        failed = event.get("response")
        error = failed.get("error") if isinstance(failed, dict) else None
    if not isinstance(error, dict):
        error = {}
    message = error.get("message") or "Image stream failed"
    return UpstreamFailure.classified(message, code=error.get("code"))


class OpenAIImageClient:
    """Thin HTTP client bound to one API key/organization pair."""

    def __init__(self, api_key: str, organization: str | None = None,
                 base_url: str | None = None, timeout: int | None = None,
                 session=None):
        self.base_url = (base_url or settings.OPENAI_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.REQUEST_TIMEOUT
        self._session = session or requests.Session()

        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        if organization:
            self._headers["OpenAI-Organization"] = organization

    # =========================================================
    # PAYLOAD
    # =========================================================

    def build_payload(self, model: str, prompt: str, tool_options: dict,
                      previous_response_id: str | None = None,
                      image_id: str | None = None, stream: bool = False) -> dict:
        """Assemble the Responses API request body.

        `tool_options` keys are forwarded verbatim into the `image_generation`
        tool (`size`, `quality`, `output_format`, `background`,
        `output_compression`, `partial_images`); `None` values are dropped.
        """
        tool = {"type": "image_generation"}
        tool.update({k: v for k, v in tool_options.items() if v is not None})

        if image_id:
            model_input = [
                {
                    "role": "user",
                    "content": [{"type": "input_text", "text": prompt}],
                },
                {"type": "image_generation_call", "id": image_id},
            ]
        else:
            model_input = prompt

        payload = {
            "model": model,
            "input": model_input,
            "tools": [tool],
            "tool_choice": {"type": "image_generation"},
        }
        if previous_response_id:
            payload["previous_response_id"] = previous_response_id
        if stream:
            payload["stream"] = True
        return payload

    # =========================================================
    # REQUESTS
    # =========================================================

    def create_response(self, model: str, prompt: str, tool_options: dict,
                        previous_response_id: str | None = None,
                        image_id: str | None = None) -> dict:
        """Send one non-streaming request and return the parsed response."""
        payload = self.build_payload(
            model, prompt, tool_options,
            previous_response_id=previous_response_id, image_id=image_id,
        )
        if settings.DEBUG:
            logger.debug("Responses API payload: %s", {k: v for k, v in payload.items() if k != "input"})

        try:
            response = self._session.post(
                f"{self.base_url}/responses",
                headers=self._headers,
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise UpstreamFailure.classified(
                f"Image request failed: {type(e).__name__}"
            ) from e

        if not response.ok:
            raise _error_from_response(response)

        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamFailure.classified("Image API returned invalid JSON") from e

        if not isinstance(body, dict):
            raise UpstreamFailure.classified("Image API returned an unexpected response body")
        return body

    def stream_response(self, model: str, prompt: str, tool_options: dict,
                        previous_response_id: str | None = None):
        """Yield parsed SSE events from a streaming request.

        Behavior:
            - Parses `data: {...}` lines; ignores comments and `[DONE]`.
            - Raises `UpstreamFailure` on `error` / `response.failed` events.
        """
        payload = self.build_payload(
            model, prompt, tool_options,
            previous_response_id=previous_response_id, stream=True,
        )

        try:
            with self._session.post(
                f"{self.base_url}/responses",
                headers=self._headers,
                json=payload,
                stream=True,
                timeout=self.timeout,
            ) as response:

                if not response.ok:
                    raise _error_from_response(response)

                response.encoding = "utf-8"

                for line in response.iter_lines(decode_unicode=True):

                    if not line or not line.startswith("data: "):
                        continue

                    data = line[len("data: "):].strip()
                    if data == "[DONE]":
                        break

                    try:
                        event = json.loads(data)
                    except ValueError:
                        logger.warning("Skipping malformed stream frame")
                        continue

                    if not isinstance(event, dict):
                        logger.warning("Skipping non-object stream frame")
                        continue

                    if event.get("type") in ("error", "response.failed"):
                        raise _error_from_event(event)

                    yield event

        except requests.exceptions.RequestException as e:
            raise UpstreamFailure.classified(
                f"Image stream failed: {type(e).__name__}"
            ) from e
