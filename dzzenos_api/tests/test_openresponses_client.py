"""Tests for the OpenResponses completion client, driven by httpx.MockTransport."""

import json

import httpx
import pytest

from dzzenos_api.core.exceptions import ProviderError
from dzzenos_api.providers.openresponses import OpenResponsesClient

pytestmark = pytest.mark.asyncio

URL = "http://openclaw.local/v1/responses"


def _client(handler, token=""):
    return OpenResponsesClient(URL, token=token, transport=httpx.MockTransport(handler))


async def test_sends_session_agent_and_bearer_headers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"output_text": "ok"})

    client = _client(handler, token="secret-token")
    try:
        result = await client.complete("project:w:board:b:task:t", "do it", agent_external_id="writer")
    finally:
        await client.aclose()

    assert result.text == "ok"
    assert seen["headers"]["x-openclaw-session-key"] == "project:w:board:b:task:t"
    assert seen["headers"]["x-openclaw-agent-id"] == "writer"
    assert seen["headers"]["authorization"] == "Bearer secret-token"
    assert seen["body"] == {"model": "openclaw:main", "input": "do it"}


async def test_agent_header_omitted_without_agent():
    seen = {}

    def handler(request):
        seen["headers"] = request.headers
        return httpx.Response(200, json={"output": "fine"})

    client = _client(handler)
    result = await client.complete("key", "hi")
    await client.aclose()

    assert result.text == "fine"
    assert "x-openclaw-agent-id" not in seen["headers"]
    assert "authorization" not in seen["headers"]


async def test_model_override_and_usage():
    def handler(request):
        body = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "model": body["model"],
                "output": [{"content": [{"type": "output_text", "text": "parts"}]}],
                "usage": {"input_tokens": 7, "output_tokens": 3},
            },
        )

    client = _client(handler)
    result = await client.complete("key", "hi", model="openclaw:other")
    await client.aclose()

    assert result.text == "parts"
    assert result.raw["model"] == "openclaw:other"
    assert result.usage.as_dict() == {"input_tokens": 7, "output_tokens": 3, "total_tokens": 10}


async def test_plain_text_body_is_returned_as_is():
    client = _client(lambda request: httpx.Response(200, text="just text"))
    result = await client.complete("key", "hi")
    await client.aclose()
    assert result.text == "just text"


async def test_error_message_from_json_body():
    def handler(request):
        return httpx.Response(502, json={"error": {"message": "agent offline"}})

    client = _client(handler)
    with pytest.raises(ProviderError) as excinfo:
        await client.complete("key", "hi")
    await client.aclose()
    assert excinfo.value.message == "agent offline"
    assert excinfo.value.upstream_status == 502


async def test_error_message_from_text_body():
    client = _client(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(ProviderError, match="boom"):
        await client.complete("key", "hi")
    await client.aclose()


async def test_error_message_falls_back_to_status():
    client = _client(lambda request: httpx.Response(503, json={"detail": "x"}))
    with pytest.raises(ProviderError, match="OpenResponses HTTP 503"):
        await client.complete("key", "hi")
    await client.aclose()


async def test_transport_error_becomes_provider_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    with pytest.raises(ProviderError, match="OpenResponses request failed"):
        await client.complete("key", "hi")
    await client.aclose()


async def test_unconfigured_url_raises_without_request():
    client = OpenResponsesClient("")
    assert client.configured is False
    with pytest.raises(ProviderError, match="OPENRESPONSES_URL"):
        await client.complete("key", "hi")
