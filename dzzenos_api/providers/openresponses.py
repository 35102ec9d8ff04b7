"""OpenResponses-compatible completion provider."""

from __future__ import annotations

import json
from typing import Any

import httpx

from dzzenos_api.core.exceptions import ProviderError
from dzzenos_api.core.logging import get_logger
from dzzenos_api.providers.base import CompletionResult, CompletionUsage
from dzzenos_api.providers.parsing import extract_output_text

logger = get_logger(__name__)

SESSION_KEY_HEADER = "x-openclaw-session-key"
AGENT_ID_HEADER = "x-openclaw-agent-id"


class OpenResponsesClient:
    """Client for a single OpenResponses endpoint.

    The session key travels as a header so the upstream keeps one
    conversation per task; the optional agent id selects the upstream agent.
    """

    def __init__(
        self,
        url: str,
        token: str = "",
        model: str = "openclaw:main",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = (url or "").strip()
        self.token = token
        self.model = model
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def configured(self) -> bool:
        return bool(self.url)

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def complete(
        self,
        session_key: str,
        text: str,
        agent_external_id: str | None = None,
        model: str | None = None,
    ) -> CompletionResult:
        if not self.configured:
            raise ProviderError("OpenResponses URL is not configured (set OPENRESPONSES_URL).")

        headers = {SESSION_KEY_HEADER: session_key}
        if agent_external_id:
            headers[AGENT_ID_HEADER] = agent_external_id

        payload = {"model": model or self.model, "input": text}
        try:
            response = await self.client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning(
                "OpenResponses request failed",
                data={"url": self.url, "error": str(exc), "error_type": type(exc).__name__},
            )
            raise ProviderError(f"OpenResponses request failed: {exc}") from exc

        raw = _decode_body(response.text)
        if response.is_error:
            message = _error_message(raw, response.status_code)
            logger.warning(
                "OpenResponses returned an error",
                data={"status_code": response.status_code, "message": message[:500]},
            )
            raise ProviderError(message, upstream_status=response.status_code)

        output = raw if isinstance(raw, str) else extract_output_text(raw)
        return CompletionResult(text=output, raw=raw, usage=CompletionUsage.from_raw(raw))


def _decode_body(body: str) -> Any:
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return body


def _error_message(raw: Any, status_code: int) -> str:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, dict):
        error = raw.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return f"OpenResponses HTTP {status_code}"
