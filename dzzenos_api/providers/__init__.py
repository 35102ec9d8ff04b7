"""Completion providers."""

from dzzenos_api.config import Settings
from dzzenos_api.providers.base import CompletionClient, CompletionResult, CompletionUsage
from dzzenos_api.providers.mock import MockCompletionClient
from dzzenos_api.providers.openresponses import OpenResponsesClient
from dzzenos_api.providers.parsing import extract_output_text, try_parse_json


def build_completion_client(settings: Settings) -> CompletionClient:
    """Pick the provider selected by PROVIDER_MODE."""
    if settings.provider_mode == "mock":
        return MockCompletionClient()
    return OpenResponsesClient(
        url=settings.openresponses_url,
        token=settings.openresponses_token,
        model=settings.openresponses_model,
        timeout=settings.provider_timeout_seconds,
    )


__all__ = [
    "CompletionClient",
    "CompletionResult",
    "CompletionUsage",
    "MockCompletionClient",
    "OpenResponsesClient",
    "build_completion_client",
    "extract_output_text",
    "try_parse_json",
]
