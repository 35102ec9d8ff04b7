"""Tests for provider selection, the mock provider and board documents."""

from datetime import UTC, datetime

import pytest

from dzzenos_api.config import Settings
from dzzenos_api.core.exceptions import ValidationFailed
from dzzenos_api.providers import (
    MockCompletionClient,
    OpenResponsesClient,
    build_completion_client,
    try_parse_json,
)
from dzzenos_api.services.docs import DocsStore


def test_build_completion_client_by_mode():
    mock = build_completion_client(Settings(_env_file=None, provider_mode="mock"))
    live = build_completion_client(
        Settings(_env_file=None, provider_mode="live", openresponses_url="http://x/v1/responses")
    )
    assert isinstance(mock, MockCompletionClient)
    assert isinstance(live, OpenResponsesClient)
    assert live.configured is True


@pytest.mark.asyncio
async def test_mock_provider_answers_in_mode_shape():
    client = MockCompletionClient()

    plan = await client.complete("k", "You are a task planner.\n\nTask title: Ship\nTask description: ")
    execute = await client.complete("k", "You are executing the task.\n\nTask title: Ship")
    chat = await client.complete("k", "You are helping in task chat.\n\nUser message: hi")

    assert try_parse_json(plan.text)["checklist"][1] == "Implement Ship"
    assert try_parse_json(execute.text)["status"] == "review"
    assert chat.text == "[mock] User message: hi"
    assert plan.usage.total_tokens == plan.usage.input_tokens + plan.usage.output_tokens
    assert [c["session_key"] for c in client.calls] == ["k", "k", "k"]


def test_docs_store_layout_and_validation(tmp_path):
    docs = DocsStore(tmp_path)
    now = datetime(2026, 1, 2, 3, 4, 5, 678000, tzinfo=UTC)

    docs.append_board_summary("board_1", "Ship", "- done", now=now)
    (tmp_path / "docs" / "boards" / "board_2.md").write_text("# Notes\n")

    assert (tmp_path / "docs" / "boards" / "board_1.md").read_text() == "## Ship\n\n- done\n\n"
    entry = "- 2026-01-02T03:04:05.678Z — Ship\n- done\n\n"
    assert (tmp_path / "docs" / "boards" / "board_1" / "changelog.md").read_text() == entry
    assert (tmp_path / "memory" / "boards" / "board_1.md").read_text() == entry
    assert docs.read_board_doc("board_2") == "# Notes\n"
    assert docs.read_changelog("empty") == ""
    with pytest.raises(ValidationFailed):
        docs.read_board_doc("../etc")
