"""Deterministic in-process completion provider for demos and CI."""

from __future__ import annotations

import json
import re

from dzzenos_api.providers.base import CompletionResult, CompletionUsage

_TITLE_RE = re.compile(r"^Task title: (.*)$", re.MULTILINE)


class MockCompletionClient:
    """Answers from the prompt alone, shaped like the mode it was asked for."""

    def __init__(self) -> None:
        self.calls: list[dict] = []

    async def complete(
        self,
        session_key: str,
        text: str,
        agent_external_id: str | None = None,
        model: str | None = None,
    ) -> CompletionResult:
        self.calls.append(
            {
                "session_key": session_key,
                "text": text,
                "agent_external_id": agent_external_id,
                "model": model,
            }
        )
        match = _TITLE_RE.search(text)
        title = match.group(1).strip() if match else "task"

        if "task planner" in text:
            output = json.dumps(
                {
                    "description": f"Plan for {title}",
                    "checklist": [f"Scope {title}", f"Implement {title}", "Verify and report"],
                }
            )
        elif "executing the task" in text:
            output = json.dumps({"status": "review", "report": f"[mock] finished {title}"})
        elif "changelog" in text:
            output = f"- [mock] {title} completed\n- Ready for release"
        else:
            output = f"[mock] {text.strip().splitlines()[-1] if text.strip() else ''}".strip()

        tokens = len(text.split())
        usage = CompletionUsage(
            input_tokens=tokens,
            output_tokens=len(output.split()),
            total_tokens=tokens + len(output.split()),
        )
        raw = {"output_text": output, "usage": usage.as_dict()}
        return CompletionResult(text=output, raw=raw, usage=usage)

    async def aclose(self) -> None:
        return None
