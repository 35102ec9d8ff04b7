"""Completion provider interface."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class CompletionUsage:
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None

    @classmethod
    def from_raw(cls, raw: Any) -> "CompletionUsage":
        """Read token counts from an ``usage`` object in either naming scheme."""
        usage = raw.get("usage") if isinstance(raw, dict) else None
        if not isinstance(usage, dict):
            return cls()

        def _int(*keys: str) -> int | None:
            for key in keys:
                value = usage.get(key)
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    return int(value)
            return None

        input_tokens = _int("input_tokens", "prompt_tokens")
        output_tokens = _int("output_tokens", "completion_tokens")
        total_tokens = _int("total_tokens")
        if total_tokens is None and input_tokens is not None and output_tokens is not None:
            total_tokens = input_tokens + output_tokens
        return cls(input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=total_tokens)

    def as_dict(self) -> dict[str, int | None]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class CompletionResult:
    text: str
    raw: Any = None
    usage: CompletionUsage = field(default_factory=CompletionUsage)


class CompletionClient(Protocol):
    """Turns a prompt plus a session identity into generated text."""

    async def complete(
        self,
        session_key: str,
        text: str,
        agent_external_id: str | None = None,
        model: str | None = None,
    ) -> CompletionResult: ...

    async def aclose(self) -> None: ...
