"""Tolerant readers for completion provider output."""

from __future__ import annotations

import json
from typing import Any


def extract_output_text(raw: Any) -> str:
    """Pull plain text out of an OpenResponses-style payload.

    Order: a bare string body, ``output`` as a string, ``output_text`` as a
    string, then every ``output[].content[]`` part of type ``output_text`` or
    ``text`` joined together. Anything else yields an empty string.
    """
    if isinstance(raw, str):
        return raw
    if not isinstance(raw, dict):
        return ""

    output = raw.get("output")
    if isinstance(output, str):
        return output
    output_text = raw.get("output_text")
    if isinstance(output_text, str):
        return output_text

    if not isinstance(output, list):
        return ""
    parts: list[str] = []
    for item in output:
        content = item.get("content") if isinstance(item, dict) else None
        if not isinstance(content, list):
            continue
        for part in content:
            if not isinstance(part, dict):
                continue
            if part.get("type") in ("output_text", "text") and isinstance(part.get("text"), str):
                parts.append(part["text"])
    return "".join(parts)


def _first_balanced_object(text: str) -> str | None:
    """Return the first ``{...}`` substring with balanced braces.

    Braces inside JSON string literals (including escaped quotes) do not
    count towards the balance.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for idx in range(start, len(text)):
            ch = text[idx]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : idx + 1]
        # Unbalanced from this brace; try the next opening brace.
        start = text.find("{", start + 1)
    return None


def try_parse_json(text: str | None) -> dict[str, Any] | None:
    """Best-effort JSON object extraction from free-form model output.

    Returns the parsed object, or ``None`` when the text holds no JSON object.
    Never raises.
    """
    if not text or not isinstance(text, str):
        return None
    stripped = text.strip()
    try:
        value = json.loads(stripped)
    except ValueError:
        value = None
    if isinstance(value, dict):
        return value

    candidate = _first_balanced_object(stripped)
    if candidate is None:
        return None
    try:
        value = json.loads(candidate)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None
