"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json
import re

_FENCE_RE = re.compile(r"^\s*```[a-zA-Z]*\s*$")


def strip_code_fences(raw: str) -> str:
    """Drop markdown code fence lines from an LLM reply."""
    return "\n".join(line for line in raw.split("\n") if not _FENCE_RE.match(line)).strip()


def parse_llm_json(raw: str) -> dict:
    """Parse a JSON object from an LLM reply, handling code fences and preamble text.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract substring between first '{' and last '}', then json.loads
    3. Return empty dict

    Anything that does not decode to a JSON object counts as a failure.
    """
    if not raw or not isinstance(raw, str):
        return {}

    text = strip_code_fences(raw)
    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    end = text.rfind("}") + 1
    if start >= 0 and end > start:
        try:
            data = json.loads(text[start:end])
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            pass

    return {}
