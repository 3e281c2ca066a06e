"""Recover a JSON object from free-form LLM output.

Models are asked to "return ONLY valid JSON" but regularly wrap it in code
fences, add a sentence before or after it, or get cut off mid-object. The
extractor tries, in order:

1. strip markdown code fences,
2. scan from the first ``{`` to its matching ``}`` (braces inside strings
   are ignored),
3. greedy ``\\{.*\\}`` regex match,
4. close any brackets and braces left open at the end of the text.
"""
import json
import re
from typing import Any, Dict, Optional

from cotrack.utils.exceptions import JSONExtractionError

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove ```json / ``` markers anywhere in the text."""
    return _FENCE_RE.sub("", text).strip()


def _matching_object(text: str, start: int) -> Optional[str]:
    """Return text[start:end] where end closes the brace opened at start."""
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def _close_unbalanced(text: str) -> str:
    """Append the closers needed for every bracket still open at the end."""
    stack = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            stack.append("}" if char == "{" else "]")
        elif char in "}]" and stack:
            stack.pop()

    repaired = text.rstrip().rstrip(",")
    if in_string:
        repaired += '"'
    return repaired + "".join(reversed(stack))


def _loads_object(candidate: Optional[str]) -> Optional[Dict[str, Any]]:
    if not candidate:
        return None
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def extract_json_object(text: Optional[str]) -> Dict[str, Any]:
    """
    Extract the first JSON object from model output.

    Args:
        text: Raw model response text

    Returns:
        Parsed JSON object

    Raises:
        JSONExtractionError: If no strategy yields a JSON object
    """
    if not text or not text.strip():
        raise JSONExtractionError("Empty response text")

    cleaned = strip_code_fences(text)
    start = cleaned.find("{")
    if start == -1:
        raise JSONExtractionError("No JSON object found in response")

    parsed = _loads_object(_matching_object(cleaned, start))
    if parsed is not None:
        return parsed

    match = _OBJECT_RE.search(cleaned)
    parsed = _loads_object(match.group(0) if match else None)
    if parsed is not None:
        return parsed

    # Truncated output: everything from the first brace, closed off
    parsed = _loads_object(_close_unbalanced(cleaned[start:]))
    if parsed is not None:
        return parsed

    raise JSONExtractionError("Could not extract valid JSON from response")
