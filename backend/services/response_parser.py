"""Tolerant JSON extraction from LLM responses."""
import json
import logging
import re
from typing import Any

from services.errors import ParseFailure

logger = logging.getLogger(__name__)

_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


def parse_json_from_response(response: str) -> Any:
    """
    Parse JSON from an LLM response, repairing common formatting slips.

    Works whether or not the model honored JSON mode. Attempts, in order:
    1. Strip markdown code fences and parse directly
    2. Parse the substring between the first "{" and the last "}"
    3. Escape raw newlines inside strings and drop trailing commas
    4. Additionally turn single quotes into double quotes

    Steps 3 and 4 are lossy (an apostrophe inside a value becomes a quote),
    which is why they only run after the exact parses failed.

    Args:
        response: Raw LLM response text

    Returns:
        Parsed JSON value

    Raises:
        ParseFailure: If no attempt produced valid JSON
    """
    cleaned = _strip_code_fences(response or "")

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    first_brace = cleaned.find("{")
    last_brace = cleaned.rfind("}")
    if first_brace == -1 or last_brace == -1 or last_brace <= first_brace:
        raise ParseFailure("No valid JSON object found in response")

    json_str = cleaned[first_brace:last_brace + 1]
    try:
        return json.loads(json_str)
    except json.JSONDecodeError:
        pass

    repaired = _TRAILING_COMMA.sub(r"\1", _escape_newlines_in_strings(json_str))
    try:
        result = json.loads(repaired)
        logger.warning("LLM JSON needed repair (newlines/trailing commas)")
        return result
    except json.JSONDecodeError:
        pass

    repaired = repaired.replace("'", '"')
    try:
        result = json.loads(repaired)
        logger.warning("LLM JSON needed repair (single quotes)")
        return result
    except json.JSONDecodeError as e:
        logger.error(f"Could not repair LLM JSON: {e}")
        raise ParseFailure(f"Could not parse JSON from response: {e}") from e


def _strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def _escape_newlines_in_strings(text: str) -> str:
    """Replace raw CR/LF characters that sit inside double-quoted strings."""
    out = []
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
            elif char == "\n":
                out.append("\\n")
                continue
            elif char == "\r":
                continue
        elif char == '"':
            in_string = True
        out.append(char)
    return "".join(out)
