import json
import re
from typing import Any, Dict, List, Union

from clinic_ingest.utils.logging import get_logger

LOGGER = get_logger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*")
_TRAILING_COMMA_PATTERN = re.compile(r",(\s*[\]}])")

# Lead-ins models like to put in front of a JSON payload
LEAD_IN_PHRASES = (
    "here is the json",
    "here's the json",
    "here is the result",
    "here are the classifications",
    "aqui está o json",
    "aqui esta o json",
    "segue o json",
    "sure",
    "certainly",
    "json:",
)


def _strip_fences(text: str) -> str:
    return _FENCE_PATTERN.sub("", text).replace("```", "")


def _strip_lead_in(text: str) -> str:
    stripped = text.lstrip()
    lowered = stripped.lower()
    for phrase in LEAD_IN_PHRASES:
        if lowered.startswith(phrase):
            remainder = stripped[len(phrase):]
            # Drop the rest of the lead-in line ("Sure! Here you go:")
            newline = remainder.find("\n")
            brace = remainder.find("{")
            if newline != -1 and (brace == -1 or newline < brace):
                remainder = remainder[newline + 1:]
            return remainder.lstrip(" :.!,\t")
    return text


def _slice_braces(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        return text
    return text[start:end + 1]


def _strip_comments(text: str) -> str:
    """Remove // line comments and /* */ block comments that sit outside strings."""
    result = []
    i = 0
    length = len(text)
    in_string = False

    while i < length:
        char = text[i]

        if in_string:
            result.append(char)
            if char == "\\" and i + 1 < length:
                result.append(text[i + 1])
                i += 2
                continue
            if char == '"':
                in_string = False
            i += 1
            continue

        if char == '"':
            in_string = True
            result.append(char)
            i += 1
        elif text.startswith("//", i):
            newline = text.find("\n", i)
            i = length if newline == -1 else newline
        elif text.startswith("/*", i):
            close = text.find("*/", i + 2)
            i = length if close == -1 else close + 2
        else:
            result.append(char)
            i += 1

    return "".join(result)


def _strip_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA_PATTERN.sub(r"\1", text)


def repair_json_text(text: str) -> str:
    """Clean common LLM formatting damage out of a JSON payload.

    Steps run in a fixed order:
    - Markdown code fences (```json ... ```)
    - Conversational lead-ins ("Here is the JSON:", "Aqui está o JSON:")
    - Anything before the first ``{`` or after the last ``}``
    - ``//`` and ``/* */`` comments outside string literals
    - Trailing commas before ``]`` or ``}``

    Args:
        text: Raw model output

    Returns:
        Text that is more likely to be valid JSON. Input is returned as-is
        (after stripping) when nothing applies.
    """
    if not text:
        return ""

    cleaned = _strip_fences(text.strip())
    cleaned = _strip_lead_in(cleaned)
    cleaned = _slice_braces(cleaned.strip())
    cleaned = _strip_comments(cleaned)
    cleaned = _strip_trailing_commas(cleaned)
    return cleaned.strip()


def parse_json_safely(text: str) -> Union[Dict[str, Any], List[Any], None]:
    """Parse JSON from text, handling common LLM formatting issues.

    Tries the raw text first, then the repaired text.

    Args:
        text: The text containing JSON

    Returns:
        Parsed JSON object or None if parsing fails
    """
    if not text:
        return None

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    repaired = repair_json_text(text)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError as e:
        LOGGER.warning(
            f"Failed to parse JSON after repair: {e}",
            extra={"preview": repaired[:200]},
        )
        return None
