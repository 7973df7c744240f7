"""
Lenient decoding of JSON that language models embed in free text.

Precedence, applied in order until one step yields an object:

1. strip Markdown code fences (```json ... ```)
2. drop control characters that are not whitespace
3. parse; literal newlines, tabs and control characters inside strings are accepted
4. decode the outermost JSON object embedded in surrounding prose
5. conversational refusals ("I apologize", "I notice") become a canned
   degraded payload, when the caller allows it
6. raise ``JsonParseError`` with the first 500 characters of the raw text
"""

import json
import re
from datetime import datetime
from typing import Any, Dict, Optional

from .errors import JsonParseError
from .logging import get_logger

logger = get_logger(__name__)

FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*(.*?)\s*```", re.DOTALL)
# Greedy so string values that themselves contain ``` stay inside the object
FENCED_OBJECT_PATTERN = re.compile(r"```(?:json|JSON)?\s*(\{.*\})\s*```", re.DOTALL)
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
CONVERSATIONAL_MARKERS = ("i apologize", "i notice")


def clean_json_response(content: str) -> str:
    """
    Clean JSON response from LLM by removing markdown code blocks.

    Args:
        content: The raw string response from LLM

    Returns:
        Cleaned string containing just the JSON content
    """
    match = FENCED_OBJECT_PATTERN.search(content) or FENCE_PATTERN.search(content)
    if match:
        return match.group(1)
    return content.strip()


def sanitize_control_chars(content: str) -> str:
    return CONTROL_CHARS.sub("", content)


def _extract_embedded_object(text: str) -> Optional[Any]:
    decoder = json.JSONDecoder(strict=False)
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
            return value
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
    return None


def degraded_payload() -> Dict[str, Any]:
    """Stand-in for a model that answered conversationally instead of in JSON."""
    return {
        "summary": (
            "Research service is temporarily experiencing issues with response "
            "formatting. Please try your request again in a few minutes."
        ),
        "key_points": [
            "Service temporarily unavailable",
            "Response formatting issues detected",
            "Please retry your request",
        ],
        "citations": [
            {
                "title": "System Status",
                "source_type": "internal",
                "snippet": "Research AI response formatting issues - please try again",
                "confidence": 0.5,
                "date_accessed": datetime.now().isoformat(),
            }
        ],
        "confidence": 0.3,
        "degraded": True,
    }


def looks_conversational(content: str) -> bool:
    lowered = content.lower()
    return any(marker in lowered for marker in CONVERSATIONAL_MARKERS)


def parse_model_json(content: str, allow_degraded: bool = True) -> Any:
    """Decode JSON from model output, see the module docstring for the rules."""
    if content is None:
        raise JsonParseError("empty response", "")

    text = sanitize_control_chars(clean_json_response(content))
    try:
        return json.loads(text, strict=False)
    except json.JSONDecodeError as exc:
        error = exc

    embedded = _extract_embedded_object(text)
    if embedded is None:
        embedded = _extract_embedded_object(sanitize_control_chars(content))
    if embedded is not None:
        return embedded

    if allow_degraded and looks_conversational(content):
        logger.warning("Model answered conversationally instead of JSON", preview=content[:120])
        return degraded_payload()

    logger.error("Failed to parse model JSON", error=str(error), raw=content[:500])
    raise JsonParseError(str(error), content)


def first_present(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first key present in ``data``; models mix snake and camel case."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def as_str_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None and str(item).strip()]
    return [str(value)]
