"""Helpers to turn model output text into a structured listing."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional

from models.pipeline_errors import MalformedResponse

_FENCE_RE = re.compile(r"```(?:json)?\n?", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove markdown code-fence markers and surrounding whitespace."""
    return _FENCE_RE.sub("", text or "").strip()


def parse_listing(text: str) -> Dict[str, Any]:
    """Parse model output as a JSON object.

    Raises:
        MalformedResponse: If the fence-stripped text is not a JSON object.
    """
    clean = strip_code_fences(text)
    try:
        parsed = json.loads(clean)
    except json.JSONDecodeError as exc:
        logging.error("Failed to parse analysis response as JSON: %s", exc)
        logging.debug("Raw response text: %s", clean[:300] if clean else "EMPTY")
        raise MalformedResponse() from exc

    if not isinstance(parsed, dict):
        logging.error("Unexpected analysis response format: %s", type(parsed).__name__)
        raise MalformedResponse()
    return parsed


def extract_text(response: Any) -> str:
    """Extract the first output_text entry from a Responses API result."""
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) != "message":
            continue
        for content in getattr(item, "content", None) or []:
            if getattr(content, "type", None) == "output_text":
                return getattr(content, "text", "") or ""
    return getattr(response, "output_text", "") or ""


def extract_usage(response: Any) -> Dict[str, Optional[int]]:
    """Return token usage if present."""
    usage = getattr(response, "usage", None)
    return {
        "input_tokens": getattr(usage, "input_tokens", None) if usage else None,
        "output_tokens": getattr(usage, "output_tokens", None) if usage else None,
    }
