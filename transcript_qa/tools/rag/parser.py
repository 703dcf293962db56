"""Decoding of structured answers returned by the LLM.

Models often wrap their JSON in markdown fences or put keys in the wrong
place. Decoding strips fences, applies a table of shape corrections, then
checks that ``structuredAnswer`` and ``citations`` are present.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from transcript_qa.tools.rag.models import Citation, ParsedAnswer

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$", re.IGNORECASE)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) fence."""
    stripped = text.strip()
    match = _FENCE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def _promote_nested_citations(payload: dict[str, Any]) -> bool:
    """Move ``structuredAnswer.citations`` to the top level when missing there."""
    answer = payload.get("structuredAnswer")
    if "citations" in payload or not isinstance(answer, dict):
        return False
    if "citations" not in answer:
        return False
    payload["citations"] = answer.pop("citations")
    return True


# (description, rule) pairs applied in order; a rule returns True when it fired.
CORRECTION_RULES: list[tuple[str, Callable[[dict[str, Any]], bool]]] = [
    ("citations nested under structuredAnswer", _promote_nested_citations),
]


def apply_corrections(payload: dict[str, Any]) -> list[str]:
    """Apply every correction rule in place and report which ones fired."""
    applied = []
    for description, rule in CORRECTION_RULES:
        if rule(payload):
            logger.warning(f"Corrected LLM response: {description}")
            applied.append(description)
    return applied


def _parse_citations(raw_citations: Any) -> list[Citation]:
    if not isinstance(raw_citations, list):
        logger.warning(f"Ignoring non-list citations: {raw_citations!r}")
        return []

    citations = []
    for entry in raw_citations:
        try:
            citations.append(Citation.model_validate(entry))
        except PydanticValidationError:
            logger.warning(f"Skipping malformed citation entry: {entry!r}")
    return citations


def parse_answer(raw_text: str) -> ParsedAnswer | None:
    """Decode the LLM output into a structured answer and citations.

    Args:
        raw_text: Raw completion text, possibly fenced.

    Returns:
        The parsed answer, or None when the text is not JSON or lacks
        ``structuredAnswer`` / ``citations`` after corrections. An answer
        with empty fields and no citations is still a ParsedAnswer.
    """
    cleaned = strip_code_fence(raw_text or "")
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse JSON from LLM response: {e}")
        logger.error(f"Raw response was: {raw_text}")
        return None

    if not isinstance(payload, dict):
        logger.error(f"LLM response is not a JSON object. Raw response was: {raw_text}")
        return None

    apply_corrections(payload)

    structured_answer = payload.get("structuredAnswer")
    if not isinstance(structured_answer, dict) or "citations" not in payload:
        logger.error(
            "LLM response is missing structuredAnswer or citations even after corrections"
        )
        logger.error(f"Raw response was: {raw_text}")
        return None

    return ParsedAnswer(
        structured_answer=structured_answer,
        citations=_parse_citations(payload["citations"]),
    )
