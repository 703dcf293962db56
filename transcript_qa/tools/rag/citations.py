"""Split answer fields into text and ``[Source N]`` citation parts."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from transcript_qa.tools.rag.models import AnswerPart, Citation, ProcessedAnswer

CITATION_MARKER = re.compile(r"\[Source (\d+)\]")


def split_field(text: str, source_lookup: Mapping[int, int]) -> list[AnswerPart]:
    """Split one field into ordered parts.

    Joining the ``content`` of the returned parts gives back ``text``
    exactly. Markers whose id is not in ``source_lookup`` become citation
    parts with ``source_index=None``.
    """
    parts: list[AnswerPart] = []
    cursor = 0
    for match in CITATION_MARKER.finditer(text):
        if match.start() > cursor:
            parts.append(AnswerPart(type="text", content=text[cursor : match.start()]))
        citation_id = int(match.group(1))
        parts.append(
            AnswerPart(
                type="citation",
                content=match.group(0),
                citation_id=citation_id,
                source_index=source_lookup.get(citation_id),
            )
        )
        cursor = match.end()
    if cursor < len(text):
        parts.append(AnswerPart(type="text", content=text[cursor:]))
    return parts


def process_answer(
    structured_answer: Mapping[str, Any],
    citations: Iterable[Citation],
) -> ProcessedAnswer:
    """Resolve citation markers in every string field of the answer.

    Args:
        structured_answer: Field name to field value. Non-string values are
            passed through unchanged.
        citations: Citation id to source index mappings.

    Returns:
        The original answer together with the processed fields.
    """
    source_lookup = {citation.id: citation.source_index for citation in citations}
    processed: dict[str, Any] = {}
    for name, value in structured_answer.items():
        if isinstance(value, str):
            processed[name] = split_field(value, source_lookup)
        else:
            processed[name] = value
    return ProcessedAnswer(original=dict(structured_answer), processed_fields=processed)
