"""Grounding prompt for transcript question answering.

The prompt restricts the model to the supplied transcript segments, asks
for a single JSON object with a fixed set of answer fields, and requires
``[Source N]`` markers for every grounded claim.
"""

from __future__ import annotations

from collections.abc import Sequence

from transcript_qa.tools.rag.models import ContextSegment

FIELD_NAMES: tuple[str, ...] = (
    "introduction",
    "explanation",
    "examples",
    "tips",
    "caveats",
)

NO_DATA_SENTENCES: dict[str, str] = {
    "examples": "No specific examples were found in the provided context.",
    "tips": "No specific tips or key takeaways were found in the provided context.",
    "caveats": "No specific caveats or important considerations were found in the provided context.",
}


def is_no_data_sentence(field_name: str, text: object) -> bool:
    """Whether a field holds only its "nothing found" sentence."""
    sentence = NO_DATA_SENTENCES.get(field_name)
    return sentence is not None and isinstance(text, str) and text.strip() == sentence


_INSTRUCTIONS = """You are '{assistant_name}', an expert assistant that answers questions about a collection of videos. Your knowledge is strictly limited to the video transcript segments provided below. Your primary goal is to answer the user's question accurately and concisely using *solely and exclusively* the information contained within these segments. Do not use any external knowledge or make assumptions beyond what is written in the context.

Your entire response MUST be formatted as a single, valid JSON object. This JSON object MUST have exactly two top-level keys: "structuredAnswer" and "citations".

The "structuredAnswer" object MUST contain the following keys, and their string values must be derived *only* from the provided context segments:
- "introduction": A brief introduction that directly addresses or rephrases the user's question, based on the context.
- "explanation": The main explanation or answer to the question, using only information from the context.
- "examples": Specific examples from the provided sources, if any, that illustrate the point. If no direct examples are found in the context, state "{no_examples}"
- "tips": Actionable tips or key takeaways directly mentioned in the sources. If none, state "{no_tips}"
- "caveats": Important considerations, warnings, or limitations explicitly mentioned in the sources. If none, state "{no_caveats}"

Cite relevant sources within the text of your "structuredAnswer" values using the format [Source X], where X is the 1-based index of the source segment as listed below in the context. For every [Source X] you use, add an entry {{"id": X, "sourceIndex": X - 1}} to "citations".

If the provided segments do not contain enough information to answer the question fully or if the answer cannot be found in the context, clearly state this within the "explanation" field of the "structuredAnswer". For instance, "The provided context does not contain specific information about [topic of the question]."

Example of the required JSON output format:
{{
  "structuredAnswer": {{
    "introduction": "The videos discuss X based on the provided information [Source 1].",
    "explanation": "The explanation derived from the context goes here. If the information isn't present, state that the context doesn't cover it.",
    "examples": "An example from the context is Y [Source 2].",
    "tips": "A key takeaway is Z [Source 1].",
    "caveats": "One consideration is A [Source 3]."
  }},
  "citations": [
    {{ "id": 1, "sourceIndex": 0 }},
    {{ "id": 2, "sourceIndex": 1 }},
    {{ "id": 3, "sourceIndex": 2 }}
  ]
}}

Okay, here is the context from the video transcripts:
"""


def build_prompt(
    question: str,
    segments: Sequence[ContextSegment],
    assistant_name: str = "Transcript Assistant",
) -> str:
    """Assemble the grounding prompt.

    Segments are listed in the given order as ``Source 1..N``; the model's
    ``[Source N]`` markers therefore refer to ``segments[N - 1]``.

    Args:
        question: The user's question.
        segments: Ranked context segments.
        assistant_name: Persona named in the instructions.

    Returns:
        The complete prompt text.
    """
    parts = [
        _INSTRUCTIONS.format(
            assistant_name=assistant_name,
            no_examples=NO_DATA_SENTENCES["examples"],
            no_tips=NO_DATA_SENTENCES["tips"],
            no_caveats=NO_DATA_SENTENCES["caveats"],
        )
    ]
    for position, segment in enumerate(segments, start=1):
        parts.append(
            f"\n--- Source {position} ---\n"
            f"Title: {segment.title}\n"
            f'Transcript Segment: "{segment.text}"\n---'
        )
    parts.append(
        f'\n\nUser\'s Question: "{question}"\n\n'
        "JSON Answer (strictly follow the JSON format described above):"
    )
    return "".join(parts)
