"""Tests for the grounding prompt."""

from __future__ import annotations

from transcript_qa.tools.rag.models import ContextSegment
from transcript_qa.tools.rag.prompts import (
    FIELD_NAMES,
    NO_DATA_SENTENCES,
    build_prompt,
    is_no_data_sentence,
)


def make_segments() -> list[ContextSegment]:
    return [
        ContextSegment(
            title="Order Blocks Explained",
            text="00:01:10 detail about order blocks.",
            ordinal_index=0,
            parent_video_id="v1",
        ),
        ContextSegment(
            title="Liquidity",
            text="liquidity sweeps come first",
            ordinal_index=1,
            parent_video_id="v2",
        ),
    ]


class TestBuildPrompt:
    """Tests for prompt assembly."""

    def test_sources_are_numbered_in_order(self) -> None:
        prompt = build_prompt("What is an order block?", make_segments())

        first = prompt.index("--- Source 1 ---")
        second = prompt.index("--- Source 2 ---")
        assert first < second
        assert "Title: Order Blocks Explained" in prompt[first:second]
        assert 'Transcript Segment: "00:01:10 detail about order blocks."' in prompt[first:second]
        assert "Title: Liquidity" in prompt[second:]

    def test_question_comes_last(self) -> None:
        prompt = build_prompt("What is an order block?", make_segments())

        assert prompt.rstrip().endswith(
            "JSON Answer (strictly follow the JSON format described above):"
        )
        assert prompt.index('User\'s Question: "What is an order block?"') > prompt.index(
            "--- Source 2 ---"
        )

    def test_instructions_name_every_field_and_fallback(self) -> None:
        prompt = build_prompt("q", make_segments())

        for field_name in FIELD_NAMES:
            assert f'"{field_name}"' in prompt
        for sentence in NO_DATA_SENTENCES.values():
            assert sentence in prompt
        assert '"structuredAnswer"' in prompt
        assert '{"id": X, "sourceIndex": X - 1}' in prompt

    def test_assistant_name(self) -> None:
        prompt = build_prompt("q", make_segments(), assistant_name="Trading Mentor")

        assert prompt.startswith("You are 'Trading Mentor'")

    def test_no_segments(self) -> None:
        prompt = build_prompt("q", [])

        assert "--- Source" not in prompt
        assert 'User\'s Question: "q"' in prompt


class TestNoDataSentences:
    def test_exact_sentence_detected(self) -> None:
        assert is_no_data_sentence("examples", NO_DATA_SENTENCES["examples"])
        assert is_no_data_sentence("tips", "  " + NO_DATA_SENTENCES["tips"] + " ")

    def test_other_text_or_field(self) -> None:
        assert not is_no_data_sentence("examples", "An example [Source 1].")
        assert not is_no_data_sentence("introduction", NO_DATA_SENTENCES["examples"])
        assert not is_no_data_sentence("caveats", None)
