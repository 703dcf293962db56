"""Tests for splitting answer fields into citation parts."""

from __future__ import annotations

from transcript_qa.tools.rag.citations import process_answer, split_field
from transcript_qa.tools.rag.models import Citation


class TestSplitField:
    """Tests for split_field."""

    def test_text_and_citations(self) -> None:
        parts = split_field("See X [Source 1] and Y [Source 2].", {1: 0, 2: 1})

        assert [(p.type, p.content) for p in parts] == [
            ("text", "See X "),
            ("citation", "[Source 1]"),
            ("text", " and Y "),
            ("citation", "[Source 2]"),
            ("text", "."),
        ]
        assert parts[1].citation_id == 1
        assert parts[1].source_index == 0
        assert parts[3].source_index == 1

    def test_concatenation_restores_text(self) -> None:
        text = "[Source 3][Source 1] start, middle [Source 12] end [Source x]"

        parts = split_field(text, {1: 0})

        assert "".join(p.content for p in parts) == text

    def test_unknown_id_has_no_source(self) -> None:
        parts = split_field("Claim [Source 7]", {1: 0})

        assert parts[-1].type == "citation"
        assert parts[-1].citation_id == 7
        assert parts[-1].source_index is None

    def test_adjacent_markers(self) -> None:
        parts = split_field("[Source 1][Source 2]", {1: 0, 2: 1})

        assert [p.type for p in parts] == ["citation", "citation"]

    def test_malformed_markers_stay_text(self) -> None:
        parts = split_field("[Source x] and [source 1]", {1: 0})

        assert len(parts) == 1
        assert parts[0].type == "text"

    def test_empty_text(self) -> None:
        assert split_field("", {}) == []


class TestProcessAnswer:
    """Tests for process_answer."""

    def test_processes_string_fields(self) -> None:
        answer = {
            "introduction": "Intro [Source 1].",
            "examples": "No specific examples were found in the provided context.",
        }

        processed = process_answer(answer, [Citation(id=1, sourceIndex=0)])

        assert processed.original == answer
        assert processed.processed_fields["introduction"][1].source_index == 0
        assert [p.type for p in processed.processed_fields["examples"]] == ["text"]

    def test_non_string_fields_pass_through(self) -> None:
        answer = {"introduction": "x", "extra": {"nested": 1}, "count": 3}

        processed = process_answer(answer, [])

        assert processed.processed_fields["extra"] == {"nested": 1}
        assert processed.processed_fields["count"] == 3

    def test_original_is_a_copy(self) -> None:
        answer = {"introduction": "x"}

        processed = process_answer(answer, [])
        answer["introduction"] = "changed"

        assert processed.original == {"introduction": "x"}
