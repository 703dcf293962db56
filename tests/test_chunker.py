"""Unit tests for the sliding-window transcript chunker."""

from __future__ import annotations

import logging

import pytest

from transcript_qa.tools.rag.chunker import TranscriptChunker
from transcript_qa.tools.rag.config import RAGConfig

ORDER_BLOCKS_TRANSCRIPT = "00:00:05 intro text. 00:01:10 detail about order blocks."


@pytest.fixture
def chunker() -> TranscriptChunker:
    return TranscriptChunker(RAGConfig(chunk_size=1500, chunk_overlap=200))


def _assert_covers(text: str, chunker: TranscriptChunker, size: int, overlap: int) -> None:
    documents = chunker.chunk(text, chunk_size=size, chunk_overlap=overlap)
    assert documents[0].metadata["start_offset"] == 0
    for previous, current in zip(documents, documents[1:]):
        previous_end = previous.metadata["start_offset"] + len(previous.page_content)
        assert current.metadata["start_offset"] <= previous_end
        assert current.metadata["start_offset"] > previous.metadata["start_offset"]
    last = documents[-1]
    assert last.metadata["start_offset"] + len(last.page_content) == len(text)


class TestChunkBasics:
    """Tests for window sizes and ordering."""

    def test_empty_text_returns_empty_list(self, chunker: TranscriptChunker) -> None:
        """Test that empty text yields no chunks."""
        assert chunker.chunk("") == []

    def test_short_text_is_single_chunk(self, chunker: TranscriptChunker) -> None:
        """Test that text shorter than the window is one chunk."""
        documents = chunker.chunk("hello world")

        assert len(documents) == 1
        assert documents[0].page_content == "hello world"
        assert documents[0].metadata == {"chunk_index": 0, "start_offset": 0}

    def test_windows_advance_by_size_minus_overlap(self, chunker: TranscriptChunker) -> None:
        """Test window boundaries for a simple alphabet."""
        documents = chunker.chunk("abcdefghij", chunk_size=4, chunk_overlap=1)

        assert [d.page_content for d in documents] == ["abcd", "defg", "ghij"]
        assert [d.metadata["start_offset"] for d in documents] == [0, 3, 6]
        assert [d.metadata["chunk_index"] for d in documents] == [0, 1, 2]

    def test_final_window_is_truncated(self, chunker: TranscriptChunker) -> None:
        """Test that the last window stops at the end of the text."""
        documents = chunker.chunk("abcdefgh", chunk_size=5, chunk_overlap=0)

        assert [d.page_content for d in documents] == ["abcde", "fgh"]

    def test_uses_config_defaults(self) -> None:
        """Test that configured size and overlap are used when not overridden."""
        chunker = TranscriptChunker(RAGConfig(chunk_size=30, chunk_overlap=5))

        documents = chunker.chunk(ORDER_BLOCKS_TRANSCRIPT)

        assert len(documents) >= 2
        assert documents[0].page_content == ORDER_BLOCKS_TRANSCRIPT[:30]
        assert documents[1].metadata["start_offset"] == 25

    def test_whitespace_only_windows_are_dropped(self, chunker: TranscriptChunker) -> None:
        """Test that blank windows are removed and indexes stay contiguous."""
        text = "abcd" + " " * 8 + "efgh"

        documents = chunker.chunk(text, chunk_size=4, chunk_overlap=0)

        assert [d.page_content for d in documents] == ["abcd", "efgh"]
        assert [d.metadata["chunk_index"] for d in documents] == [0, 1]

    def test_invalid_size_rejected(self, chunker: TranscriptChunker) -> None:
        """Test that a window size below 1 raises ValueError."""
        with pytest.raises(ValueError, match="chunk_size"):
            chunker.chunk("text", chunk_size=0)

    def test_is_deterministic(self, chunker: TranscriptChunker) -> None:
        """Test that the same input always gives the same chunks."""
        text = "lorem ipsum dolor sit amet " * 40

        first = chunker.chunk(text, chunk_size=37, chunk_overlap=11)
        second = chunker.chunk(text, chunk_size=37, chunk_overlap=11)

        assert first == second


class TestChunkCoverage:
    """Tests that chunks cover the whole input."""

    @pytest.mark.parametrize(
        ("size", "overlap"),
        [(2, 1), (7, 3), (10, 9), (30, 5), (100, 0), (1500, 200)],
    )
    def test_chunks_cover_input(
        self, chunker: TranscriptChunker, size: int, overlap: int
    ) -> None:
        """Test that consecutive windows leave no gaps and reach the end."""
        text = "The quick brown fox jumps over the lazy dog. " * 23

        _assert_covers(text, chunker, size, overlap)

    def test_chunk_count_is_bounded(self, chunker: TranscriptChunker) -> None:
        """Test that the number of windows follows length / (size - overlap)."""
        text = "x" * 1000

        documents = chunker.chunk(text, chunk_size=10, chunk_overlap=9)

        assert len(documents) <= 1000


class TestChunkProgress:
    """Tests for pathological overlaps."""

    def test_overlap_equal_to_size_still_progresses(self, chunker: TranscriptChunker) -> None:
        """Test that a stalled advance jumps to end - overlap // 2."""
        documents = chunker.chunk("abcdefghij", chunk_size=4, chunk_overlap=4)

        assert [d.metadata["start_offset"] for d in documents] == [0, 2, 4, 6]
        assert documents[-1].page_content == "ghij"

    def test_overlap_much_larger_than_size_terminates(
        self, chunker: TranscriptChunker, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that chunking stops with a warning when it cannot advance."""
        with caplog.at_level(logging.WARNING):
            documents = chunker.chunk("abcdefgh", chunk_size=2, chunk_overlap=4)

        assert [d.page_content for d in documents] == ["ab"]
        assert "stalled" in caplog.text

    def test_negative_overlap_treated_as_zero(self, chunker: TranscriptChunker) -> None:
        """Test that a negative overlap behaves like no overlap."""
        documents = chunker.chunk("abcdef", chunk_size=3, chunk_overlap=-5)

        assert [d.page_content for d in documents] == ["abc", "def"]
