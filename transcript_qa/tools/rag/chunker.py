"""Sliding-window chunker for raw transcript text.

Splits a transcript into fixed-size character windows that overlap by a
configured amount. Each window becomes a LangChain Document carrying its
position in the transcript, ready to be embedded and indexed.

Example:
    >>> from transcript_qa.tools.rag.chunker import TranscriptChunker
    >>> from transcript_qa.tools.rag.config import RAGConfig
    >>> chunker = TranscriptChunker(RAGConfig(chunk_size=30, chunk_overlap=5))
    >>> [doc.page_content for doc in chunker.chunk("00:00:05 intro text. 00:01:10 detail")]
    ['00:00:05 intro text. 00:01:10 ', '1:10 detail']
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from langchain_core.documents import Document

if TYPE_CHECKING:
    from transcript_qa.tools.rag.config import RAGConfig

logger = logging.getLogger(__name__)


class TranscriptChunker:
    """Fixed-size overlapping window chunker.

    Attributes:
        config: Configuration providing the default chunk_size and chunk_overlap.
    """

    def __init__(self, config: RAGConfig) -> None:
        """Initialize the chunker.

        Args:
            config: Configuration with chunking parameters.
        """
        self.config = config

    def chunk(
        self,
        text: str,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
    ) -> list[Document]:
        """Split text into overlapping windows.

        Windows advance by ``chunk_size - chunk_overlap`` characters and the
        last window is cut at the end of the text. When the overlap leaves no
        room to advance, the next window starts half an overlap before the end
        of the current one; if even that does not move forward, chunking stops
        with a warning. Whitespace-only windows are dropped.

        Args:
            text: Transcript text.
            chunk_size: Window size in characters (defaults to config).
            chunk_overlap: Overlap in characters (defaults to config).

        Returns:
            Documents in transcript order, each with ``chunk_index`` and
            ``start_offset`` metadata.

        Raises:
            ValueError: If chunk_size is smaller than 1.
        """
        size = self.config.chunk_size if chunk_size is None else chunk_size
        overlap = self.config.chunk_overlap if chunk_overlap is None else chunk_overlap
        if size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {size}")
        overlap = max(overlap, 0)

        if not text:
            return []

        documents: list[Document] = []
        text_length = len(text)
        start = 0

        while start < text_length:
            end = min(start + size, text_length)
            window = text[start:end]
            if window.strip():
                documents.append(
                    Document(
                        page_content=window,
                        metadata={
                            "chunk_index": len(documents),
                            "start_offset": start,
                        },
                    )
                )

            if end == text_length:
                break

            next_start = start + size - overlap
            if next_start <= start:
                next_start = end - overlap // 2
            if next_start <= start:
                logger.warning(
                    f"Chunking stalled at offset {start} (size={size}, overlap={overlap}); "
                    f"stopping early with {len(documents)} chunks"
                )
                break
            start = next_start

        logger.debug(
            f"Chunked {text_length} characters into {len(documents)} windows "
            f"(size={size}, overlap={overlap})"
        )
        return documents
