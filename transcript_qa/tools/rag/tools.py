"""Question answering, keyword search and ingest entry points.

``RAGPipeline`` runs the query paths against injected collaborators:

ask:
    embed the question (QUERY) -> vector search -> build prompt -> LLM ->
    parse -> resolve citations. Each upstream stage runs in a worker thread
    under its own timeout.

keyword search:
    full-text candidates from the video store -> snippet localization,
    timestamp links and relevance filtering.

The module-level coroutines wrap the pipeline for the MCP server: they build
the default pipeline from configuration and turn typed failures into error
dictionaries.

Example:
    >>> result = await ask_question("what is an order block?")
    >>> result["structured_answer"]["introduction"]
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Any, TypeVar

from transcript_qa.tools.rag.citations import process_answer
from transcript_qa.tools.rag.config import get_rag_config
from transcript_qa.tools.rag.documents import get_video_store
from transcript_qa.tools.rag.embeddings import EmbeddingClient, EmbeddingMode, get_embeddings
from transcript_qa.tools.rag.errors import (
    AIFailure,
    MalformedUpstreamResponse,
    NoContextFound,
    NoVideosMatched,
    RAGError,
    UpstreamTimeout,
    UpstreamUnavailable,
    ValidationError,
)
from transcript_qa.tools.rag.indexer import TranscriptIndexer
from transcript_qa.tools.rag.keyword import KeywordSearchEngine
from transcript_qa.tools.rag.llm import create_llm_provider
from transcript_qa.tools.rag.models import (
    AskResult,
    ContextSegment,
    KeywordSearchResult,
    RelatedSource,
)
from transcript_qa.tools.rag.parser import parse_answer
from transcript_qa.tools.rag.prompts import build_prompt
from transcript_qa.tools.rag.store import ChunkIndex, get_vector_store
from transcript_qa.tools.rag.timestamps import timestamp_link

if TYPE_CHECKING:
    from transcript_qa.tools.rag.config import RAGConfig
    from transcript_qa.tools.rag.documents import VideoStore
    from transcript_qa.tools.rag.llm import LLMProvider
    from transcript_qa.tools.rag.models import RetrievedChunk, VideoInput

logger = logging.getLogger(__name__)

T = TypeVar("T")


def truncate_snippet(text: str, max_length: int) -> str:
    """Cut text to max_length characters, marking the cut with an ellipsis."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


async def run_stage(
    stage: str,
    timeout: float,
    func: Callable[..., T],
    *args: Any,
) -> T:
    """Run a blocking call in a worker thread with a timeout.

    Raises:
        UpstreamTimeout: If the call does not finish in time.
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.error(f"{stage} timed out after {timeout:g}s")
        raise UpstreamTimeout(stage, timeout) from e


@dataclass
class RAGPipeline:
    """Query-time pipeline over injected stores and clients."""

    config: RAGConfig
    video_store: VideoStore
    chunk_index: ChunkIndex
    embedding_client: EmbeddingClient
    llm_provider: LLMProvider
    keyword_engine: KeywordSearchEngine

    @property
    def indexer(self) -> TranscriptIndexer:
        return TranscriptIndexer.from_config(
            self.config,
            video_store=self.video_store,
            chunk_index=self.chunk_index,
            embedding_client=self.embedding_client,
        )

    def related_source(self, hit: RetrievedChunk) -> RelatedSource:
        """Response-facing view of one retrieved chunk."""
        video = hit.video
        video_url = video.video_url if video else None
        link = timestamp_link(hit.chunk.text, video_url)
        return RelatedSource(
            video_title=hit.chunk.video_title,
            timestamp_link_label=link.label,
            timestamp_url=link.url,
            snippet=truncate_snippet(hit.chunk.text, self.config.max_snippet_length),
            published_date=video.publication_date if video else None,
            tags=list(video.tags) if video else [],
            channel=self.config.channel_name,
            category=video.category if video else None,
            video_url=video_url,
        )

    async def ask(self, question: str) -> AskResult:
        """Answer a question from retrieved transcript segments.

        Raises:
            ValidationError: If the question is blank.
            NoContextFound: If retrieval returns nothing.
            UpstreamUnavailable: If the vector search fails or times out.
            AIFailure: If embedding, generation or parsing fails.
        """
        question = (question or "").strip()
        if not question:
            raise ValidationError("A question is required.", missing_fields=["question"])

        start = time.perf_counter()
        logger.info(f"ask called: question={question!r}")

        try:
            query_vector = await run_stage(
                "embedding",
                self.config.embedding_timeout_seconds,
                self.embedding_client.embed,
                question,
                EmbeddingMode.QUERY,
            )
        except UpstreamTimeout as e:
            raise AIFailure(retryable=True) from e
        if query_vector is None:
            raise AIFailure(retryable=True) from UpstreamUnavailable(
                "Could not embed the question"
            )

        try:
            hits = await run_stage(
                "vector search",
                self.config.vector_search_timeout_seconds,
                self.chunk_index.search,
                query_vector,
                self.config.retrieval_top_k,
            )
        except RAGError:
            raise
        except Exception as e:
            logger.error(f"Vector search failed: {e}")
            raise UpstreamUnavailable("Vector search failed") from e
        if not hits:
            logger.info(f"No context found for question {question!r}")
            raise NoContextFound("No relevant context was found to answer this question.")

        segments = [
            ContextSegment(
                title=hit.chunk.video_title,
                text=hit.chunk.text,
                ordinal_index=index,
                parent_video_id=hit.chunk.parent_video_id,
                video_url=hit.video.video_url if hit.video else None,
            )
            for index, hit in enumerate(hits)
        ]
        related_sources = [self.related_source(hit) for hit in hits]
        prompt = build_prompt(question, segments, assistant_name=self.config.assistant_name)

        try:
            raw_answer = await run_stage(
                "llm",
                self.config.llm_timeout_seconds,
                self.llm_provider.generate,
                prompt,
            )
        except UpstreamUnavailable as e:
            logger.error(f"LLM provider unavailable: {e}")
            raise AIFailure(retryable=True) from e
        except MalformedUpstreamResponse as e:
            logger.error(f"LLM provider returned an unusable response: {e}")
            raise AIFailure() from e

        parsed = parse_answer(raw_answer)
        if parsed is None:
            raise AIFailure() from MalformedUpstreamResponse(
                "LLM response could not be parsed into a structured answer"
            )

        citations = [
            citation
            for citation in parsed.citations
            if 0 <= citation.source_index < len(related_sources)
        ]
        dropped = len(parsed.citations) - len(citations)
        if dropped:
            logger.warning(f"Dropped {dropped} citations pointing outside the sources")

        processed = process_answer(parsed.structured_answer, citations)
        latency_ms = int((time.perf_counter() - start) * 1000)
        logger.info(f"ask answered in {latency_ms}ms with {len(hits)} sources")

        return AskResult(
            question=question,
            answer_latency_ms=latency_ms,
            structured_answer=parsed.structured_answer,
            processed_answer=processed,
            citations=citations,
            related_sources=related_sources,
        )

    async def keyword_search(
        self,
        keyword: str,
        category: str | None = None,
    ) -> KeywordSearchResult:
        """Find videos mentioning the keyword with located snippets.

        Raises:
            ValidationError: If the keyword is blank.
            NoVideosMatched: If the full-text index matches no video at all.
            UpstreamUnavailable: If the full-text search fails or times out.
        """
        keyword = (keyword or "").strip()
        if not keyword:
            raise ValidationError("A keyword is required.", missing_fields=["keyword"])

        logger.info(f"keyword_search called: keyword={keyword!r}, category={category!r}")
        try:
            candidates = await run_stage(
                "full-text search",
                self.config.vector_search_timeout_seconds,
                self.video_store.full_text_search,
                keyword,
                category,
            )
        except RAGError:
            raise
        except Exception as e:
            logger.error(f"Full-text search failed: {e}")
            raise UpstreamUnavailable("Full-text search failed") from e
        if not candidates:
            raise NoVideosMatched("No videos found matching your keyword.")

        results = self.keyword_engine.search(keyword, candidates)
        filtered = len(candidates) - len(results)
        logger.info(
            f"keyword_search complete: {len(results)} results, {filtered} filtered out"
        )
        return KeywordSearchResult(
            keyword=keyword,
            results=results,
            total_results=len(results),
            filtered_count=filtered,
        )


def create_pipeline(config: RAGConfig) -> RAGPipeline:
    """Build a pipeline wired to the configured stores and providers."""
    video_store = get_video_store()
    return RAGPipeline(
        config=config,
        video_store=video_store,
        chunk_index=ChunkIndex.from_config(
            config,
            vector_store=get_vector_store(),
            video_store=video_store,
        ),
        embedding_client=EmbeddingClient(
            get_embeddings(), available=config.embeddings_available
        ),
        llm_provider=create_llm_provider(config),
        keyword_engine=KeywordSearchEngine.from_config(config),
    )


@lru_cache
def get_pipeline() -> RAGPipeline:
    """Get the cached pipeline built from the global configuration."""
    return create_pipeline(get_rag_config())


def get_indexer() -> TranscriptIndexer:
    """Get a TranscriptIndexer wired to the default stores."""
    return get_pipeline().indexer


async def ingest_video(
    payload: Mapping[str, Any] | VideoInput,
    pipeline: RAGPipeline | None = None,
) -> dict[str, Any]:
    """Store a video and index its transcript.

    Returns:
        IngestResult as a dictionary, or an error dictionary for validation
        and persistence failures.
    """
    pipeline = pipeline or get_pipeline()
    try:
        result = await pipeline.indexer.ingest(payload)
    except RAGError as e:
        logger.warning(f"ingest_video failed: {e.message}")
        return e.to_dict()
    return result.to_dict()


async def backfill_chunks(pipeline: RAGPipeline | None = None) -> dict[str, Any]:
    """Index stored videos that have no chunks yet."""
    pipeline = pipeline or get_pipeline()
    results = await pipeline.indexer.backfill()
    return {
        "videos_processed": len(results),
        "chunks_created": sum(r.chunks_created for r in results),
        "embedding_failures": sum(r.embedding_failures for r in results),
        "persistence_failures": sum(r.persistence_failures for r in results),
        "results": [r.to_dict() for r in results],
    }


async def ask_question(
    question: str,
    pipeline: RAGPipeline | None = None,
) -> dict[str, Any]:
    """Answer a question, returning the result or an error dictionary."""
    pipeline = pipeline or get_pipeline()
    try:
        result = await pipeline.ask(question)
    except AIFailure as e:
        logger.error(f"ask_question failed: {e.__cause__!r}")
        return e.to_dict()
    except RAGError as e:
        logger.info(f"ask_question returned {e.code}: {e.message}")
        return e.to_dict()
    return result.to_dict()


async def keyword_search(
    keyword: str,
    category: str | None = None,
    pipeline: RAGPipeline | None = None,
) -> dict[str, Any]:
    """Search transcripts for a keyword, returning results or an error dictionary."""
    pipeline = pipeline or get_pipeline()
    try:
        result = await pipeline.keyword_search(keyword, category=category)
    except RAGError as e:
        logger.info(f"keyword_search returned {e.code}: {e.message}")
        return e.to_dict()
    return result.to_dict()
