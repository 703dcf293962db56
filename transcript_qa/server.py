#!/usr/bin/env python3
"""Transcript Q&A MCP Server with RefCache Integration.

Exposes grounded question answering and keyword search over a corpus of
video transcripts, plus ingest of new videos.

Features:
- Ingest videos: store metadata, chunk and embed transcripts
- Ask questions answered only from retrieved transcript segments, with citations
- Keyword search with located snippets and timestamped links
- Reference-based caching and pagination of large keyword results

Usage:
    # Run with stdio (for Claude Desktop / Zed)
    uv run transcript-qa

    # Run with SSE (for web clients / debugging)
    uv run transcript-qa --transport sse --port 8000

Environment:
    See transcript_qa.tools.rag.config for RAG_* settings (embedding model,
    LLM provider and API keys, storage locations, timeouts).
"""

from __future__ import annotations

import argparse
import sys
from typing import Any

from pydantic import BaseModel, Field

# =============================================================================
# Check for FastMCP availability
# =============================================================================

try:
    from fastmcp import FastMCP
except ImportError:
    print(
        "Error: FastMCP is not installed. Install with:\n  uv sync\n",
        file=sys.stderr,
    )
    sys.exit(1)

from mcp_refcache import CacheResponse, PreviewConfig, PreviewStrategy, RefCache
from mcp_refcache.fastmcp import cache_guide_prompt, cache_instructions, with_cache_docs

from transcript_qa.tools.rag import tools as rag_tools
from transcript_qa.tools.rag.config import get_rag_config

# =============================================================================
# Initialize FastMCP Server
# =============================================================================

mcp = FastMCP(
    name="Transcript Q&A",
    instructions=f"""Answers questions about a collection of video transcripts.

Available tools:
- ask_question: Grounded answer with [Source N] citations and related sources
- keyword_search: Videos mentioning a keyword, with snippets and timestamp links (cached)
- ingest_video: Add a video and index its transcript
- backfill_chunks: Index stored videos that have no chunks yet
- get_cached_result: Retrieve or paginate through cached results

{cache_instructions()}
""",
)

# =============================================================================
# Initialize RefCache
# =============================================================================

cache = RefCache(
    name="transcript-qa",
    default_ttl=3600,  # 1 hour TTL
    preview_config=PreviewConfig(
        max_size=64,  # Max 64 tokens in previews
        default_strategy=PreviewStrategy.SAMPLE,
    ),
)

# =============================================================================
# Pydantic Models for Tool Inputs
# =============================================================================


class CacheQueryInput(BaseModel):
    """Input model for cache queries."""

    ref_id: str = Field(
        description="Reference ID to look up",
    )
    page: int | None = Field(
        default=None,
        ge=1,
        description="Page number for pagination (1-indexed)",
    )
    page_size: int | None = Field(
        default=None,
        ge=1,
        le=100,
        description="Number of items per page",
    )
    max_size: int | None = Field(
        default=None,
        ge=1,
        description="Maximum preview size (tokens/chars). Overrides defaults.",
    )


# =============================================================================
# Tool Implementations
# =============================================================================


@mcp.tool
async def ingest_video(
    title: str,
    publication_date: str,
    video_url: str,
    category: str,
    transcript: str,
    tags: list[str] | str | None = None,
) -> dict[str, Any]:
    """Add a video and index its transcript for search and Q&A.

    The transcript is split into overlapping windows, each embedded and
    stored. The video is kept even if some chunks fail; failures are counted.

    Args:
        title: Video title.
        publication_date: Publication date (YYYY-MM-DD or ISO timestamp).
        video_url: YouTube URL of the video.
        category: Content category.
        transcript: Full transcript text, ideally with HH:MM:SS markers.
        tags: Tags as a list or comma-separated string.

    Returns:
        video_id, chunks_created, embedding_failures, persistence_failures
        and errors; or an error object (status 400) naming missing fields.
    """
    result = await rag_tools.ingest_video(
        {
            "title": title,
            "publication_date": publication_date,
            "video_url": video_url,
            "category": category,
            "transcript": transcript,
            "tags": tags,
        }
    )
    if "error" not in result:
        # Keyword results cached before this video existed are now stale.
        cache.clear()
    return result


@mcp.tool
async def ask_question(question: str) -> dict[str, Any]:
    """Answer a question using only the indexed video transcripts.

    Args:
        question: Natural-language question.

    Returns:
        structured_answer (introduction, explanation, examples, tips,
        caveats), processed_answer with text/citation parts, citations,
        related_sources and answer_latency_ms. When nothing relevant is
        indexed the result is an error object with status 404.
    """
    return await rag_tools.ask_question(question)


@mcp.tool
@cache.cached(namespace="public")
async def keyword_search(
    keyword: str,
    category: str | None = None,
) -> dict[str, Any]:
    """Search transcripts for a keyword or phrase.

    Exact phrase matches are preferred; otherwise the densest window of
    query terms is used. Each result carries a snippet and a link to the
    nearest preceding timestamp.

    Args:
        keyword: Keyword or phrase.
        category: Optional category filter.

    Returns:
        results in relevance order, total_results and filtered_count.

    **Caching:** Large results are cached in the public namespace.

    **Pagination:** Use `page` and `page_size` to navigate results.
    """
    return await rag_tools.keyword_search(keyword, category=category)


@mcp.tool
async def backfill_chunks() -> dict[str, Any]:
    """Index stored videos that do not have any chunks yet.

    Returns:
        Per-video ingest results and totals.
    """
    result = await rag_tools.backfill_chunks()
    if result["chunks_created"]:
        cache.clear()
    return result


@mcp.tool
@with_cache_docs(accepts_references=True, supports_pagination=True)
async def get_cached_result(
    ref_id: str,
    page: int | None = None,
    page_size: int | None = None,
    max_size: int | None = None,
) -> dict[str, Any]:
    """Retrieve a cached result, optionally with pagination.

    Args:
        ref_id: Reference ID to look up.
        page: Page number (1-indexed).
        page_size: Items per page.
        max_size: Maximum preview size (overrides defaults).

    Returns:
        The cached value or a preview with pagination info.

    **Caching:** Large results are returned as references with previews.

    **Pagination:** Use `page` and `page_size` to navigate results.

    **References:** This tool accepts `ref_id` from previous tool calls.
    """
    validated = CacheQueryInput(
        ref_id=ref_id, page=page, page_size=page_size, max_size=max_size
    )

    try:
        response: CacheResponse = cache.get(
            validated.ref_id,
            page=validated.page,
            page_size=validated.page_size,
            actor="agent",
        )

        result: dict[str, Any] = {
            "ref_id": validated.ref_id,
            "preview": response.preview,
            "preview_strategy": response.preview_strategy.value,
            "total_items": response.total_items,
        }

        if response.page is not None:
            result["page"] = response.page
            result["total_pages"] = response.total_pages

        return result

    except (PermissionError, KeyError):
        return {
            "error": "Invalid or inaccessible reference",
            "message": "Reference not found, expired, or access denied",
            "ref_id": validated.ref_id,
        }


# =============================================================================
# Health Check
# =============================================================================


@mcp.tool
def health_check() -> dict[str, Any]:
    """Check server health status.

    Returns:
        Server status, cache name and the configured providers.
    """
    config = get_rag_config()
    return {
        "status": "healthy",
        "server": "transcript-qa",
        "cache": cache.name,
        "llm_provider": config.llm_provider,
        "embedding_model": config.embedding_model,
        "embeddings_available": config.embeddings_available,
    }


# =============================================================================
# Prompts for Guidance
# =============================================================================


@mcp.prompt
def transcript_guide() -> str:
    """Guide for using the transcript Q&A server."""
    return f"""# Transcript Q&A Guide

1. **Ingest**
   `ingest_video(title, publication_date, video_url, category, transcript, tags)`

2. **Ask**
   `ask_question("what is an order block?")`
   - Answers cite sources as [Source N]; `related_sources[N-1]` is the segment.

3. **Keyword Search**
   `keyword_search("order blocks")`
   - Each result links to the nearest timestamp in the video.
   - Large result sets return a ref_id; use `get_cached_result(ref_id, page=2)`.

---

{cache_guide_prompt()}
"""


# =============================================================================
# Main Entry Point
# =============================================================================


def main() -> None:
    """Run the MCP server."""
    parser = argparse.ArgumentParser(
        description="Transcript Q&A MCP Server with RefCache",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="Transport mode (default: stdio for Claude Desktop)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for SSE transport (default: 8000)",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host for SSE transport (default: 127.0.0.1)",
    )

    args = parser.parse_args()

    if args.transport == "stdio":
        mcp.run(transport="stdio")
    else:
        mcp.run(
            transport="sse",
            host=args.host,
            port=args.port,
        )


if __name__ == "__main__":
    main()
