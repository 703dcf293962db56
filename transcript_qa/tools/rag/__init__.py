"""Retrieval-augmented question answering over video transcripts.

Provides grounded answers and keyword search over a corpus of video
transcripts using LangChain, ChromaDB, Nomic Matryoshka embeddings and a
pluggable generative model.

Components:
    RAGConfig: Pydantic settings for embeddings, storage, chunking and LLMs.
    TranscriptChunker: Fixed-size overlapping window chunker.
    EmbeddingClient: DOCUMENT/QUERY embeddings that fail soft.
    ChunkIndex: Chroma-backed chunk vectors joined with parent videos.
    VideoStore: SQLAlchemy video records with TF-IDF full-text search.
    LLMProvider: Gemma (Google AI Studio) or OpenRouter completions.
    KeywordSearchEngine: Snippet localization and relevance filtering.
    TranscriptIndexer: Ingest and backfill of video transcripts.
    RAGPipeline: The ask and keyword search query paths.

Example:
    >>> from transcript_qa.tools.rag import get_pipeline
    >>> result = await get_pipeline().keyword_search("order blocks")
"""

from transcript_qa.tools.rag.chunker import TranscriptChunker
from transcript_qa.tools.rag.config import RAGConfig, get_rag_config
from transcript_qa.tools.rag.documents import VideoStore, create_video_store, get_video_store
from transcript_qa.tools.rag.embeddings import (
    EmbeddingClient,
    EmbeddingMode,
    create_embeddings,
    get_embeddings,
)
from transcript_qa.tools.rag.indexer import TranscriptIndexer
from transcript_qa.tools.rag.keyword import KeywordSearchEngine
from transcript_qa.tools.rag.llm import LLMProvider, create_llm_provider
from transcript_qa.tools.rag.models import IngestResult
from transcript_qa.tools.rag.store import ChunkIndex, create_vector_store, get_vector_store
from transcript_qa.tools.rag.tools import (
    RAGPipeline,
    ask_question,
    backfill_chunks,
    get_pipeline,
    ingest_video,
    keyword_search,
)

__all__ = [
    "ChunkIndex",
    "EmbeddingClient",
    "EmbeddingMode",
    "IngestResult",
    "KeywordSearchEngine",
    "LLMProvider",
    "RAGConfig",
    "RAGPipeline",
    "TranscriptChunker",
    "TranscriptIndexer",
    "VideoStore",
    "ask_question",
    "backfill_chunks",
    "create_embeddings",
    "create_llm_provider",
    "create_vector_store",
    "create_video_store",
    "get_embeddings",
    "get_pipeline",
    "get_rag_config",
    "get_vector_store",
    "get_video_store",
    "ingest_video",
    "keyword_search",
]
