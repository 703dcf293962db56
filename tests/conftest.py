"""Pytest configuration and fixtures for transcript-qa tests."""

from __future__ import annotations

import json
import uuid
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding

from transcript_qa.tools.rag.config import RAGConfig
from transcript_qa.tools.rag.documents import VideoStore, create_db_engine
from transcript_qa.tools.rag.embeddings import EmbeddingClient
from transcript_qa.tools.rag.keyword import KeywordSearchEngine
from transcript_qa.tools.rag.llm import LLMProvider
from transcript_qa.tools.rag.store import ChunkIndex, create_vector_store
from transcript_qa.tools.rag.tools import RAGPipeline

if TYPE_CHECKING:
    from collections.abc import Generator

    from langchain_chroma import Chroma

EMBEDDING_SIZE = 64

ORDER_BLOCKS_TRANSCRIPT = "00:00:05 intro text. 00:01:10 detail about order blocks."


@pytest.fixture(autouse=True)
def clear_rag_caches() -> Generator[None, None, None]:
    """Clear lru_cache on pipeline singletons between tests.

    A test that calls a real factory would otherwise leak its instance into
    later tests that expect to patch the factory.
    """
    from transcript_qa.tools.rag.config import get_rag_config
    from transcript_qa.tools.rag.documents import get_video_store
    from transcript_qa.tools.rag.embeddings import get_embeddings
    from transcript_qa.tools.rag.store import get_vector_store
    from transcript_qa.tools.rag.tools import get_pipeline

    cached = (get_pipeline, get_vector_store, get_video_store, get_embeddings, get_rag_config)
    for func in cached:
        func.cache_clear()

    yield

    for func in cached:
        func.cache_clear()


@pytest.fixture
def config() -> RAGConfig:
    """In-memory configuration with a collection unique to the test."""
    return RAGConfig(
        persist_directory=None,
        database_url="sqlite:///:memory:",
        collection_name=f"test_{uuid.uuid4().hex}",
        embedding_dimensionality=EMBEDDING_SIZE,
        embedding_inference_mode="remote",
        nomic_api_key="test-key",
        llm_provider="openrouter",
        openrouter_api_key="test-key",
        channel_name="Test Channel",
    )


@pytest.fixture
def fake_embeddings() -> DeterministicFakeEmbedding:
    return DeterministicFakeEmbedding(size=EMBEDDING_SIZE)


@pytest.fixture
def video_store() -> VideoStore:
    return VideoStore(create_db_engine("sqlite:///:memory:"))


@pytest.fixture
def vector_store(
    config: RAGConfig,
    fake_embeddings: DeterministicFakeEmbedding,
) -> Generator[Chroma, None, None]:
    store = create_vector_store(config, embeddings=fake_embeddings)
    yield store
    store.delete_collection()


@pytest.fixture
def chunk_index(config: RAGConfig, vector_store: Chroma, video_store: VideoStore) -> ChunkIndex:
    return ChunkIndex.from_config(config, vector_store=vector_store, video_store=video_store)


@pytest.fixture
def embedding_client(fake_embeddings: DeterministicFakeEmbedding) -> EmbeddingClient:
    return EmbeddingClient(fake_embeddings)


@pytest.fixture
def llm_provider() -> MagicMock:
    """LLM provider whose generate() returns a citation-bearing JSON answer."""
    provider = MagicMock(spec=LLMProvider)
    provider.generate.return_value = make_llm_response()
    return provider


@pytest.fixture
def pipeline(
    config: RAGConfig,
    video_store: VideoStore,
    chunk_index: ChunkIndex,
    embedding_client: EmbeddingClient,
    llm_provider: MagicMock,
) -> RAGPipeline:
    return RAGPipeline(
        config=config,
        video_store=video_store,
        chunk_index=chunk_index,
        embedding_client=embedding_client,
        llm_provider=llm_provider,
        keyword_engine=KeywordSearchEngine.from_config(config),
    )


@pytest.fixture
def video_payload() -> dict[str, Any]:
    return {
        "title": "Order Blocks Explained",
        "publicationDate": "2024-03-01",
        "videoUrl": "https://youtu.be/abc123",
        "category": "education",
        "tags": "Trading, ICT , trading",
        "transcript": ORDER_BLOCKS_TRANSCRIPT,
    }


def make_llm_response(
    citations: list[dict[str, int]] | None = None,
    fenced: bool = True,
) -> str:
    """Build an LLM completion in the expected JSON format."""
    payload = {
        "structuredAnswer": {
            "introduction": "Order blocks are discussed in the videos [Source 1].",
            "explanation": "An order block is a zone of institutional orders [Source 1].",
            "examples": "No specific examples were found in the provided context.",
            "tips": "Watch for reactions at the block [Source 2].",
            "caveats": "No specific caveats or important considerations were found in the provided context.",
        },
        "citations": citations
        if citations is not None
        else [{"id": 1, "sourceIndex": 0}, {"id": 2, "sourceIndex": 1}],
    }
    body = json.dumps(payload, indent=2)
    return f"```json\n{body}\n```" if fenced else body


@pytest.fixture
def llm_response() -> Any:
    """Factory for LLM completions, see make_llm_response."""
    return make_llm_response
