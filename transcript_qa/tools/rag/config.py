"""Configuration for transcript question answering and keyword search.

Provides Pydantic settings for configuring:
- Embedding model (Nomic with Matryoshka dimensionality)
- HNSW vector index parameters
- Video store database
- Text chunking settings
- LLM provider selection and generation parameters
- Retrieval, snippet and per-stage timeout limits

Environment Variables:
    RAG_EMBEDDING_MODEL: Embedding model name (default: nomic-embed-text-v1.5)
    RAG_EMBEDDING_DIMENSIONALITY: Matryoshka dimension (default: 768)
    RAG_EMBEDDING_INFERENCE_MODE: local, remote, or dynamic (default: remote)
    RAG_NOMIC_API_KEY / NOMIC_API_KEY: Key for remote Nomic inference
    RAG_HNSW_SPACE: Distance metric (default: cosine)
    RAG_CHUNK_SIZE: Chunk window size in characters (default: 1500)
    RAG_CHUNK_OVERLAP: Overlap between windows (default: 200)
    RAG_PERSIST_DIRECTORY: Directory for vector store persistence (optional)
    RAG_DATABASE_URL: SQLAlchemy URL of the video store
    RAG_LLM_PROVIDER: gemma or openrouter (default: gemma)
    RAG_GEMMA_API_KEY / GOOGLE_AI_STUDIO_API_KEY: Google AI Studio key
    RAG_OPENROUTER_API_KEY / OPENROUTER_API_KEY: OpenRouter key
    RAG_RETRIEVAL_TOP_K: Number of segments passed to the LLM (default: 5)
    RAG_LLM_TIMEOUT_SECONDS: Upper bound on one generation call (default: 90)
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_data_directory() -> Path:
    """Get the XDG-compliant data directory for transcript-qa."""
    xdg_data_home = os.environ.get("XDG_DATA_HOME")
    if xdg_data_home:
        base_dir = Path(xdg_data_home)
    else:
        base_dir = Path.home() / ".local" / "share"

    return base_dir / "transcript-qa"


def _get_default_persist_directory() -> str | None:
    return str(_get_data_directory() / "chroma_db")


def _get_default_database_url() -> str:
    return f"sqlite:///{_get_data_directory() / 'videos.db'}"


class RAGConfig(BaseSettings):
    """Configuration for the retrieval and grounding pipeline.

    Configures the embedding model, vector index, video store, chunking
    strategy, LLM provider and the limits applied to each query stage.
    """

    model_config = SettingsConfigDict(
        env_prefix="RAG_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Embedding model configuration
    embedding_model: str = Field(
        default="nomic-embed-text-v1.5",
        description="Nomic embedding model name.",
    )
    embedding_dimensionality: Literal[64, 128, 256, 512, 768] = Field(
        default=768,
        description="Matryoshka embedding dimensionality. Lower = faster, higher = better quality.",
    )
    embedding_inference_mode: Literal["local", "remote", "dynamic"] = Field(
        default="remote",
        description="Inference mode: 'local' (Embed4All), 'remote' (API), 'dynamic' (auto).",
    )
    nomic_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("RAG_NOMIC_API_KEY", "NOMIC_API_KEY"),
        description="Nomic Atlas API key. Required for remote inference.",
    )

    # HNSW index configuration
    hnsw_space: Literal["cosine", "l2", "ip"] = Field(
        default="cosine",
        description="Distance metric for similarity search.",
    )
    hnsw_max_neighbors: int = Field(
        default=48,
        ge=4,
        le=128,
        description="HNSW M parameter - connections per node.",
    )
    hnsw_ef_construction: int = Field(
        default=200,
        ge=10,
        le=500,
        description="Build-time accuracy. Higher = better index quality, slower build.",
    )
    hnsw_ef_search: int = Field(
        default=128,
        ge=10,
        le=500,
        description="Search-time accuracy. Higher = better recall, slower search.",
    )

    # Storage configuration
    persist_directory: str | None = Field(
        default_factory=_get_default_persist_directory,
        description="Directory for ChromaDB persistence. None for in-memory only.",
    )
    collection_name: str = Field(
        default="video_chunks",
        description="Name of the ChromaDB collection holding transcript chunks.",
    )
    database_url: str = Field(
        default_factory=_get_default_database_url,
        description="SQLAlchemy URL of the video store.",
    )

    # Chunking configuration
    chunk_size: int = Field(
        default=1500,
        ge=1,
        le=20000,
        description="Chunk window size in characters.",
    )
    chunk_overlap: int = Field(
        default=200,
        ge=0,
        description="Overlap between consecutive windows in characters.",
    )

    # Retrieval configuration
    retrieval_top_k: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Number of chunks retrieved and passed to the LLM as context.",
    )
    min_similarity: float | None = Field(
        default=None,
        ge=-1.0,
        le=1.0,
        description="Optional similarity floor. Hits below it are discarded.",
    )
    max_snippet_length: int = Field(
        default=1024,
        ge=16,
        description="Maximum length of a related-source snippet before truncation.",
    )

    # Keyword search configuration
    keyword_window_size: int = Field(
        default=200,
        ge=10,
        description="Size of the sliding window used to score term density.",
    )
    keyword_snippet_context: int = Field(
        default=50,
        ge=0,
        description="Characters of context kept before the match position.",
    )
    keyword_snippet_length: int = Field(
        default=250,
        ge=10,
        description="Total snippet length for keyword results.",
    )

    # LLM configuration
    llm_provider: str = Field(
        default="gemma",
        description="Generative model provider: 'gemma' or 'openrouter'.",
    )
    gemma_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("RAG_GEMMA_API_KEY", "GOOGLE_AI_STUDIO_API_KEY"),
        description="Google AI Studio API key.",
    )
    gemma_model: str = Field(
        default="gemma-3n-e4b-it",
        description="Google AI Studio generation model.",
    )
    openrouter_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("RAG_OPENROUTER_API_KEY", "OPENROUTER_API_KEY"),
        description="OpenRouter API key.",
    )
    openrouter_model: str = Field(
        default="nousresearch/deephermes-3-mistral-24b-preview:free",
        description="OpenRouter model identifier.",
    )
    openrouter_api_url: str = Field(
        default="https://openrouter.ai/api/v1/chat/completions",
        description="OpenRouter chat completions endpoint.",
    )
    llm_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    llm_max_output_tokens: int = Field(default=2048, ge=1)

    # Timeouts and concurrency
    embedding_timeout_seconds: float = Field(default=30.0, gt=0)
    vector_search_timeout_seconds: float = Field(default=15.0, gt=0)
    llm_timeout_seconds: float = Field(default=90.0, gt=0)
    ingest_embedding_concurrency: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Maximum number of chunk embeddings in flight during ingest.",
    )

    # Presentation
    channel_name: str = Field(
        default="YouTube",
        description="Channel name reported on related sources and keyword results.",
    )
    assistant_name: str = Field(
        default="Transcript Assistant",
        description="Persona name used in the grounding prompt.",
    )

    @field_validator("persist_directory")
    @classmethod
    def expand_persist_directory(cls, value: str | None) -> str | None:
        """Expand ~ in persistence directory path."""
        if value is None:
            return None
        return str(Path(value).expanduser())

    @field_validator("llm_provider")
    @classmethod
    def normalize_llm_provider(cls, value: str) -> str:
        """Accept provider names in any case (GEMMA, OpenRouter, ...)."""
        return value.strip().lower()

    @model_validator(mode="after")
    def validate_chunk_overlap(self) -> RAGConfig:
        """Ensure chunk_overlap is less than chunk_size."""
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be less than "
                f"chunk_size ({self.chunk_size})"
            )
        return self

    @property
    def hnsw_config(self) -> dict[str, str | int]:
        """Get HNSW configuration dictionary for ChromaDB."""
        return {
            "space": self.hnsw_space,
            "max_neighbors": self.hnsw_max_neighbors,
            "ef_construction": self.hnsw_ef_construction,
            "ef_search": self.hnsw_ef_search,
        }

    @property
    def collection_configuration(self) -> dict[str, dict[str, str | int]]:
        """Get full collection configuration for ChromaDB."""
        return {"hnsw": self.hnsw_config}

    @property
    def embeddings_available(self) -> bool:
        """Whether the configured embedding backend can be reached.

        Remote inference needs a Nomic API key; local and dynamic modes can
        fall back to an on-device model.
        """
        if self.embedding_inference_mode == "remote":
            return bool(self.nomic_api_key)
        return True


@lru_cache
def get_rag_config() -> RAGConfig:
    """Get cached configuration.

    Returns:
        Singleton RAGConfig instance loaded from environment.
    """
    return RAGConfig()
