"""Embedding client for transcript chunks and questions.

Wraps a LangChain embeddings model (Nomic with Matryoshka dimensionality by
default) behind a small client that distinguishes document and query task
types and reports failures as ``None`` instead of raising.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from functools import lru_cache
from typing import TYPE_CHECKING

from langchain_nomic import NomicEmbeddings

from transcript_qa.tools.rag.config import get_rag_config

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from transcript_qa.tools.rag.config import RAGConfig

logger = logging.getLogger(__name__)

_NEWLINES = re.compile(r"[\r\n]+")


class EmbeddingMode(str, Enum):
    """Task type used when embedding text.

    Nomic models embed documents and search queries into differently
    oriented spaces, so chunks must use DOCUMENT and questions QUERY.
    """

    DOCUMENT = "search_document"
    QUERY = "search_query"


def create_embeddings(config: RAGConfig) -> NomicEmbeddings:
    """Create a NomicEmbeddings instance from configuration.

    Args:
        config: Configuration with embedding model settings.

    Returns:
        Configured NomicEmbeddings instance.
    """
    kwargs: dict[str, object] = {
        "model": config.embedding_model,
        "dimensionality": config.embedding_dimensionality,
        "inference_mode": config.embedding_inference_mode,
    }
    if config.nomic_api_key:
        kwargs["nomic_api_key"] = config.nomic_api_key
    return NomicEmbeddings(**kwargs)


@lru_cache
def get_embeddings() -> NomicEmbeddings:
    """Get the cached embeddings model built from the global configuration."""
    return create_embeddings(get_rag_config())


def normalize_text(text: str) -> str:
    """Collapse newline runs into single spaces and trim."""
    return _NEWLINES.sub(" ", text).strip()


class EmbeddingClient:
    """Turns text into vectors, returning None on any failure.

    Attributes:
        embeddings: LangChain embeddings model.
        available: False when the backing model has no usable credentials.
    """

    def __init__(self, embeddings: Embeddings, available: bool = True) -> None:
        self.embeddings = embeddings
        self.available = available

    @classmethod
    def from_config(cls, config: RAGConfig) -> EmbeddingClient:
        """Build a client for the configured Nomic model."""
        if not config.embeddings_available:
            logger.warning(
                "No Nomic API key configured for remote inference; embeddings are disabled"
            )
        return cls(create_embeddings(config), available=config.embeddings_available)

    def embed(self, text: str, mode: EmbeddingMode) -> list[float] | None:
        """Embed text for the given task type.

        Args:
            text: Text to embed. Newlines are collapsed first.
            mode: DOCUMENT for transcript chunks, QUERY for questions.

        Returns:
            The embedding vector, or None when the text is empty, the model
            is unavailable, or the upstream call fails.
        """
        normalized = normalize_text(text or "")
        if not normalized:
            logger.warning("Refusing to embed empty text")
            return None
        if not self.available:
            logger.error("Embedding model is not available (missing credentials)")
            return None

        try:
            if mode is EmbeddingMode.QUERY:
                vector = self.embeddings.embed_query(normalized)
            else:
                vector = self.embeddings.embed_documents([normalized])[0]
        except Exception as e:
            logger.error(f"Embedding request failed ({mode.name}): {e}")
            return None

        if not vector:
            logger.error(f"Embedding model returned an empty vector ({mode.name})")
            return None
        return [float(value) for value in vector]
