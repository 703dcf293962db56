"""Vector index of transcript chunks backed by ChromaDB.

Chunks are stored with precomputed document embeddings. Searches take a
query vector, rank hits by similarity and join each hit with its parent
video from the video store.
"""

from __future__ import annotations

import logging
import time
from functools import lru_cache
from typing import TYPE_CHECKING

from langchain_chroma import Chroma

from transcript_qa.tools.rag.config import get_rag_config
from transcript_qa.tools.rag.documents import get_video_store
from transcript_qa.tools.rag.embeddings import create_embeddings
from transcript_qa.tools.rag.errors import PersistenceError
from transcript_qa.tools.rag.models import ChunkRecord, RetrievedChunk

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

    from transcript_qa.tools.rag.config import RAGConfig
    from transcript_qa.tools.rag.documents import VideoStore

logger = logging.getLogger(__name__)


def create_vector_store(
    config: RAGConfig,
    embeddings: Embeddings | None = None,
) -> Chroma:
    """Create a Chroma vector store with HNSW configuration.

    Args:
        config: Configuration with collection and HNSW settings.
        embeddings: Optional embeddings instance. Created from config if omitted.

    Returns:
        Configured Chroma vector store.
    """
    if embeddings is None:
        embeddings = create_embeddings(config)

    return Chroma(
        collection_name=config.collection_name,
        embedding_function=embeddings,
        collection_configuration=config.collection_configuration,
        persist_directory=config.persist_directory,
    )


@lru_cache
def get_vector_store() -> Chroma:
    """Get the cached Chroma store built from the global configuration."""
    return create_vector_store(get_rag_config())


def distance_to_similarity(distance: float, space: str) -> float:
    """Convert a Chroma distance into a higher-is-better similarity."""
    if space == "l2":
        return 1.0 / (1.0 + distance)
    # cosine and ip distances are both 1 - similarity
    return 1.0 - distance


class ChunkIndex:
    """Stores chunk vectors and answers nearest-neighbour queries.

    Attributes:
        vector_store: Chroma store holding the chunks.
        video_store: Source of parent video metadata for joins.
        space: Distance metric of the collection.
        min_similarity: Optional floor; weaker hits are discarded.
    """

    def __init__(
        self,
        vector_store: Chroma,
        video_store: VideoStore,
        space: str = "cosine",
        min_similarity: float | None = None,
    ) -> None:
        self.vector_store = vector_store
        self.video_store = video_store
        self.space = space
        self.min_similarity = min_similarity

    @classmethod
    def from_config(
        cls,
        config: RAGConfig,
        vector_store: Chroma | None = None,
        video_store: VideoStore | None = None,
    ) -> ChunkIndex:
        return cls(
            vector_store=vector_store or get_vector_store(),
            video_store=video_store or get_video_store(),
            space=config.hnsw_space,
            min_similarity=config.min_similarity,
        )

    def add_chunk(self, chunk: ChunkRecord) -> None:
        """Persist one chunk with its precomputed embedding.

        Raises:
            PersistenceError: If the chunk has no embedding or Chroma rejects it.
        """
        if not chunk.embedding:
            raise PersistenceError(f"Chunk {chunk.chunk_id} has no embedding")

        metadata = {
            "chunk_id": chunk.chunk_id,
            "parent_video_id": chunk.parent_video_id,
            "video_title": chunk.video_title,
            "chunk_index": chunk.chunk_index,
            "inserted_at_ns": time.time_ns(),
        }
        try:
            self.vector_store._collection.upsert(
                ids=[chunk.chunk_id],
                embeddings=[chunk.embedding],
                documents=[chunk.text],
                metadatas=[metadata],
            )
        except Exception as e:
            raise PersistenceError(f"Failed to save chunk {chunk.chunk_id}: {e}") from e

    def count(self) -> int:
        return self.vector_store._collection.count()

    def count_chunks(self, video_id: str) -> int:
        """Number of chunks stored for one video."""
        result = self.vector_store.get(where={"parent_video_id": video_id}, include=[])
        return len(result.get("ids", []))

    def search(self, query_vector: list[float], k: int) -> list[RetrievedChunk]:
        """Return the k chunks most similar to the query vector.

        Hits are ordered by descending similarity; equal scores keep the
        order in which chunks were inserted. Chunks whose parent video is
        missing are still returned, with ``video`` set to None.

        Args:
            query_vector: Query embedding (QUERY task type).
            k: Maximum number of hits.

        Returns:
            Ranked hits, empty when the index is empty or nothing clears
            the similarity floor.
        """
        total = self.count()
        if total == 0 or k < 1:
            return []

        hits = self.vector_store.similarity_search_by_vector_with_relevance_scores(
            embedding=query_vector,
            k=min(k, total),
        )

        scored: list[tuple[float, int, ChunkRecord]] = []
        for doc, distance in hits:
            similarity = distance_to_similarity(float(distance), self.space)
            if self.min_similarity is not None and similarity < self.min_similarity:
                continue
            metadata = doc.metadata
            chunk = ChunkRecord(
                chunk_id=str(metadata.get("chunk_id") or doc.id),
                parent_video_id=str(metadata.get("parent_video_id", "")),
                video_title=str(metadata.get("video_title", "")),
                text=doc.page_content,
                chunk_index=int(metadata.get("chunk_index", 0)),
            )
            scored.append((similarity, int(metadata.get("inserted_at_ns", 0)), chunk))

        scored.sort(key=lambda item: (-item[0], item[1]))

        videos = self.video_store.get_videos(chunk.parent_video_id for _, _, chunk in scored)
        results = [
            RetrievedChunk(
                chunk=chunk,
                similarity=similarity,
                video=videos.get(chunk.parent_video_id),
            )
            for similarity, _, chunk in scored
        ]

        orphans = sum(1 for hit in results if hit.video is None)
        if orphans:
            logger.warning(f"{orphans} retrieved chunks have no parent video")
        logger.debug(f"Vector search returned {len(results)} of {total} chunks")
        return results
