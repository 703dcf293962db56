"""Domain models for ingest, retrieval and answer generation.

Pydantic models describe everything that crosses the tool boundary (ingest
payloads, answers, search results). Plain dataclasses carry short-lived
pipeline state that never leaves the process.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator


def normalize_tags(value: Any) -> list[str]:
    """Normalize tags given as a list or a comma-separated string.

    Tags are trimmed and lowercased; blanks and duplicates are dropped while
    keeping first-seen order.

    Example:
        >>> normalize_tags(" Order Blocks, ICT,ict ,")
        ['order blocks', 'ict']
    """
    if value is None:
        return []
    if isinstance(value, str):
        raw_tags = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        raw_tags = [str(tag) for tag in value]
    else:
        raise ValueError("tags must be a list of strings or a comma-separated string")

    seen: set[str] = set()
    tags: list[str] = []
    for tag in raw_tags:
        cleaned = tag.strip().lower()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            tags.append(cleaned)
    return tags


class VideoInput(BaseModel):
    """Payload accepted by ingest."""

    title: str = Field(min_length=1, description="Video title")
    publication_date: date = Field(
        validation_alias=AliasChoices("publication_date", "publicationDate"),
        description="Date the video was published",
    )
    video_url: str = Field(
        min_length=1,
        validation_alias=AliasChoices("video_url", "videoUrl"),
        description="Public URL of the video",
    )
    category: str = Field(min_length=1, description="Content category")
    tags: list[str] = Field(default_factory=list, description="Free-form tags")
    transcript: str = Field(min_length=1, description="Full transcript text")

    @field_validator("publication_date", mode="before")
    @classmethod
    def parse_publication_date(cls, value: Any) -> Any:
        """Accept full ISO timestamps as well as plain dates."""
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str) and len(value.strip()) > 10:
            return datetime.fromisoformat(value.strip()).date()
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def parse_tags(cls, value: Any) -> list[str]:
        return normalize_tags(value)


class VideoRecord(VideoInput):
    """A stored video."""

    video_id: str


class ChunkRecord(BaseModel):
    """A transcript chunk as held by the vector index.

    ``video_title`` is copied from the parent video when the chunk is created
    and is not updated afterwards.
    """

    chunk_id: str
    parent_video_id: str
    video_title: str
    text: str
    chunk_index: int
    embedding: list[float] | None = None


@dataclass
class RetrievedChunk:
    """A vector search hit joined with its parent video.

    ``video`` is None when the parent record no longer exists.
    """

    chunk: ChunkRecord
    similarity: float
    video: VideoRecord | None = None


@dataclass(frozen=True)
class ContextSegment:
    """A retrieved segment as presented to the LLM."""

    title: str
    text: str
    ordinal_index: int
    parent_video_id: str
    video_url: str | None = None


@dataclass(frozen=True)
class TimestampLink:
    """A label plus the URL it points to."""

    label: str
    url: str


class Citation(BaseModel):
    """Maps a ``[Source N]`` id to a 0-based index into the related sources."""

    id: int
    source_index: int = Field(
        validation_alias=AliasChoices("sourceIndex", "source_index"),
    )


class ParsedAnswer(BaseModel):
    """LLM output after decoding and shape correction."""

    structured_answer: dict[str, Any]
    citations: list[Citation] = Field(default_factory=list)


class AnswerPart(BaseModel):
    """One renderable piece of an answer field."""

    type: Literal["text", "citation"]
    content: str
    citation_id: int | None = None
    source_index: int | None = None


class ProcessedAnswer(BaseModel):
    """Answer fields split into text and citation parts.

    Fields that are not strings are carried over untouched.
    """

    original: dict[str, Any]
    processed_fields: dict[str, Any]


class RelatedSource(BaseModel):
    """A transcript excerpt shown next to an answer."""

    video_title: str
    timestamp_link_label: str
    timestamp_url: str
    snippet: str
    published_date: date | None = None
    tags: list[str] = Field(default_factory=list)
    channel: str
    category: str | None = None
    video_url: str | None = None


class KeywordResultItem(RelatedSource):
    """A keyword search hit with its best-matching snippet."""

    video_id: str
    relevance_score: float


class AskResult(BaseModel):
    """Response of the ask operation."""

    question: str
    answer_latency_ms: int
    structured_answer: dict[str, Any]
    processed_answer: ProcessedAnswer
    citations: list[Citation]
    related_sources: list[RelatedSource]

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class KeywordSearchResult(BaseModel):
    """Response of the keyword search operation."""

    keyword: str
    results: list[KeywordResultItem]
    total_results: int
    filtered_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


@dataclass
class IngestResult:
    """Result of ingesting (or backfilling) one video.

    Attributes:
        video_id: Identifier of the stored video.
        chunks_created: Number of chunks embedded and persisted.
        embedding_failures: Chunks whose embedding could not be produced.
        persistence_failures: Chunks that were embedded but failed to save.
        errors: Human-readable error messages, one per failed chunk.
    """

    video_id: str
    chunks_created: int = 0
    embedding_failures: int = 0
    persistence_failures: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, int | str | list[str]]:
        """Convert to dictionary for API responses."""
        return {
            "video_id": self.video_id,
            "chunks_created": self.chunks_created,
            "embedding_failures": self.embedding_failures,
            "persistence_failures": self.persistence_failures,
            "errors": self.errors,
        }
