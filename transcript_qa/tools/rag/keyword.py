"""Keyword search over full transcripts.

Candidates and their order come from the video store's full-text search.
For each candidate the engine locates the most relevant position in the
transcript, cuts a snippet around it, attaches the nearest timestamp link
and finally drops results that show no visible trace of the keyword.

Match localization, in priority order:
    1. Exact (case-insensitive) occurrence of the whole keyword.
    2. The earliest fixed-size window containing the most distinct terms.
    3. The first occurrence of any single term.
    4. No match: the start of the transcript is used instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from transcript_qa.tools.rag.models import KeywordResultItem
from transcript_qa.tools.rag.timestamps import (
    fallback_link,
    find_timestamps,
    link_for_timestamp,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from transcript_qa.tools.rag.config import RAGConfig
    from transcript_qa.tools.rag.models import TimestampLink, VideoRecord

logger = logging.getLogger(__name__)

MIN_TERM_LENGTH = 3

# Windows stop this many characters before the end of the transcript.
WINDOW_TAIL_MARGIN = 50


def search_terms(keyword: str) -> list[str]:
    """Lowercased query terms, ignoring words of two characters or fewer.

    If every word is that short, the whole keyword is used as the only term.
    """
    lowered = keyword.lower().strip()
    terms = list(dict.fromkeys(t for t in lowered.split() if len(t) >= MIN_TERM_LENGTH))
    return terms or ([lowered] if lowered else [])


def _occurrences(text: str, term: str) -> list[int]:
    positions = []
    index = text.find(term)
    while index != -1:
        positions.append(index)
        index = text.find(term, index + 1)
    return positions


@dataclass
class MatchResult:
    """Where the keyword was found in a transcript.

    ``position`` is -1 when nothing matched.
    """

    position: int
    matched_terms: list[str] = field(default_factory=list)
    exact_phrase: bool = False

    @property
    def found(self) -> bool:
        return self.position >= 0


class KeywordSearchEngine:
    """Snippet localization and relevance filtering for keyword search.

    Attributes:
        window_size: Width of the term-density window.
        snippet_context: Characters kept before the match position.
        snippet_length: Total snippet length before ellipses are added.
        channel_name: Channel reported on every result.
    """

    def __init__(
        self,
        window_size: int = 200,
        snippet_context: int = 50,
        snippet_length: int = 250,
        channel_name: str = "YouTube",
    ) -> None:
        self.window_size = window_size
        self.snippet_context = snippet_context
        self.snippet_length = snippet_length
        self.channel_name = channel_name

    @classmethod
    def from_config(cls, config: RAGConfig) -> KeywordSearchEngine:
        return cls(
            window_size=config.keyword_window_size,
            snippet_context=config.keyword_snippet_context,
            snippet_length=config.keyword_snippet_length,
            channel_name=config.channel_name,
        )

    def find_best_match(self, text: str, keyword: str, terms: Sequence[str]) -> MatchResult:
        """Locate the most relevant position for the keyword in text."""
        text_lower = text.lower()

        phrase = keyword.lower().strip()
        if phrase:
            phrase_index = text_lower.find(phrase)
            if phrase_index != -1:
                return MatchResult(phrase_index, [phrase], exact_phrase=True)

        window = self._best_window(text_lower, terms)
        if window.found:
            return window

        for term in terms:
            term_index = text_lower.find(term)
            if term_index != -1:
                return MatchResult(term_index, [term])

        return MatchResult(-1)

    def _best_window(self, text_lower: str, terms: Sequence[str]) -> MatchResult:
        """Earliest window start covering the most distinct terms.

        Window starts range over ``[0, len(text) - 50)``. A term occurrence at
        ``p`` lies fully inside the window starting at ``i`` when
        ``p + len(term) - window_size <= i <= p``, so each term contributes a
        union of start intervals; the counts are accumulated with a
        difference array.
        """
        start_count = len(text_lower) - WINDOW_TAIL_MARGIN
        if start_count <= 0 or not terms:
            return MatchResult(-1)

        delta = [0] * (start_count + 1)
        covering: dict[str, list[tuple[int, int]]] = {}
        for term in terms:
            intervals: list[tuple[int, int]] = []
            for p in _occurrences(text_lower, term):
                low = max(0, p + len(term) - self.window_size)
                high = min(p, start_count - 1)
                if low > high:
                    continue
                if intervals and low <= intervals[-1][1] + 1:
                    intervals[-1] = (intervals[-1][0], max(intervals[-1][1], high))
                else:
                    intervals.append((low, high))
            for low, high in intervals:
                delta[low] += 1
                delta[high + 1] -= 1
            covering[term] = intervals

        best_position, best_score, running = -1, 0, 0
        for i in range(start_count):
            running += delta[i]
            if running > best_score:
                best_score, best_position = running, i

        if best_score == 0:
            return MatchResult(-1)

        matched = [
            term
            for term in terms
            if any(low <= best_position <= high for low, high in covering[term])
        ]
        return MatchResult(best_position, matched)

    def extract_snippet(self, text: str, position: int) -> tuple[str, int, int]:
        """Cut the snippet around a match position.

        Returns:
            (snippet with ellipses, start offset, end offset).
        """
        start = max(0, position - self.snippet_context)
        end = min(len(text), position + self.snippet_length - self.snippet_context)
        snippet = text[start:end]
        if start > 0:
            snippet = "..." + snippet
        if end < len(text):
            snippet = snippet + "..."
        return snippet, start, end

    def resolve_timestamp(
        self,
        text: str,
        position: int,
        start: int,
        end: int,
        video_url: str | None,
    ) -> TimestampLink:
        """Pick the timestamp that best describes where the match occurs.

        Preference: the last timestamp inside the snippet starting at or
        before the match, then the first timestamp inside the snippet, then
        the last timestamp anywhere before the match. Preferring the marker
        nearest the match over the leftmost one in the snippet is deliberate.
        """
        in_snippet = find_timestamps(text[start:end])
        preceding = [m for m in in_snippet if start + m.start() <= position]
        if preceding:
            return link_for_timestamp(preceding[-1].group(0), video_url)
        if in_snippet:
            return link_for_timestamp(in_snippet[0].group(0), video_url)

        earlier = find_timestamps(text[:position])
        if earlier:
            return link_for_timestamp(earlier[-1].group(0), video_url)
        return fallback_link(video_url)

    def _leading_snippet(self, text: str) -> str:
        snippet = text[: self.snippet_length]
        if len(text) > self.snippet_length:
            snippet += "..."
        return snippet

    def build_result(
        self,
        video: VideoRecord,
        score: float,
        keyword: str,
        terms: Sequence[str],
    ) -> KeywordResultItem:
        """Localize the keyword in one video and build its result item."""
        transcript = video.transcript
        match = self.find_best_match(transcript, keyword, terms)

        if match.found:
            snippet, start, end = self.extract_snippet(transcript, match.position)
            link = self.resolve_timestamp(
                transcript, match.position, start, end, video.video_url
            )
        else:
            title_lower = video.title.lower()
            if any(term in title_lower for term in terms):
                logger.info(f"Title match but no transcript match for: {video.title}")
            else:
                logger.info(f"No clear match found for {keyword!r} in: {video.title}")
            snippet = self._leading_snippet(transcript)
            link = fallback_link(video.video_url)

        return KeywordResultItem(
            video_id=video.video_id,
            relevance_score=score,
            video_title=video.title,
            timestamp_link_label=link.label,
            timestamp_url=link.url,
            snippet=snippet,
            published_date=video.publication_date,
            tags=list(video.tags),
            channel=self.channel_name,
            category=video.category,
            video_url=video.video_url,
        )

    @staticmethod
    def is_relevant(item: KeywordResultItem, terms: Sequence[str]) -> bool:
        """Whether the title or snippet visibly contains a query term."""
        title = item.video_title.lower()
        snippet = item.snippet.lower()
        return any(term in title or term in snippet for term in terms)

    def search(
        self,
        keyword: str,
        candidates: Sequence[tuple[VideoRecord, float]],
    ) -> list[KeywordResultItem]:
        """Build keyword results for full-text candidates.

        Args:
            keyword: The user's keyword or phrase.
            candidates: (video, relevance score) pairs, best first.

        Returns:
            Result items in candidate order, minus those with no visible
            trace of any query term.
        """
        terms = search_terms(keyword)
        results = []
        for video, score in candidates:
            item = self.build_result(video, score, keyword, terms)
            if self.is_relevant(item, terms):
                results.append(item)
            else:
                logger.info(f"Filtering out irrelevant result: {item.video_title}")
        return results
