"""Timestamp extraction and deep links into YouTube videos.

Transcripts carry inline ``HH:MM:SS`` markers. These helpers find them,
convert them to seconds and build ``watch?v=<id>&t=<seconds>s`` URLs.
"""

from __future__ import annotations

import re

from transcript_qa.tools.rag.models import TimestampLink

TIMESTAMP_PATTERN = re.compile(r"\d{2}:\d{2}:\d{2}")

FALLBACK_LABEL = "Watch video"

_VIDEO_ID_PATTERNS = (
    re.compile(r"youtu\.be/([^?&\n#]+)"),
    re.compile(r"youtube\.com/watch\?v=([^&\n?#]+)"),
    re.compile(r"youtube\.com/embed/([^&\n?#]+)"),
    re.compile(r"youtube\.com/v/([^&\n?#]+)"),
)


def extract_timestamp(text: str) -> str | None:
    """Return the leftmost ``HH:MM:SS`` token in text, if any."""
    match = TIMESTAMP_PATTERN.search(text or "")
    return match.group(0) if match else None


def find_timestamps(text: str) -> list[re.Match[str]]:
    """All timestamp matches in text, left to right."""
    return list(TIMESTAMP_PATTERN.finditer(text or ""))


def to_seconds(timestamp: str | None) -> int:
    """Convert ``HH:MM:SS`` or ``MM:SS`` to seconds.

    Anything else, including non-numeric parts, yields 0.

    Example:
        >>> to_seconds("01:02:03"), to_seconds("02:03"), to_seconds("bad")
        (3723, 123, 0)
    """
    if not timestamp:
        return 0
    parts = timestamp.strip().split(":")
    if len(parts) not in (2, 3) or not all(part.isdigit() for part in parts):
        return 0

    numbers = [int(part) for part in parts]
    if len(numbers) == 3:
        hours, minutes, seconds = numbers
        return hours * 3600 + minutes * 60 + seconds
    minutes, seconds = numbers
    return minutes * 60 + seconds


def extract_video_id(video_url: str | None) -> str | None:
    """Extract the video id from a YouTube URL.

    Supports ``youtu.be/<id>``, ``watch?v=<id>``, ``embed/<id>`` and
    ``v/<id>``. The first matching pattern wins.
    """
    if not video_url:
        return None
    for pattern in _VIDEO_ID_PATTERNS:
        match = pattern.search(video_url)
        if match:
            return match.group(1)
    return None


def deep_link(video_url: str, timestamp: str | None) -> str:
    """Build a URL that starts playback at the timestamp.

    Unrecognized URLs and zero offsets return ``video_url`` unchanged.
    """
    video_id = extract_video_id(video_url)
    seconds = to_seconds(timestamp)
    if not video_id or seconds == 0:
        return video_url
    return f"https://www.youtube.com/watch?v={video_id}&t={seconds}s"


def fallback_link(video_url: str | None) -> TimestampLink:
    return TimestampLink(label=FALLBACK_LABEL, url=video_url or "#")


def link_for_timestamp(timestamp: str | None, video_url: str | None) -> TimestampLink:
    """Label and URL for a known timestamp, or the fallback link."""
    if not timestamp or not video_url:
        return fallback_link(video_url)
    return TimestampLink(label=timestamp, url=deep_link(video_url, timestamp))


def timestamp_link(text: str, video_url: str | None) -> TimestampLink:
    """Link to the first timestamp mentioned in text.

    Example:
        >>> timestamp_link("at 00:01:30 we see", "https://youtu.be/abc123")
        TimestampLink(label='00:01:30', url='https://www.youtube.com/watch?v=abc123&t=90s')
    """
    return link_for_timestamp(extract_timestamp(text), video_url)
