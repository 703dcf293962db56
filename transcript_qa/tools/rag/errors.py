"""Typed failures raised by the retrieval and grounding pipeline.

Every error carries an HTTP-equivalent ``status`` and a ``retryable`` flag so
the MCP boundary can turn it into a response without inspecting messages.
"""

from __future__ import annotations

from typing import Any


class RAGError(Exception):
    """Base class for pipeline failures."""

    status: int = 500
    retryable: bool = False
    code: str = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Convert to an error payload for tool responses."""
        return {
            "error": self.code,
            "message": self.message,
            "status": self.status,
            "retryable": self.retryable,
        }


class ValidationError(RAGError):
    """Caller input is missing or malformed."""

    status = 400
    code = "validation_error"

    def __init__(self, message: str, missing_fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing_fields = missing_fields or []

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        if self.missing_fields:
            payload["missing_fields"] = self.missing_fields
        return payload


class UpstreamUnavailable(RAGError):
    """An embedding or LLM provider is unconfigured or unreachable."""

    status = 503
    retryable = True
    code = "upstream_unavailable"


class UpstreamTimeout(UpstreamUnavailable):
    """An upstream stage did not answer within its timeout."""

    code = "upstream_timeout"

    def __init__(self, stage: str, timeout: float) -> None:
        super().__init__(f"{stage} timed out after {timeout:g}s")
        self.stage = stage
        self.timeout = timeout


class NoContextFound(RAGError):
    """Retrieval returned no transcript segments for the question."""

    status = 404
    code = "no_context_found"


class NoVideosMatched(RAGError):
    """The full-text index matched no videos for the keyword."""

    status = 404
    code = "no_videos_matched"


class MalformedUpstreamResponse(RAGError):
    """The LLM answered with something that is not the expected JSON shape."""

    status = 502
    code = "malformed_upstream_response"


class AIFailure(RAGError):
    """Opaque failure reported to callers when answer generation fails.

    The underlying cause is chained and logged; it is never part of the
    message.
    """

    status = 500
    code = "ai_failure"

    def __init__(
        self,
        message: str = "Failed to get a response from the AI model.",
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.retryable = retryable


class PersistenceError(RAGError):
    """A record could not be written to one of the stores."""

    status = 500
    code = "persistence_error"
