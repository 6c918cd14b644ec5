"""
Custom exceptions for the search module.

Exception names avoid shadowing Python builtins (ConnectionError,
TimeoutError) and map one-to-one onto the search error taxonomy:

- InvalidQuery: query too short, rejected before any external call
- EmbeddingGenerationFailed: embedding model unreachable or malformed output
- CompletionFailed: completion model unreachable or malformed output
- LexicalIndexUnready: BM25 index absent (treated as empty result)
- ProfileFetchFailed: a single profile could not be loaded (non-fatal)
- VectorDimensionMismatch: stored vector has the wrong length (skipped)
- JSONParseError: no JSON payload could be recovered from model output
- ServiceUnavailable: a mandatory search stage failed
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


class ProfileSearchError(Exception):
    """Base exception for all profile search errors."""

    error_type = "SEARCH_ERROR"

    def __init__(
        self,
        message: str,
        query: str | None = None,
        user_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with message and optional context.

        Args:
            message: Human-readable error description
            query: The search query being processed, if any
            user_id: The profile the error relates to, if any
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.query = query
        self.user_id = user_id
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API error bodies and structured logs."""
        return {
            "type": self.error_type,
            "message": self.message,
            "query": self.query,
            "user_id": self.user_id,
            "timestamp": self.timestamp,
        }


class InvalidQuery(ProfileSearchError):
    """Raised when a query is shorter than the minimum length after trimming."""

    error_type = "INVALID_QUERY"


class EmbeddingGenerationFailed(ProfileSearchError):
    """Raised when the embedding generator cannot produce a valid vector."""

    error_type = "EMBEDDING_GENERATION_FAILED"


class CompletionFailed(ProfileSearchError):
    """Raised when the completion model is unreachable or returns nothing usable."""

    error_type = "COMPLETION_FAILED"


class LexicalIndexUnready(ProfileSearchError):
    """Raised when the BM25 index has not been built."""

    error_type = "LEXICAL_INDEX_UNREADY"


class ProfileFetchFailed(ProfileSearchError):
    """Raised when a single profile record cannot be loaded."""

    error_type = "PROFILE_FETCH_FAILED"


class VectorDimensionMismatch(ProfileSearchError):
    """Raised when two vectors being compared differ in length."""

    error_type = "VECTOR_DIMENSION_MISMATCH"

    def __init__(
        self,
        expected: int,
        actual: int,
        user_id: str | None = None,
    ) -> None:
        super().__init__(
            f"Vector dimension mismatch: expected {expected}, got {actual}",
            user_id=user_id,
        )
        self.expected = expected
        self.actual = actual


class JSONParseError(ProfileSearchError):
    """Raised (or returned) when model output contains no parsable JSON."""

    error_type = "JSON_PARSE_ERROR"


class ServiceUnavailable(ProfileSearchError):
    """Raised when a mandatory search stage fails."""

    error_type = "SERVICE_UNAVAILABLE"
