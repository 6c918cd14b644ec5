"""Custom exceptions for the indexing module."""

from __future__ import annotations

from profile_search.search.exceptions import ProfileSearchError


class ProfileNotIndexable(ProfileSearchError):
    """Raised when a profile normalizes to empty text."""

    error_type = "PROFILE_NOT_INDEXABLE"


class ProfileNotFound(ProfileSearchError):
    """Raised when deleting or reading an embedding that does not exist."""

    error_type = "PROFILE_NOT_FOUND"
