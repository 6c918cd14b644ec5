"""
Custom exceptions for the storage module.

Names avoid shadowing builtins (ConnectionError).
"""

from __future__ import annotations

from profile_search.search.exceptions import ProfileSearchError


class StoreError(ProfileSearchError):
    """Base exception for profile and embedding store errors."""

    error_type = "STORE_ERROR"


class StoreConnectionError(StoreError):
    """Raised when the backing store cannot be reached."""

    error_type = "STORE_CONNECTION_ERROR"


class StoreOperationError(StoreError):
    """Raised when a read or write against the store fails."""

    error_type = "STORE_OPERATION_ERROR"
