"""
Retriever exceptions module.

Custom exceptions for retrievers that avoid shadowing Python builtins.
"""

from __future__ import annotations


class RetrieverError(Exception):
    """Base exception for all retriever errors."""

    pass


class RetrieverQueryError(RetrieverError):
    """Raised when the underlying profile search fails."""

    pass
