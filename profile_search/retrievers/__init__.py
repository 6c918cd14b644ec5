"""
LangChain-compatible retrievers for profile-search-service.

- profile_retriever: BaseRetriever over ProfileSearchService
- exceptions: Custom exceptions for retriever errors
"""

from profile_search.retrievers.exceptions import RetrieverError, RetrieverQueryError
from profile_search.retrievers.profile_retriever import ProfileRetriever

__all__ = [
    "ProfileRetriever",
    "RetrieverError",
    "RetrieverQueryError",
]
