"""
API module for profile-search-service.

Provides FastAPI routes for hybrid, intelligent and advanced profile search,
query enhancement, re-ranking, indexing and health.
"""

from profile_search.api.app import create_app
from profile_search.api.dependencies import ServiceConfig, ServiceContainer, build_container

__all__ = ["create_app", "ServiceConfig", "ServiceContainer", "build_container"]
