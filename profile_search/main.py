"""
Main entry point for profile-search-service.

Creates the FastAPI application instance for uvicorn:

    uvicorn profile_search.main:app --port 8082
"""

import os

from profile_search.api.app import create_app
from profile_search.core.logging import setup_structured_logging

setup_structured_logging(log_file_path=os.environ.get("PROFILE_SEARCH_LOG_FILE"))

app = create_app()


def run() -> None:
    """Console entry point."""
    import uvicorn

    from profile_search.core.config import get_settings

    uvicorn.run(app, host="0.0.0.0", port=get_settings().profile_search_port)  # noqa: S104
