"""
Configuration module for profile-search-service.

Uses pydantic-settings for environment-based configuration with feature flags
for the LLM-assisted search stages and tunable fusion policy.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Feature flags control the optional LLM stages:
    - enable_query_enhancement: Expand queries with the completion model
    - enable_reranking: Re-score fused candidates with the completion model
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===========================================
    # SERVICE CONFIGURATION
    # ===========================================
    profile_search_port: int = Field(default=8082, description="Service port")

    # ===========================================
    # EMBEDDING SERVICE
    # ===========================================
    embed_api_base_url: str = Field(
        default="http://localhost:8000",
        description="OpenAI-compatible embeddings endpoint base URL",
    )
    embed_api_key: str | None = Field(default=None, description="Embeddings API key")
    embed_model: str = Field(
        default="titan-embed-text-v2",
        description="Embedding model name",
    )
    embedding_dimension: int = Field(
        default=1024,
        ge=1,
        description="Fixed length of every profile and query vector",
    )
    embedding_cache_size: int = Field(
        default=512,
        ge=0,
        description="Number of query embeddings kept in memory (0 disables)",
    )

    # ===========================================
    # COMPLETION (LLM) SERVICE
    # ===========================================
    chat_api_base_url: str = Field(
        default="http://localhost:8001",
        description="OpenAI-compatible chat completions endpoint base URL",
    )
    chat_api_key: str | None = Field(default=None, description="Chat API key")
    chat_model: str = Field(default="mistral-small", description="Completion model name")
    chat_temperature: float = Field(default=0.15, ge=0.0, le=2.0)
    chat_max_tokens: int = Field(default=1500, ge=1)

    # ===========================================
    # QDRANT CONFIGURATION
    # ===========================================
    embedding_store_backend: str = Field(
        default="memory",
        description="Embedding record store: 'memory' or 'qdrant'",
    )
    qdrant_url: str = Field(
        default="http://localhost:6333",
        description="Qdrant REST API URL",
    )
    qdrant_api_key: str | None = Field(default=None, description="Qdrant API key")
    qdrant_collection: str = Field(
        default="profile_embeddings",
        description="Collection holding profile embedding records",
    )

    # ===========================================
    # RANKING POLICY
    # ===========================================
    exact_vector_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    exact_lexical_weight: float = Field(default=0.7, ge=0.0, le=1.0)
    semantic_vector_weight: float = Field(default=0.7, ge=0.0, le=1.0)
    semantic_lexical_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    default_limit: int = Field(default=20, ge=1)
    default_min_similarity: float = Field(default=0.3, ge=0.0, le=1.0)
    rerank_confidence_threshold: int = Field(default=40, ge=0, le=100)

    # ===========================================
    # TIMEOUTS (seconds)
    # ===========================================
    embedding_timeout_s: float = Field(default=30.0, gt=0)
    completion_timeout_s: float = Field(default=60.0, gt=0)
    store_timeout_s: float = Field(default=10.0, gt=0)

    # ===========================================
    # FEATURE FLAGS
    # ===========================================
    enable_query_enhancement: bool = Field(
        default=True,
        description="Expand queries with the completion model before retrieval",
    )
    enable_reranking: bool = Field(
        default=True,
        description="Re-rank fused candidates with the completion model",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
