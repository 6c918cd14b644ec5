"""Hybrid semantic + BM25 profile search service."""

__version__ = "0.1.0"
