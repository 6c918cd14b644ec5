"""
Unit tests for the LangChain profile retriever.
"""
