"""
BM25 lexical index over normalized profile texts.

Complements vector search with exact keyword matching (company names,
technologies, certifications). The index is an explicitly constructed
instance owned by the service container; add/update/remove mutate the
document collection and rebuild the index so searches always reflect the
latest document set.

Scoring uses rank_bm25's Okapi implementation with a Lucene-style IDF,
log(1 + (N - n + 0.5) / (n + 0.5)), which stays positive for terms that
appear in most documents of a small corpus.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from rank_bm25 import BM25Okapi

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

_DEFAULT_LIMIT = 20
_MIN_TOKEN_LENGTH = 3
_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_CAPITAL_RE = re.compile(r"[A-Z]")
_DIGIT_RE = re.compile(r"\d")

GENERIC_ROLE_WORDS: frozenset[str] = frozenset(
    {
        "developer",
        "engineer",
        "designer",
        "manager",
        "analyst",
        "architect",
        "specialist",
        "consultant",
        "lead",
        "senior",
        "experienced",
        "skilled",
        "expert",
        "professional",
    }
)


# =============================================================================
# Helpers
# =============================================================================


def tokenize(text: str) -> list[str]:
    """Lowercase, replace punctuation with spaces, drop tokens of 2 chars or less."""
    cleaned = _PUNCTUATION_RE.sub(" ", text.lower())
    return [token for token in cleaned.split() if len(token) >= _MIN_TOKEN_LENGTH]


def is_exact_term_query(query: str) -> bool:
    """Decide whether a query targets specific terms rather than concepts.

    Quoted phrases, single distinctive words, and short queries containing
    a capital letter or digit (company names, versions) are exact-term.
    """
    trimmed = query.strip()

    if len(trimmed) >= 2 and trimmed.startswith('"') and trimmed.endswith('"'):
        return True

    words = trimmed.lower().split()
    if len(words) == 1 and len(words[0]) > 3:
        return words[0] not in GENERIC_ROLE_WORDS

    if len(words) <= 3:
        return bool(_CAPITAL_RE.search(query) or _DIGIT_RE.search(query))

    return False


class _LuceneBM25(BM25Okapi):
    """BM25Okapi with a non-negative IDF."""

    def _calc_idf(self, nd: dict[str, int]) -> None:
        for word, freq in nd.items():
            self.idf[word] = math.log(1 + (self.corpus_size - freq + 0.5) / (freq + 0.5))


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class IndexStats:
    """Snapshot of lexical index state.

    Attributes:
        total_documents: Number of indexed documents
        avg_doc_length: Mean document length in characters (rounded)
        is_ready: True once an index has been built over at least one document
    """

    total_documents: int
    avg_doc_length: int
    is_ready: bool


# =============================================================================
# LexicalIndex
# =============================================================================


class LexicalIndex:
    """In-memory BM25 index keyed by user id.

    Example:
        >>> index = LexicalIndex()
        >>> index.build_index([("u1", "React frontend developer")])
        >>> index.search("react")
        [('u1', ...)]
    """

    def __init__(self, k1: float = 1.5, b: float = 0.75) -> None:
        self._k1 = k1
        self._b = b
        self._documents: dict[str, str] = {}
        # (user ids in corpus order, model) replaced as one value on rebuild
        self._scorer: tuple[list[str], _LuceneBM25] | None = None

    # -------------------------------------------------------------------------
    # Building
    # -------------------------------------------------------------------------

    def build_index(self, documents: Iterable[tuple[str, str]]) -> None:
        """Replace the indexed collection with ``documents``.

        Documents with blank text are skipped; a repeated user id keeps the
        last text seen.
        """
        self._documents = {}
        for user_id, text in documents:
            if text and text.strip():
                self._documents[user_id] = text
        self._rebuild()

    def initialize_from_records(self, records: Iterable[Any]) -> None:
        """Build the index from embedding records' ``source_text``."""
        self.build_index(
            (record.user_id, record.source_text)
            for record in records
            if getattr(record, "source_text", None)
        )

    def _rebuild(self) -> None:
        order = list(self._documents)
        corpus = [tokenize(self._documents[user_id]) for user_id in order]

        if not corpus or not any(corpus):
            self._scorer = None
            logger.info("Lexical index has no indexable documents")
            return

        self._scorer = (order, _LuceneBM25(corpus, k1=self._k1, b=self._b))
        logger.info("Built lexical index over %d documents", len(corpus))

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def add_document(self, user_id: str, text: str) -> None:
        """Add a document; an existing id is replaced."""
        self.update_document(user_id, text)

    def update_document(self, user_id: str, text: str) -> None:
        """Insert or replace the text for ``user_id``."""
        if text and text.strip():
            self._documents[user_id] = text
        else:
            self._documents.pop(user_id, None)
        self._rebuild()

    def remove_document(self, user_id: str) -> None:
        if self._documents.pop(user_id, None) is not None:
            self._rebuild()

    # -------------------------------------------------------------------------
    # Query
    # -------------------------------------------------------------------------

    def search(self, query: str, limit: int = _DEFAULT_LIMIT) -> list[tuple[str, float]]:
        """Rank indexed documents against ``query``.

        Args:
            query: Free-text query, tokenized like the documents
            limit: Maximum number of results

        Returns:
            (user_id, score) pairs with score > 0, best first
        """
        scorer = self._scorer
        if scorer is None:
            logger.warning("Lexical index not initialized or empty")
            return []

        tokens = tokenize(query)
        if not tokens:
            return []

        order, bm25 = scorer
        scores = bm25.get_scores(tokens)
        results = [
            (user_id, float(score))
            for user_id, score in zip(order, scores)
            if score > 0
        ]
        results.sort(key=lambda r: (-r[1], r[0]))

        logger.debug("Lexical search for %r found %d results", query, len(results))
        return results[:limit]

    is_exact_term_query = staticmethod(is_exact_term_query)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def stats(self) -> IndexStats:
        total = len(self._documents)
        avg = round(sum(len(t) for t in self._documents.values()) / total) if total else 0
        return IndexStats(
            total_documents=total,
            avg_doc_length=avg,
            is_ready=self._scorer is not None,
        )

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._documents
