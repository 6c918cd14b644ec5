"""
Profile text normalization.

Turns an arbitrary profile mapping into a single flat search string used
both for embedding generation and for the BM25 lexical index.

The normalizer is structural recursion over a generic value tree
(str | number | bool | list | mapping); it knows no profile schema, so new
profile fields are indexed without code changes. Bookkeeping and
presentation-only fields are excluded through a blocklist.
"""

from __future__ import annotations

import hashlib
import json
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

# =============================================================================
# Constants
# =============================================================================

SKIPPED_FIELDS: frozenset[str] = frozenset(
    {
        "userId",
        "user_id",
        "id",
        "createdAt",
        "updatedAt",
        "created_at",
        "updated_at",
        "__typename",
        "profilePictureUrl",
        "profilePictureThumbnailUrl",
        "hasProfilePicture",
        "isOnboardingComplete",
        "onboardingCompletedAt",
        "autoFilledFields",
    }
)

_WHITESPACE_RE = re.compile(r"\s+")
_JSON_PUNCTUATION_RE = re.compile(r'[{}",\[\]]')
_DISALLOWED_CHARS_RE = re.compile(r"[^\w\s.-]")

_MIN_CHARS = 50
_MIN_WORDS = 10
_MAX_CHARS = 8000
_MIN_UNIQUE_WORDS = 5


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class ProfileTextValidation:
    """Quality report for a normalized profile text.

    Attributes:
        is_valid: False when the text is too short to be useful for search
        warnings: Human-readable quality warnings
        word_count: Number of whitespace-separated words
        char_count: Number of characters
    """

    is_valid: bool
    warnings: list[str] = field(default_factory=list)
    word_count: int = 0
    char_count: int = 0


# =============================================================================
# Value flattening
# =============================================================================


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _decode_json_container(value: str) -> Any:
    """Return the decoded object/array if ``value`` is JSON text, else None."""
    stripped = value.strip()
    if not stripped or stripped[0] not in "{[":
        return None
    try:
        decoded = json.loads(stripped)
    except ValueError:
        return None
    return decoded if isinstance(decoded, (dict, list)) else None


def _flatten(value: Any) -> list[str]:
    """Flatten one value of the profile tree into text fragments."""
    if _is_empty(value):
        return []

    if isinstance(value, str):
        decoded = _decode_json_container(value)
        if decoded is None:
            return [value]
        return _flatten(decoded)

    if isinstance(value, Mapping):
        fragments: list[str] = []
        for nested in value.values():
            fragments.extend(_flatten(nested))
        return fragments

    if isinstance(value, Sequence):
        fragments = []
        for item in value:
            fragments.extend(_flatten(item))
        return fragments

    return [_scalar_text(value)]


def _clean(text: str) -> str:
    text = _WHITESPACE_RE.sub(" ", text)
    text = _JSON_PUNCTUATION_RE.sub(" ", text)
    text = _DISALLOWED_CHARS_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


# =============================================================================
# Public API
# =============================================================================


def normalize(profile: Mapping[str, Any] | None) -> str:
    """Convert a profile mapping into a flat, cleaned search string.

    Args:
        profile: Arbitrary profile record

    Returns:
        Normalized text, or "" when nothing indexable remains
    """
    if not profile:
        return ""

    fragments: list[str] = []
    for key, value in profile.items():
        if key in SKIPPED_FIELDS:
            continue
        fragments.extend(_flatten(value))

    return _clean(" ".join(fragments))


def profile_version(profile: Mapping[str, Any] | None) -> str:
    """Deterministic content tag for a profile.

    Two profiles with equal content (regardless of key order) share a version.
    """
    canonical = json.dumps(profile or {}, sort_keys=True, default=str, ensure_ascii=False)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"v{digest[:16]}"


def validate_profile_text(text: str) -> ProfileTextValidation:
    """Check whether normalized text carries enough signal to be indexed."""
    words = text.split()
    word_count = len(words)
    char_count = len(text)
    warnings: list[str] = []

    if char_count < _MIN_CHARS:
        warnings.append(f"Profile text is very short ({char_count} characters)")
    if word_count < _MIN_WORDS:
        warnings.append(f"Profile text has very few words ({word_count} words)")
    if char_count > _MAX_CHARS:
        warnings.append(f"Profile text is very long ({char_count} characters), may be truncated")
    if len({w.lower() for w in words}) < _MIN_UNIQUE_WORDS:
        warnings.append("Profile text has low vocabulary diversity")

    is_valid = not any("very short" in w or "very few" in w for w in warnings)
    return ProfileTextValidation(
        is_valid=is_valid,
        warnings=warnings,
        word_count=word_count,
        char_count=char_count,
    )
