"""
Unit tests for profile text normalization.

Covers flattening of nested values, the field blocklist, character cleanup,
content versioning and text quality validation.
"""

from __future__ import annotations

import json

from profile_search.search.normalizer import (
    SKIPPED_FIELDS,
    normalize,
    profile_version,
    validate_profile_text,
)

# =============================================================================
# Test: normalize
# =============================================================================


class TestNormalize:
    """Tests for normalize()."""

    def test_empty_profile_returns_empty_string(self) -> None:
        assert normalize({}) == ""
        assert normalize(None) == ""

    def test_scalar_fields_are_joined(self) -> None:
        text = normalize({"jobRole": "Frontend Developer", "yearsOfExperience": 5})
        assert text == "Frontend Developer 5"

    def test_lists_and_nested_mappings_are_flattened(self) -> None:
        text = normalize(
            {
                "skills": ["React", "TypeScript"],
                "education": {"school": "MIT", "degree": {"field": "Physics"}},
            }
        )
        assert text == "React TypeScript MIT Physics"

    def test_skipped_fields_are_excluded(self) -> None:
        text = normalize(
            {
                "userId": "u-123",
                "createdAt": "2024-01-01",
                "profilePictureUrl": "http://img",
                "jobRole": "Engineer",
            }
        )
        assert text == "Engineer"

    def test_blocklist_contains_bookkeeping_fields(self) -> None:
        assert {"userId", "id", "__typename", "autoFilledFields"} <= SKIPPED_FIELDS

    def test_json_encoded_strings_are_decoded(self) -> None:
        text = normalize({"skills": json.dumps(["Go", "Rust"])})
        assert text == "Go Rust"

    def test_invalid_json_string_kept_verbatim(self) -> None:
        text = normalize({"bio": "[not json"})
        assert text == "not json"

    def test_booleans_rendered_as_words(self) -> None:
        assert normalize({"openToWork": True, "remote": False}) == "true false"

    def test_none_and_empty_values_are_dropped(self) -> None:
        assert normalize({"jobRole": None, "company": "", "skills": []}) == ""

    def test_punctuation_removed_and_whitespace_collapsed(self) -> None:
        text = normalize({"bio": "Loves   {React}, \"GraphQL\"\n& Node.js!"})
        assert text == "Loves React GraphQL Node.js"

    def test_hyphens_and_dots_are_kept(self) -> None:
        assert normalize({"skill": "front-end v2.1"}) == "front-end v2.1"

    def test_normalize_is_deterministic(self) -> None:
        profile = {"b": ["x", "y"], "a": {"c": 1}}
        assert normalize(profile) == normalize(dict(profile))


# =============================================================================
# Test: profile_version
# =============================================================================


class TestProfileVersion:
    """Tests for profile_version()."""

    def test_version_format(self) -> None:
        version = profile_version({"jobRole": "Engineer"})
        assert version.startswith("v")
        assert len(version) == 17

    def test_key_order_does_not_change_version(self) -> None:
        assert profile_version({"a": 1, "b": 2}) == profile_version({"b": 2, "a": 1})

    def test_content_change_changes_version(self) -> None:
        assert profile_version({"a": 1}) != profile_version({"a": 2})


# =============================================================================
# Test: validate_profile_text
# =============================================================================


class TestValidateProfileText:
    """Tests for validate_profile_text()."""

    def test_short_text_is_invalid(self) -> None:
        result = validate_profile_text("React developer")
        assert result.is_valid is False
        assert result.word_count == 2
        assert any("very short" in w for w in result.warnings)

    def test_rich_text_is_valid_without_warnings(self) -> None:
        text = (
            "Senior frontend developer at Acme building design systems with React "
            "TypeScript GraphQL and accessibility tooling for large teams"
        )
        result = validate_profile_text(text)
        assert result.is_valid is True
        assert result.warnings == []
        assert result.char_count == len(text)

    def test_long_text_warns_but_stays_valid(self) -> None:
        text = " ".join(f"word{i}" for i in range(2000))
        result = validate_profile_text(text)
        assert result.is_valid is True
        assert any("very long" in w for w in result.warnings)

    def test_low_diversity_warns_but_stays_valid(self) -> None:
        text = " ".join(["engineering"] * 12)
        result = validate_profile_text(text)
        assert result.is_valid is True
        assert "Profile text has low vocabulary diversity" in result.warnings
