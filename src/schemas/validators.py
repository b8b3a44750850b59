"""
Shared validation functions for Pydantic schemas.

Used by the bookmark schemas and by the importer, which normalizes candidate
records the same way before creating bookmarks.
"""
import re

from services.classifier import CATEGORIES, MAX_TAGS

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 500
MAX_TAG_LENGTH = 50

WHITESPACE_PATTERN = re.compile(r"\s+")


def validate_and_normalize_tag(tag: str) -> str:
    """
    Normalize and validate a single tag.

    Tags are trimmed, lowercased, and inner whitespace is collapsed to a hyphen
    ('Web Development' -> 'web-development'). Non-Latin tags are kept as-is.

    Raises:
        ValueError: If the tag is empty or too long.
    """
    normalized = WHITESPACE_PATTERN.sub("-", tag.strip().lower())
    if not normalized:
        raise ValueError("Tag name cannot be empty")
    if len(normalized) > MAX_TAG_LENGTH:
        raise ValueError(
            f"Tag exceeds maximum length of {MAX_TAG_LENGTH} characters: '{normalized}'",
        )
    return normalized


def validate_and_normalize_tags(tags: list[str]) -> list[str]:
    """
    Normalize and validate a list of tags.

    Returns:
        Normalized tags with empty strings filtered out, duplicates removed
        (preserving first occurrence order), and the list truncated to five.

    Raises:
        ValueError: If any tag is too long.
    """
    normalized: list[str] = []
    seen: set[str] = set()
    for tag in tags:
        if not tag or not tag.strip():
            continue  # Skip empty tags silently
        validated = validate_and_normalize_tag(tag)
        if validated not in seen:
            seen.add(validated)
            normalized.append(validated)
    return normalized[:MAX_TAGS]


def validate_category(category: str | None) -> str | None:
    """
    Validate a category against the taxonomy (case-insensitive).

    Returns:
        The taxonomy spelling of the category, or None if not provided.

    Raises:
        ValueError: If the category is not part of the taxonomy.
    """
    if category is None or not category.strip():
        return None
    lookup = {value.casefold(): value for value in CATEGORIES}
    canonical = lookup.get(category.strip().casefold())
    if canonical is None:
        raise ValueError(
            f"Invalid category: '{category}'. Must be one of: {', '.join(CATEGORIES)}.",
        )
    return canonical


def validate_title_length(title: str | None) -> str | None:
    """Validate that title doesn't exceed maximum length."""
    if title is not None and len(title) > TITLE_MAX_LENGTH:
        raise ValueError(
            f"Title exceeds maximum length of {TITLE_MAX_LENGTH:,} characters "
            f"(got {len(title):,} characters).",
        )
    return title


def validate_description_length(description: str | None) -> str | None:
    """Validate that description doesn't exceed maximum length."""
    if description is not None and len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValueError(
            f"Description exceeds maximum length of {DESCRIPTION_MAX_LENGTH:,} characters "
            f"(got {len(description):,} characters).",
        )
    return description
