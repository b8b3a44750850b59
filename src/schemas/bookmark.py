"""Pydantic schemas for bookmark endpoints."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

from schemas.validators import (
    validate_and_normalize_tags,
    validate_category,
    validate_description_length,
    validate_title_length,
)


class BookmarkCreate(BaseModel):
    """Schema for creating a new bookmark."""

    # HttpUrl normalizes root domains with trailing slash (example.com -> example.com/)
    # but preserves paths as-is (example.com/page stays example.com/page)
    url: HttpUrl
    title: str | None = None
    description: str | None = None
    thumbnail: str | None = None
    category: str | None = None
    tags: list[str] = []
    platform: str | None = Field(default=None, max_length=100)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: list[str] | None) -> list[str]:
        """Normalize tags and truncate to five."""
        if v is None:
            return []
        return validate_and_normalize_tags(v)

    @field_validator("category")
    @classmethod
    def check_category(cls, v: str | None) -> str | None:
        """Validate category against the taxonomy."""
        return validate_category(v)

    @field_validator("title")
    @classmethod
    def check_title_length(cls, v: str | None) -> str | None:
        """Validate title length."""
        return validate_title_length(v)

    @field_validator("description")
    @classmethod
    def check_description_length(cls, v: str | None) -> str | None:
        """Validate description length."""
        return validate_description_length(v)


class BookmarkUpdate(BaseModel):
    """
    Schema for updating an existing bookmark.

    ``url`` and ``platform`` identify what was bookmarked and cannot be changed.
    Only fields present in the request body are updated.
    """

    id: UUID
    title: str | None = None
    description: str | None = None
    thumbnail: str | None = None
    category: str | None = None
    tags: list[str] | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: list[str] | None) -> list[str] | None:
        """Normalize tags if provided."""
        if v is None:
            return None
        return validate_and_normalize_tags(v)

    @field_validator("category")
    @classmethod
    def check_category(cls, v: str | None) -> str | None:
        """Validate category against the taxonomy."""
        return validate_category(v)

    @field_validator("title")
    @classmethod
    def check_title_length(cls, v: str | None) -> str | None:
        """Validate title length."""
        return validate_title_length(v)

    @field_validator("description")
    @classmethod
    def check_description_length(cls, v: str | None) -> str | None:
        """Validate description length."""
        return validate_description_length(v)


class BookmarkResponse(BaseModel):
    """Schema for bookmark responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    url: str
    title: str | None
    description: str | None
    thumbnail: str | None
    category: str | None
    tags: list[str]
    platform: str | None
    created_at: datetime
    updated_at: datetime


class DeleteResponse(BaseModel):
    """Schema for a successful delete."""

    success: bool = True
