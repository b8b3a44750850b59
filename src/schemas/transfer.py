"""Pydantic schemas for bookmark import and export."""
from typing import Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

ExportFormat = Literal["json", "csv", "html", "markdown"]
ImportFormat = Literal["json", "csv", "html"]


class ExportSelection(BaseModel):
    """Request body for exporting a selection of bookmarks."""

    format: ExportFormat = "json"
    bookmark_ids: list[UUID] | None = Field(
        default=None,
        validation_alias=AliasChoices("bookmark_ids", "bookmarkIds"),
    )


class ImportResponse(BaseModel):
    """Outcome of an import."""

    success: int
    failed: int
    duplicates: int
    errors: list[str]
