"""Pydantic schemas for metadata preview and classification endpoints."""
from pydantic import BaseModel


class MetadataRequest(BaseModel):
    """
    Request body for fetching URL metadata.

    ``url`` is validated by the service rather than by pydantic so that a missing
    or malformed URL is reported as a 400 with a specific message.
    """

    url: str | None = None


class MetadataResponse(BaseModel):
    """Best-effort metadata for a URL."""

    title: str
    description: str
    thumbnail: str
    platform: str
    needs_manual_edit: bool = False


class AnalyzeRequest(BaseModel):
    """Request body for classifying a bookmark."""

    url: str | None = None
    title: str | None = None
    description: str | None = None


class AnalyzeResponse(BaseModel):
    """Category and tags suggested for a bookmark."""

    category: str
    tags: list[str]
