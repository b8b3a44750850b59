"""Bookmark CRUD, export and import endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile
from openai import AsyncOpenAI
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    get_async_session,
    get_classifier_client,
    get_current_user,
    get_settings,
)
from core.config import Settings
from models.user import User
from schemas.bookmark import BookmarkCreate, BookmarkResponse, BookmarkUpdate, DeleteResponse
from schemas.transfer import ExportFormat, ExportSelection, ImportFormat, ImportResponse
from services import bookmark_export, bookmark_import, bookmark_service
from services.classifier import Classification, classify_bookmark
from services.exceptions import ImportFormatError
from services.url_scraper import MetadataResult, fetch_metadata

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])

IMPORT_EXTENSIONS = {".json": "json", ".csv": "csv", ".html": "html", ".htm": "html"}


def _download(export: bookmark_export.ExportFile) -> Response:
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


def _infer_import_format(filename: str | None) -> str | None:
    name = (filename or "").lower()
    for extension, fmt in IMPORT_EXTENSIONS.items():
        if name.endswith(extension):
            return fmt
    return None


@router.get("/export")
async def export_bookmarks(
    format: ExportFormat = Query(default="json", description="Export file format"),  # noqa: A002
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> Response:
    """Download all of the current user's bookmarks."""
    bookmarks = await bookmark_service.list_bookmarks(db, current_user.id)
    return _download(bookmark_export.export_bookmarks(bookmarks, format))


@router.post("/export")
async def export_selected_bookmarks(
    selection: ExportSelection,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> Response:
    """
    Download a selection of the current user's bookmarks.

    Without ``bookmark_ids`` every bookmark is exported. Ids belonging to other
    users are ignored; an explicitly empty selection is rejected.
    """
    if selection.bookmark_ids is not None and not selection.bookmark_ids:
        raise HTTPException(status_code=400, detail="No bookmarks selected")
    bookmarks = await bookmark_service.list_bookmarks(
        db, current_user.id, bookmark_ids=selection.bookmark_ids,
    )
    return _download(bookmark_export.export_bookmarks(bookmarks, selection.format))


@router.post("/import", response_model=ImportResponse)
async def import_bookmarks(
    file: UploadFile | None = File(default=None),
    format: ImportFormat | None = Form(default=None),  # noqa: A002
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
    llm_client: AsyncOpenAI | None = Depends(get_classifier_client),
) -> ImportResponse:
    """
    Import bookmarks from a JSON, CSV or browser bookmark HTML file.

    When ``format`` is omitted it is inferred from the file extension. URLs the
    user already saved are counted as duplicates and left untouched.
    """
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")

    fmt = format or _infer_import_format(file.filename)
    if fmt is None:
        raise HTTPException(status_code=400, detail="Could not determine import format")

    raw = await file.read(settings.max_import_bytes + 1)
    if len(raw) > settings.max_import_bytes:
        raise HTTPException(status_code=413, detail="Import file is too large")
    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Import file must be UTF-8 encoded")

    try:
        candidates = bookmark_import.parse_import(content, fmt)
    except ImportFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))

    async def classify(url: str, title: str | None, description: str | None) -> Classification:
        return await classify_bookmark(llm_client, url, title, description, settings.openai_model)

    async def fetch(url: str) -> MetadataResult:
        return await fetch_metadata(url, settings)

    result = await bookmark_import.import_bookmarks(
        db, current_user.id, candidates, classify, fetch,
    )
    return ImportResponse(
        success=result.success,
        failed=result.failed,
        duplicates=result.duplicates,
        errors=result.errors,
    )


@router.get("", response_model=list[BookmarkResponse])
async def list_bookmarks(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> list[BookmarkResponse]:
    """List the current user's bookmarks, newest first."""
    bookmarks = await bookmark_service.list_bookmarks(db, current_user.id)
    return [BookmarkResponse.model_validate(b) for b in bookmarks]


@router.post("", response_model=BookmarkResponse, status_code=201)
async def create_bookmark(
    data: BookmarkCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Create a new bookmark."""
    bookmark = await bookmark_service.create_bookmark(db, current_user.id, data)
    return BookmarkResponse.model_validate(bookmark)


@router.patch("", response_model=BookmarkResponse)
async def update_bookmark(
    data: BookmarkUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Update the title, description, thumbnail, category or tags of a bookmark."""
    bookmark = await bookmark_service.update_bookmark(db, current_user.id, data.id, data)
    if bookmark is None:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return BookmarkResponse.model_validate(bookmark)


@router.delete("", response_model=DeleteResponse)
async def delete_bookmark(
    bookmark_id: UUID = Query(alias="id"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> DeleteResponse:
    """Delete a bookmark."""
    deleted = await bookmark_service.delete_bookmark(db, current_user.id, bookmark_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return DeleteResponse()
