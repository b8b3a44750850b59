"""
Bookmark import from JSON, CSV and browser bookmark HTML files.

Parsing turns a file into ImportCandidate records; ``import_bookmarks`` then
creates them one at a time, skipping URLs the user already saved, filling in
missing metadata and classification along the way.
"""
import csv
import io
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from uuid import UUID

from bs4 import BeautifulSoup
from pydantic import HttpUrl, TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from schemas.bookmark import BookmarkCreate
from schemas.validators import (
    DESCRIPTION_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    validate_and_normalize_tag,
    validate_and_normalize_tags,
    validate_category,
)
from services import bookmark_service
from services.classifier import OTHER, Classification
from services.exceptions import ImportFormatError, UnsupportedImportFormatError
from services.platforms import platform_from_url
from services.url_scraper import MetadataResult, clean_text

logger = logging.getLogger(__name__)

Classifier = Callable[[str, str | None, str | None], Awaitable[Classification]]
MetadataFetcher = Callable[[str], Awaitable[MetadataResult]]

_url_adapter = TypeAdapter(HttpUrl)

# CSV header -> ImportCandidate field. Unlisted headers (ID, Created At) are ignored.
CSV_FIELDS = {
    "title": "title",
    "url": "url",
    "description": "description",
    "category": "category",
    "tags": "tags",
    "platform": "platform",
    "thumbnail": "thumbnail",
}


@dataclass
class ImportCandidate:
    """A bookmark parsed from an import file, before validation."""

    url: str
    title: str | None = None
    description: str | None = None
    category: str | None = None
    tags: list[str] = field(default_factory=list)
    platform: str | None = None
    thumbnail: str | None = None


@dataclass
class ImportResult:
    """Counts and per-item error messages for an import."""

    success: int = 0
    failed: int = 0
    duplicates: int = 0
    errors: list[str] = field(default_factory=list)


def _split_tags(value: object) -> list[str]:
    if isinstance(value, list):
        return [str(tag).strip() for tag in value if str(tag).strip()]
    if isinstance(value, str):
        separator = ";" if ";" in value else ","
        return [tag.strip() for tag in value.split(separator) if tag.strip()]
    return []


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_json(content: str) -> list[ImportCandidate]:
    """
    Parse a JSON export: a list of bookmark objects, or an object with a ``bookmarks`` list.

    Raises:
        ImportFormatError: If the content is not valid JSON of that shape.
    """
    try:
        data = json.loads(content)
    except ValueError as e:
        raise ImportFormatError("json", str(e)) from e
    if isinstance(data, dict):
        data = data.get("bookmarks")
    if not isinstance(data, list):
        raise ImportFormatError("json", "expected a list of bookmarks")

    candidates = []
    for item in data:
        if not isinstance(item, dict):
            continue
        url = _optional_str(item.get("url"))
        if not url:
            continue
        candidates.append(ImportCandidate(
            url=url,
            title=_optional_str(item.get("title")),
            description=_optional_str(item.get("description")),
            category=_optional_str(item.get("category")),
            tags=_split_tags(item.get("tags")),
            platform=_optional_str(item.get("platform")),
            thumbnail=_optional_str(item.get("thumbnail")),
        ))
    return candidates


def parse_csv(content: str) -> list[ImportCandidate]:
    """
    Parse CSV with a header row.

    Quoted fields may contain commas, newlines and doubled quotes. Headers are
    matched case-insensitively; rows without a URL are skipped.

    Raises:
        ImportFormatError: If the CSV is malformed.
    """
    reader = csv.reader(io.StringIO(content.lstrip("\ufeff"), newline=""))
    try:
        rows = list(reader)
    except csv.Error as e:
        raise ImportFormatError("csv", str(e)) from e
    if len(rows) < 2:  # noqa: PLR2004
        return []

    headers = [CSV_FIELDS.get(header.strip().lower()) for header in rows[0]]
    if "url" not in headers:
        raise ImportFormatError("csv", "missing URL column")

    candidates = []
    for row in rows[1:]:
        values: dict[str, str] = {}
        for header, value in zip(headers, row, strict=False):
            if header is not None:
                values[header] = value.strip()
        url = values.get("url")
        if not url:
            continue
        candidates.append(ImportCandidate(
            url=url,
            title=values.get("title") or None,
            description=values.get("description") or None,
            category=values.get("category") or None,
            tags=_split_tags(values.get("tags", "")),
            platform=values.get("platform") or None,
            thumbnail=values.get("thumbnail") or None,
        ))
    return candidates


def parse_html(content: str) -> list[ImportCandidate]:
    """
    Parse a Netscape bookmark file as exported by browsers.

    Folder headings (``<H3>``) and links (``<A>``) are walked in document order;
    each link takes the most recent heading as its category. A ``<DD>`` directly
    after a link is its description and the ``ICON`` attribute its thumbnail.
    Non-web links (bookmarklets, browser-internal places) are skipped.
    """
    soup = BeautifulSoup(content, "lxml")
    candidates = []
    category = "Uncategorized"

    for element in soup.find_all(["h3", "a"]):
        if element.name == "h3":
            category = element.get_text(strip=True) or category
            continue

        url = (element.get("href") or "").strip()
        if not url.lower().startswith(("http://", "https://")):
            continue

        description = None
        following = element.find_next(["dd", "dt", "h3", "a"])
        if following is not None and following.name == "dd":
            own_text = "".join(following.find_all(string=True, recursive=False))
            description = own_text.strip() or None

        candidates.append(ImportCandidate(
            url=url,
            title=element.get_text(strip=True) or url,
            description=description,
            category=category,
            thumbnail=_optional_str(element.get("icon")),
        ))
    return candidates


PARSERS: dict[str, Callable[[str], list[ImportCandidate]]] = {
    "json": parse_json,
    "csv": parse_csv,
    "html": parse_html,
}


def parse_import(content: str, fmt: str) -> list[ImportCandidate]:
    """
    Parse an import file in the declared format.

    Raises:
        UnsupportedImportFormatError: If no parser exists for the format.
        ImportFormatError: If the content is unparsable.
    """
    parser = PARSERS.get(fmt)
    if parser is None:
        raise UnsupportedImportFormatError(fmt)
    return parser(content)


def _usable_category(value: str | None) -> str | None:
    # Folder names and "Uncategorized" are not taxonomy categories
    try:
        return validate_category(value)
    except ValueError:
        return None


def _usable_tags(values: list[str]) -> list[str]:
    valid = []
    for value in values:
        try:
            valid.append(validate_and_normalize_tag(value))
        except ValueError:
            continue
    return validate_and_normalize_tags(valid)


async def _import_one(
    db: AsyncSession,
    user_id: UUID,
    candidate: ImportCandidate,
    classify: Classifier,
    fetch_metadata: MetadataFetcher | None,
    result: ImportResult,
) -> None:
    label = candidate.title or candidate.url
    try:
        url = str(_url_adapter.validate_python(candidate.url))
    except ValidationError:
        result.failed += 1
        result.errors.append(f"Failed to import {label}: invalid URL")
        return

    if await bookmark_service.find_by_url(db, user_id, url) is not None:
        result.duplicates += 1
        return

    title = candidate.title
    description = candidate.description
    thumbnail = candidate.thumbnail
    platform = candidate.platform
    if not title and fetch_metadata is not None:
        metadata = await fetch_metadata(url)
        title = metadata.title
        description = description or metadata.description
        thumbnail = thumbnail or metadata.thumbnail
        platform = platform or metadata.platform
    if not platform:
        platform = platform_from_url(url).display_name

    category = _usable_category(candidate.category)
    tags = _usable_tags(candidate.tags)
    if category is None or not tags:
        classification = await classify(url, title, description)
        category = category or classification.category
        tags = tags or _usable_tags(classification.tags)

    try:
        data = BookmarkCreate(
            url=url,
            title=clean_text(title, TITLE_MAX_LENGTH) or "Untitled",
            description=clean_text(description, DESCRIPTION_MAX_LENGTH) or None,
            thumbnail=thumbnail,
            category=category or OTHER,
            tags=tags,
            platform=platform[:100],
        )
        async with db.begin_nested():
            await bookmark_service.create_bookmark(db, user_id, data)
    except ValidationError as e:
        result.failed += 1
        result.errors.append(f"Failed to import {label}: {e.errors()[0]['msg']}")
        return
    except SQLAlchemyError:
        logger.exception("Failed to store imported bookmark %s", url)
        result.failed += 1
        result.errors.append(f"Failed to import {label}: could not save bookmark")
        return

    result.success += 1


async def import_bookmarks(
    db: AsyncSession,
    user_id: UUID,
    candidates: list[ImportCandidate],
    classify: Classifier,
    fetch_metadata: MetadataFetcher | None = None,
) -> ImportResult:
    """
    Create bookmarks from parsed candidates, strictly one at a time.

    For each candidate: an invalid URL counts as failed; a URL the user already
    saved counts as a duplicate; a missing title triggers a metadata fetch (when
    ``fetch_metadata`` is given); a missing category or empty tag list triggers
    classification, keeping whichever of the two was already present. Each insert
    runs in a savepoint so one failure does not undo the others.

    Args:
        db: Database session.
        user_id: Owner of the imported bookmarks.
        candidates: Parsed records, in file order.
        classify: Classifier for records without category or tags.
        fetch_metadata: Metadata pipeline for records without a title.

    Returns:
        ImportResult with success/failed/duplicate counts and error messages.
    """
    result = ImportResult()
    for candidate in candidates:
        await _import_one(db, user_id, candidate, classify, fetch_metadata, result)
    logger.info(
        "Imported bookmarks for user %s: %d created, %d duplicates, %d failed",
        user_id, result.success, result.duplicates, result.failed,
    )
    return result
