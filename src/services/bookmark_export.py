"""
Bookmark export to JSON, CSV, Netscape bookmark HTML and Markdown.

All exporters are pure functions over a list of bookmarks; the router turns
the resulting ExportFile into a download response.
"""
import csv
import io
import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime
from html import escape

from models.bookmark import Bookmark
from schemas.bookmark import BookmarkResponse

UNTITLED = "Untitled"
UNCATEGORIZED = "Uncategorized"

CSV_HEADERS = (
    "ID",
    "Title",
    "URL",
    "Description",
    "Category",
    "Tags",
    "Platform",
    "Thumbnail",
    "Created At",
)
TAG_SEPARATOR = ";"


@dataclass
class ExportFile:
    """Serialized bookmarks ready to download."""

    content: str
    media_type: str
    filename: str


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo; stored values are always UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def group_by_category(bookmarks: Sequence[Bookmark]) -> dict[str, list[Bookmark]]:
    """Group bookmarks by category, preserving first-seen category order."""
    groups: dict[str, list[Bookmark]] = {}
    for bookmark in bookmarks:
        groups.setdefault(bookmark.category or UNCATEGORIZED, []).append(bookmark)
    return groups


def export_json(bookmarks: Sequence[Bookmark]) -> str:
    """Serialize bookmarks as a pretty-printed JSON array."""
    items = [
        BookmarkResponse.model_validate(bookmark).model_dump(mode="json")
        for bookmark in bookmarks
    ]
    return json.dumps(items, indent=2, ensure_ascii=False)


def export_csv(bookmarks: Sequence[Bookmark]) -> str:
    """
    Serialize bookmarks as CSV with a fixed 9-column header.

    Fields containing a comma, quote or newline are quoted, with embedded quotes doubled.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for bookmark in bookmarks:
        writer.writerow([
            str(bookmark.id),
            bookmark.title or UNTITLED,
            bookmark.url,
            bookmark.description or "",
            bookmark.category or UNCATEGORIZED,
            TAG_SEPARATOR.join(bookmark.tags or []),
            bookmark.platform or "",
            bookmark.thumbnail or "",
            _as_utc(bookmark.created_at).isoformat(),
        ])
    return buffer.getvalue()


def export_html(bookmarks: Sequence[Bookmark]) -> str:
    """Serialize bookmarks as a Netscape bookmark file with one folder per category."""
    lines = [
        "<!DOCTYPE NETSCAPE-Bookmark-file-1>",
        "<!-- This is an automatically generated file. -->",
        '<META HTTP-EQUIV="Content-Type" CONTENT="text/html; charset=UTF-8">',
        "<TITLE>Bookmarks</TITLE>",
        "<H1>Bookmarks</H1>",
        "<DL><p>",
    ]
    for category, items in group_by_category(bookmarks).items():
        lines.append(f"    <DT><H3>{escape(category)}</H3>")
        lines.append("    <DL><p>")
        for bookmark in items:
            add_date = int(_as_utc(bookmark.created_at).timestamp())
            anchor = f'        <DT><A HREF="{escape(bookmark.url)}" ADD_DATE="{add_date}"'
            if bookmark.thumbnail:
                anchor += f' ICON="{escape(bookmark.thumbnail)}"'
            anchor += f">{escape(bookmark.title or UNTITLED)}</A>"
            lines.append(anchor)
            if bookmark.description:
                lines.append(f"        <DD>{escape(bookmark.description)}")
        lines.append("    </DL><p>")
    lines.append("</DL><p>")
    return "\n".join(lines) + "\n"


def export_markdown(bookmarks: Sequence[Bookmark], today: date) -> str:
    """Serialize bookmarks as Markdown: one ``##`` section per category, one ``###`` per bookmark."""
    parts = [f"# My Bookmarks\n\nExported on {today.isoformat()}\n\n"]
    for category, items in group_by_category(bookmarks).items():
        parts.append(f"## {category}\n\n")
        for bookmark in items:
            parts.append(f"### [{bookmark.title or UNTITLED}]({bookmark.url})\n\n")
            if bookmark.description:
                parts.append(f"{bookmark.description}\n\n")
            if bookmark.tags:
                parts.append(f"**Tags:** {', '.join(bookmark.tags)}\n\n")
            saved = _as_utc(bookmark.created_at).date().isoformat()
            parts.append(f"**Platform:** {bookmark.platform or 'Web'} | **Saved:** {saved}\n\n")
            parts.append("---\n\n")
    return "".join(parts)


EXPORTERS: dict[str, tuple[str, str, Callable[[Sequence[Bookmark], date], str]]] = {
    "json": ("application/json", "json", lambda bookmarks, _today: export_json(bookmarks)),
    "csv": ("text/csv", "csv", lambda bookmarks, _today: export_csv(bookmarks)),
    "html": ("text/html", "html", lambda bookmarks, _today: export_html(bookmarks)),
    "markdown": ("text/markdown", "md", export_markdown),
}


def export_bookmarks(
    bookmarks: Sequence[Bookmark],
    fmt: str,
    today: date | None = None,
) -> ExportFile:
    """
    Serialize bookmarks in the requested format.

    Args:
        bookmarks: Bookmarks to export, in output order.
        fmt: One of ``json``, ``csv``, ``html``, ``markdown``.
        today: Export date used in the filename and Markdown header (defaults to today, UTC).

    Raises:
        ValueError: If the format is not supported.
    """
    if fmt not in EXPORTERS:
        raise ValueError(f"Unsupported export format: {fmt}")
    today = today or datetime.now(UTC).date()
    media_type, extension, render = EXPORTERS[fmt]
    return ExportFile(
        content=render(bookmarks, today),
        media_type=media_type,
        filename=f"bookmarks_{today.isoformat()}.{extension}",
    )
