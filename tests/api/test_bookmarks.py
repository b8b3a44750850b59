"""Tests for bookmark CRUD, export and import endpoints."""
import csv
import io
import json
from unittest.mock import AsyncMock, patch

from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.main import app
from core.config import Settings, get_settings
from models.bookmark import Bookmark
from services.url_scraper import MetadataResult
from tests.api.conftest import FAKE_UUID, create_user2_client


async def _create(client: AsyncClient, **fields: object) -> dict:
    payload = {"url": "https://example.com/post", "title": "A post", **fields}
    response = await client.post("/bookmarks", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def test__create_bookmark__returns_created_record(client: AsyncClient) -> None:
    data = await _create(
        client,
        description="About things",
        category="Learning/Tech",
        tags=["React", "Web Dev"],
        platform="Example",
        thumbnail="/logos/github.svg",
    )

    assert data["url"] == "https://example.com/post"
    assert data["category"] == "Learning/Tech"
    assert data["tags"] == ["react", "web-dev"]
    assert data["platform"] == "Example"
    assert "id" in data
    assert "created_at" in data


async def test__create_bookmark__validation_errors(client: AsyncClient) -> None:
    invalid_payloads = [
        {"url": "not-a-url"},
        {"url": "https://example.com", "category": "Recipes"},
        {"url": "https://example.com", "title": "t" * 201},
        {"url": "https://example.com", "description": "d" * 501},
    ]
    for payload in invalid_payloads:
        response = await client.post("/bookmarks", json=payload)
        assert response.status_code == 422, payload


async def test__create_bookmark__title_at_limit_is_accepted(client: AsyncClient) -> None:
    data = await _create(client, title="t" * 200)
    assert len(data["title"]) == 200


async def test__create_bookmark__tags_truncated_to_five(client: AsyncClient) -> None:
    data = await _create(client, tags=["a", "b", "c", "d", "e", "f"])
    assert data["tags"] == ["a", "b", "c", "d", "e"]


async def test__list_bookmarks__newest_first(client: AsyncClient) -> None:
    first = await _create(client, url="https://a.example.com/")
    second = await _create(client, url="https://b.example.com/")

    response = await client.get("/bookmarks")

    assert response.status_code == 200
    assert [b["id"] for b in response.json()] == [second["id"], first["id"]]


async def test__update_bookmark__changes_only_sent_fields(client: AsyncClient) -> None:
    created = await _create(client, description="Keep me", category="Other")

    response = await client.patch("/bookmarks", json={
        "id": created["id"],
        "title": "Renamed",
        "category": "Tools/Resources",
        "tags": ["tool"],
        "thumbnail": "https://images.example.com/new.jpg",
    })

    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "Renamed"
    assert data["description"] == "Keep me"
    assert data["category"] == "Tools/Resources"
    assert data["tags"] == ["tool"]
    assert data["thumbnail"] == "https://images.example.com/new.jpg"
    assert data["url"] == created["url"]


async def test__update_bookmark__not_found(client: AsyncClient) -> None:
    response = await client.patch("/bookmarks", json={"id": FAKE_UUID, "title": "x"})
    assert response.status_code == 404
    assert response.json()["detail"] == "Bookmark not found"


async def test__delete_bookmark__success(client: AsyncClient) -> None:
    created = await _create(client)

    response = await client.delete("/bookmarks", params={"id": created["id"]})

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert (await client.get("/bookmarks")).json() == []


async def test__delete_bookmark__missing_id(client: AsyncClient) -> None:
    response = await client.delete("/bookmarks")
    assert response.status_code == 422


async def test__other_user_cannot_modify_bookmark(
    client: AsyncClient, db_session: AsyncSession,
) -> None:
    created = await _create(client, title="Mine")

    async with create_user2_client(db_session) as user2_client:
        delete_response = await user2_client.delete("/bookmarks", params={"id": created["id"]})
        patch_response = await user2_client.patch(
            "/bookmarks", json={"id": created["id"], "title": "Stolen"},
        )
        list_response = await user2_client.get("/bookmarks")

    assert delete_response.status_code == 404
    assert patch_response.status_code == 404
    assert list_response.json() == []

    row = await db_session.execute(select(Bookmark.title).where(Bookmark.url == created["url"]))
    assert row.scalar_one() == "Mine"


async def test__export_bookmarks__json_download(client: AsyncClient) -> None:
    await _create(client)

    response = await client.get("/bookmarks/export", params={"format": "json"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    disposition = response.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="bookmarks_')
    assert disposition.endswith('.json"')
    assert json.loads(response.text)[0]["url"] == "https://example.com/post"


async def test__export_bookmarks__unknown_format(client: AsyncClient) -> None:
    response = await client.get("/bookmarks/export", params={"format": "xml"})
    assert response.status_code == 422


async def test__export_bookmarks__selected_ids_only(client: AsyncClient) -> None:
    keep = await _create(client, url="https://a.example.com/", title="Keep")
    await _create(client, url="https://b.example.com/", title="Skip")

    response = await client.post(
        "/bookmarks/export", json={"format": "csv", "bookmarkIds": [keep["id"]]},
    )

    assert response.status_code == 200
    rows = list(csv.reader(io.StringIO(response.text)))
    assert len(rows) == 2
    assert rows[1][1] == "Keep"


async def test__export_bookmarks__empty_selection_rejected(client: AsyncClient) -> None:
    await _create(client)

    response = await client.post("/bookmarks/export", json={"format": "json", "bookmarkIds": []})

    assert response.status_code == 400
    assert response.json()["detail"] == "No bookmarks selected"


async def test__export_bookmarks__markdown(client: AsyncClient) -> None:
    await _create(client, category="Other")

    response = await client.post("/bookmarks/export", json={"format": "markdown"})

    assert response.status_code == 200
    assert response.text.startswith("# My Bookmarks")
    assert "### [A post](https://example.com/post)" in response.text


async def test__import_bookmarks__csv_with_empty_category(client: AsyncClient) -> None:
    content = "Title,URL,Category,Tags\nLearn React Tutorial,https://example.com/react,,\n"

    response = await client.post(
        "/bookmarks/import",
        files={"file": ("bookmarks.csv", content, "text/csv")},
        data={"format": "csv"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": 1, "failed": 0, "duplicates": 0, "errors": []}
    [bookmark] = (await client.get("/bookmarks")).json()
    assert bookmark["category"] == "Learning/Tech"
    assert bookmark["tags"] == ["tutorial", "learning"]


async def test__import_bookmarks__json_round_trip_is_idempotent(client: AsyncClient) -> None:
    for url in ("https://a.example.com/", "https://b.example.com/", "https://c.example.com/"):
        await _create(client, url=url, category="Other", tags=["x"])
    exported = (await client.get("/bookmarks/export", params={"format": "json"})).text

    response = await client.post(
        "/bookmarks/import",
        files={"file": ("bookmarks.json", exported, "application/json")},
        data={"format": "json"},
    )

    assert response.json()["success"] == 0
    assert response.json()["duplicates"] == 3
    assert len((await client.get("/bookmarks")).json()) == 3


async def test__import_bookmarks__format_inferred_from_extension(client: AsyncClient) -> None:
    content = (
        '<!DOCTYPE NETSCAPE-Bookmark-file-1>\n<DL><p>\n'
        '<DT><H3>Tools/Resources</H3>\n<DL><p>\n'
        '<DT><A HREF="https://tools.example.com/">Handy tool</A>\n'
        '</DL><p>\n</DL><p>\n'
    )

    response = await client.post(
        "/bookmarks/import", files={"file": ("export.html", content, "text/html")},
    )

    assert response.json()["success"] == 1
    [bookmark] = (await client.get("/bookmarks")).json()
    assert bookmark["category"] == "Tools/Resources"


async def test__import_bookmarks__missing_title_uses_metadata(client: AsyncClient) -> None:
    metadata = MetadataResult(
        title="Scraped title",
        description="Scraped description",
        thumbnail="/logos/github.svg",
        platform="GitHub",
    )
    with patch("api.routers.bookmarks.fetch_metadata", AsyncMock(return_value=metadata)):
        response = await client.post(
            "/bookmarks/import",
            files={"file": ("b.json", '[{"url": "https://github.com/a/b"}]', "application/json")},
        )

    assert response.json()["success"] == 1
    [bookmark] = (await client.get("/bookmarks")).json()
    assert bookmark["title"] == "Scraped title"
    assert bookmark["platform"] == "GitHub"


async def test__import_bookmarks__errors(client: AsyncClient) -> None:
    no_file = await client.post("/bookmarks/import", data={"format": "csv"})
    assert no_file.status_code == 400
    assert no_file.json()["detail"] == "No file provided"

    unparsable = await client.post(
        "/bookmarks/import",
        files={"file": ("b.json", "{not json", "application/json")},
        data={"format": "json"},
    )
    assert unparsable.status_code == 400
    assert unparsable.json()["detail"].startswith("Could not parse json import file")

    unknown = await client.post(
        "/bookmarks/import", files={"file": ("notes.txt", "hello", "text/plain")},
    )
    assert unknown.status_code == 400


async def test__import_bookmarks__file_too_large(client: AsyncClient) -> None:
    def override_get_settings() -> Settings:
        return Settings(database_url="sqlite+aiosqlite://", dev_mode=True, max_import_bytes=64)

    app.dependency_overrides[get_settings] = override_get_settings
    try:
        response = await client.post(
            "/bookmarks/import",
            files={"file": ("big.csv", "x" * 65, "text/csv")},
            data={"format": "csv"},
        )
    finally:
        app.dependency_overrides.pop(get_settings, None)

    assert response.status_code == 413
