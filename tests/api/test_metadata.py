"""Tests for the metadata preview and classification endpoints."""
import httpx
import pytest
import respx
from httpx import AsyncClient


@pytest.mark.usefixtures('public_dns')
@respx.mock
async def test__fetch_metadata__returns_preview(client: AsyncClient) -> None:
    respx.get('https://blog.example.org/post').mock(return_value=httpx.Response(
        200,
        html=(
            '<html><head><meta property="og:title" content="A post">'
            '<meta property="og:image" content="https://img.example.org/a.jpg">'
            '</head></html>'
        ),
    ))

    response = await client.post('/fetch-metadata', json={'url': 'https://blog.example.org/post'})

    assert response.status_code == 200
    assert response.json() == {
        'title': 'A post',
        'description': '',
        'thumbnail': 'https://img.example.org/a.jpg',
        'platform': 'Blog',
        'needs_manual_edit': False,
    }


@pytest.mark.usefixtures('public_dns')
@respx.mock
async def test__fetch_metadata__unreachable_host_degrades(client: AsyncClient) -> None:
    respx.get('https://down.example.net/').mock(side_effect=httpx.ConnectTimeout('timeout'))

    response = await client.post('/fetch-metadata', json={'url': 'https://down.example.net/'})

    assert response.status_code == 200
    data = response.json()
    assert data['title'] == 'down.example.net'
    assert data['needs_manual_edit'] is True
    assert data['thumbnail'].startswith('data:image/svg+xml;base64,')


@pytest.mark.parametrize(
    ('payload', 'detail'),
    [({}, 'URL is required'), ({'url': ''}, 'URL is required'), ({'url': 'nope'}, 'Invalid URL')],
)
async def test__fetch_metadata__bad_url(client: AsyncClient, payload: dict, detail: str) -> None:
    response = await client.post('/fetch-metadata', json=payload)
    assert response.status_code == 400
    assert response.json()['detail'] == detail


async def test__analyze__keyword_fallback_without_llm(client: AsyncClient) -> None:
    response = await client.post('/analyze', json={
        'url': 'https://example.com',
        'title': 'Learn React Tutorial',
        'description': '',
    })

    assert response.status_code == 200
    assert response.json() == {'category': 'Learning/Tech', 'tags': ['tutorial', 'learning']}


async def test__analyze__empty_body_is_other(client: AsyncClient) -> None:
    response = await client.post('/analyze', json={})
    assert response.json() == {'category': 'Other', 'tags': []}
