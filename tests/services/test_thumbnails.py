"""Tests for thumbnail fallback selection."""
import base64
from pathlib import Path

from services.platforms import PlatformInfo
from services.thumbnails import (
    LOCAL_LOGO_KEYS,
    generate_placeholder,
    local_logo_path,
    resolve_thumbnail,
)

LOGO_DIR = Path(__file__).parents[2] / 'src' / 'api' / 'static' / 'logos'
FAVICON_TEMPLATE = 'https://icons.example/{host}.png'
UNKNOWN = PlatformInfo('example', 'Example')


def _decode(data_uri: str) -> str:
    prefix = 'data:image/svg+xml;base64,'
    assert data_uri.startswith(prefix)
    return base64.b64decode(data_uri[len(prefix):]).decode('utf-8')


def test__local_logo_keys__match_bundled_files() -> None:
    bundled = {path.stem for path in LOGO_DIR.glob('*.svg')}
    assert bundled == set(LOCAL_LOGO_KEYS)


def test__local_logo_path__known_and_unknown() -> None:
    assert local_logo_path('douyin') == '/logos/douyin.svg'
    assert local_logo_path('example') is None


def test__resolve_thumbnail__extracted_image_wins() -> None:
    result = resolve_thumbnail(
        'https://cdn.example/a.jpg',
        PlatformInfo('douyin', 'Douyin'),
        'douyin.com',
        page_reachable=True,
        favicon_template=FAVICON_TEMPLATE,
    )
    assert result == 'https://cdn.example/a.jpg'


def test__resolve_thumbnail__platform_logo_before_favicon() -> None:
    result = resolve_thumbnail(
        None,
        PlatformInfo('github', 'GitHub'),
        'github.com',
        page_reachable=True,
        favicon_template=FAVICON_TEMPLATE,
    )
    assert result == '/logos/github.svg'


def test__resolve_thumbnail__favicon_for_reachable_unknown_host() -> None:
    result = resolve_thumbnail(
        '', UNKNOWN, 'example.org', page_reachable=True, favicon_template=FAVICON_TEMPLATE,
    )
    assert result == 'https://icons.example/example.org.png'


def test__resolve_thumbnail__placeholder_for_unreachable_unknown_host() -> None:
    result = resolve_thumbnail(
        None, UNKNOWN, 'example.org', page_reachable=False, favicon_template=FAVICON_TEMPLATE,
    )
    assert result.startswith('data:image/svg+xml;base64,')


def test__generate_placeholder__contains_escaped_name() -> None:
    svg = _decode(generate_placeholder(PlatformInfo('weird', 'A & <B>')))
    assert 'A &amp; &lt;B&gt;' in svg
    assert '<linearGradient' in svg


def test__generate_placeholder__uses_platform_colours() -> None:
    svg = _decode(generate_placeholder(PlatformInfo('pinterest', 'Pinterest')))
    assert '#E60023' in svg
    assert 'Pinterest' in svg
