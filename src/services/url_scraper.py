"""URL scraping service for fetching pages and extracting bookmark metadata."""
import ipaddress
import json
import logging
import re
import socket
from dataclasses import dataclass
from urllib.parse import unquote, urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from core.config import Settings
from schemas.validators import DESCRIPTION_MAX_LENGTH, TITLE_MAX_LENGTH
from services.exceptions import InvalidUrlError
from services.platforms import PlatformInfo, classify_platform, is_social_media, normalize_hostname
from services.thumbnails import resolve_thumbnail

logger = logging.getLogger(__name__)

DESKTOP_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)
MOBILE_USER_AGENT = (
    'Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 '
    '(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1'
)
FACEBOOK_CRAWLER_USER_AGENT = (
    'facebookexternalhit/1.1 (+http://www.facebook.com/externalhit_uatext.php)'
)
GOOGLEBOT_USER_AGENT = (
    'Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)'
)
TWITTERBOT_USER_AGENT = 'Twitterbot/1.0'

# Crawler identities first: platforms serve full OpenGraph tags to link-preview bots
SOCIAL_USER_AGENTS = (
    FACEBOOK_CRAWLER_USER_AGENT,
    GOOGLEBOT_USER_AGENT,
    TWITTERBOT_USER_AGENT,
    DESKTOP_USER_AGENT,
    MOBILE_USER_AGENT,
)

DEFAULT_TIMEOUT = 10.0
MAX_IMAGE_REDIRECTS = 5
DEFAULT_REFERER = 'https://www.google.com/'

TITLE_META_KEYS = ('og:title', 'twitter:title', 'og:site_name')
DESCRIPTION_META_KEYS = ('og:description', 'description', 'twitter:description')
IMAGE_META_KEYS = (
    'og:image',
    'og:image:url',
    'og:image:secure_url',
    'twitter:image',
    'twitter:image:src',
)

# Image URLs that are almost never the content image of a page
ICON_MARKERS = ('avatar', 'icon', 'logo', 'sprite', 'favicon', 'emoji', 'pixel')

FACEBOOK_CDN_PATTERN = re.compile(r'https://scontent[^"\'\s<>]*?\.jpg[^"\'\s<>]*', re.IGNORECASE)
FACEBOOK_IMAGE_SELECTORS = (
    'img.x1ey2m1c',
    'img.scaledImageFitWidth',
    'img.scaledImageFitHeight',
    'img[data-visualcompletion="media-vc-image"]',
    'div[data-pagelet] img',
    'img[src*="scontent"]',
)
XIAOHONGSHU_CDN_PATTERN = re.compile(
    r'https?://[^"\'\s<>]*xhscdn\.com/[^"\'\s<>]+', re.IGNORECASE,
)
# Note images carry size/format markers; avatars and UI assets do not
XIAOHONGSHU_CONTENT_MARKERS = ('!nd_', 'imageview2', 'notes_pre_post', 'spectrum', 'sns-webpic')
SHORT_VIDEO_CDN_PATTERN = re.compile(
    r'https?://[^"\'\s<>]+?\.(?:douyinpic\.com|tiktokcdn(?:-[a-z]+)?\.com|muscdn\.com)'
    r'/[^"\'\s<>]+',
    re.IGNORECASE,
)


class SSRFBlockedError(Exception):
    """Raised when a URL targets a private/internal network address."""

    pass


def is_private_ip(ip_str: str) -> bool:
    """
    Check if an IP address is private, loopback, or otherwise internal.

    Args:
        ip_str: IP address string (IPv4 or IPv6).

    Returns:
        True if the IP is private/internal, False if public.
    """
    try:
        ip = ipaddress.ip_address(ip_str)
        return (
            ip.is_private
            or ip.is_loopback
            or ip.is_link_local
            or ip.is_multicast
            or ip.is_reserved
            or ip.is_unspecified
        )
    except ValueError:
        # If we can't parse it, block it to be safe
        return True


def validate_url_not_private(url: str) -> None:
    """
    Validate that a URL does not target a private/internal network.

    Resolves the hostname to check the actual IP address, preventing
    DNS rebinding attacks where a hostname resolves to an internal IP.

    Args:
        url: The URL to validate.

    Raises:
        SSRFBlockedError: If the URL targets a private network.
        ValueError: If the URL is malformed.
    """
    parsed = urlparse(url)
    hostname = parsed.hostname

    if not hostname:
        raise ValueError(f"Invalid URL (no hostname): {url}")

    if hostname.lower() in ('localhost', 'localhost.localdomain'):
        raise SSRFBlockedError(f"Blocked request to localhost: {url}")

    try:
        addrinfo = socket.getaddrinfo(hostname, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except socket.gaierror as e:
        raise ValueError(f"Could not resolve hostname: {hostname}") from e

    for _, _, _, _, sockaddr in addrinfo:
        ip_str = sockaddr[0]
        if is_private_ip(ip_str):
            raise SSRFBlockedError(
                f"Blocked request to private/internal address: {url} resolves to {ip_str}",
            )


def build_headers(user_agent: str, referer: str = DEFAULT_REFERER) -> dict[str, str]:
    """Request headers sent with every page fetch."""
    return {
        'User-Agent': user_agent,
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
        'Accept-Language': 'en-US,en;q=0.9,zh-CN;q=0.8,zh;q=0.7',
        'Cache-Control': 'no-cache',
        'Pragma': 'no-cache',
        'Referer': referer,
    }


def select_user_agents(hostname: str) -> list[str]:
    """
    Choose the ordered user agents to try for a canonical hostname.

    Social platforms get crawler identities first and browser identities last;
    every other host gets a single desktop browser identity.
    """
    if is_social_media(hostname):
        return list(SOCIAL_USER_AGENTS)
    return [DESKTOP_USER_AGENT]


@dataclass
class FetchResult:
    """Result of fetching a URL (raw HTML before extraction)."""

    content: str | None
    final_url: str
    status_code: int | None
    content_type: str | None
    error: str | None

    @property
    def is_html(self) -> bool:
        """Check if the content type indicates HTML."""
        return bool(self.content_type and 'html' in self.content_type.lower())


@dataclass
class ExtractedMetadata:
    """Title, description and thumbnail extracted from a page (None when not found)."""

    title: str | None
    description: str | None
    thumbnail: str | None


@dataclass
class MetadataResult:
    """Best-effort metadata for a URL, ready to build a bookmark from."""

    title: str
    description: str
    thumbnail: str
    platform: str
    needs_manual_edit: bool = False


async def fetch_url(  # noqa: ASYNC109
    url: str,
    user_agent: str = DESKTOP_USER_AGENT,
    timeout: float = DEFAULT_TIMEOUT,
    referer: str = DEFAULT_REFERER,
) -> FetchResult:
    """
    Fetch an HTML page.

    Best-effort fetch that returns error info on failure rather than raising.
    Follows redirects and captures the final URL.

    Security: Validates that the URL does not target private/internal networks
    to prevent SSRF attacks.

    Args:
        url:
            The URL to fetch.
        user_agent:
            User-Agent header to identify as.
        timeout:
            Request timeout in seconds.
        referer:
            Referer header value.

    Returns:
        FetchResult containing the HTML or error info.
    """
    try:
        validate_url_not_private(url)
    except (SSRFBlockedError, ValueError) as e:
        return FetchResult(
            content=None,
            final_url=url,
            status_code=None,
            content_type=None,
            error=str(e),
        )

    try:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=timeout,
            headers=build_headers(user_agent, referer),
            http2=True,
        ) as client:
            response = await client.get(url)

            # SSRF protection: validate final URL after redirects
            final_url = str(response.url)
            try:
                validate_url_not_private(final_url)
            except (SSRFBlockedError, ValueError) as e:
                return FetchResult(
                    content=None,
                    final_url=final_url,
                    status_code=response.status_code,
                    content_type=None,
                    error=f"Redirect blocked: {e}",
                )

            content_type = response.headers.get('content-type', '')

            if not response.is_success:
                return FetchResult(
                    content=None,
                    final_url=final_url,
                    status_code=response.status_code,
                    content_type=content_type,
                    error=f"HTTP {response.status_code}",
                )

            if 'html' not in content_type.lower():
                return FetchResult(
                    content=None,
                    final_url=final_url,
                    status_code=response.status_code,
                    content_type=content_type,
                    error=f"Unsupported content type: {content_type}",
                )

            return FetchResult(
                content=response.text,
                final_url=final_url,
                status_code=response.status_code,
                content_type=content_type,
                error=None,
            )
    except httpx.TimeoutException:
        return FetchResult(
            content=None,
            final_url=url,
            status_code=None,
            content_type=None,
            error="Request timed out",
        )
    except httpx.RequestError as e:
        return FetchResult(
            content=None,
            final_url=url,
            status_code=None,
            content_type=None,
            error=f"Request failed: {e}",
        )


def clean_text(text: str | None, max_length: int) -> str:
    """
    Collapse whitespace and truncate text with an ellipsis.

    Text longer than ``max_length`` is cut at ``max_length - 3`` characters and
    ``...`` is appended, so the result is exactly ``max_length`` long.
    """
    if not text:
        return ''
    text = re.sub(r'\s+', ' ', text).strip()
    if len(text) > max_length:
        text = text[: max_length - 3] + '...'
    return text


def _meta_content(soup: BeautifulSoup, key: str) -> str | None:
    """Content of a <meta> tag matched by property or name (sites use both)."""
    for attr in ('property', 'name'):
        tag = soup.find('meta', attrs={attr: key})
        if tag and tag.get('content') and tag['content'].strip():
            return tag['content'].strip()
    return None


def _first_meta(soup: BeautifulSoup, keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = _meta_content(soup, key)
        if value:
            return value
    return None


def _tag_text(soup: BeautifulSoup, name: str) -> str | None:
    tag = soup.find(name)
    if tag is None:
        return None
    text = tag.get_text(' ', strip=True)
    return text or None


def _looks_like_icon(src: str) -> bool:
    lowered = src.lower()
    return lowered.endswith('.svg') or any(marker in lowered for marker in ICON_MARKERS)


def _unescape_embedded(html: str) -> str:
    """Undo the escaping used for URLs embedded in inline JSON."""
    return html.replace('\\u002F', '/').replace('\\/', '/').replace('&amp;', '&')


def resolve_image_url(src: str, page_url: str) -> str:
    """
    Resolve a possibly-relative image URL against the page origin.

    Returns an empty string if the URL cannot be resolved.
    """
    src = src.strip()
    if not src:
        return ''
    if src.startswith(('http://', 'https://', 'data:image/')):
        return src
    try:
        parsed = urlparse(page_url)
        if not parsed.scheme or not parsed.netloc:
            return ''
        origin = f"{parsed.scheme}://{parsed.netloc}/"
        resolved = urljoin(origin, src)
    except ValueError:
        return ''
    return resolved if resolved.startswith(('http://', 'https://')) else ''


def _json_ld_images(soup: BeautifulSoup, keys: tuple[str, ...]) -> list[str]:
    """Collect image URLs stored under ``keys`` in JSON-LD blocks, in document order."""
    found: list[str] = []

    def collect(value: object) -> None:
        if isinstance(value, str):
            found.append(value)
        elif isinstance(value, list):
            for item in value:
                collect(item)
        elif isinstance(value, dict):
            url = value.get('url') or value.get('contentUrl')
            if isinstance(url, str):
                found.append(url)

    def walk(node: object) -> None:
        if isinstance(node, list):
            for item in node:
                walk(item)
        elif isinstance(node, dict):
            for key in keys:
                if key in node:
                    collect(node[key])
            for key, value in node.items():
                if key not in keys and isinstance(value, dict | list):
                    walk(value)

    for script in soup.find_all('script', attrs={'type': 'application/ld+json'}):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            walk(json.loads(raw))
        except ValueError:
            logger.debug("Skipping malformed JSON-LD block")
    return found


def _extract_facebook_image(soup: BeautifulSoup, html: str) -> str | None:
    for selector in FACEBOOK_IMAGE_SELECTORS:
        for img in soup.select(selector):
            for attr in ('src', 'data-src'):
                src = img.get(attr) or ''
                if FACEBOOK_CDN_PATTERN.match(src):
                    return src
    match = FACEBOOK_CDN_PATTERN.search(_unescape_embedded(html))
    if match:
        return match.group(0)
    images = _json_ld_images(soup, ('image',))
    return images[0] if images else None


def _extract_xiaohongshu_image(soup: BeautifulSoup, html: str) -> str | None:
    for attr in ('property', 'name'):
        for tag in soup.find_all('meta', attrs={attr: 'og:image'}):
            content = (tag.get('content') or '').strip()
            if content and not _looks_like_icon(content):
                return content
    candidates = XIAOHONGSHU_CDN_PATTERN.findall(_unescape_embedded(html))
    for candidate in candidates:
        lowered = candidate.lower()
        if _looks_like_icon(candidate):
            continue
        if any(marker in lowered for marker in XIAOHONGSHU_CONTENT_MARKERS):
            return candidate
    return None


def _extract_short_video_image(soup: BeautifulSoup, html: str) -> str | None:
    images = _json_ld_images(soup, ('thumbnailUrl', 'image'))
    if images:
        return images[0]
    match = SHORT_VIDEO_CDN_PATTERN.search(_unescape_embedded(html))
    return match.group(0) if match else None


PLATFORM_IMAGE_EXTRACTORS = {
    'facebook': _extract_facebook_image,
    'xiaohongshu': _extract_xiaohongshu_image,
    'tiktok': _extract_short_video_image,
    'douyin': _extract_short_video_image,
}


def extract_thumbnail(soup: BeautifulSoup, html: str, page_url: str, platform_key: str) -> str:
    """
    Extract a thumbnail URL from a parsed page.

    Priority: OpenGraph image variants, Twitter card image variants,
    ``<link rel="image_src">``, the first non-icon ``<img>``, then the
    platform-specific extractor. On platforms with their own extractor, a meta
    image that looks like a logo or avatar yields to the extractor's result.
    Relative URLs are resolved against the page origin.
    """
    extractor = PLATFORM_IMAGE_EXTRACTORS.get(platform_key)
    candidate = _first_meta(soup, IMAGE_META_KEYS)
    if candidate and extractor is not None and _looks_like_icon(candidate):
        candidate = extractor(soup, html) or candidate
    if not candidate:
        link = soup.find('link', rel='image_src')
        if link and link.get('href'):
            candidate = link['href']
    if not candidate:
        for img in soup.find_all('img', src=True):
            src = img['src'].strip()
            if src and not src.startswith('data:') and not _looks_like_icon(src):
                candidate = src
                break
    if not candidate and extractor is not None:
        candidate = extractor(soup, html)
    if not candidate:
        return ''
    return resolve_image_url(candidate, page_url)


def extract_html_metadata(
    html: str,
    page_url: str,
    platform_key: str = '',
) -> ExtractedMetadata:
    """
    Extract title, description and thumbnail from HTML.

    Pure function with no I/O. Uses BeautifulSoup for parsing.

    Title extraction priority:
    1. <meta property="og:title">
    2. <meta name="twitter:title">
    3. <meta property="og:site_name">
    4. <title> tag
    5. first <h1>

    Description extraction priority:
    1. <meta property="og:description">
    2. <meta name="description">
    3. <meta name="twitter:description">

    Thumbnail extraction follows ``extract_thumbnail``.

    Args:
        html:
            Raw HTML string to parse.
        page_url:
            URL the HTML was served from; relative image URLs resolve against its origin.
        platform_key:
            Platform slug, selecting a platform-specific image extractor.

    Returns:
        ExtractedMetadata with fields set to None when nothing was found.
    """
    soup = BeautifulSoup(html, 'lxml')

    title = _first_meta(soup, TITLE_META_KEYS) or _tag_text(soup, 'title') or _tag_text(soup, 'h1')
    description = _first_meta(soup, DESCRIPTION_META_KEYS)
    thumbnail = extract_thumbnail(soup, html, page_url, platform_key)

    return ExtractedMetadata(
        title=title or None,
        description=description or None,
        thumbnail=thumbnail or None,
    )


def is_platform_name(title: str | None, platform: PlatformInfo) -> bool:
    """Check whether a title is just the platform's name (typical of login walls)."""
    if not title:
        return False
    normalized = title.strip().casefold()
    return normalized in (platform.display_name.casefold(), platform.key.casefold())


def has_real_title(metadata: ExtractedMetadata, platform: PlatformInfo) -> bool:
    """Whether the metadata carries a title other than the bare platform name."""
    return bool(metadata.title) and not is_platform_name(metadata.title, platform)


def is_satisfactory(metadata: ExtractedMetadata, platform: PlatformInfo) -> bool:
    """An attempt is good enough to stop when it has a real title and a thumbnail."""
    return has_real_title(metadata, platform) and bool(metadata.thumbnail)


def rank(metadata: ExtractedMetadata, platform: PlatformInfo) -> tuple[bool, bool, int]:
    """Ordering key for partial results: title, then thumbnail, then longest description."""
    return (
        has_real_title(metadata, platform),
        bool(metadata.thumbnail),
        len(metadata.description or ''),
    )


@dataclass(frozen=True)
class Attempting:
    """User agents still to try, plus the best partial result so far."""

    remaining: tuple[str, ...]
    best: ExtractedMetadata | None = None


@dataclass(frozen=True)
class Satisfied:
    """An attempt produced a satisfactory result."""

    result: ExtractedMetadata


@dataclass(frozen=True)
class Exhausted:
    """Every user agent was tried; ``best`` is None when no page was ever fetched."""

    best: ExtractedMetadata | None


AttemptState = Attempting | Satisfied | Exhausted


def advance(
    state: Attempting,
    outcome: ExtractedMetadata | None,
    platform: PlatformInfo,
) -> AttemptState:
    """
    Consume the outcome of the attempt for ``state.remaining[0]``.

    Args:
        state: Current state; its first remaining user agent was just tried.
        outcome: Extracted metadata, or None when the fetch failed.
        platform: Platform of the URL being fetched.

    Returns:
        Satisfied when the outcome is good enough, Exhausted when no user agents
        are left, otherwise Attempting with the remaining agents. Ties in rank keep
        the earlier result.
    """
    if outcome is not None and is_satisfactory(outcome, platform):
        return Satisfied(outcome)

    best = state.best
    if outcome is not None and (best is None or rank(outcome, platform) > rank(best, platform)):
        best = outcome

    remaining = state.remaining[1:]
    if not remaining:
        return Exhausted(best)
    return Attempting(remaining, best)


async def run_attempts(
    url: str,
    user_agents: list[str],
    platform: PlatformInfo,
    timeout: float,  # noqa: ASYNC109
) -> Satisfied | Exhausted:
    """Fetch ``url`` with each user agent in turn until satisfied or exhausted."""
    if not user_agents:
        return Exhausted(None)
    state: AttemptState = Attempting(tuple(user_agents))
    while isinstance(state, Attempting):
        user_agent = state.remaining[0]
        result = await fetch_url(url, user_agent=user_agent, timeout=timeout)
        outcome = None
        if result.error or result.content is None:
            logger.warning(
                "Fetch attempt failed for %s (user agent %r): %s",
                url, user_agent, result.error,
            )
        else:
            outcome = extract_html_metadata(result.content, result.final_url, platform.key)
        state = advance(state, outcome, platform)
    return state


def parse_url(url: str | None) -> str:
    """
    Validate a user-supplied URL.

    Raises:
        InvalidUrlError: If the URL is missing or is not an absolute http(s) URL.
    """
    if url is None or not url.strip():
        raise InvalidUrlError("URL is required")
    url = url.strip()
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError as e:
        raise InvalidUrlError("Invalid URL") from e
    if parsed.scheme not in ('http', 'https') or not hostname:
        raise InvalidUrlError("Invalid URL")
    return url


async def fetch_metadata(url: str | None, settings: Settings) -> MetadataResult:
    """
    Fetch a page and produce best-effort bookmark metadata.

    Social platforms are fetched with several user agents in sequence; other
    hosts get a single attempt. Scraping failures never raise: they degrade to
    a record built from the hostname with ``needs_manual_edit`` set. The
    returned thumbnail is always non-empty.

    Args:
        url: The URL to describe.
        settings: Application settings (timeouts, favicon service).

    Returns:
        MetadataResult with title (<=200 chars) and description (<=500 chars).

    Raises:
        InvalidUrlError: If the URL is missing or unparsable.
    """
    url = parse_url(url)
    hostname = normalize_hostname(url)
    platform = classify_platform(hostname)
    user_agents = select_user_agents(hostname)

    state = await run_attempts(url, user_agents, platform, settings.scrape_timeout)
    best = state.result if isinstance(state, Satisfied) else state.best

    if best is None:
        # Nothing could be fetched at all
        raw_host = urlparse(url).hostname or hostname
        return MetadataResult(
            title=clean_text(raw_host, TITLE_MAX_LENGTH),
            description='',
            thumbnail=resolve_thumbnail(
                None,
                platform,
                hostname,
                page_reachable=False,
                favicon_template=settings.favicon_service_url,
            ),
            platform=platform.display_name,
            needs_manual_edit=True,
        )

    title = clean_text(best.title, TITLE_MAX_LENGTH) or platform.display_name
    return MetadataResult(
        title=title,
        description=clean_text(best.description, DESCRIPTION_MAX_LENGTH),
        thumbnail=resolve_thumbnail(
            best.thumbnail,
            platform,
            hostname,
            page_reachable=True,
            favicon_template=settings.favicon_service_url,
        ),
        platform=platform.display_name,
        needs_manual_edit=not has_real_title(best, platform),
    )


# Referers that image CDNs accept for hotlinked images
CDN_REFERERS = (
    ('fbcdn', 'https://www.facebook.com/'),
    ('cdninstagram', 'https://www.instagram.com/'),
    ('xhscdn', 'https://www.xiaohongshu.com/'),
    ('douyinpic', 'https://www.douyin.com/'),
    ('tiktokcdn', 'https://www.tiktok.com/'),
    ('muscdn', 'https://www.tiktok.com/'),
    ('ytimg', 'https://www.youtube.com/'),
    ('twimg', 'https://x.com/'),
)
DEFAULT_IMAGE_REFERER = 'https://www.facebook.com/'


@dataclass
class ImageResult:
    """Image bytes relayed by the image proxy, or the reason they are missing."""

    content: bytes | None
    content_type: str | None
    status_code: int
    error: str | None


def clean_image_url(url: str) -> str:
    """Undo HTML-entity and percent escaping left on URLs copied out of page markup."""
    url = url.strip().replace('&amp;', '&')
    if '://' not in url:
        url = unquote(url)
    return url


def referer_for_image(url: str) -> str:
    """Choose a Referer that the image's CDN will accept."""
    host = (urlparse(url).hostname or '').lower()
    for marker, referer in CDN_REFERERS:
        if marker in host:
            return referer
    return DEFAULT_IMAGE_REFERER


async def fetch_image(url: str, timeout: float = DEFAULT_TIMEOUT) -> ImageResult:  # noqa: ASYNC109
    """
    Fetch an image with a spoofed Referer to get past hotlink protection.

    Redirects are followed by hand so that every hop is checked against private
    addresses before it is requested. Never raises; failures are reported through
    ``status_code`` and ``error``.
    """
    url = clean_image_url(url)
    try:
        validate_url_not_private(url)
    except (SSRFBlockedError, ValueError) as e:
        return ImageResult(content=None, content_type=None, status_code=400, error=str(e))

    headers = {
        'User-Agent': DESKTOP_USER_AGENT,
        'Accept': 'image/avif,image/webp,image/apng,image/svg+xml,image/*,*/*;q=0.8',
        'Referer': referer_for_image(url),
    }
    try:
        async with httpx.AsyncClient(
            follow_redirects=False, timeout=timeout, headers=headers, http2=True,
        ) as client:
            response = await client.get(url)
            redirects = 0
            while response.next_request is not None:
                redirects += 1
                if redirects > MAX_IMAGE_REDIRECTS:
                    return ImageResult(
                        content=None,
                        content_type=None,
                        status_code=502,
                        error="Too many redirects",
                    )
                next_url = str(response.next_request.url)
                try:
                    validate_url_not_private(next_url)
                except (SSRFBlockedError, ValueError) as e:
                    logger.warning("Image proxy redirect blocked: %s", e)
                    return ImageResult(
                        content=None,
                        content_type=None,
                        status_code=400,
                        error=f"Redirect blocked: {e}",
                    )
                response = await client.send(response.next_request)
    except httpx.TimeoutException:
        return ImageResult(content=None, content_type=None, status_code=504, error="Request timed out")
    except httpx.RequestError as e:
        return ImageResult(
            content=None, content_type=None, status_code=502, error=f"Request failed: {e}",
        )

    if not response.is_success:
        logger.warning("Image proxy upstream returned %s for %s", response.status_code, url)
        return ImageResult(
            content=None,
            content_type=None,
            status_code=response.status_code,
            error=f"HTTP {response.status_code}",
        )

    content_type = response.headers.get('content-type') or 'image/jpeg'
    if not content_type.lower().startswith('image/'):
        return ImageResult(
            content=None, content_type=content_type, status_code=415, error="Not an image",
        )
    return ImageResult(
        content=response.content, content_type=content_type, status_code=200, error=None,
    )
