"""
Thumbnail fallback resolution.

When no image could be extracted from a page the resolver picks, in order:
a bundled platform logo, a favicon-service URL (only when the page itself was
reachable), or an inline SVG placeholder. The placeholder needs no network and
always succeeds, so a resolved thumbnail is never empty.
"""
import base64
from dataclasses import dataclass
from html import escape

from services.platforms import PlatformInfo

LOGO_URL_PREFIX = "/logos"

# Logo assets shipped in api/static/logos. Kept as a static manifest so the
# fallback decision never touches the filesystem.
LOCAL_LOGO_KEYS = frozenset({
    "facebook",
    "instagram",
    "tiktok",
    "douyin",
    "xiaohongshu",
    "youtube",
    "twitter",
    "x",
    "github",
    "reddit",
    "linkedin",
    "medium",
})


@dataclass(frozen=True)
class PlaceholderStyle:
    """Gradient colours and glyph for a generated placeholder."""

    start_color: str
    end_color: str
    emoji: str


DEFAULT_STYLE = PlaceholderStyle("#6366F1", "#8B5CF6", "🔖")

PLACEHOLDER_STYLES: dict[str, PlaceholderStyle] = {
    "facebook": PlaceholderStyle("#1877F2", "#0C5DC7", "📘"),
    "instagram": PlaceholderStyle("#F58529", "#DD2A7B", "📷"),
    "tiktok": PlaceholderStyle("#25F4EE", "#FE2C55", "🎵"),
    "douyin": PlaceholderStyle("#161823", "#FE2C55", "🎵"),
    "xiaohongshu": PlaceholderStyle("#FF2442", "#FF6B81", "📕"),
    "youtube": PlaceholderStyle("#FF0000", "#CC0000", "▶️"),
    "twitter": PlaceholderStyle("#1DA1F2", "#0C85D0", "🐦"),
    "x": PlaceholderStyle("#14171A", "#657786", "✖️"),
    "github": PlaceholderStyle("#24292E", "#586069", "🐙"),
    "reddit": PlaceholderStyle("#FF4500", "#FF6314", "👽"),
    "linkedin": PlaceholderStyle("#0A66C2", "#004182", "💼"),
    "medium": PlaceholderStyle("#000000", "#4A4A4A", "📝"),
    "pinterest": PlaceholderStyle("#E60023", "#AD081B", "📌"),
}

PLACEHOLDER_WIDTH = 400
PLACEHOLDER_HEIGHT = 300


def local_logo_path(platform_key: str) -> str | None:
    """Return the served path of the bundled logo for a platform, if one exists."""
    if platform_key in LOCAL_LOGO_KEYS:
        return f"{LOGO_URL_PREFIX}/{platform_key}.svg"
    return None


def favicon_url(hostname: str, template: str) -> str | None:
    """Build a favicon-service URL for a hostname (None for an empty host)."""
    if not hostname:
        return None
    return template.format(host=hostname)


def generate_placeholder(platform: PlatformInfo) -> str:
    """
    Render an SVG placeholder as a base64 data URI.

    The image is a diagonal gradient in the platform's brand colours with an
    emoji glyph and the platform's display name.
    """
    style = PLACEHOLDER_STYLES.get(platform.key, DEFAULT_STYLE)
    name = escape(platform.display_name or "Bookmark")
    svg = (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{PLACEHOLDER_WIDTH}" '
        f'height="{PLACEHOLDER_HEIGHT}" viewBox="0 0 {PLACEHOLDER_WIDTH} {PLACEHOLDER_HEIGHT}">'
        '<defs><linearGradient id="bg" x1="0%" y1="0%" x2="100%" y2="100%">'
        f'<stop offset="0%" stop-color="{style.start_color}"/>'
        f'<stop offset="100%" stop-color="{style.end_color}"/>'
        '</linearGradient></defs>'
        f'<rect width="{PLACEHOLDER_WIDTH}" height="{PLACEHOLDER_HEIGHT}" fill="url(#bg)"/>'
        f'<text x="50%" y="45%" font-size="72" text-anchor="middle" '
        f'dominant-baseline="middle">{style.emoji}</text>'
        f'<text x="50%" y="75%" font-size="28" font-family="Arial, sans-serif" '
        f'font-weight="bold" fill="#FFFFFF" text-anchor="middle">{name}</text>'
        '</svg>'
    )
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


def resolve_thumbnail(
    thumbnail: str | None,
    platform: PlatformInfo,
    hostname: str,
    *,
    page_reachable: bool,
    favicon_template: str,
) -> str:
    """
    Pick the thumbnail to store for a bookmark.

    Args:
        thumbnail: The extracted thumbnail, if any. Returned unchanged when non-empty.
        platform: Platform of the page.
        hostname: Canonical hostname of the page, used for the favicon service.
        page_reachable: Whether the page itself could be fetched. An unreachable
            site is unlikely to have a favicon, so the placeholder is used instead.
        favicon_template: Favicon service URL with a ``{host}`` placeholder.

    Returns:
        A non-empty image URL, served path, or data URI.
    """
    if thumbnail:
        return thumbnail

    logo = local_logo_path(platform.key)
    if logo:
        return logo

    if page_reachable:
        favicon = favicon_url(hostname, favicon_template)
        if favicon:
            return favicon

    return generate_placeholder(platform)
