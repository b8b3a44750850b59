"""
Hostname normalization and platform detection.

Social and video platforms serve the same content from many hosts (mobile
subdomains, short-link domains, regional aliases). Everything downstream of
this module works with the canonical hostname so that platform lookups,
social-media detection and logo selection agree with each other.
"""
from dataclasses import dataclass
from urllib.parse import urlparse

# Subdomain prefixes used by mobile sites and share/short links (m.facebook.com,
# v.douyin.com, vm.tiktok.com, vt.tiktok.com)
SHORT_LINK_PREFIXES = ("m.", "v.", "vm.", "vt.")

HOST_ALIASES = {
    "youtu.be": "youtube.com",
}


@dataclass(frozen=True)
class PlatformInfo:
    """A platform slug and its human-readable name."""

    key: str
    display_name: str


PLATFORMS: dict[str, PlatformInfo] = {
    "facebook.com": PlatformInfo("facebook", "Facebook"),
    "fb.com": PlatformInfo("facebook", "Facebook"),
    "instagram.com": PlatformInfo("instagram", "Instagram"),
    "tiktok.com": PlatformInfo("tiktok", "TikTok"),
    "douyin.com": PlatformInfo("douyin", "Douyin"),
    "xiaohongshu.com": PlatformInfo("xiaohongshu", "XiaoHongShu"),
    "youtube.com": PlatformInfo("youtube", "YouTube"),
    "twitter.com": PlatformInfo("twitter", "Twitter"),
    "x.com": PlatformInfo("x", "X"),
    "github.com": PlatformInfo("github", "GitHub"),
    "reddit.com": PlatformInfo("reddit", "Reddit"),
    "linkedin.com": PlatformInfo("linkedin", "LinkedIn"),
    "medium.com": PlatformInfo("medium", "Medium"),
    "pinterest.com": PlatformInfo("pinterest", "Pinterest"),
}

# Hosts that block generic scrapers and need the multi-agent fetch strategy.
# Entries are matched against the whole host and against its registrable label.
SOCIAL_MEDIA_HOSTS = frozenset({
    "facebook",
    "fb",
    "instagram",
    "tiktok",
    "douyin",
    "xiaohongshu",
    "xhslink",
    "xhs.cn",
    "youtube",
    "youtu.be",
    "twitter",
    "x",
    "reddit",
    "linkedin",
    "pinterest",
})


def _extract_host(url_or_host: str) -> str:
    """Return the lowercase host of a URL, or the input itself if it is a bare host."""
    value = url_or_host.strip()
    if "://" in value:
        return (urlparse(value).hostname or "").lower()
    return value.split("/", 1)[0].split(":", 1)[0].lower()


def _registrable_domain(hostname: str) -> str:
    # Last two labels; the platform tables only hold single-suffix domains
    return ".".join(hostname.split(".")[-2:])


def normalize_hostname(url_or_host: str) -> str:
    """
    Canonicalize a URL's host.

    Rules, applied in order:
    1. strip a leading ``www.``
    2. collapse mobile/short-link subdomains (``m.``, ``v.``, ``vm.``, ``vt.``) to the
       last two labels when the host has at least three labels
    3. apply fixed aliases (``youtu.be``, any ``xhs`` host, any ``tiktok.com`` or
       ``douyin.com`` subdomain)

    Args:
        url_or_host: An absolute URL or a bare hostname.

    Returns:
        The canonical lowercase hostname (empty string if none could be found).
    """
    host = _extract_host(url_or_host)
    host = host.removeprefix("www.")

    labels = host.split(".")
    if host.startswith(SHORT_LINK_PREFIXES) and len(labels) >= 3:  # noqa: PLR2004
        host = ".".join(labels[-2:])

    if host in HOST_ALIASES:
        return HOST_ALIASES[host]
    if "xhs" in host:
        return "xiaohongshu.com"
    if "tiktok.com" in host:
        return "tiktok.com"
    if "douyin.com" in host:
        return "douyin.com"
    return host


def classify_platform(hostname: str) -> PlatformInfo:
    """
    Map a canonical hostname to its platform.

    Subdomains of a known platform (``old.reddit.com``, ``music.youtube.com``)
    map to that platform. Other unknown hosts fall back to the first label of
    the hostname, capitalized (``example.org`` -> ``PlatformInfo("example", "Example")``).
    """
    known = PLATFORMS.get(hostname) or PLATFORMS.get(_registrable_domain(hostname))
    if known is not None:
        return known
    key = hostname.split(".", 1)[0] or "web"
    return PlatformInfo(key, key.capitalize())


def is_social_media(hostname: str) -> bool:
    """Check whether a canonical hostname belongs to a platform with anti-bot protection."""
    if hostname in SOCIAL_MEDIA_HOSTS:
        return True
    labels = _registrable_domain(hostname).split(".")
    return labels[0] in SOCIAL_MEDIA_HOSTS


def platform_from_url(url: str) -> PlatformInfo:
    """Normalize a URL's host and classify its platform."""
    return classify_platform(normalize_hostname(url))
