"""
Image fetcher: resolve a vendor image URL to raw image bytes.

Vendor image hosts are unreliable and often hotlink-protected, so a single
GET is not enough. Each URL is expanded into an ordered plan of attempts and
tried until one returns something that is really an image:

  1. direct fetch under each header profile (store-CDN referer, configured
     storefront referer, the host's own origin, no referer)
  2. the same profiles against the URL with its query string removed
  3. public image-proxy mirrors, with a single generic profile

Every attempt has its own timeout. A failed attempt (bad status, non-image
content type, tiny body, timeout, transport error) just moves on to the next
one; only exhausting the whole plan is reported as a failure, and that is
per-item, never fatal to the run.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from urllib.parse import quote, urlsplit, urlunsplit

import httpx

from models import HeaderProfile

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
IMAGE_ACCEPT = "image/avif,image/webp,image/apng,image/*,*/*;q=0.8"

# Anything smaller is a tracking pixel or an error page served as image/*
MIN_IMAGE_BYTES = 256

DEFAULT_TIMEOUT = 20.0

# Proxy mirrors take the bare host+path, URL-encoded, and re-encode to JPEG
PROXY_MIRRORS = (
    "https://images.weserv.nl/?url={url}&output=jpg",
    "https://wsrv.nl/?url={url}&output=jpg",
)

# BigCommerce CDN paths carry the store hash: cdn11.bigcommerce.com/s-abc123/...
_BIGCOMMERCE_HOST = re.compile(r"^cdn\d*\.bigcommerce\.com$", re.IGNORECASE)
_BIGCOMMERCE_STORE = re.compile(r"^/s-([a-z0-9]+)/", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Header profiles
# ---------------------------------------------------------------------------


def make_profile(name: str, referer: str | None = None) -> HeaderProfile:
    headers = {"User-Agent": USER_AGENT, "Accept": IMAGE_ACCEPT}
    if referer:
        headers["Referer"] = referer
    return HeaderProfile(name=name, headers=headers)


GENERIC_PROFILE = make_profile("bare")


def store_cdn_referer(url: str) -> str | None:
    """Storefront referer derivable from a known store CDN URL, if any."""
    parts = urlsplit(url)
    if not _BIGCOMMERCE_HOST.match(parts.hostname or ""):
        return None
    match = _BIGCOMMERCE_STORE.match(parts.path)
    if not match:
        return None
    return f"https://store-{match.group(1).lower()}.mybigcommerce.com/"


def header_profiles(url: str, store_url: str | None = None) -> list[HeaderProfile]:
    """Ordered impersonation profiles for one image URL, most likely first."""
    parts = urlsplit(url)
    candidates: list[tuple[str, str | None]] = [
        ("store-cdn", store_cdn_referer(url)),
        ("storefront", store_url),
        ("origin", f"{parts.scheme}://{parts.netloc}/" if parts.netloc else None),
    ]

    profiles: list[HeaderProfile] = []
    seen: set[str] = set()
    for name, referer in candidates:
        if not referer or referer in seen:
            continue
        seen.add(referer)
        profiles.append(make_profile(name, referer))
    profiles.append(GENERIC_PROFILE)
    return profiles


# ---------------------------------------------------------------------------
# Attempt planning (pure)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FetchAttempt:
    strategy: str  # "direct", "direct_no_query", "proxy"
    url: str
    profile: HeaderProfile


def strip_query(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def proxy_urls(url: str, mirrors: tuple[str, ...] = PROXY_MIRRORS) -> list[str]:
    """Mirror URLs for an image, each given the encoded bare host+path."""
    parts = urlsplit(url)
    if not parts.netloc:
        return []
    bare = quote(f"{parts.netloc}{parts.path}", safe="")
    return [template.format(url=bare) for template in mirrors]


def plan_attempts(
    url: str,
    profiles: list[HeaderProfile],
    mirrors: tuple[str, ...] = PROXY_MIRRORS,
) -> list[FetchAttempt]:
    """Expand one image URL into the full ordered fallback plan."""
    attempts = [FetchAttempt("direct", url, p) for p in profiles]

    if urlsplit(url).query:
        bare_url = strip_query(url)
        attempts.extend(FetchAttempt("direct_no_query", bare_url, p) for p in profiles)

    attempts.extend(FetchAttempt("proxy", u, GENERIC_PROFILE) for u in proxy_urls(url, mirrors))
    return attempts


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------


@dataclass
class FetchResult:
    """A successfully fetched image and how it was obtained."""

    url: str  # the URL that finally served the image
    content: bytes
    content_type: str
    strategy: str
    profile: str
    attempts: int


def is_valid_image(response: httpx.Response) -> bool:
    """2xx, an image content type, and a body big enough to be a real picture."""
    if not response.is_success:
        return False
    content_type = response.headers.get("content-type", "").lower()
    if "image" not in content_type:
        return False
    return len(response.content) >= MIN_IMAGE_BYTES


async def _try_attempt(
    client: httpx.AsyncClient, attempt: FetchAttempt, timeout: float
) -> httpx.Response | None:
    try:
        response = await asyncio.wait_for(
            client.get(
                attempt.url,
                headers=attempt.profile.headers,
                follow_redirects=True,
                timeout=timeout,
            ),
            timeout,
        )
    except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as e:
        logger.debug(f"  {attempt.strategy}/{attempt.profile.name} {attempt.url}: {type(e).__name__}")
        return None

    if not is_valid_image(response):
        logger.debug(
            f"  {attempt.strategy}/{attempt.profile.name} {attempt.url}: "
            f"HTTP {response.status_code}, {response.headers.get('content-type', '-')}, "
            f"{len(response.content)} bytes"
        )
        return None
    return response


async def fetch_image(
    client: httpx.AsyncClient,
    url: str,
    *,
    store_url: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    mirrors: tuple[str, ...] = PROXY_MIRRORS,
) -> FetchResult | None:
    """Run the fallback plan for one image URL; first valid image wins.

    Returns None when every attempt failed.
    """
    try:
        plan = plan_attempts(url, header_profiles(url, store_url), mirrors)
    except ValueError as e:  # urlsplit rejects e.g. malformed IPv6 hosts
        logger.info(f"  Unusable image URL {url!r}: {e}")
        return None

    for n, attempt in enumerate(plan, start=1):
        response = await _try_attempt(client, attempt, timeout)
        if response is None:
            continue
        if n > 1:
            logger.info(f"  Image fetched via {attempt.strategy}/{attempt.profile.name} after {n} attempts")
        return FetchResult(
            url=attempt.url,
            content=response.content,
            content_type=response.headers.get("content-type", ""),
            strategy=attempt.strategy,
            profile=attempt.profile.name,
            attempts=n,
        )

    logger.info(f"  Image unavailable after {len(plan)} attempts: {url}")
    return None
