"""Logo resolution for bookmarks.

Sources are tried in a fixed order and the first usable one wins:

1. curated per-domain overrides,
2. external logo/favicon APIs, each verified with a cheap probe,
3. icons declared in the bookmarked page itself,
4. Google's S2 favicon service, which answers for every domain.

Every tier is best effort. A failing probe only moves the chain along.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from bookmarkhub.services.common import extract_domain, is_valid_http_url
from bookmarkhub.services.fetching import fetch_html, http_client, normalize_error
from bookmarkhub.services.metadata import (
    IconCandidate,
    collect_icon_candidates,
    default_favicon_url,
)

logger = logging.getLogger(__name__)

TIER_OVERRIDE = 1
TIER_EXTERNAL = 2
TIER_HTML = 3
TIER_FALLBACK = 4

QUALITY_HIGH = "high"
QUALITY_MEDIUM = "medium"
QUALITY_LOW = "low"

MIN_LOGO_BYTES = 500
MEDIUM_ICON_SIZE = 64

DOMAIN_OVERRIDES: dict[str, str] = {
    "netflix.com": "https://images.ctfassets.net/4cd45et68cgf/7LrExJ6PAj6MSIPkDyCO86/542b1dfabbf3959908f69be546879952/Netflix-Brand-Logo.png",
    "youtube.com": "https://upload.wikimedia.org/wikipedia/commons/thumb/0/09/YouTube_full-color_icon_%282017%29.svg/2560px-YouTube_full-color_icon_%282017%29.svg.png",
    "amazon.com": "https://logo.clearbit.com/amazon.com",
    "facebook.com": "https://logo.clearbit.com/facebook.com",
    "twitter.com": "https://logo.clearbit.com/twitter.com",
    "x.com": "https://logo.clearbit.com/twitter.com",
    "instagram.com": "https://logo.clearbit.com/instagram.com",
    "linkedin.com": "https://logo.clearbit.com/linkedin.com",
    "github.com": "https://logo.clearbit.com/github.com",
}

GOOGLE_S2_TEMPLATE = "https://www.google.com/s2/favicons?domain={domain}&sz=128"

LOW_QUALITY_MARKERS = (
    "google.com/s2/favicons",
    "duckduckgo.com",
    "favicon.ico",
    "ui-avatars.com",
)


@dataclass(frozen=True)
class ExternalSource:
    name: str
    template: str
    quality: str
    verify_content: bool = False

    def url_for(self, domain: str) -> str:
        return self.template.format(domain=domain)


EXTERNAL_SOURCES: tuple[ExternalSource, ...] = (
    ExternalSource(
        "clearbit",
        "https://logo.clearbit.com/{domain}?size=400",
        QUALITY_HIGH,
        verify_content=True,
    ),
    ExternalSource(
        "duckduckgo", "https://icons.duckduckgo.com/ip3/{domain}.ico", QUALITY_MEDIUM
    ),
    ExternalSource(
        "faviconkit", "https://api.faviconkit.com/{domain}/144", QUALITY_MEDIUM
    ),
)


@dataclass
class FaviconResult:
    url: str
    tier: int
    source: str
    quality: str

    def as_dict(self):
        return {
            "url": self.url,
            "tier": self.tier,
            "source": self.source,
            "quality": self.quality,
        }


def is_low_quality_favicon(favicon: str | None) -> bool:
    value = favicon or ""
    return any(marker in value for marker in LOW_QUALITY_MARKERS)


def verify_image_url(client: httpx.Client, image_url: str, timeout: float) -> bool:
    try:
        response = client.head(image_url, timeout=timeout)
    except httpx.HTTPError:
        return False
    if not response.is_success:
        return False
    content_type = response.headers.get("content-type", "")
    return content_type.lower().startswith("image/")


def verify_image_content(
    client: httpx.Client, image_url: str, timeout: float
) -> bool:
    """Reject tiny bodies, which are almost always placeholder images."""
    try:
        response = client.get(image_url, timeout=timeout)
    except httpx.HTTPError:
        return False
    if not response.is_success:
        return False
    return len(response.content) > MIN_LOGO_BYTES


def _try_external(
    client: httpx.Client,
    domain: str,
    sources: tuple[ExternalSource, ...],
    timeout: float,
) -> FaviconResult | None:
    for source in sources:
        candidate = source.url_for(domain)
        logger.debug("Trying %s for %s", source.name, domain)
        if not verify_image_url(client, candidate, timeout):
            logger.debug("%s failed verification for %s", source.name, domain)
            continue
        if source.verify_content and not verify_image_content(
            client, candidate, timeout
        ):
            logger.debug("%s returned a placeholder for %s", source.name, domain)
            continue
        return FaviconResult(
            url=candidate,
            tier=TIER_EXTERNAL,
            source=source.name,
            quality=source.quality,
        )
    return None


def _scrape_page_icon(
    client: httpx.Client,
    url: str,
    probe_timeout: float,
    fetch_timeout: float,
    max_bytes: int,
) -> FaviconResult | None:
    try:
        html, final_url, status_code = fetch_html(
            url, timeout=fetch_timeout, max_bytes=max_bytes, client=client
        )
    except httpx.HTTPError as exc:
        logger.debug("Page fetch failed for %s: %s", url, normalize_error(exc))
        return None
    if not 200 <= status_code < 300:
        return None

    page_url = final_url or url
    candidates = collect_icon_candidates(html, page_url)
    candidates.append(IconCandidate(default_favicon_url(page_url), 0, "default"))
    for candidate in candidates:
        if verify_image_url(client, candidate.url, probe_timeout):
            quality = (
                QUALITY_MEDIUM if candidate.size >= MEDIUM_ICON_SIZE else QUALITY_LOW
            )
            return FaviconResult(
                url=candidate.url, tier=TIER_HTML, source="html", quality=quality
            )
    return None


def resolve_favicon(
    url: str,
    client: httpx.Client | None = None,
    probe_timeout: float = 5.0,
    fetch_timeout: float = 10.0,
    max_bytes: int = 2_500_000,
    sources: tuple[ExternalSource, ...] = EXTERNAL_SOURCES,
) -> FaviconResult | None:
    domain = extract_domain(url)
    if not domain:
        return None

    override = DOMAIN_OVERRIDES.get(domain)
    if override:
        logger.info("Using curated logo override for %s", domain)
        return FaviconResult(
            url=override, tier=TIER_OVERRIDE, source="override", quality=QUALITY_HIGH
        )

    with http_client(client, timeout=probe_timeout) as http:
        result = _try_external(http, domain, sources, probe_timeout)
        if result is None and is_valid_http_url(url):
            result = _scrape_page_icon(
                http, url, probe_timeout, fetch_timeout, max_bytes
            )

    if result is not None:
        logger.info(
            "Resolved logo for %s via %s (tier %s)", domain, result.source, result.tier
        )
        return result

    logger.info("Falling back to Google S2 for %s", domain)
    return FaviconResult(
        url=GOOGLE_S2_TEMPLATE.format(domain=domain),
        tier=TIER_FALLBACK,
        source="google_s2",
        quality=QUALITY_LOW,
    )


def get_favicon_url(url: str, client: httpx.Client | None = None, **kwargs) -> str:
    result = resolve_favicon(url, client=client, **kwargs)
    return result.url if result else ""
