from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup, Tag, XMLParsedAsHTMLWarning

from bookmarkhub.services.common import is_valid_http_url
from bookmarkhub.services.fetching import fetch_html, normalize_error

logger = logging.getLogger(__name__)

APPLE_TOUCH_DEFAULT_SIZE = 180
ANY_SIZE = 1024

_ICON_RELS = {"icon", "shortcut"}
_APPLE_TOUCH_RELS = {"apple-touch-icon", "apple-touch-icon-precomposed"}


@dataclass
class WebsiteMetadata:
    title: str
    description: str
    favicon: str

    def as_dict(self):
        return {
            "title": self.title,
            "description": self.description,
            "favicon": self.favicon,
        }


@dataclass
class IconCandidate:
    url: str
    size: int
    rel: str


def _build_soup(html: str) -> BeautifulSoup:
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
        return BeautifulSoup(html, "lxml")


def _rel_tokens(link: Tag) -> set[str]:
    rel = link.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return {token.strip().lower() for token in rel if token.strip()}


def _meta_content(soup: BeautifulSoup, attr: str, value: str) -> str:
    for meta in soup.find_all("meta"):
        if not isinstance(meta, Tag):
            continue
        key = meta.get(attr)
        if isinstance(key, str) and key.strip().lower() == value:
            content = meta.get("content")
            if isinstance(content, str) and content.strip():
                return content.strip()
    return ""


def _declared_size(link: Tag, apple_touch: bool) -> int:
    raw = link.get("sizes")
    sizes = raw if isinstance(raw, str) else ""
    best = 0
    for token in sizes.lower().split():
        if token == "any":
            return ANY_SIZE
        width, _, height = token.partition("x")
        if width.isdigit() and height.isdigit():
            best = max(best, int(width), int(height))
    if not best and apple_touch:
        return APPLE_TOUCH_DEFAULT_SIZE
    return best


def default_favicon_url(page_url: str) -> str:
    parsed = urlparse(page_url)
    return f"{parsed.scheme or 'https'}://{parsed.netloc}/favicon.ico"


def collect_icon_candidates(html: str, page_url: str) -> list[IconCandidate]:
    """Every icon the page declares, largest first."""
    soup = _build_soup(html)
    candidates: list[IconCandidate] = []
    seen: set[str] = set()
    for link in soup.find_all("link", href=True):
        if not isinstance(link, Tag):
            continue
        tokens = _rel_tokens(link)
        apple_touch = bool(tokens & _APPLE_TOUCH_RELS)
        if not apple_touch and "icon" not in tokens:
            continue
        href = str(link.get("href") or "").strip()
        if not href or href.startswith("data:"):
            continue
        absolute = urljoin(page_url, href)
        if absolute in seen:
            continue
        seen.add(absolute)
        candidates.append(
            IconCandidate(
                url=absolute,
                size=_declared_size(link, apple_touch),
                rel=" ".join(sorted(tokens)),
            )
        )
    candidates.sort(key=lambda item: item.size, reverse=True)
    return candidates


def parse_metadata(html: str, page_url: str) -> WebsiteMetadata:
    soup = _build_soup(html)

    title = _meta_content(soup, "property", "og:title")
    if not title and soup.title and soup.title.string:
        title = soup.title.string.strip()

    description = _meta_content(soup, "property", "og:description") or _meta_content(
        soup, "name", "description"
    )

    favicon = ""
    for link in soup.find_all("link", href=True):
        if not isinstance(link, Tag):
            continue
        tokens = _rel_tokens(link)
        if "icon" in tokens and tokens <= _ICON_RELS:
            href = str(link.get("href") or "").strip()
            if href:
                favicon = urljoin(page_url, href)
                break
    if not favicon:
        favicon = default_favicon_url(page_url)

    return WebsiteMetadata(title=title, description=description, favicon=favicon)


def fetch_website_metadata(
    url: str,
    timeout: float = 10.0,
    max_bytes: int = 2_500_000,
    client: httpx.Client | None = None,
) -> WebsiteMetadata | None:
    if not is_valid_http_url(url):
        return None

    try:
        html, final_url, status_code = fetch_html(
            url, timeout=timeout, max_bytes=max_bytes, client=client
        )
    except httpx.HTTPError as exc:
        logger.warning("Metadata fetch failed for %s: %s", url, normalize_error(exc))
        return None

    if not 200 <= status_code < 300:
        logger.warning("Metadata fetch for %s returned HTTP %s", url, status_code)
        return None

    return parse_metadata(html, final_url or url)
