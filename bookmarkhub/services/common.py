from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

MAX_URL_LENGTH = 2048


def normalize_url(url: str) -> str:
    if not url:
        return ""
    parsed = urlparse(url.strip())
    scheme = (parsed.scheme or "https").lower()
    netloc = parsed.netloc.lower()
    path = parsed.path or "/"
    query_items = sorted(parse_qsl(parsed.query, keep_blank_values=True))
    normalized_query = urlencode(query_items)
    return urlunparse((scheme, netloc, path, "", normalized_query, ""))


def extract_domain(url: str) -> str:
    try:
        host = urlparse((url or "").strip()).hostname or ""
    except ValueError:
        return ""
    return host.lower().removeprefix("www.")


def is_valid_http_url(url: str) -> bool:
    if not url or len(url) > MAX_URL_LENGTH:
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.hostname)


def parse_tags(raw: str) -> list[str]:
    if not raw:
        return []
    tokens = [t.strip().lower() for t in raw.replace(";", ",").split(",")]
    return sorted({t for t in tokens if t})
