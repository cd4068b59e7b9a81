from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import httpx

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) BookmarkHub/1.0"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


def normalize_error(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return message
    return exc.__class__.__name__


@contextmanager
def http_client(
    client: httpx.Client | None = None, timeout: float = 10.0
) -> Iterator[httpx.Client]:
    """Yield ``client`` untouched, or a short-lived one owned by the caller."""
    if client is not None:
        yield client
        return
    with httpx.Client(
        follow_redirects=True, timeout=timeout, headers=DEFAULT_HEADERS
    ) as owned:
        yield owned


def fetch_html(
    url: str,
    timeout: float,
    max_bytes: int,
    client: httpx.Client | None = None,
) -> tuple[str, str, int]:
    with http_client(client, timeout=timeout) as http:
        with http.stream("GET", url, timeout=timeout) as response:
            status_code = response.status_code
            chunks = []
            total = 0
            for chunk in response.iter_bytes():
                total += len(chunk)
                if total > max_bytes:
                    break
                chunks.append(chunk)
            data = b"".join(chunks)
            encoding = response.encoding or "utf-8"
            return (
                data.decode(encoding, errors="ignore"),
                str(response.url),
                status_code,
            )


def fetch_bytes(
    url: str,
    timeout: float,
    max_bytes: int,
    client: httpx.Client | None = None,
) -> tuple[bytes, str | None]:
    """Download a binary body, raising on non-2xx responses."""
    with http_client(client, timeout=timeout) as http:
        with http.stream("GET", url, timeout=timeout) as response:
            response.raise_for_status()
            chunks = []
            total = 0
            for chunk in response.iter_bytes():
                total += len(chunk)
                if total > max_bytes:
                    raise ValueError(f"response exceeds {max_bytes} bytes")
                chunks.append(chunk)
            return b"".join(chunks), response.headers.get("content-type")
