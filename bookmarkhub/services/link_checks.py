from __future__ import annotations

import time
from dataclasses import dataclass

import httpx

from bookmarkhub.extensions import db
from bookmarkhub.models import Bookmark, LinkCheck, utcnow
from bookmarkhub.services.fetching import http_client, normalize_error

LINK_STATUS_ALIVE = "alive"
LINK_STATUS_TIMEOUT = "timeout"
LINK_STATUS_NOT_FOUND = "not_found"
LINK_STATUS_SERVER_ERROR = "server_error"
LINK_STATUS_DNS_ERROR = "dns_error"
LINK_STATUS_UNREACHABLE = "unreachable"

TRANSIENT_LINK_RESULTS = {
    LINK_STATUS_TIMEOUT,
    LINK_STATUS_UNREACHABLE,
    LINK_STATUS_SERVER_ERROR,
}

PROBLEMATIC_RESULTS = {
    LINK_STATUS_NOT_FOUND,
    LINK_STATUS_DNS_ERROR,
    LINK_STATUS_UNREACHABLE,
    LINK_STATUS_SERVER_ERROR,
    LINK_STATUS_TIMEOUT,
}

_CERTIFICATE_ERROR_MARKERS = (
    "certificate verify failed",
    "certificateverifyfailed",
    "self signed certificate",
    "unable to get local issuer certificate",
)


@dataclass
class LinkCheckResult:
    status_code: int | None
    final_url: str | None
    result_type: str
    latency_ms: int | None
    error: str | None = None


def classify_status(status_code: int | None, error: str | None) -> str:
    if error:
        lower = error.lower()
        if any(marker in lower for marker in _CERTIFICATE_ERROR_MARKERS):
            return LINK_STATUS_ALIVE
        if "timed out" in lower or "timeout" in lower:
            return LINK_STATUS_TIMEOUT
        if "name or service not known" in lower or "nodename" in lower:
            return LINK_STATUS_DNS_ERROR
        if "temporary failure in name resolution" in lower:
            return LINK_STATUS_DNS_ERROR
        return LINK_STATUS_UNREACHABLE

    if status_code is None:
        return LINK_STATUS_UNREACHABLE
    if status_code in {404, 410}:
        return LINK_STATUS_NOT_FOUND
    if status_code == 408:
        return LINK_STATUS_TIMEOUT
    if status_code >= 500:
        return LINK_STATUS_SERVER_ERROR
    if 200 <= status_code < 500:
        return LINK_STATUS_ALIVE
    return LINK_STATUS_UNREACHABLE


def _probe(
    client: httpx.Client, url: str, timeout: float
) -> tuple[int | None, str | None, str | None]:
    # Plenty of servers reject HEAD outright, so a failed HEAD falls back to GET.
    try:
        response = client.head(url, timeout=timeout)
        if response.status_code < 400 and response.status_code != 429:
            return response.status_code, str(response.url), None
    except httpx.HTTPError:
        pass
    try:
        response = client.get(url, timeout=timeout)
        return response.status_code, str(response.url), None
    except httpx.HTTPError as exc:
        return None, None, normalize_error(exc)


def check_link(
    url: str, timeout: float, client: httpx.Client | None = None
) -> LinkCheckResult:
    started = time.monotonic()
    attempts = 2
    status_code = None
    final_url = None
    error = None
    result_type = LINK_STATUS_UNREACHABLE

    with http_client(client, timeout=timeout) as http:
        for attempt in range(1, attempts + 1):
            status_code, final_url, error = _probe(
                http, url, timeout * (1 + (attempt - 1) * 0.5)
            )
            result_type = classify_status(status_code, error)
            if attempt < attempts and result_type in TRANSIENT_LINK_RESULTS:
                continue
            break

    return LinkCheckResult(
        status_code=status_code,
        final_url=final_url,
        result_type=result_type,
        latency_ms=int((time.monotonic() - started) * 1000),
        error=error,
    )


def record_link_check(bookmark: Bookmark, result: LinkCheckResult) -> LinkCheck:
    bookmark.link_status = result.result_type
    bookmark.last_checked_at = utcnow()
    check = LinkCheck(
        bookmark_id=bookmark.id,
        status_code=result.status_code,
        final_url=result.final_url,
        result_type=result.result_type,
        latency_ms=result.latency_ms,
        error=result.error,
    )
    db.session.add(check)
    return check
