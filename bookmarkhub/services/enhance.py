from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import httpx
from sqlalchemy import or_

from bookmarkhub.extensions import db
from bookmarkhub.models import Bookmark
from bookmarkhub.services.common import extract_domain
from bookmarkhub.services.favicon import is_low_quality_favicon, resolve_favicon
from bookmarkhub.services.fetching import http_client
from bookmarkhub.services.history import ACTION_LOGO_ENHANCED, log_history
from bookmarkhub.services.image_upscaler import upscale_image
from bookmarkhub.services.storage import ObjectStorage

logger = logging.getLogger(__name__)

MAX_BULK_LIMIT = 100
DEFAULT_BULK_LIMIT = 50

SUCCESS_MESSAGE = "Logo enhanced successfully! Your high-quality logo is now live."


@dataclass
class EnhanceOutcome:
    success: bool
    message: str
    favicon: str
    s3_key: str | None = None
    error: str | None = None

    def as_dict(self):
        payload = {
            "success": self.success,
            "message": self.message,
            "favicon": self.favicon,
        }
        if self.s3_key:
            payload["s3_key"] = self.s3_key
        if self.error:
            payload["error"] = self.error
        return payload


def friendly_error_message(error: str | None) -> str:
    text = (error or "").lower()
    if "meets quality" in text or "already good" in text:
        return "This logo is already high quality and doesn't need enhancement!"
    if "download" in text or "fetch" in text:
        return (
            "Failed to download the logo. The file might be corrupted or "
            "inaccessible. Try again to fetch a fresh copy."
        )
    if "403" in text:
        return "The current logo file is not accessible. Fetching a fresh copy..."
    if "upload" in text or "s3" in text:
        return "Failed to save the enhanced logo. Please try again."
    return error or "Enhancement failed"


def _is_reachable(client: httpx.Client, url: str, timeout: float) -> bool:
    try:
        return client.head(url, timeout=timeout).is_success
    except httpx.HTTPError:
        return False


def enhance_bookmark_logo(
    bookmark: Bookmark,
    storage: ObjectStorage,
    client: httpx.Client | None = None,
    probe_timeout: float = 5.0,
    fetch_timeout: float = 10.0,
    min_dimension: int = 256,
    target: int = 512,
) -> EnhanceOutcome:
    domain = extract_domain(bookmark.url)
    current = bookmark.favicon or ""

    with http_client(client, timeout=probe_timeout) as http:
        if not current or not _is_reachable(http, current, probe_timeout):
            logger.info("Fetching a fresh logo for bookmark %s", bookmark.id)
            fresh = resolve_favicon(
                bookmark.url,
                client=http,
                probe_timeout=probe_timeout,
                fetch_timeout=fetch_timeout,
            )
            if fresh is not None and fresh.url != current:
                current = fresh.url
                bookmark.favicon = fresh.url
                bookmark.favicon_source = fresh.source

        result = upscale_image(
            current,
            domain,
            storage,
            client=http,
            min_dimension=min_dimension,
            target=target,
            timeout=fetch_timeout,
        )

    if result.success and result.upscaled_url:
        bookmark.favicon = result.upscaled_url
        bookmark.favicon_source = "upscaled"
        log_history(
            bookmark.id,
            ACTION_LOGO_ENHANCED,
            f"Logo upscaled to {result.width}x{result.height}",
        )
        return EnhanceOutcome(
            success=True,
            message=SUCCESS_MESSAGE,
            favicon=result.upscaled_url,
            s3_key=result.s3_key,
        )

    logger.info("Logo enhancement for bookmark %s failed: %s", bookmark.id, result.error)
    return EnhanceOutcome(
        success=False,
        message=friendly_error_message(result.error),
        favicon=current,
        error=result.error,
    )


def _result_row(bookmark: Bookmark, **fields) -> dict:
    row = {"id": bookmark.id, "title": bookmark.title}
    row.update({key: value for key, value in fields.items() if value is not None})
    return row


def bulk_enhance(
    user_id: int,
    limit: int = DEFAULT_BULK_LIMIT,
    skip: int = 0,
    only_missing: bool = False,
    only_low_quality: bool = False,
    delay: float = 0.0,
    client: httpx.Client | None = None,
    probe_timeout: float = 5.0,
    fetch_timeout: float = 10.0,
) -> dict:
    limit = max(1, min(int(limit or DEFAULT_BULK_LIMIT), MAX_BULK_LIMIT))
    skip = max(0, int(skip or 0))

    query = Bookmark.query.filter_by(user_id=user_id)
    if only_missing:
        query = query.filter(or_(Bookmark.favicon.is_(None), Bookmark.favicon == ""))

    total = query.count()
    bookmarks = (
        query.order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    logger.info(
        "Bulk logo enhancement for user %s: %s of %s bookmarks (skip=%s)",
        user_id,
        len(bookmarks),
        total,
        skip,
    )

    results: list[dict] = []
    improved = 0
    unchanged = 0
    failed = 0

    with http_client(client, timeout=probe_timeout) as http:
        for index, bookmark in enumerate(bookmarks):
            if index and delay:
                time.sleep(delay)

            if (
                only_low_quality
                and bookmark.favicon
                and not is_low_quality_favicon(bookmark.favicon)
            ):
                results.append(_result_row(bookmark, success=True, improved=False))
                unchanged += 1
                continue

            try:
                resolved = resolve_favicon(
                    bookmark.url,
                    client=http,
                    probe_timeout=probe_timeout,
                    fetch_timeout=fetch_timeout,
                )
                if resolved is None:
                    raise ValueError(f"cannot resolve a logo for {bookmark.url!r}")
            except Exception as exc:
                logger.warning("Bulk enhancement failed for bookmark %s: %s", bookmark.id, exc)
                results.append(
                    _result_row(bookmark, success=False, improved=False, error=str(exc))
                )
                failed += 1
                continue

            previous = bookmark.favicon or None
            if resolved.url != bookmark.favicon or not bookmark.favicon:
                bookmark.favicon = resolved.url
                bookmark.favicon_source = resolved.source
                results.append(
                    _result_row(
                        bookmark,
                        success=True,
                        improved=True,
                        tier=resolved.tier,
                        source=resolved.source,
                        quality=resolved.quality,
                        previous_favicon=previous,
                        new_favicon=resolved.url,
                    )
                )
                improved += 1
            else:
                results.append(
                    _result_row(
                        bookmark,
                        success=True,
                        improved=False,
                        tier=resolved.tier,
                        source=resolved.source,
                        quality=resolved.quality,
                    )
                )
                unchanged += 1

    db.session.commit()
    logger.info(
        "Bulk logo enhancement done: improved=%s unchanged=%s failed=%s",
        improved,
        unchanged,
        failed,
    )
    return {
        "success": True,
        "message": f"Enhanced {improved} of {len(bookmarks)} bookmarks",
        "summary": {
            "total": total,
            "processed": len(bookmarks),
            "improved": improved,
            "unchanged": unchanged,
            "failed": failed,
            "has_more": skip + limit < total,
            "next_skip": skip + limit,
        },
        "results": results,
    }


def enhancement_stats(user_id: int) -> dict:
    favicons = [
        row.favicon
        for row in Bookmark.query.filter_by(user_id=user_id)
        .with_entities(Bookmark.favicon)
        .all()
    ]
    total = len(favicons)
    with_favicon = [f for f in favicons if f]
    low_quality = sum(1 for f in with_favicon if is_low_quality_favicon(f))
    without_favicon = total - len(with_favicon)
    return {
        "total": total,
        "with_favicon": len(with_favicon),
        "without_favicon": without_favicon,
        "low_quality": low_quality,
        "high_quality": len(with_favicon) - low_quality,
        "needs_enhancement": without_favicon + low_quality,
    }
