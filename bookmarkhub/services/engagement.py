from __future__ import annotations

from datetime import datetime

from bookmarkhub.models import Bookmark, utcnow
from bookmarkhub.services.history import ACTION_VIEWED, log_history

MAX_SCORE = 100


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=utcnow().tzinfo)
    return value


def calculate_engagement_score(
    total_visits: int,
    last_visited_at: datetime | None,
    time_spent: int,
    is_favorite: bool,
    description: str | None,
    has_categories: bool,
    has_tags: bool,
    now: datetime | None = None,
) -> int:
    score = 0

    if total_visits >= 1:
        score += min(30, 5 + int(total_visits * 1.2))

    if last_visited_at is not None:
        now = now or utcnow()
        days = (now - _as_aware(last_visited_at)).days
        if days <= 0:
            score += 25
        elif days <= 7:
            score += 20
        elif days <= 30:
            score += 15
        elif days <= 90:
            score += 10
        else:
            score += 5

    minutes = max(0, time_spent) / 60
    score += min(20, int(minutes * 5))

    if has_categories:
        score += 8
    if has_tags:
        score += 7

    if is_favorite:
        score += 5
    if description and description.strip():
        score += 5

    return min(MAX_SCORE, score)


def score_bookmark(bookmark: Bookmark, now: datetime | None = None) -> int:
    return calculate_engagement_score(
        total_visits=bookmark.total_visits or 0,
        last_visited_at=bookmark.last_visited_at,
        time_spent=bookmark.time_spent or 0,
        is_favorite=bool(bookmark.is_favorite),
        description=bookmark.description,
        has_categories=bool(bookmark.categories),
        has_tags=bool(bookmark.tags),
        now=now,
    )


def record_visit(bookmark: Bookmark, time_spent: int = 0) -> Bookmark:
    bookmark.total_visits = (bookmark.total_visits or 0) + 1
    bookmark.time_spent = (bookmark.time_spent or 0) + max(0, int(time_spent))
    bookmark.last_visited_at = utcnow()
    bookmark.engagement_score = score_bookmark(bookmark)
    log_history(
        bookmark.id,
        ACTION_VIEWED,
        f"Bookmark viewed (visit #{bookmark.total_visits})",
    )
    return bookmark
