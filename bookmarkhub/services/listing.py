from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone

from bookmarkhub.models import PRIORITIES

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

SORT_FIELDS = (
    "created_at",
    "updated_at",
    "title",
    "priority",
    "engagement_score",
    "total_visits",
)
SORT_ORDERS = ("asc", "desc")

_PRIORITY_RANK = {name: rank for rank, name in enumerate(PRIORITIES)}
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ListingError(ValueError):
    pass


@dataclass
class ListingParams:
    search: str = ""
    category_id: int | None = None
    tag_id: int | None = None
    priority: str | None = None
    favorite: bool | None = None
    archived: bool | None = None
    sort_by: str = "created_at"
    sort_order: str = "desc"
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE


def _optional_int(args, name: str) -> int | None:
    raw = args.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ListingError(f"{name} must be an integer") from exc


def _optional_bool(args, name: str) -> bool | None:
    raw = args.get(name)
    if raw in (None, ""):
        return None
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def parse_listing_params(args) -> ListingParams:
    priority = (args.get("priority") or "").strip().upper() or None
    if priority and priority not in PRIORITIES:
        raise ListingError(f"priority must be one of {', '.join(PRIORITIES)}")

    sort_by = (args.get("sort_by") or "created_at").strip()
    if sort_by not in SORT_FIELDS:
        raise ListingError(f"sort_by must be one of {', '.join(SORT_FIELDS)}")
    sort_order = (args.get("sort_order") or "desc").strip().lower()
    if sort_order not in SORT_ORDERS:
        raise ListingError("sort_order must be asc or desc")

    page = _optional_int(args, "page")
    if page is None:
        page = 1
    if page < 1:
        raise ListingError("page must be at least 1")
    limit = _optional_int(args, "limit")
    if limit is None:
        limit = DEFAULT_PAGE_SIZE
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ListingError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

    return ListingParams(
        search=(args.get("search") or "").strip(),
        category_id=_optional_int(args, "category"),
        tag_id=_optional_int(args, "tag"),
        priority=priority,
        favorite=_optional_bool(args, "favorite"),
        archived=_optional_bool(args, "archived"),
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )


def _matches_search(bookmark, needle: str) -> bool:
    haystacks = (bookmark.title, bookmark.description, bookmark.url)
    return any(needle in (value or "").lower() for value in haystacks)


def filter_bookmarks(bookmarks, params: ListingParams) -> list:
    needle = params.search.lower()
    selected = []
    for bookmark in bookmarks:
        if needle and not _matches_search(bookmark, needle):
            continue
        if params.category_id is not None and not any(
            c.id == params.category_id for c in bookmark.categories
        ):
            continue
        if params.tag_id is not None and not any(
            t.id == params.tag_id for t in bookmark.tags
        ):
            continue
        if params.priority and bookmark.priority != params.priority:
            continue
        if params.favorite is not None and bool(bookmark.is_favorite) != params.favorite:
            continue
        if params.archived is not None and bool(bookmark.is_archived) != params.archived:
            continue
        selected.append(bookmark)
    return selected


def _timestamp(value: datetime | None) -> float:
    if value is None:
        return _EPOCH.timestamp()
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _sort_key(sort_by: str):
    if sort_by == "title":
        return lambda b: (b.title or "").lower()
    if sort_by == "priority":
        return lambda b: _PRIORITY_RANK.get(b.priority, -1)
    if sort_by in {"engagement_score", "total_visits"}:
        return lambda b: getattr(b, sort_by) or 0
    return lambda b: _timestamp(getattr(b, sort_by))


def sort_bookmarks(bookmarks, sort_by: str = "created_at", sort_order: str = "desc"):
    return sorted(bookmarks, key=_sort_key(sort_by), reverse=sort_order == "desc")


def paginate(items: list, page: int, limit: int) -> dict:
    total = len(items)
    start = (page - 1) * limit
    return {
        "items": items[start : start + limit],
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if total else 0,
    }


def usage_percentages(bookmarks) -> dict[int, float]:
    total_visits = sum(b.total_visits or 0 for b in bookmarks)
    if total_visits <= 0:
        return {b.id: 0.0 for b in bookmarks}
    return {
        b.id: round((b.total_visits or 0) / total_visits * 100, 2) for b in bookmarks
    }


def list_bookmarks(bookmarks, params: ListingParams) -> dict:
    """Filter, sort and paginate one user's bookmarks.

    Usage percentages are relative to all of the user's bookmarks, not just
    the filtered page.
    """
    bookmarks = list(bookmarks)
    usage = usage_percentages(bookmarks)
    selected = filter_bookmarks(bookmarks, params)
    ordered = sort_bookmarks(selected, params.sort_by, params.sort_order)
    page = paginate(ordered, params.page, params.limit)
    page["usage"] = {b.id: usage.get(b.id, 0.0) for b in page["items"]}
    return page
