from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from werkzeug.datastructures import MultiDict

from bookmarkhub.services.listing import (
    ListingError,
    list_bookmarks,
    parse_listing_params,
    usage_percentages,
)

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _bookmark(id, title, priority="MEDIUM", visits=0, age_days=0, tags=(), **extra):
    return SimpleNamespace(
        id=id,
        title=title,
        description=extra.get("description"),
        url=extra.get("url", f"https://{title.lower()}.example"),
        priority=priority,
        is_favorite=extra.get("is_favorite", False),
        is_archived=extra.get("is_archived", False),
        total_visits=visits,
        engagement_score=extra.get("engagement_score", 0),
        categories=[SimpleNamespace(id=cid) for cid in extra.get("categories", ())],
        tags=[SimpleNamespace(id=tid) for tid in tags],
        created_at=NOW - timedelta(days=age_days),
        updated_at=NOW,
    )


def test_defaults():
    params = parse_listing_params(MultiDict())

    assert params.page == 1
    assert params.limit == 20
    assert params.sort_by == "created_at"
    assert params.sort_order == "desc"
    assert params.favorite is None


@pytest.mark.parametrize(
    "args",
    [
        {"priority": "someday"},
        {"sort_by": "url"},
        {"sort_order": "sideways"},
        {"page": "0"},
        {"page": "-2"},
        {"limit": "0"},
        {"limit": "101"},
        {"category": "abc"},
    ],
)
def test_invalid_params_are_rejected(args):
    with pytest.raises(ListingError):
        parse_listing_params(MultiDict(args))


def test_filters_combine():
    bookmarks = [
        _bookmark(1, "Flask", tags=[7], categories=[3], is_favorite=True),
        _bookmark(2, "Django", tags=[7]),
        _bookmark(3, "Flask-Login", categories=[3]),
    ]

    params = parse_listing_params(
        MultiDict({"search": "flask", "category": "3", "favorite": "true"})
    )
    page = list_bookmarks(bookmarks, params)

    assert [b.id for b in page["items"]] == [1]

    params = parse_listing_params(
        MultiDict({"tag": "7", "sort_by": "title", "sort_order": "asc"})
    )
    assert [b.title for b in list_bookmarks(bookmarks, params)["items"]] == [
        "Django",
        "Flask",
    ]


def test_priority_sort_and_created_at_default():
    bookmarks = [
        _bookmark(1, "Old", priority="URGENT", age_days=10),
        _bookmark(2, "New", priority="LOW", age_days=1),
        _bookmark(3, "Mid", priority="HIGH", age_days=5),
    ]

    newest_first = list_bookmarks(bookmarks, parse_listing_params(MultiDict()))
    assert [b.title for b in newest_first["items"]] == ["New", "Mid", "Old"]

    by_priority = list_bookmarks(
        bookmarks,
        parse_listing_params(MultiDict({"sort_by": "priority", "sort_order": "asc"})),
    )
    assert [b.priority for b in by_priority["items"]] == ["LOW", "HIGH", "URGENT"]


def test_usage_is_relative_to_all_bookmarks():
    bookmarks = [
        _bookmark(1, "A", visits=1, tags=[9]),
        _bookmark(2, "B", visits=2),
        _bookmark(3, "C", visits=0),
    ]

    page = list_bookmarks(bookmarks, parse_listing_params(MultiDict({"tag": "9"})))

    assert page["usage"] == {1: 33.33}
    assert usage_percentages([_bookmark(1, "A")]) == {1: 0.0}


def test_pagination_metadata():
    bookmarks = [_bookmark(i, f"T{i}") for i in range(1, 6)]

    page = list_bookmarks(
        bookmarks, parse_listing_params(MultiDict({"limit": "2", "page": "3"}))
    )

    assert page["total"] == 5
    assert page["pages"] == 3
    assert len(page["items"]) == 1
