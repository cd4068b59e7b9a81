from datetime import datetime, timedelta, timezone

from bookmarkhub.services.engagement import calculate_engagement_score

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _score(**overrides):
    fields = {
        "total_visits": 0,
        "last_visited_at": None,
        "time_spent": 0,
        "is_favorite": False,
        "description": None,
        "has_categories": False,
        "has_tags": False,
        "now": NOW,
    }
    fields.update(overrides)
    return calculate_engagement_score(**fields)


def test_unvisited_bookmark_scores_only_organisation():
    assert _score() == 0
    assert _score(has_categories=True, has_tags=True) == 15
    assert _score(is_favorite=True, description="  notes ") == 10
    assert _score(description="   ") == 0


def test_recency_decays():
    def visited(days):
        return _score(last_visited_at=NOW - timedelta(days=days))

    assert [visited(0), visited(3), visited(20), visited(60), visited(365)] == [
        25,
        20,
        15,
        10,
        5,
    ]


def test_naive_timestamps_are_treated_as_utc():
    naive = datetime(2024, 4, 28, 12, 0)
    assert _score(last_visited_at=naive) == 20


def test_components_are_capped():
    assert _score(total_visits=1000) == 30
    assert _score(time_spent=60 * 60) == 20
    assert (
        _score(
            total_visits=1000,
            last_visited_at=NOW,
            time_spent=60 * 60,
            is_favorite=True,
            description="x",
            has_categories=True,
            has_tags=True,
        )
        == 100
    )
