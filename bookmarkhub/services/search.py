from __future__ import annotations

from rapidfuzz import fuzz

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def _safe(value: str | None) -> str:
    return (value or "").strip().lower()


def score_bookmark(bookmark, query: str) -> tuple[float, list[str]]:
    q = query.strip().lower()
    title = _safe(bookmark.title)
    description = _safe(bookmark.description)
    url = _safe(bookmark.url)
    labels = " ".join(
        [tag.name for tag in bookmark.tags]
        + [category.name for category in bookmark.categories]
    ).lower()

    score = 0.0
    reasons: list[str] = []

    if q == title:
        score += 150
        reasons.append("exact_title")
    elif title.startswith(q):
        score += 120
        reasons.append("title_prefix")
    elif q in title:
        score += 100
        reasons.append("title_contains")

    if labels and q in labels:
        score += 90
        reasons.append("label_match")

    if description and q in description:
        score += 45
        reasons.append("description_contains")

    if q in url:
        score += 30
        reasons.append("url_contains")

    fuzzy_title = fuzz.partial_ratio(q, title) if title else 0
    if fuzzy_title >= 72:
        score += fuzzy_title * 0.30
        reasons.append("title_fuzzy")

    if labels:
        fuzzy_labels = fuzz.partial_ratio(q, labels)
        if fuzzy_labels >= 80:
            score += fuzzy_labels * 0.20
            reasons.append("label_fuzzy")

    if description and len(q) >= 4:
        fuzzy_description = fuzz.partial_ratio(q, description[:6000])
        if fuzzy_description >= 88:
            score += fuzzy_description * 0.18
            reasons.append("description_fuzzy")

    return score, reasons


def search_bookmarks(bookmarks, query: str, limit: int = DEFAULT_LIMIT):
    if not query or not query.strip():
        return []
    limit = max(1, min(limit or DEFAULT_LIMIT, MAX_LIMIT))

    ranked = []
    for bookmark in bookmarks:
        score, reasons = score_bookmark(bookmark, query)
        if reasons and score > 0:
            ranked.append(
                {"bookmark": bookmark, "score": round(score, 2), "reasons": reasons}
            )

    ranked.sort(key=lambda item: item["score"], reverse=True)
    return ranked[:limit]
