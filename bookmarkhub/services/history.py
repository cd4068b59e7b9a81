from __future__ import annotations

from bookmarkhub.extensions import db
from bookmarkhub.models import BookmarkHistory

ACTION_CREATED = "CREATED"
ACTION_UPDATED = "UPDATED"
ACTION_VIEWED = "VIEWED"
ACTION_LOGO_ENHANCED = "LOGO_ENHANCED"
ACTION_IMPORTED = "IMPORTED"


def log_history(bookmark_id: int, action: str, details: str | None = None) -> None:
    db.session.add(
        BookmarkHistory(bookmark_id=bookmark_id, action=action, details=details)
    )
