from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from bs4 import BeautifulSoup, Tag

from bookmarkhub.extensions import db
from bookmarkhub.models import Bookmark, Category, Tag as TagModel
from bookmarkhub.services.common import is_valid_http_url, normalize_url, parse_tags
from bookmarkhub.services.history import ACTION_IMPORTED, log_history

logger = logging.getLogger(__name__)

MAX_BULK_LINKS = 100
_FOLDER_HEADINGS = ("h3", "h2")


@dataclass
class ImportedBookmark:
    title: str
    url: str
    folder_path: list[str] = field(default_factory=list)
    description: str = ""
    add_date: datetime | None = None
    icon_url: str | None = None
    tags: list[str] = field(default_factory=list)

    @property
    def category_name(self) -> str | None:
        return self.folder_path[-1] if self.folder_path else None


@dataclass
class ImportSummary:
    created: int = 0
    duplicates: int = 0
    invalid: int = 0
    created_ids: list[int] = field(default_factory=list)

    def as_dict(self):
        return {
            "created": self.created,
            "duplicates": self.duplicates,
            "invalid": self.invalid,
            "created_ids": self.created_ids,
        }


def _attr(tag: Tag, name: str) -> str:
    value = tag.get(name)
    return value.strip() if isinstance(value, str) else ""


def _parse_epoch(raw: str) -> datetime | None:
    if not raw.isdigit():
        return None
    try:
        return datetime.fromtimestamp(int(raw), tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _folder_name_for(dl: Tag) -> str | None:
    # Exporters either nest the <DL> inside the folder's <DT> or emit it as
    # the next sibling of that <DT>.
    parent = dl.parent
    if isinstance(parent, Tag) and parent.name == "dt":
        heading = parent.find(_FOLDER_HEADINGS)
        if isinstance(heading, Tag):
            return heading.get_text(strip=True) or None

    previous = dl.find_previous_sibling()
    if isinstance(previous, Tag):
        if previous.name in _FOLDER_HEADINGS:
            return previous.get_text(strip=True) or None
        if previous.name == "dt":
            heading = previous.find(_FOLDER_HEADINGS)
            if isinstance(heading, Tag):
                return heading.get_text(strip=True) or None
    return None


def _folder_path(anchor: Tag) -> list[str]:
    names = []
    for dl in reversed(anchor.find_parents("dl")):
        name = _folder_name_for(dl)
        if name:
            names.append(name)
    return names


def parse_bookmark_html(html: str) -> list[ImportedBookmark]:
    """Read a Netscape bookmark export (Chrome, Firefox, Safari, Edge)."""
    soup = BeautifulSoup(html, "lxml")
    rows: list[ImportedBookmark] = []
    for anchor in soup.find_all("a"):
        if not isinstance(anchor, Tag):
            continue
        href = _attr(anchor, "href")
        if not href:
            continue
        icon_uri = _attr(anchor, "icon_uri")
        rows.append(
            ImportedBookmark(
                title=anchor.get_text(strip=True),
                url=href,
                folder_path=_folder_path(anchor),
                add_date=_parse_epoch(_attr(anchor, "add_date")),
                icon_url=icon_uri if is_valid_http_url(icon_uri) else None,
                tags=parse_tags(_attr(anchor, "tags")),
            )
        )
    return rows


def parse_bulk_links(links) -> list[ImportedBookmark]:
    if not isinstance(links, list) or not links:
        raise ValueError("At least one link is required")
    if len(links) > MAX_BULK_LINKS:
        raise ValueError(f"Maximum {MAX_BULK_LINKS} links per upload")

    rows = []
    for item in links:
        if isinstance(item, str):
            item = {"url": item}
        if not isinstance(item, dict):
            item = {}
        rows.append(
            ImportedBookmark(
                title=str(item.get("title") or "").strip()[:500],
                url=str(item.get("url") or "").strip(),
                description=str(item.get("description") or "").strip()[:5000],
            )
        )
    return rows


class _Lookup:
    def __init__(self, user_id: int):
        self.user_id = user_id
        self.categories: dict[str, Category] = {}
        self.tags: dict[str, TagModel] = {}

    def category(self, name: str) -> Category:
        key = name.strip()[:100]
        if key not in self.categories:
            category = Category.query.filter_by(user_id=self.user_id, name=key).first()
            if not category:
                category = Category(user_id=self.user_id, name=key)
                db.session.add(category)
            self.categories[key] = category
        return self.categories[key]

    def tag(self, name: str) -> TagModel:
        key = name.strip().lower()[:50]
        if key not in self.tags:
            tag = TagModel.query.filter_by(user_id=self.user_id, name=key).first()
            if not tag:
                tag = TagModel(user_id=self.user_id, name=key)
                db.session.add(tag)
            self.tags[key] = tag
        return self.tags[key]


def import_bookmarks(
    user_id: int, entries: list[ImportedBookmark], source: str
) -> ImportSummary:
    summary = ImportSummary()
    lookup = _Lookup(user_id)
    existing = {
        row.normalized_url
        for row in Bookmark.query.filter_by(user_id=user_id)
        .with_entities(Bookmark.normalized_url)
        .all()
    }

    for entry in entries:
        if not is_valid_http_url(entry.url):
            summary.invalid += 1
            continue
        normalized = normalize_url(entry.url)
        if normalized in existing:
            summary.duplicates += 1
            continue
        existing.add(normalized)

        bookmark = Bookmark(
            user_id=user_id,
            url=entry.url,
            normalized_url=normalized,
            title=(entry.title or entry.url)[:500],
            description=entry.description or None,
            favicon=entry.icon_url,
            favicon_source="import" if entry.icon_url else None,
        )
        if entry.add_date:
            bookmark.created_at = entry.add_date
        if entry.category_name:
            bookmark.categories.append(lookup.category(entry.category_name))
        for name in entry.tags:
            bookmark.tags.append(lookup.tag(name))
        db.session.add(bookmark)
        db.session.flush()
        log_history(bookmark.id, ACTION_IMPORTED, f"Imported from {source}")
        summary.created += 1
        summary.created_ids.append(bookmark.id)

    db.session.commit()
    logger.info(
        "Imported %s bookmarks for user %s from %s (%s duplicates, %s invalid)",
        summary.created,
        user_id,
        source,
        summary.duplicates,
        summary.invalid,
    )
    return summary
