import hashlib
import secrets
from datetime import datetime, timezone

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from bookmarkhub.extensions import db, login_manager


PRIORITY_LOW = "LOW"
PRIORITY_MEDIUM = "MEDIUM"
PRIORITY_HIGH = "HIGH"
PRIORITY_URGENT = "URGENT"
PRIORITIES = (PRIORITY_LOW, PRIORITY_MEDIUM, PRIORITY_HIGH, PRIORITY_URGENT)

DEFAULT_CATEGORY_COLOR = "#3B82F6"
DEFAULT_CATEGORY_ICON = "folder"
DEFAULT_TAG_COLOR = "#10B981"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


bookmark_categories = db.Table(
    "bookmark_categories",
    db.Column(
        "bookmark_id", db.Integer, db.ForeignKey("bookmarks.id"), primary_key=True
    ),
    db.Column(
        "category_id", db.Integer, db.ForeignKey("categories.id"), primary_key=True
    ),
)

bookmark_tags = db.Table(
    "bookmark_tags",
    db.Column(
        "bookmark_id", db.Integer, db.ForeignKey("bookmarks.id"), primary_key=True
    ),
    db.Column("tag_id", db.Integer, db.ForeignKey("tags.id"), primary_key=True),
)


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    bookmarks = db.relationship("Bookmark", backref="user", lazy=True)
    categories = db.relationship("Category", backref="user", lazy=True)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def as_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "is_admin": self.is_admin,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
        }


@login_manager.user_loader
def load_user(user_id: str):
    return db.session.get(User, int(user_id))


class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    color = db.Column(db.String(7), nullable=False, default=DEFAULT_CATEGORY_COLOR)
    icon = db.Column(db.String(50), nullable=False, default=DEFAULT_CATEGORY_ICON)
    logo = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "name", name="uq_category_user_name"),
    )

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "icon": self.icon,
            "logo": self.logo,
            "bookmark_count": len(self.bookmarks),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class Tag(db.Model):
    __tablename__ = "tags"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    name = db.Column(db.String(50), nullable=False)
    color = db.Column(db.String(7), nullable=False, default=DEFAULT_TAG_COLOR)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (db.UniqueConstraint("user_id", "name", name="uq_tag_user_name"),)

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "bookmark_count": len(self.bookmarks),
            "created_at": self.created_at.isoformat(),
        }


class Bookmark(db.Model):
    __tablename__ = "bookmarks"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )

    url = db.Column(db.String(2048), nullable=False)
    normalized_url = db.Column(db.String(2048), nullable=False, index=True)
    title = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=True)
    favicon = db.Column(db.Text, nullable=True)
    favicon_source = db.Column(db.String(64), nullable=True)
    priority = db.Column(db.String(16), nullable=False, default=PRIORITY_MEDIUM)
    is_favorite = db.Column(db.Boolean, nullable=False, default=False)
    is_archived = db.Column(db.Boolean, nullable=False, default=False)

    total_visits = db.Column(db.Integer, nullable=False, default=0)
    time_spent = db.Column(db.Integer, nullable=False, default=0)
    engagement_score = db.Column(db.Integer, nullable=False, default=0)
    last_visited_at = db.Column(db.DateTime(timezone=True), nullable=True)

    link_status = db.Column(db.String(64), nullable=True)
    last_checked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    categories = db.relationship(
        "Category", secondary=bookmark_categories, backref="bookmarks"
    )
    tags = db.relationship("Tag", secondary=bookmark_tags, backref="bookmarks")
    history = db.relationship(
        "BookmarkHistory",
        backref="bookmark",
        cascade="all, delete-orphan",
        order_by="BookmarkHistory.created_at.desc()",
    )
    link_checks = db.relationship(
        "LinkCheck", backref="bookmark", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "normalized_url", name="uq_bookmark_user_normalized_url"
        ),
        db.Index("ix_bookmark_user_created", "user_id", "created_at"),
    )

    def as_dict(self, include_history=False):
        payload = {
            "id": self.id,
            "url": self.url,
            "normalized_url": self.normalized_url,
            "title": self.title,
            "description": self.description or "",
            "favicon": self.favicon or "",
            "favicon_source": self.favicon_source,
            "priority": self.priority,
            "is_favorite": self.is_favorite,
            "is_archived": self.is_archived,
            "categories": [
                {"id": c.id, "name": c.name, "color": c.color} for c in self.categories
            ],
            "category": (
                {
                    "id": self.categories[0].id,
                    "name": self.categories[0].name,
                    "color": self.categories[0].color,
                }
                if self.categories
                else None
            ),
            "tags": [{"id": t.id, "name": t.name, "color": t.color} for t in self.tags],
            "visit_count": self.total_visits,
            "time_spent": self.time_spent,
            "engagement_score": self.engagement_score,
            "last_visited_at": _iso(self.last_visited_at),
            "link_status": self.link_status,
            "last_checked_at": _iso(self.last_checked_at),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if include_history:
            payload["history"] = [entry.as_dict() for entry in self.history]
        return payload


class BookmarkHistory(db.Model):
    __tablename__ = "bookmark_history"

    id = db.Column(db.Integer, primary_key=True)
    bookmark_id = db.Column(
        db.Integer, db.ForeignKey("bookmarks.id"), nullable=False, index=True
    )
    action = db.Column(db.String(32), nullable=False)
    details = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def as_dict(self):
        return {
            "id": self.id,
            "action": self.action,
            "details": self.details,
            "created_at": self.created_at.isoformat(),
        }


class LinkCheck(db.Model):
    __tablename__ = "link_checks"

    id = db.Column(db.Integer, primary_key=True)
    bookmark_id = db.Column(
        db.Integer, db.ForeignKey("bookmarks.id"), nullable=False, index=True
    )
    checked_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    status_code = db.Column(db.Integer, nullable=True)
    final_url = db.Column(db.Text, nullable=True)
    result_type = db.Column(db.String(64), nullable=False)
    latency_ms = db.Column(db.Integer, nullable=True)
    error = db.Column(db.Text, nullable=True)


class ApiToken(db.Model):
    __tablename__ = "api_tokens"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    name = db.Column(db.String(120), nullable=False)
    token_hash = db.Column(db.String(128), nullable=False, unique=True)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    user = db.relationship("User", backref="api_tokens")

    @staticmethod
    def hash_token(token: str) -> str:
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    @classmethod
    def issue_token(cls, prefix="bh"):
        token = f"{prefix}_{secrets.token_urlsafe(32)}"
        return token, cls.hash_token(token)
