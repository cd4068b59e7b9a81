from __future__ import annotations

import re

from flask import current_app, g, jsonify, request
from werkzeug.exceptions import HTTPException

from bookmarkhub.api import api_bp
from bookmarkhub.extensions import db
from bookmarkhub.models import (
    PRIORITIES,
    PRIORITY_MEDIUM,
    ApiToken,
    Bookmark,
    Category,
    DEFAULT_CATEGORY_COLOR,
    DEFAULT_CATEGORY_ICON,
    DEFAULT_TAG_COLOR,
    Tag,
    User,
    utcnow,
)
from bookmarkhub.services.bookmark_import import (
    import_bookmarks,
    parse_bookmark_html,
    parse_bulk_links,
)
from bookmarkhub.services.common import (
    MAX_URL_LENGTH,
    is_valid_http_url,
    normalize_url,
    parse_tags,
)
from bookmarkhub.services.engagement import record_visit
from bookmarkhub.services.enhance import (
    bulk_enhance,
    enhance_bookmark_logo,
    enhancement_stats,
)
from bookmarkhub.services.favicon import resolve_favicon
from bookmarkhub.services.history import ACTION_CREATED, ACTION_UPDATED, log_history
from bookmarkhub.services.link_checks import (
    PROBLEMATIC_RESULTS,
    check_link,
    record_link_check,
)
from bookmarkhub.services.listing import ListingError, list_bookmarks, parse_listing_params
from bookmarkhub.services.metadata import fetch_website_metadata
from bookmarkhub.services.search import search_bookmarks
from bookmarkhub.services.security import api_auth_required
from bookmarkhub.services.storage import StorageError, get_storage

MAX_TITLE_LENGTH = 500
MAX_DESCRIPTION_LENGTH = 5000
MAX_CATEGORY_NAME_LENGTH = 100
MAX_TAG_NAME_LENGTH = 50

_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


class PayloadError(ValueError):
    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


@api_bp.errorhandler(PayloadError)
def payload_error(exc: PayloadError):
    db.session.rollback()
    return jsonify({"error": str(exc)}), exc.status


@api_bp.errorhandler(StorageError)
def storage_error(exc: StorageError):
    db.session.rollback()
    current_app.logger.error("Object storage error: %s", exc)
    return jsonify({"error": "object storage unavailable", "details": str(exc)}), 502


@api_bp.errorhandler(Exception)
def unexpected_error(exc: Exception):
    if isinstance(exc, HTTPException):
        return jsonify({"error": exc.description}), exc.code
    db.session.rollback()
    current_app.logger.exception("Unhandled API error on %s", request.path)
    return jsonify({"error": "internal server error"}), 500


def _to_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _payload() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _text(payload: dict, name: str, max_length: int, label: str) -> str:
    value = str(payload.get(name) or "").strip()
    if len(value) > max_length:
        raise PayloadError(f"{label} too long")
    return value


def _priority(value) -> str:
    priority = str(value or PRIORITY_MEDIUM).strip().upper()
    if priority not in PRIORITIES:
        raise PayloadError(f"priority must be one of {', '.join(PRIORITIES)}")
    return priority


def _color(value, default: str) -> str:
    if value in (None, ""):
        return default
    if not isinstance(value, str) or not _COLOR_RE.match(value):
        raise PayloadError("Invalid color format")
    return value


def _id_list(payload: dict, name: str) -> list[int]:
    raw = payload.get(name) or []
    if not isinstance(raw, list):
        raise PayloadError(f"{name} must be a list")
    try:
        return sorted({int(item) for item in raw})
    except (TypeError, ValueError) as exc:
        raise PayloadError(f"{name} must contain integer ids") from exc


def _owned(model, user_id: int, ids: list[int], label: str) -> list:
    if not ids:
        return []
    rows = model.query.filter(model.user_id == user_id, model.id.in_(ids)).all()
    if len(rows) != len(ids):
        raise PayloadError(f"unknown {label} id")
    return rows


def _tags_by_name(user_id: int, names) -> list[Tag]:
    if isinstance(names, list):
        names = ",".join(str(item) for item in names if item is not None)
    tags = []
    for name in parse_tags(names or ""):
        if len(name) > MAX_TAG_NAME_LENGTH:
            raise PayloadError("Tag name too long")
        tag = Tag.query.filter_by(user_id=user_id, name=name).first()
        if not tag:
            tag = Tag(user_id=user_id, name=name)
            db.session.add(tag)
        tags.append(tag)
    return tags


def _assign_labels(user_id: int, bookmark: Bookmark, payload: dict) -> None:
    if "category_ids" in payload:
        bookmark.categories = _owned(
            Category, user_id, _id_list(payload, "category_ids"), "category"
        )
    if "tag_ids" in payload or "tags" in payload:
        tags = _owned(Tag, user_id, _id_list(payload, "tag_ids"), "tag")
        for tag in _tags_by_name(user_id, payload.get("tags")):
            if tag not in tags:
                tags.append(tag)
        bookmark.tags = tags


def _favicon_options() -> dict:
    config = current_app.config
    return {
        "probe_timeout": config["FAVICON_PROBE_TIMEOUT"],
        "fetch_timeout": config["CONTENT_FETCH_TIMEOUT"],
    }


def _get_user_bookmark_or_404(user_id: int, bookmark_id: int):
    bookmark = Bookmark.query.filter_by(id=bookmark_id, user_id=user_id).first()
    if not bookmark:
        return None, (jsonify({"error": "bookmark not found"}), 404)
    return bookmark, None


def _duplicate_response(existing: Bookmark):
    return (
        jsonify(
            {
                "error": "Duplicate bookmark",
                "message": (
                    "This URL already exists in your bookmarks: "
                    f'"{existing.title}"'
                ),
                "duplicate": True,
                "existing_bookmark": {
                    "id": existing.id,
                    "title": existing.title,
                    "url": existing.url,
                    "created_at": existing.created_at.isoformat(),
                },
            }
        ),
        409,
    )


def _create_user(payload: dict, is_admin: bool):
    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""
    if not username or not password:
        return None, (jsonify({"error": "username and password are required"}), 400)
    if User.query.filter_by(username=username).first():
        return None, (jsonify({"error": "username already exists"}), 409)

    user = User(username=username, is_admin=is_admin, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user, None


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "BookmarkHub"})


@api_bp.route("/auth/bootstrap-admin", methods=["POST"])
def bootstrap_admin_api():
    if User.query.count() > 0:
        return jsonify({"error": "bootstrap already completed"}), 409
    user, error = _create_user(_payload(), is_admin=True)
    if error:
        return error
    return jsonify({"status": "created", "user_id": user.id}), 201


@api_bp.route("/signup", methods=["POST"])
def signup_api():
    if not current_app.config.get("SIGNUP_ENABLED"):
        return jsonify({"error": "signup is disabled"}), 403
    user, error = _create_user(_payload(), is_admin=False)
    if error:
        return error
    return jsonify({"status": "created", "user_id": user.id}), 201


@api_bp.route("/auth/token", methods=["POST"])
def create_token_with_credentials():
    payload = _payload()
    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""
    token_name = (payload.get("token_name") or "BookmarkHub API Token").strip()

    user = User.query.filter_by(username=username).first()
    if not user or not user.is_active or not user.check_password(password):
        return jsonify({"error": "invalid credentials"}), 401

    token, token_hash = ApiToken.issue_token()
    db.session.add(ApiToken(user_id=user.id, name=token_name, token_hash=token_hash))
    db.session.commit()
    return jsonify({"token": token, "token_name": token_name, "user_id": user.id})


@api_bp.route("/auth/token", methods=["DELETE"])
@api_auth_required()
def revoke_current_token():
    row = g.get("api_token")
    if row is None:
        return jsonify({"error": "no bearer token on this request"}), 400
    row.revoked_at = utcnow()
    db.session.commit()
    return jsonify({"status": "revoked"})


@api_bp.route("/admin/users", methods=["POST"])
@api_auth_required(admin=True)
def admin_create_user():
    payload = _payload()
    user, error = _create_user(payload, is_admin=_to_bool(payload.get("is_admin")))
    if error:
        return error
    return jsonify({"status": "created", "user_id": user.id}), 201


@api_bp.route("/admin/users", methods=["GET"])
@api_auth_required(admin=True)
def admin_list_users():
    users = User.query.order_by(User.created_at.desc()).all()
    return jsonify({"items": [user.as_dict() for user in users]})


@api_bp.route("/categories", methods=["GET"])
@api_auth_required()
def categories_list():
    user = g.api_user
    items = (
        Category.query.filter_by(user_id=user.id).order_by(Category.name.asc()).all()
    )
    return jsonify({"items": [item.as_dict() for item in items]})


@api_bp.route("/categories", methods=["POST"])
@api_auth_required()
def categories_create():
    user = g.api_user
    payload = _payload()
    name = _text(payload, "name", MAX_CATEGORY_NAME_LENGTH, "Name")
    if not name:
        return jsonify({"error": "Name is required"}), 400
    if Category.query.filter_by(user_id=user.id, name=name).first():
        return (
            jsonify(
                {
                    "error": f'A category named "{name}" already exists. '
                    "Please choose a different name."
                }
            ),
            409,
        )

    category = Category(
        user_id=user.id,
        name=name,
        description=str(payload.get("description") or ""),
        color=_color(payload.get("color"), DEFAULT_CATEGORY_COLOR),
        icon=_text(payload, "icon", 50, "Icon") or DEFAULT_CATEGORY_ICON,
    )
    db.session.add(category)
    db.session.commit()
    return jsonify(category.as_dict()), 201


def _get_user_category_or_404(user_id: int, category_id: int):
    category = Category.query.filter_by(id=category_id, user_id=user_id).first()
    if not category:
        return None, (jsonify({"error": "category not found"}), 404)
    return category, None


@api_bp.route("/categories/<int:category_id>", methods=["GET"])
@api_auth_required()
def categories_get(category_id: int):
    category, error = _get_user_category_or_404(g.api_user.id, category_id)
    if error:
        return error
    payload = category.as_dict()
    payload["bookmarks"] = [bookmark.as_dict() for bookmark in category.bookmarks]
    return jsonify(payload)


@api_bp.route("/categories/<int:category_id>", methods=["PATCH"])
@api_auth_required()
def categories_update(category_id: int):
    user = g.api_user
    category, error = _get_user_category_or_404(user.id, category_id)
    if error:
        return error

    payload = _payload()
    if "name" in payload:
        name = _text(payload, "name", MAX_CATEGORY_NAME_LENGTH, "Name")
        if not name:
            return jsonify({"error": "Name is required"}), 400
        clash = Category.query.filter(
            Category.user_id == user.id,
            Category.name == name,
            Category.id != category.id,
        ).first()
        if clash:
            return jsonify({"error": f'A category named "{name}" already exists.'}), 409
        category.name = name
    if "description" in payload:
        category.description = str(payload.get("description") or "")
    if "color" in payload:
        category.color = _color(payload.get("color"), DEFAULT_CATEGORY_COLOR)
    if "icon" in payload:
        category.icon = _text(payload, "icon", 50, "Icon") or DEFAULT_CATEGORY_ICON
    if "logo" in payload:
        category.logo = (payload.get("logo") or "").strip() or None
    db.session.commit()
    return jsonify(category.as_dict())


@api_bp.route("/categories/<int:category_id>", methods=["DELETE"])
@api_auth_required()
def categories_delete(category_id: int):
    category, error = _get_user_category_or_404(g.api_user.id, category_id)
    if error:
        return error
    category.bookmarks.clear()
    db.session.delete(category)
    db.session.commit()
    return jsonify({"status": "deleted"})


@api_bp.route("/categories/<int:category_id>/logo", methods=["POST"])
@api_auth_required()
def categories_resolve_logo(category_id: int):
    category, error = _get_user_category_or_404(g.api_user.id, category_id)
    if error:
        return error

    url = (_payload().get("url") or "").strip()
    if not is_valid_http_url(url):
        return jsonify({"error": "a valid url is required"}), 400
    result = resolve_favicon(url, **_favicon_options())
    if result is None:
        return jsonify({"error": "could not resolve a logo"}), 422
    category.logo = result.url
    db.session.commit()
    return jsonify({"category": category.as_dict(), "logo": result.as_dict()})


@api_bp.route("/categories/bulk-assign", methods=["POST"])
@api_auth_required()
def categories_bulk_assign():
    user = g.api_user
    payload = _payload()
    try:
        category_id = int(payload.get("category_id"))
    except (TypeError, ValueError):
        return jsonify({"error": "category_id is required"}), 400
    category, error = _get_user_category_or_404(user.id, category_id)
    if error:
        return error

    bookmarks = _owned(Bookmark, user.id, _id_list(payload, "bookmark_ids"), "bookmark")
    replace = (payload.get("mode") or "add").strip().lower() == "replace"
    for bookmark in bookmarks:
        if replace:
            bookmark.categories = [category]
        elif category not in bookmark.categories:
            bookmark.categories.append(category)
        log_history(bookmark.id, ACTION_UPDATED, f"Assigned to category {category.name}")
    db.session.commit()
    return jsonify({"status": "assigned", "updated": len(bookmarks)})


@api_bp.route("/tags", methods=["GET"])
@api_auth_required()
def tags_list():
    user = g.api_user
    tags = Tag.query.filter_by(user_id=user.id).order_by(Tag.name.asc()).all()
    return jsonify({"items": [tag.as_dict() for tag in tags]})


@api_bp.route("/tags", methods=["POST"])
@api_auth_required()
def tags_create():
    user = g.api_user
    payload = _payload()
    name = _text(payload, "name", MAX_TAG_NAME_LENGTH, "Tag name").lower()
    if not name:
        return jsonify({"error": "Name is required"}), 400
    if Tag.query.filter_by(user_id=user.id, name=name).first():
        return (
            jsonify(
                {
                    "error": f'A tag named "{name}" already exists. '
                    "Please choose a different name."
                }
            ),
            409,
        )

    tag = Tag(
        user_id=user.id,
        name=name,
        color=_color(payload.get("color"), DEFAULT_TAG_COLOR),
    )
    db.session.add(tag)
    db.session.commit()
    return jsonify(tag.as_dict()), 201


@api_bp.route("/tags/<int:tag_id>", methods=["PATCH"])
@api_auth_required()
def tags_update(tag_id: int):
    user = g.api_user
    tag = Tag.query.filter_by(id=tag_id, user_id=user.id).first()
    if not tag:
        return jsonify({"error": "tag not found"}), 404

    payload = _payload()
    if "name" in payload:
        name = _text(payload, "name", MAX_TAG_NAME_LENGTH, "Tag name").lower()
        if not name:
            return jsonify({"error": "Name is required"}), 400
        clash = Tag.query.filter(
            Tag.user_id == user.id, Tag.name == name, Tag.id != tag.id
        ).first()
        if clash:
            return jsonify({"error": f'A tag named "{name}" already exists.'}), 409
        tag.name = name
    if "color" in payload:
        tag.color = _color(payload.get("color"), DEFAULT_TAG_COLOR)
    db.session.commit()
    return jsonify(tag.as_dict())


@api_bp.route("/tags/<int:tag_id>", methods=["DELETE"])
@api_auth_required()
def tags_delete(tag_id: int):
    tag = Tag.query.filter_by(id=tag_id, user_id=g.api_user.id).first()
    if not tag:
        return jsonify({"error": "tag not found"}), 404
    tag.bookmarks.clear()
    db.session.delete(tag)
    db.session.commit()
    return jsonify({"status": "deleted"})


@api_bp.route("/bookmarks", methods=["GET"])
@api_auth_required()
def bookmarks_list_api():
    user = g.api_user
    try:
        params = parse_listing_params(request.args)
    except ListingError as exc:
        return jsonify({"error": str(exc)}), 400

    page = list_bookmarks(Bookmark.query.filter_by(user_id=user.id).all(), params)
    usage = page.pop("usage")
    page["items"] = [
        {**bookmark.as_dict(), "usage_percentage": usage[bookmark.id]}
        for bookmark in page["items"]
    ]
    return jsonify(page)


@api_bp.route("/bookmarks", methods=["POST"])
@api_auth_required()
def bookmarks_create_api():
    user = g.api_user
    payload = _payload()
    url = _text(payload, "url", MAX_URL_LENGTH, "URL")
    title = _text(payload, "title", MAX_TITLE_LENGTH, "Title")
    if not title or not url:
        return jsonify({"error": "Title and URL are required"}), 400
    if not is_valid_http_url(url):
        return jsonify({"error": "Invalid URL format"}), 400

    normalized = normalize_url(url)
    existing = Bookmark.query.filter_by(
        user_id=user.id, normalized_url=normalized
    ).first()
    if existing:
        return _duplicate_response(existing)

    bookmark = Bookmark(
        user_id=user.id,
        url=url,
        normalized_url=normalized,
        title=title,
        description=_text(payload, "description", MAX_DESCRIPTION_LENGTH, "Description")
        or None,
        priority=_priority(payload.get("priority")),
        is_favorite=_to_bool(payload.get("is_favorite")),
        is_archived=_to_bool(payload.get("is_archived")),
    )
    _assign_labels(user.id, bookmark, payload)

    supplied_favicon = (payload.get("favicon") or "").strip() or None
    if _to_bool(payload.get("resolve_favicon"), default=True):
        try:
            result = resolve_favicon(url, **_favicon_options())
        except Exception:
            current_app.logger.exception("Favicon resolution failed for %s", url)
            result = None
        if result is not None:
            bookmark.favicon = result.url
            bookmark.favicon_source = result.source
    if not bookmark.favicon and supplied_favicon:
        bookmark.favicon = supplied_favicon
        bookmark.favicon_source = "client"

    db.session.add(bookmark)
    db.session.flush()
    log_history(bookmark.id, ACTION_CREATED, "Bookmark created")
    db.session.commit()
    return jsonify(bookmark.as_dict()), 201


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["GET"])
@api_auth_required()
def bookmarks_get_api(bookmark_id: int):
    bookmark, error = _get_user_bookmark_or_404(g.api_user.id, bookmark_id)
    if error:
        return error
    return jsonify(bookmark.as_dict(include_history=True))


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["PATCH", "PUT"])
@api_auth_required()
def bookmarks_update_api(bookmark_id: int):
    user = g.api_user
    bookmark, error = _get_user_bookmark_or_404(user.id, bookmark_id)
    if error:
        return error

    payload = _payload()
    if "url" in payload:
        url = _text(payload, "url", MAX_URL_LENGTH, "URL")
        if not is_valid_http_url(url):
            return jsonify({"error": "Invalid URL format"}), 400
        normalized = normalize_url(url)
        clash = Bookmark.query.filter(
            Bookmark.user_id == user.id,
            Bookmark.normalized_url == normalized,
            Bookmark.id != bookmark.id,
        ).first()
        if clash:
            return _duplicate_response(clash)
        bookmark.url = url
        bookmark.normalized_url = normalized
    if "title" in payload:
        bookmark.title = (
            _text(payload, "title", MAX_TITLE_LENGTH, "Title") or bookmark.title
        )
    if "description" in payload:
        bookmark.description = (
            _text(payload, "description", MAX_DESCRIPTION_LENGTH, "Description")
            or None
        )
    if "favicon" in payload:
        bookmark.favicon = (payload.get("favicon") or "").strip() or None
        bookmark.favicon_source = "client" if bookmark.favicon else None
    if "priority" in payload:
        bookmark.priority = _priority(payload.get("priority"))
    for flag in ("is_favorite", "is_archived"):
        if flag in payload:
            setattr(bookmark, flag, _to_bool(payload.get(flag)))
    _assign_labels(user.id, bookmark, payload)

    log_history(bookmark.id, ACTION_UPDATED, "Bookmark updated")
    db.session.commit()
    return jsonify(bookmark.as_dict())


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["DELETE"])
@api_auth_required()
def bookmarks_delete_api(bookmark_id: int):
    bookmark, error = _get_user_bookmark_or_404(g.api_user.id, bookmark_id)
    if error:
        return error
    bookmark.categories.clear()
    bookmark.tags.clear()
    db.session.delete(bookmark)
    db.session.commit()
    return jsonify({"status": "deleted"})


@api_bp.route("/bookmarks/<int:bookmark_id>/track-visit", methods=["POST"])
@api_auth_required()
def bookmarks_track_visit(bookmark_id: int):
    bookmark, error = _get_user_bookmark_or_404(g.api_user.id, bookmark_id)
    if error:
        return error

    raw = _payload().get("time_spent")
    time_spent = int(raw) if isinstance(raw, (int, float)) and raw > 0 else 0
    record_visit(bookmark, time_spent=time_spent)
    db.session.commit()
    return jsonify(
        {
            "success": True,
            "total_visits": bookmark.total_visits,
            "engagement_score": bookmark.engagement_score,
            "time_spent": bookmark.time_spent,
        }
    )


@api_bp.route("/bookmarks/<int:bookmark_id>/enhance-logo", methods=["POST"])
@api_auth_required()
def bookmarks_enhance_logo(bookmark_id: int):
    bookmark, error = _get_user_bookmark_or_404(g.api_user.id, bookmark_id)
    if error:
        return error

    config = current_app.config
    current_app.logger.info("Enhancing logo for bookmark %s", bookmark.id)
    outcome = enhance_bookmark_logo(
        bookmark,
        get_storage(),
        min_dimension=config["LOGO_MIN_DIMENSION"],
        target=config["LOGO_TARGET_DIMENSION"],
        **_favicon_options(),
    )
    db.session.commit()
    return jsonify(outcome.as_dict()), (200 if outcome.success else 400)


@api_bp.route("/bookmarks/enhance-all", methods=["GET"])
@api_auth_required()
def bookmarks_enhance_stats():
    return jsonify(enhancement_stats(g.api_user.id))


@api_bp.route("/bookmarks/enhance-all", methods=["POST"])
@api_auth_required()
def bookmarks_enhance_all():
    args = request.args
    result = bulk_enhance(
        g.api_user.id,
        limit=args.get("limit", type=int) or 50,
        skip=args.get("skip", type=int) or 0,
        only_missing=_to_bool(args.get("only_missing")),
        only_low_quality=_to_bool(args.get("only_low_quality")),
        delay=current_app.config["ENHANCE_DELAY_SECONDS"],
        **_favicon_options(),
    )
    return jsonify(result)


@api_bp.route("/bookmarks/<int:bookmark_id>/check", methods=["POST"])
@api_auth_required()
def check_single_bookmark(bookmark_id: int):
    bookmark, error = _get_user_bookmark_or_404(g.api_user.id, bookmark_id)
    if error:
        return error

    result = check_link(
        bookmark.url, timeout=current_app.config["CONTENT_FETCH_TIMEOUT"]
    )
    check = record_link_check(bookmark, result)
    db.session.commit()
    return jsonify(
        {
            "status": "checked",
            "bookmark": bookmark.as_dict(),
            "result": check.result_type,
            "status_code": check.status_code,
            "latency_ms": check.latency_ms,
        }
    )


@api_bp.route("/checks/dead", methods=["GET"])
@api_auth_required()
def dead_links_api():
    items = (
        Bookmark.query.filter_by(user_id=g.api_user.id)
        .filter(Bookmark.link_status.in_(sorted(PROBLEMATIC_RESULTS)))
        .order_by(Bookmark.last_checked_at.desc())
        .all()
    )
    return jsonify({"items": [item.as_dict() for item in items]})


@api_bp.route("/metadata", methods=["GET"])
@api_auth_required()
def metadata_api():
    url = (request.args.get("url") or "").strip()
    if not url:
        return jsonify({"error": "URL is required"}), 400
    if not is_valid_http_url(url):
        return jsonify({"error": "Invalid URL format"}), 400

    config = current_app.config
    metadata = fetch_website_metadata(
        url,
        timeout=config["CONTENT_FETCH_TIMEOUT"],
        max_bytes=config["CONTENT_MAX_BYTES"],
    )
    if metadata is None:
        return jsonify({"error": "Failed to fetch metadata"}), 502
    return jsonify(metadata.as_dict())


@api_bp.route("/search", methods=["GET"])
@api_auth_required()
def search_api():
    query = (request.args.get("q") or "").strip()
    if not query:
        return jsonify({"items": []})
    if len(query) > 500:
        return jsonify({"error": "Query too long"}), 400

    source = Bookmark.query.filter_by(user_id=g.api_user.id).all()
    ranked = search_bookmarks(source, query, limit=request.args.get("limit", type=int))
    return jsonify(
        {
            "items": [
                {
                    **item["bookmark"].as_dict(),
                    "score": item["score"],
                    "match_reasons": item["reasons"],
                }
                for item in ranked
            ]
        }
    )


@api_bp.route("/import/browser-html", methods=["POST"])
@api_auth_required()
def import_browser_html_api():
    upload = request.files.get("file")
    if not upload:
        return jsonify({"error": "file field is required"}), 400

    html = upload.read().decode("utf-8", errors="ignore")
    entries = parse_bookmark_html(html)
    summary = import_bookmarks(g.api_user.id, entries, source="browser export")
    return jsonify({"status": "done", "total": len(entries), **summary.as_dict()})


@api_bp.route("/import/bulk", methods=["POST"])
@api_auth_required()
def import_bulk_api():
    try:
        entries = parse_bulk_links(_payload().get("links"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    summary = import_bookmarks(g.api_user.id, entries, source="bulk upload")
    return jsonify({"status": "done", "total": len(entries), **summary.as_dict()})
