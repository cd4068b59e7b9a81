from functools import wraps

from flask import g, jsonify, request
from flask_login import current_user

from bookmarkhub.extensions import db
from bookmarkhub.models import ApiToken, utcnow


def bearer_token_from_request() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header.removeprefix("Bearer ").strip() or None


def _token_row_from_request():
    token = bearer_token_from_request()
    if not token:
        return None
    row = ApiToken.query.filter_by(token_hash=ApiToken.hash_token(token)).first()
    if not row or row.revoked_at is not None:
        return None
    return row


def get_authenticated_api_user():
    if current_user.is_authenticated:
        return current_user
    row = _token_row_from_request()
    if row is None or not row.user.is_active:
        return None
    row.last_used_at = utcnow()
    db.session.commit()
    g.api_token = row
    return row.user


def api_auth_required(admin=False):
    def decorator(func):
        @wraps(func)
        def wrapped(*args, **kwargs):
            user = get_authenticated_api_user()
            if not user:
                return jsonify({"error": "authentication required"}), 401
            if admin and not user.is_admin:
                return jsonify({"error": "admin access required"}), 403
            g.api_user = user
            return func(*args, **kwargs)

        return wrapped

    return decorator
