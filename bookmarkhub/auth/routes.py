from flask import jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from bookmarkhub.auth import auth_bp
from bookmarkhub.extensions import login_manager
from bookmarkhub.models import User


@auth_bp.route("/login", methods=["POST"])
def login():
    if User.query.count() == 0:
        return jsonify({"error": "no users yet, bootstrap an admin first"}), 409

    payload = request.get_json(silent=True) or {}
    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""

    user = User.query.filter_by(username=username).first()
    if not user or not user.is_active or not user.check_password(password):
        return jsonify({"error": "invalid credentials"}), 401
    login_user(user, remember=bool(payload.get("remember")))
    return jsonify({"status": "logged_in", "user": user.as_dict()})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"status": "logged_out"})


@auth_bp.route("/me")
@login_required
def me():
    return jsonify(current_user.as_dict())


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "authentication required"}), 401
