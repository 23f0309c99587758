# backend/routes/auth.py
from flask import Blueprint, request, jsonify
from werkzeug.security import check_password_hash
import logging
import uuid

from auth_store import issue_token, revoke_token, require_auth, token_from_request
from services.firestore_service import get_user_by_username, get_user

auth_bp = Blueprint("auth", __name__)
logger = logging.getLogger(__name__)


@auth_bp.route("/auth/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")
    if not username or not password:
        return jsonify({"error": "username and password required"}), 400

    try:
        user = get_user_by_username(username)
    except Exception as e:
        logger.exception("User lookup failed")
        return jsonify({"error": f"login failed: {e}"}), 500

    if not user:
        return jsonify({"error": "invalid credentials"}), 401
    stored_hash = user.get("password")
    if not stored_hash or not check_password_hash(stored_hash, password):
        return jsonify({"error": "invalid credentials"}), 401

    token = uuid.uuid4().hex
    issue_token(token, user["_id"])
    return jsonify({"token": token, "id": user["_id"], "username": user.get("username")})


@auth_bp.route("/auth/logout", methods=["POST"])
def logout():
    token = token_from_request(request)
    if not token or revoke_token(token) is None:
        return jsonify({"error": "unauthorized"}), 401
    return jsonify({"message": "Logged out successfully"})


@auth_bp.route("/auth/me", methods=["GET"])
def me():
    user_id = require_auth(request)
    if not user_id:
        return jsonify({"error": "unauthorized"}), 401
    user = get_user(user_id)
    if not user:
        return jsonify({"error": "unauthorized"}), 401
    return jsonify({"id": user_id, "username": user.get("username")})
