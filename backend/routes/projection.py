"""
Projection control.

POST /api/projection   body: any cross-window message, e.g.
    {"type": "project-verse", "payload": {reference, text, version, confidence}}
    {"type": "UPDATE_SETTINGS", "settings": {...}}
    {"type": "HIDE_PROJECTION"} / {"type": "SHOW_PROJECTION"} / {"type": "CLEAR_PROJECTION"}
GET  /api/projection   current frame

Socket events (default namespace):
    join-projection {token}            projection window subscribes to its operator's room
    projection      {token, message}   same commands as POST /api/projection
"""

from flask import Blueprint, request, jsonify
from flask_socketio import emit, join_room
import logging

from auth_store import require_auth, user_for_token
from errors import InvalidMessageError
from extensions import projections, socketio
from routes.settings import load_settings
from services.projection import projection_room

projection_bp = Blueprint("projection", __name__)
logger = logging.getLogger(__name__)


def display_for(user_id):
    try:
        saved = load_settings(user_id).get("projection")
    except Exception as e:
        logger.warning("Could not load projection settings for %s: %s", user_id, e)
        saved = None
    try:
        return projections.get(user_id, settings=saved)
    except InvalidMessageError as e:
        logger.warning("Ignoring invalid stored projection settings for %s: %s", user_id, e)
        return projections.get(user_id)


@projection_bp.route("/projection", methods=["POST"])
def send_command():
    user_id = require_auth(request)
    if not user_id:
        return jsonify({"error": "unauthorized"}), 401

    message = request.get_json(silent=True)
    display = display_for(user_id)
    try:
        display.handle(message)
    except InvalidMessageError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(display.frame()["payload"])


@projection_bp.route("/projection", methods=["GET"])
def current_frame():
    user_id = require_auth(request)
    if not user_id:
        return jsonify({"error": "unauthorized"}), 401
    return jsonify(display_for(user_id).frame()["payload"])


@socketio.on("join-projection")
def on_join_projection(data):
    user_id = user_for_token((data or {}).get("token"))
    if not user_id:
        emit("error", {"message": "unauthorized"})
        return
    join_room(projection_room(user_id))
    emit("projection-frame", display_for(user_id).frame())


@socketio.on("projection")
def on_projection_command(data):
    data = data or {}
    user_id = user_for_token(data.get("token"))
    if not user_id:
        emit("error", {"message": "unauthorized"})
        return
    try:
        display_for(user_id).handle(data.get("message"))
    except InvalidMessageError as e:
        emit("error", {"message": str(e)})
