# backend/routes/settings.py
from flask import Blueprint, request, jsonify
import logging

from auth_store import require_auth
from config import DEFAULT_BIBLE_VERSION, DEFAULT_CONFIDENCE_THRESHOLD
from errors import InvalidMessageError
from extensions import projections
from services.firestore_service import get_settings, save_settings
from services.projection import ProjectionSettings, validate_settings

settings_bp = Blueprint("settings", __name__)
logger = logging.getLogger(__name__)


def default_settings():
    return {
        "bibleVersion": DEFAULT_BIBLE_VERSION,
        "fontSize": 24,
        "textColor": "#FFFFFF",
        "backgroundColor": "#000000",
        "fontFamily": "Roboto",
        "confidenceThreshold": DEFAULT_CONFIDENCE_THRESHOLD,
        "audioInput": "default",
        "projection": ProjectionSettings().to_dict(),
    }


# key -> accepted python types
SETTING_TYPES = {
    "bibleVersion": str,
    "fontSize": int,
    "textColor": str,
    "backgroundColor": str,
    "fontFamily": str,
    "confidenceThreshold": int,
    "audioInput": str,
}


def load_settings(user_id):
    """Stored settings for the user, creating the defaults on first access."""
    stored = get_settings(user_id)
    if stored is None:
        return save_settings(user_id, default_settings())
    return {**default_settings(), **stored}


@settings_bp.route("/settings", methods=["GET"])
def read_settings():
    user_id = require_auth(request)
    if not user_id:
        return jsonify({"error": "unauthorized"}), 401
    try:
        return jsonify(load_settings(user_id))
    except Exception as e:
        logger.exception("Fetching settings failed")
        return jsonify({"error": f"failed to fetch settings: {e}"}), 500


@settings_bp.route("/settings", methods=["PUT"])
def write_settings():
    user_id = require_auth(request)
    if not user_id:
        return jsonify({"error": "unauthorized"}), 401

    data = request.get_json(silent=True) or {}
    changes = {}
    for key, expected in SETTING_TYPES.items():
        if key not in data or data[key] is None:
            continue
        value = data[key]
        if isinstance(value, bool) or not isinstance(value, expected):
            return jsonify({"error": f"{key} must be {expected.__name__}"}), 400
        changes[key] = value
    if "confidenceThreshold" in changes and not 0 <= changes["confidenceThreshold"] <= 100:
        return jsonify({"error": "confidenceThreshold must be between 0 and 100"}), 400

    projection_changes = None
    if data.get("projection") is not None:
        try:
            projection_changes = validate_settings(data["projection"])
        except InvalidMessageError as e:
            return jsonify({"error": str(e)}), 400

    try:
        current = load_settings(user_id)
        current.update(changes)
        if projection_changes:
            current["projection"] = {**current.get("projection", {}), **projection_changes}
        save_settings(user_id, current)
    except Exception as e:
        logger.exception("Updating settings failed")
        return jsonify({"error": f"failed to update settings: {e}"}), 500

    if projection_changes:
        display = projections.find(user_id)
        if display is not None:
            display.update_settings(projection_changes)
    return jsonify(current)
