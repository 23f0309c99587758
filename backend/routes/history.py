# backend/routes/history.py
from flask import Blueprint, request, jsonify
import logging

from auth_store import require_auth
from config import HISTORY_LIMIT
from services.firestore_service import add_detection_history, get_detection_history, add_feedback

history_bp = Blueprint("history", __name__)
logger = logging.getLogger(__name__)


@history_bp.route("/detection-history", methods=["GET"])
def list_history():
    user_id = require_auth(request)
    if not user_id:
        return jsonify({"error": "unauthorized"}), 401
    try:
        items = get_detection_history(user_id, limit=HISTORY_LIMIT)
    except Exception as e:
        logger.exception("Fetching detection history failed")
        return jsonify({"error": f"failed to fetch detection history: {e}"}), 500
    return jsonify(items)


@history_bp.route("/detection-history", methods=["POST"])
def create_history():
    """
    Body: { reference, text, version, confidence? }
    Called when an operator projects a verse.
    """
    user_id = require_auth(request)
    if not user_id:
        return jsonify({"error": "unauthorized"}), 401

    data = request.get_json(silent=True) or {}
    reference = data.get("reference")
    text = data.get("text")
    version = data.get("version")
    if not reference or not text or not version:
        return jsonify({"error": "reference, text and version are required"}), 400

    confidence = data.get("confidence")
    if confidence is not None:
        try:
            confidence = int(confidence)
        except (TypeError, ValueError):
            return jsonify({"error": "confidence must be a number"}), 400

    try:
        item = add_detection_history(user_id, {
            "reference": reference,
            "text": text,
            "version": version,
            "confidence": confidence,
        })
    except Exception as e:
        logger.exception("Saving detection history failed")
        return jsonify({"error": f"failed to add detection history: {e}"}), 500
    return jsonify(item), 201


@history_bp.route("/feedback", methods=["POST"])
def create_feedback():
    """
    Body: { transcription, selectedVerse, confidenceScores? }
    """
    user_id = require_auth(request)
    if not user_id:
        return jsonify({"error": "unauthorized"}), 401

    data = request.get_json(silent=True) or {}
    transcription = data.get("transcription")
    selected_verse = data.get("selectedVerse")
    if not transcription or not selected_verse:
        return jsonify({"error": "transcription and selectedVerse are required"}), 400

    try:
        item = add_feedback(user_id, {
            "transcription": transcription,
            "selected_verse": selected_verse,
            "confidence_scores": data.get("confidenceScores"),
        })
    except Exception as e:
        logger.exception("Saving feedback failed")
        return jsonify({"error": f"failed to add feedback: {e}"}), 500
    return jsonify(item), 201
