"""
Routes for verse lookup.

GET /api/verses/search?q=<text or reference>&version=KJV
GET /api/verses/<reference>?version=KJV
GET /api/bible/status
"""

from flask import Blueprint, request, jsonify
import logging

from auth_store import require_auth
from config import DEFAULT_BIBLE_VERSION
from errors import VerseNotFoundError
from models import VerseMatch
from services.firestore_service import (
    get_verse_by_reference,
    get_verses_count_by_version,
    require_verse,
    search_verses_by_text,
)
from services.verse_matcher import parse_reference

verses_bp = Blueprint("verses", __name__)
logger = logging.getLogger(__name__)


def search_verses(query, version):
    """A bare reference returns that verse at 100; anything else is a text search."""
    reference = parse_reference(query)
    if reference:
        record = get_verse_by_reference(reference, version)
        return [VerseMatch.from_record(record, 100)] if record else []

    records = search_verses_by_text(query, version)
    return [VerseMatch.from_record(r, max(95 - rank * 5, 50)) for rank, r in enumerate(records)]


@verses_bp.route("/verses/search", methods=["GET"])
def verses_search():
    if not require_auth(request):
        return jsonify({"error": "unauthorized"}), 401

    query = (request.args.get("q") or "").strip()
    version = request.args.get("version") or DEFAULT_BIBLE_VERSION
    if not query:
        return jsonify({"error": "search query (q) is required"}), 400

    try:
        matches = search_verses(query, version)
    except Exception as e:
        logger.exception("Verse search failed")
        return jsonify({"error": f"failed to search verses: {e}"}), 500
    return jsonify([m.to_dict() for m in matches])


@verses_bp.route("/verses/<path:reference>", methods=["GET"])
def verse_detail(reference):
    if not require_auth(request):
        return jsonify({"error": "unauthorized"}), 401

    version = request.args.get("version") or DEFAULT_BIBLE_VERSION
    lookup = parse_reference(reference) or reference.strip()
    try:
        record = require_verse(lookup, version)
    except VerseNotFoundError:
        return jsonify({"error": "verse not found"}), 404
    except Exception as e:
        logger.exception("Verse lookup failed")
        return jsonify({"error": f"failed to fetch verse: {e}"}), 500
    return jsonify(VerseMatch.from_record(record, 100).to_dict())


@verses_bp.route("/bible/status", methods=["GET"])
def bible_status():
    try:
        by_version = get_verses_count_by_version()
    except Exception as e:
        logger.exception("Verse count failed")
        return jsonify({"error": f"failed to get Bible database status: {e}"}), 500

    total = sum(by_version.values())
    if total > 500:
        status = "Complete"
    elif total > 100:
        status = "Partial"
    else:
        status = "Minimal"
    return jsonify({"totalVerses": total, "byVersion": by_version, "status": status})
