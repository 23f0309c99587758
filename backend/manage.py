# manage.py
"""
Maintenance commands. Run from the backend directory:
    python manage.py seed-verses data/sample_verses.json
    python manage.py create-user pastor s3cret
"""
import argparse
import json
import logging
from pathlib import Path

from werkzeug.security import generate_password_hash

from app import init_firebase
from models import VerseRecord
from services.firestore_service import add_verse, create_user, get_user_by_username

logger = logging.getLogger(__name__)


def seed_verses(json_path):
    """Load a JSON list of {reference, text, version}; existing verses are skipped."""
    rows = json.loads(Path(json_path).read_text(encoding="utf-8"))
    added = 0
    for row in rows:
        record = VerseRecord(reference=row["reference"], text=row["text"], version=row["version"])
        if add_verse(record):
            added += 1
    logger.info("Loaded %d of %d verses from %s", added, len(rows), json_path)
    return added


def add_operator(username, password):
    if get_user_by_username(username):
        raise SystemExit(f"user {username!r} already exists")
    user_id = create_user(username, generate_password_hash(password))
    logger.info("Created user %s (%s)", username, user_id)
    return user_id


def main(argv=None):
    p = argparse.ArgumentParser(description="Verse projection maintenance")
    sub = p.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed-verses", help="load verses from a JSON file")
    seed.add_argument("path", nargs="?", default=str(Path(__file__).parent / "data" / "sample_verses.json"))

    user = sub.add_parser("create-user", help="create an operator account")
    user.add_argument("username")
    user.add_argument("password")

    args = p.parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    init_firebase()

    if args.command == "seed-verses":
        seed_verses(args.path)
    elif args.command == "create-user":
        add_operator(args.username, args.password)


if __name__ == "__main__":
    main()
