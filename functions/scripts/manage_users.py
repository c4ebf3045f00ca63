"""
Operator commands for the admin panel: grant roles and seed exams.

Roles live in the `users` table; the auth service only knows identities, so
granting admin access means writing the role row for an existing auth user.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from admin_api.content import create_exam, slug_available
from admin_api.dependencies import get_change_feed, get_db_client
from admin_api.errors import ContentError
from shared.types import Role
from shared.utils import slugify

logger = logging.getLogger(__name__)


def grant_role(db, user_id: str, email: str, role: str) -> dict:
    if db.get("users", user_id):
        return db.update("users", user_id, {"email": email, "role": role})
    return db.insert("users", {"id": user_id, "email": email, "role": role})


def seed_exams(db, feed, names: list[str]) -> int:
    created = 0
    for name in names:
        if not slug_available(db, "exams", slugify(name)):
            logger.info("Exam %s already exists, skipping", name)
            continue
        try:
            create_exam(db, feed, name)
        except ContentError as exc:
            logger.error("Could not create exam %s: %s", name, exc.message)
            continue
        created += 1
    return created


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="LearnVerse admin user tools")
    sub = parser.add_subparsers(dest="command", required=True)

    grant = sub.add_parser("grant-role", help="Create or update a user's role")
    grant.add_argument("user_id", help="Auth user id")
    grant.add_argument("email")
    grant.add_argument("role", choices=[r.value for r in Role])

    seed = sub.add_parser("seed-exams", help="Insert exams by name")
    seed.add_argument("names", nargs="+")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    db = get_db_client()
    if args.command == "grant-role":
        row = grant_role(db, args.user_id, args.email, args.role)
        logger.info("User %s now has role %s", row["id"], row["role"])
    else:
        created = seed_exams(db, get_change_feed(), args.names)
        logger.info("Created %d exam(s)", created)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
