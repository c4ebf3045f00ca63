"""
Admin dashboard statistics.

Each figure is fetched on its own; a failure logs and reports zero so one
broken source never blanks the whole dashboard.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import timedelta

from admin_api.db import DbClient
from admin_api.storage import StorageClient
from shared.types import Bucket
from shared.utils import start_of_day, utcnow

logger = logging.getLogger(__name__)

ACTIVE_SESSION_WINDOW = timedelta(minutes=15)
RECENT_ACTIVITY_LIMIT = 5


def users_data(db: DbClient) -> dict:
    try:
        users = db.select("users")
        return {
            "total": len(users),
            "roles": dict(Counter(u.get("role") for u in users if u.get("role"))),
        }
    except Exception:
        logger.exception("Error fetching users data")
        return {"total": 0, "roles": {}}


def banners_data(db: DbClient) -> dict:
    try:
        total = db.count("banners")
        active = db.count("banners", eq={"is_active": True})
        return {"total": total, "active": active, "inactive": total - active}
    except Exception:
        logger.exception("Error fetching banners data")
        return {"total": 0, "active": 0, "inactive": 0}


def active_sessions(db: DbClient) -> int:
    try:
        since = utcnow() - ACTIVE_SESSION_WINDOW
        return db.count("users", gt={"last_sign_in_at": since})
    except Exception:
        logger.exception("Error fetching sessions data")
        return 0


def logins_today(db: DbClient) -> int:
    try:
        return db.count("users", gt={"last_sign_in_at": start_of_day()})
    except Exception:
        logger.exception("Error fetching today logins")
        return 0


def recent_activities(db: DbClient) -> list[dict]:
    try:
        return db.select(
            "audit_logs",
            order_by="created_at",
            ascending=False,
            limit=RECENT_ACTIVITY_LIMIT,
        )
    except Exception:
        logger.exception("Error fetching activities")
        return []


def format_megabytes(total_bytes: int) -> str:
    return f"{total_bytes / (1024 * 1024):.2f} MB"


def storage_usage(storage: StorageClient, bucket: Bucket = Bucket.BANNERS) -> str:
    try:
        return format_megabytes(sum(obj.size for obj in storage.list_objects(bucket.value)))
    except Exception:
        logger.exception("Error fetching storage usage")
        return "0 MB"


def dashboard_stats(db: DbClient, storage: StorageClient) -> dict:
    users = users_data(db)
    banners = banners_data(db)
    sessions = active_sessions(db)
    return {
        "total_users": users["total"],
        "user_roles": users["roles"],
        "total_banners": banners["total"],
        "active_banners": banners["active"],
        "inactive_banners": banners["inactive"],
        "active_sessions": sessions,
        "online_users": sessions,
        "today_logins": logins_today(db),
        "storage_usage": storage_usage(storage),
        "recent_activities": recent_activities(db),
    }
