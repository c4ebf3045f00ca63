"""
Homepage banner management.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from admin_api.content import publish, require_row
from admin_api.db import DbClient
from admin_api.errors import ContentError, ValidationFailed
from admin_api.realtime import ChangeFeed
from shared.types import ChangeType

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "image_url", "redirect_url", "is_active", "position")


def list_banners(db: DbClient, page: int = 1, limit: int = 10) -> dict:
    page = max(page, 1)
    limit = max(limit, 1)
    total = db.count("banners")
    banners = db.select(
        "banners",
        order_by="position",
        offset=(page - 1) * limit,
        limit=limit,
    )
    return {
        "banners": banners,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


def _next_position(db: DbClient) -> int:
    top = db.select("banners", order_by="position", ascending=False, limit=1)
    # NULL positions sort first when descending; treat them as 0.
    return (top[0]["position"] or 0) + 1 if top else 0


def create_banner(
    db: DbClient,
    feed: ChangeFeed,
    title: Optional[str],
    image_url: Optional[str],
    redirect_url: Optional[str] = None,
    is_active: bool = True,
) -> dict:
    if not (title or "").strip() or not image_url:
        raise ContentError("Title and image URL are required")
    banner = db.insert(
        "banners",
        {
            "title": title.strip(),
            "image_url": image_url,
            "redirect_url": redirect_url or None,
            "is_active": is_active,
            "position": _next_position(db),
        },
    )
    publish(feed, "banners", ChangeType.INSERT, banner["id"])
    return banner


def get_banner(db: DbClient, banner_id: str) -> dict:
    return require_row(db, "banners", banner_id, "Banner")


def update_banner(db: DbClient, feed: ChangeFeed, banner_id: str, data: dict) -> dict:
    require_row(db, "banners", banner_id, "Banner")
    values = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
    errors = {}
    if "title" in values and not (values["title"] or "").strip():
        errors["title"] = "Title is required"
    if "image_url" in values and not values["image_url"]:
        errors["image_url"] = "Image is required"
    if "position" in values and values["position"] is None:
        errors["position"] = "Position is required"
    if "is_active" in values and values["is_active"] is None:
        errors["is_active"] = "Active status is required"
    if errors:
        raise ValidationFailed(errors)
    if "redirect_url" in values:
        values["redirect_url"] = values["redirect_url"] or None
    banner = db.update("banners", banner_id, values)
    publish(feed, "banners", ChangeType.UPDATE, banner_id)
    return banner


def toggle_banner(db: DbClient, feed: ChangeFeed, banner_id: str) -> dict:
    banner = require_row(db, "banners", banner_id, "Banner")
    return update_banner(db, feed, banner_id, {"is_active": not banner["is_active"]})


def move_banner(db: DbClient, feed: ChangeFeed, banner_id: str, position: int) -> dict:
    # Positions are not renumbered; two banners may share one until moved.
    return update_banner(db, feed, banner_id, {"position": position})


def delete_banner(db: DbClient, feed: ChangeFeed, banner_id: str) -> None:
    require_row(db, "banners", banner_id, "Banner")
    db.delete("banners", banner_id)
    publish(feed, "banners", ChangeType.DELETE, banner_id)
