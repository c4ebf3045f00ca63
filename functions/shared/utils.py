"""
Small helpers for slugs, timestamps and generated file names.
"""

from __future__ import annotations

import random
import re
import string
import time
import uuid
from datetime import datetime, timezone

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")


def slugify(name: str) -> str:
    """
    Derive a URL slug from a display name.

    Lower-cases, drops everything except ascii letters, digits, whitespace and
    hyphens, then collapses whitespace and hyphen runs into single hyphens.
    """
    slug = (name or "").lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def slug_error(slug: str | None) -> str | None:
    """Return a human readable problem with `slug`, or None when it is valid."""
    value = (slug or "").strip()
    if not value:
        return "Slug is required"
    if len(value) < 2:
        return "Slug must be at least 2 characters"
    if not SLUG_PATTERN.match(value):
        return "Slug can only contain lowercase letters, numbers, and hyphens"
    return None


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def start_of_day(moment: datetime | None = None) -> datetime:
    moment = moment or utcnow()
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def random_file_name(original_name: str) -> str:
    """`<epoch-ms>-<9 random chars>.<ext>`, keeping the original extension."""
    ext = original_name.rsplit(".", 1)[-1].lower() if "." in original_name else "bin"
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"{int(time.time() * 1000)}-{suffix}.{ext}"
