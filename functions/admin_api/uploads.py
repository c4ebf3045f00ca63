"""
Image uploads into the public storage buckets.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image, UnidentifiedImageError

from admin_api.errors import ContentError
from admin_api.storage import StorageClient, StorageError
from shared.types import Bucket
from shared.utils import random_file_name

logger = logging.getLogger(__name__)

KB = 1024
MB = 1024 * KB

CARD_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")

# Formula cards are portrait 4:5.
CARD_ASPECT_RATIO = 4 / 5
CARD_ASPECT_TOLERANCE = 0.1


@dataclass(frozen=True)
class UploadRule:
    bucket: Bucket
    max_bytes: int
    allowed_types: Optional[tuple[str, ...]]
    folder: str = ""
    too_large: str = ""


FORMULA_CARD_IMAGE = UploadRule(
    bucket=Bucket.FORMULA_CARDS,
    max_bytes=250 * KB,
    allowed_types=CARD_TYPES,
    too_large="Image size must be less than 250KB",
)
BANNER_IMAGE = UploadRule(
    bucket=Bucket.BANNERS,
    max_bytes=200 * KB,
    allowed_types=CARD_TYPES,
    too_large="Image size must be less than 200KB",
)
EDITOR_IMAGE = UploadRule(
    bucket=Bucket.CONTENT,
    max_bytes=5 * MB,
    allowed_types=None,  # any image/*
    folder="question-images",
    too_large="Image size should be less than 5MB",
)


def check_upload(rule: UploadRule, content_type: Optional[str], size: int) -> None:
    content_type = (content_type or "").lower()
    if rule.allowed_types is None:
        if not content_type.startswith("image/"):
            raise ContentError("Please select an image file")
    elif content_type not in rule.allowed_types:
        raise ContentError("Please upload a valid image file (JPEG, PNG, or WebP)")
    if size > rule.max_bytes:
        raise ContentError(rule.too_large)


def aspect_ratio_warning(data: bytes) -> Optional[str]:
    """Return a warning when the image is not close to 4:5."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = float(img.width), float(img.height)
    except UnidentifiedImageError as exc:
        raise ContentError("Could not read image") from exc
    if not height:
        raise ContentError("Could not read image")
    ratio = width / height
    if abs(ratio - CARD_ASPECT_RATIO) > CARD_ASPECT_TOLERANCE:
        return (
            f"Image aspect ratio is {ratio:.2f}. "
            "Recommended aspect ratio is 4:5 (0.8)."
        )
    return None


def upload_image(
    storage: StorageClient,
    rule: UploadRule,
    filename: str,
    content_type: Optional[str],
    data: bytes,
) -> dict:
    """Validate and store an image; returns {url, path, warning}."""
    check_upload(rule, content_type, len(data))
    warning = aspect_ratio_warning(data) if rule is FORMULA_CARD_IMAGE else None

    name = random_file_name(filename or "image")
    path = f"{rule.folder}/{name}" if rule.folder else name
    try:
        storage.upload_bytes(rule.bucket.value, path, data, content_type)
    except StorageError:
        logger.exception("Upload to %s/%s failed", rule.bucket.value, path)
        raise
    return {
        "url": storage.public_url(rule.bucket.value, path),
        "path": path,
        "warning": warning,
    }
