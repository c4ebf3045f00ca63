"""
CRUD rules for the content hierarchy: exams, subjects, chapters, topics and
formula cards.

The hosted database does not cascade or validate any of this, so every rule
lives here: parents must exist, slugs are unique in their scope, and rows with
children cannot be deleted.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Optional

from admin_api.db import DbClient
from admin_api.errors import ConflictError, NotFoundError, ValidationFailed
from admin_api.realtime import ChangeEvent, ChangeFeed
from shared.types import AuditAction, ChangeType
from shared.utils import slug_error, slugify

logger = logging.getLogger(__name__)

SUBJECT_SORT_FIELDS = ("order", "name", "slug", "created_at")
CHAPTER_SORT_FIELDS = ("order", "name", "slug", "created_at")
TOPIC_SORT_FIELDS = ("order", "name", "slug", "created_at")
FORMULA_CARD_SORT_FIELDS = ("order", "title", "created_at")


def json_safe(value: Any) -> Any:
    """Make a row storable in a JSON column."""
    if isinstance(value, dict):
        return {k: json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def publish(feed: ChangeFeed, table: str, event: ChangeType, record_id: str) -> None:
    feed.publish(ChangeEvent(table=table, event=event, record_id=record_id))


def record_audit(
    db: DbClient,
    user_id: Optional[str],
    action: AuditAction,
    resource_id: str,
    details: dict,
) -> None:
    # The content change already happened; a failed audit write must not undo it.
    try:
        db.insert(
            "audit_logs",
            {
                "user_id": user_id,
                "action": action.value,
                "resource_id": resource_id,
                "details": json_safe(details),
            },
        )
    except Exception:
        logger.exception("Failed to write audit log %s for %s", action.value, resource_id)


def require_row(db: DbClient, table: str, row_id: Optional[str], label: str) -> dict:
    row = db.get(table, row_id) if row_id else None
    if not row:
        raise NotFoundError(f"{label} not found")
    return row


def _sort_args(sort_by: Optional[str], sort_order: str, allowed: tuple) -> tuple[str, bool]:
    column = sort_by if sort_by in allowed else allowed[0]
    return column, (sort_order or "asc").lower() != "desc"


def _ids(rows: list[dict]) -> list[str]:
    return [r["id"] for r in rows]


def _pick(row: Optional[dict], *fields: str) -> Optional[dict]:
    if not row:
        return None
    return {f: row.get(f) for f in fields}


def slug_available(
    db: DbClient,
    table: str,
    slug: str,
    *,
    exclude_id: Optional[str] = None,
    scope: Optional[dict] = None,
) -> bool:
    """True when no other row in `table` (within `scope`) uses `slug`."""
    eq = {"slug": slug}
    eq.update(scope or {})
    return all(row["id"] == exclude_id for row in db.select(table, eq=eq))


def _check_order(data: dict, errors: dict) -> None:
    if data.get("order") is None:
        data.pop("order", None)
        return
    try:
        order = int(data["order"])
    except (TypeError, ValueError):
        errors["order"] = "Order must be a number"
        return
    if order < 0:
        errors["order"] = "Order must be a positive number"
    else:
        data["order"] = order


def _check_name(data: dict, field: str, label: str, errors: dict, partial: bool) -> None:
    if partial and field not in data:
        return
    value = (data.get(field) or "").strip()
    if not value:
        errors[field] = f"{label} is required"
    elif len(value) < 2:
        errors[field] = f"{label} must be at least 2 characters"
    else:
        data[field] = value


def _check_slug(data: dict, errors: dict, partial: bool) -> None:
    if partial and "slug" not in data:
        return
    if not (data.get("slug") or "").strip() and data.get("name"):
        data["slug"] = slugify(data["name"])
    problem = slug_error(data.get("slug"))
    if problem:
        errors["slug"] = problem
    else:
        data["slug"] = data["slug"].strip()


# --- Exams -----------------------------------------------------------------


def list_exams(db: DbClient) -> list[dict]:
    return db.select("exams", order_by="name")


def create_exam(db: DbClient, feed: ChangeFeed, name: str, slug: Optional[str] = None) -> dict:
    data = {"name": name, "slug": slug}
    errors: dict[str, str] = {}
    _check_name(data, "name", "Exam name", errors, partial=False)
    _check_slug(data, errors, partial=False)
    if errors:
        raise ValidationFailed(errors)
    if not slug_available(db, "exams", data["slug"]):
        raise ConflictError("This slug is already taken")
    exam = db.insert("exams", data)
    publish(feed, "exams", ChangeType.INSERT, exam["id"])
    return exam


# --- Subjects --------------------------------------------------------------


def _subject_counts(db: DbClient, subject_id: str) -> dict:
    chapters = db.select("chapters", eq={"subject_id": subject_id})
    counts = {"chapters_count": len(chapters), "topics_count": 0, "formula_cards_count": 0}
    if not chapters:
        return counts
    topics = db.select("topics", in_={"chapter_id": _ids(chapters)})
    counts["topics_count"] = len(topics)
    if topics:
        counts["formula_cards_count"] = db.count(
            "formula_cards", in_={"topic_id": _ids(topics)}
        )
    return counts


def _with_exam(db: DbClient, subject: dict) -> dict:
    exam = db.get("exams", subject["exam_id"]) if subject.get("exam_id") else None
    return {**subject, "exam": _pick(exam, "id", "name")}


def list_subjects(
    db: DbClient,
    *,
    search: Optional[str] = None,
    exam_id: Optional[str] = None,
    sort_by: Optional[str] = "order",
    sort_order: str = "asc",
) -> list[dict]:
    column, ascending = _sort_args(sort_by, sort_order, SUBJECT_SORT_FIELDS)
    subjects = db.select(
        "subjects",
        eq={"exam_id": exam_id} if exam_id else None,
        search=search,
        search_fields=("name", "slug"),
        order_by=column,
        ascending=ascending,
    )
    results = []
    for subject in subjects:
        try:
            counts = _subject_counts(db, subject["id"])
        except Exception:
            logger.exception("Error fetching counts for subject %s", subject["id"])
            counts = {"chapters_count": 0, "topics_count": 0, "formula_cards_count": 0}
        results.append({**_with_exam(db, subject), **counts})
    return results


def get_subject(db: DbClient, subject_id: str) -> dict:
    subject = require_row(db, "subjects", subject_id, "Subject")
    return {**_with_exam(db, subject), **_subject_counts(db, subject_id)}


def _validate_subject(db: DbClient, data: dict, *, subject_id: Optional[str] = None) -> dict:
    partial = subject_id is not None
    errors: dict[str, str] = {}
    if "exam_id" in data:
        # An empty selection clears the exam.
        data["exam_id"] = data["exam_id"] or None
        if data["exam_id"] and not db.get("exams", data["exam_id"]):
            errors["exam_id"] = "Exam not found"
    _check_name(data, "name", "Subject name", errors, partial)
    _check_slug(data, errors, partial)
    _check_order(data, errors)
    if errors:
        raise ValidationFailed(errors)
    if "slug" in data and not slug_available(db, "subjects", data["slug"], exclude_id=subject_id):
        raise ConflictError("This slug is already taken")
    return data


def create_subject(db: DbClient, feed: ChangeFeed, data: dict) -> dict:
    data = _validate_subject(db, dict(data))
    subject = db.insert("subjects", data)
    publish(feed, "subjects", ChangeType.INSERT, subject["id"])
    return subject


def update_subject(db: DbClient, feed: ChangeFeed, subject_id: str, data: dict) -> dict:
    require_row(db, "subjects", subject_id, "Subject")
    data = _validate_subject(db, dict(data), subject_id=subject_id)
    subject = db.update("subjects", subject_id, data)
    publish(feed, "subjects", ChangeType.UPDATE, subject_id)
    return subject


def delete_subject(db: DbClient, feed: ChangeFeed, subject_id: str) -> None:
    require_row(db, "subjects", subject_id, "Subject")
    if db.select("chapters", eq={"subject_id": subject_id}, limit=1):
        raise ConflictError(
            "Cannot delete subject that has chapters. Please delete all chapters first."
        )
    db.delete("subjects", subject_id)
    publish(feed, "subjects", ChangeType.DELETE, subject_id)


# --- Chapters --------------------------------------------------------------


def _chapter_counts(db: DbClient, chapter_id: str) -> dict:
    topics = db.select("topics", eq={"chapter_id": chapter_id})
    cards = (
        db.count("formula_cards", in_={"topic_id": _ids(topics)}) if topics else 0
    )
    return {"topics_count": len(topics), "formula_cards_count": cards}


def _with_subject(db: DbClient, chapter: dict) -> dict:
    subject = db.get("subjects", chapter["subject_id"]) if chapter.get("subject_id") else None
    return {**chapter, "subject": _pick(subject, "id", "name", "exam_id")}


def list_chapters(
    db: DbClient,
    *,
    search: Optional[str] = None,
    subject_id: Optional[str] = None,
    sort_by: Optional[str] = "order",
    sort_order: str = "asc",
) -> list[dict]:
    column, ascending = _sort_args(sort_by, sort_order, CHAPTER_SORT_FIELDS)
    chapters = db.select(
        "chapters",
        eq={"subject_id": subject_id} if subject_id else None,
        search=search,
        search_fields=("name", "slug"),
        order_by=column,
        ascending=ascending,
    )
    return [
        {**_with_subject(db, chapter), **_chapter_counts(db, chapter["id"])}
        for chapter in chapters
    ]


def get_chapter(db: DbClient, chapter_id: str) -> dict:
    chapter = require_row(db, "chapters", chapter_id, "Chapter")
    return {**_with_subject(db, chapter), **_chapter_counts(db, chapter_id)}


def _validate_chapter(db: DbClient, data: dict, *, chapter_id: Optional[str] = None) -> dict:
    partial = chapter_id is not None
    errors: dict[str, str] = {}
    if not partial or "subject_id" in data:
        if not data.get("subject_id"):
            errors["subject_id"] = "Subject is required"
        elif not db.get("subjects", data["subject_id"]):
            errors["subject_id"] = "Subject not found"
    _check_name(data, "name", "Chapter name", errors, partial)
    _check_slug(data, errors, partial)
    _check_order(data, errors)
    if errors:
        raise ValidationFailed(errors)
    if "slug" in data and not slug_available(db, "chapters", data["slug"], exclude_id=chapter_id):
        raise ConflictError("This slug is already taken")
    return data


def create_chapter(db: DbClient, feed: ChangeFeed, data: dict) -> dict:
    data = _validate_chapter(db, dict(data))
    chapter = db.insert("chapters", data)
    publish(feed, "chapters", ChangeType.INSERT, chapter["id"])
    return chapter


def update_chapter(db: DbClient, feed: ChangeFeed, chapter_id: str, data: dict) -> dict:
    require_row(db, "chapters", chapter_id, "Chapter")
    data = _validate_chapter(db, dict(data), chapter_id=chapter_id)
    chapter = db.update("chapters", chapter_id, data)
    publish(feed, "chapters", ChangeType.UPDATE, chapter_id)
    return chapter


def delete_chapter(db: DbClient, feed: ChangeFeed, chapter_id: str) -> None:
    require_row(db, "chapters", chapter_id, "Chapter")
    if db.select("topics", eq={"chapter_id": chapter_id}, limit=1):
        raise ConflictError(
            "Cannot delete chapter that has topics. Please delete all topics first."
        )
    db.delete("chapters", chapter_id)
    publish(feed, "chapters", ChangeType.DELETE, chapter_id)


# --- Topics ----------------------------------------------------------------


def next_order(db: DbClient, table: str, scope: Optional[dict] = None) -> int:
    """Highest `order` in scope plus one; 1 for an empty scope."""
    rows = db.select(table, eq=scope or None, order_by="order", ascending=False, limit=1)
    return (rows[0]["order"] or 0) + 1 if rows else 1


def _with_chapter(db: DbClient, row: dict) -> dict:
    chapter = db.get("chapters", row["chapter_id"]) if row.get("chapter_id") else None
    if chapter:
        chapter = _with_subject(db, _pick(chapter, "id", "name", "subject_id"))
    return {**row, "chapter": chapter}


def list_topics(
    db: DbClient,
    *,
    search: Optional[str] = None,
    chapter_id: Optional[str] = None,
    subject_id: Optional[str] = None,
    sort_by: Optional[str] = "order",
    sort_order: str = "asc",
) -> list[dict]:
    column, ascending = _sort_args(sort_by, sort_order, TOPIC_SORT_FIELDS)
    eq, in_ = None, None
    if chapter_id:
        eq = {"chapter_id": chapter_id}
    elif subject_id:
        chapters = db.select("chapters", eq={"subject_id": subject_id})
        in_ = {"chapter_id": _ids(chapters)}
    topics = db.select(
        "topics",
        eq=eq,
        in_=in_,
        search=search,
        search_fields=("name", "slug"),
        order_by=column,
        ascending=ascending,
    )
    return [
        {
            **_with_chapter(db, topic),
            "formula_cards_count": db.count("formula_cards", eq={"topic_id": topic["id"]}),
        }
        for topic in topics
    ]


def get_topic(db: DbClient, topic_id: str) -> dict:
    topic = require_row(db, "topics", topic_id, "Topic")
    return {
        **_with_chapter(db, topic),
        "formula_cards_count": db.count("formula_cards", eq={"topic_id": topic_id}),
    }


def recent_topics(db: DbClient, limit: int = 5) -> list[dict]:
    topics = db.select("topics", order_by="created_at", ascending=False, limit=limit)
    return [_with_chapter(db, topic) for topic in topics]


def _validate_topic(db: DbClient, data: dict, *, current: Optional[dict] = None) -> dict:
    partial = current is not None
    errors: dict[str, str] = {}
    _check_name(data, "name", "Topic name", errors, partial)
    _check_slug(data, errors, partial)
    if not partial or "chapter_id" in data:
        if not data.get("chapter_id"):
            errors["chapter_id"] = "Please select a chapter"
        elif not db.get("chapters", data["chapter_id"]):
            errors["chapter_id"] = "Chapter not found"
    _check_order(data, errors)
    if errors:
        raise ValidationFailed(errors)

    chapter_id = data.get("chapter_id") or (current or {}).get("chapter_id")
    slug = data.get("slug") or (current or {}).get("slug")
    if ("slug" in data or "chapter_id" in data) and not slug_available(
        db,
        "topics",
        slug,
        exclude_id=(current or {}).get("id"),
        scope={"chapter_id": chapter_id},
    ):
        raise ConflictError("This slug is already taken in this chapter")
    return data


def create_topic(db: DbClient, feed: ChangeFeed, data: dict, user_id: Optional[str]) -> dict:
    data = _validate_topic(db, dict(data))
    if not data.get("order"):
        data["order"] = next_order(db, "topics", {"chapter_id": data["chapter_id"]})
    data["created_by"] = user_id
    topic = db.insert("topics", data)
    record_audit(
        db,
        user_id,
        AuditAction.CREATE_TOPIC,
        topic["id"],
        {"topic_name": topic["name"], "chapter_id": topic["chapter_id"]},
    )
    publish(feed, "topics", ChangeType.INSERT, topic["id"])
    logger.info("Topic %s created by %s", topic["id"], user_id)
    return topic


def update_topic(
    db: DbClient, feed: ChangeFeed, topic_id: str, data: dict, user_id: Optional[str]
) -> dict:
    current = require_row(db, "topics", topic_id, "Topic")
    data = _validate_topic(db, dict(data), current=current)
    topic = db.update("topics", topic_id, data)
    record_audit(
        db,
        user_id,
        AuditAction.UPDATE_TOPIC,
        topic_id,
        {"old_data": current, "new_data": data},
    )
    publish(feed, "topics", ChangeType.UPDATE, topic_id)
    return topic


def delete_topic(db: DbClient, feed: ChangeFeed, topic_id: str, user_id: Optional[str]) -> None:
    topic = require_row(db, "topics", topic_id, "Topic")
    cards = db.count("formula_cards", eq={"topic_id": topic_id})
    if cards > 0:
        raise ConflictError(
            f"Cannot delete topic with {cards} formula card(s). "
            "Delete all formula cards first."
        )
    db.delete("topics", topic_id)
    record_audit(
        db,
        user_id,
        AuditAction.DELETE_TOPIC,
        topic_id,
        {"topic_name": topic["name"], "chapter_id": topic["chapter_id"]},
    )
    publish(feed, "topics", ChangeType.DELETE, topic_id)


# --- Formula cards -----------------------------------------------------------


def _with_card_parents(db: DbClient, card: dict) -> dict:
    topic = db.get("topics", card["topic_id"]) if card.get("topic_id") else None
    chapter = db.get("chapters", card["chapter_id"]) if card.get("chapter_id") else None
    return {
        **card,
        "topic": _pick(topic, "id", "name"),
        "chapter": _pick(chapter, "id", "name", "subject_id"),
    }


def list_formula_cards(
    db: DbClient,
    *,
    search: Optional[str] = None,
    chapter_id: Optional[str] = None,
    topic_id: Optional[str] = None,
    sort_by: Optional[str] = "order",
    sort_order: str = "asc",
) -> list[dict]:
    column, ascending = _sort_args(sort_by, sort_order, FORMULA_CARD_SORT_FIELDS)
    eq = {}
    if chapter_id:
        eq["chapter_id"] = chapter_id
    if topic_id:
        eq["topic_id"] = topic_id
    cards = db.select(
        "formula_cards",
        eq=eq or None,
        search=search,
        search_fields=("title", "formula_text", "tags"),
        order_by=column,
        ascending=ascending,
    )
    return [_with_card_parents(db, card) for card in cards]


def get_formula_card(db: DbClient, card_id: str) -> dict:
    return _with_card_parents(db, require_row(db, "formula_cards", card_id, "Formula card"))


def _validate_formula_card(db: DbClient, data: dict, *, current: Optional[dict] = None) -> dict:
    partial = current is not None
    errors: dict[str, str] = {}
    if not partial or "title" in data:
        title = (data.get("title") or "").strip()
        if not title:
            errors["title"] = "Title is required"
        else:
            data["title"] = title
    if not partial or "chapter_id" in data:
        if not data.get("chapter_id"):
            errors["chapter_id"] = "Chapter is required"
        elif not db.get("chapters", data["chapter_id"]):
            errors["chapter_id"] = "Chapter not found"
    if not partial or "topic_id" in data:
        if not data.get("topic_id"):
            errors["topic_id"] = "Topic is required"
    if not partial or "image_url" in data:
        if not data.get("image_url"):
            errors["image"] = "Formula card image is required"
    _check_order(data, errors)
    if errors:
        raise ValidationFailed(errors)

    chapter_id = data.get("chapter_id") or (current or {}).get("chapter_id")
    topic_id = data.get("topic_id") or (current or {}).get("topic_id")
    topic = db.get("topics", topic_id)
    if not topic:
        raise ValidationFailed({"topic_id": "Topic not found"})
    if topic["chapter_id"] != chapter_id:
        raise ValidationFailed({"topic_id": "Topic does not belong to the selected chapter"})
    return data


def create_formula_card(db: DbClient, feed: ChangeFeed, data: dict) -> dict:
    data = _validate_formula_card(db, dict(data))
    if not data.get("order"):
        data["order"] = next_order(db, "formula_cards", {"topic_id": data["topic_id"]})
    card = db.insert("formula_cards", data)
    publish(feed, "formula_cards", ChangeType.INSERT, card["id"])
    return card


def update_formula_card(db: DbClient, feed: ChangeFeed, card_id: str, data: dict) -> dict:
    current = require_row(db, "formula_cards", card_id, "Formula card")
    data = _validate_formula_card(db, dict(data), current=current)
    card = db.update("formula_cards", card_id, data)
    publish(feed, "formula_cards", ChangeType.UPDATE, card_id)
    return card


def delete_formula_card(db: DbClient, feed: ChangeFeed, card_id: str) -> None:
    require_row(db, "formula_cards", card_id, "Formula card")
    db.delete("formula_cards", card_id)
    publish(feed, "formula_cards", ChangeType.DELETE, card_id)


# --- Stats -----------------------------------------------------------------


def content_stats(db: DbClient) -> dict:
    return {
        "total_subjects": db.count("subjects"),
        "total_chapters": db.count("chapters"),
        "total_topics": db.count("topics"),
        "total_formula_cards": db.count("formula_cards"),
    }
