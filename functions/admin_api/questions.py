"""
Question bank: validation, creation, listing and numeric answer checks.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from admin_api.content import publish, require_row
from admin_api.db import DbClient
from admin_api.errors import ContentError, ValidationFailed
from admin_api.realtime import ChangeFeed
from shared.types import SHIFTS, TOLERANCE_CHOICES, ChangeType, Difficulty, QuestionCategory, QuestionType
from shared.utils import utcnow

logger = logging.getLogger(__name__)

MIN_YEAR = 2000
MIN_OPTIONS = 2

LIST_FILTERS = (
    "exam_id",
    "subject_id",
    "chapter_id",
    "topic_id",
    "question_type",
    "category",
    "difficulty_category",
)


def option_id(index: int) -> str:
    return chr(ord("A") + index)


def build_options(option_inputs: list[str]) -> list[dict]:
    """
    Turn the option input boxes into stored option blocks.

    Ids follow the input position, so a blank "B" box leaves a gap rather than
    renaming "C".
    """
    return [
        {"id": option_id(i), "blocks": [{"type": "text", "content": content}]}
        for i, content in enumerate(option_inputs)
        if content and content.strip()
    ]


def _parse_number(value) -> Optional[Decimal]:
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def parse_tolerance(tolerance: Optional[str], custom: Optional[str]) -> tuple[Decimal, bool]:
    """
    Return (amount, is_percent) for a stored tolerance.

    `5` is the ±5 % choice; `custom` reads `custom_tolerance`, which is either
    an absolute amount (`0.05`) or a percentage (`2%`).
    """
    tolerance = (tolerance or "0").strip()
    if tolerance == "5":
        return Decimal(5), True
    if tolerance != "custom":
        amount = _parse_number(tolerance)
        if amount is None:
            raise ContentError(f"Invalid tolerance: {tolerance}")
        return amount, False

    raw = (custom or "").strip()
    is_percent = raw.endswith("%")
    amount = _parse_number(raw.rstrip("%"))
    if amount is None or amount < 0:
        raise ContentError(f"Invalid custom tolerance: {custom}")
    return amount, is_percent


def answer_matches(
    expected: str,
    submitted: str,
    tolerance: Optional[str],
    custom_tolerance: Optional[str] = None,
) -> bool:
    expected_value = _parse_number(expected)
    submitted_value = _parse_number(submitted)
    if expected_value is None:
        raise ContentError("Question does not have a numeric answer")
    if submitted_value is None:
        return False
    amount, is_percent = parse_tolerance(tolerance, custom_tolerance)
    allowed = abs(expected_value) * amount / 100 if is_percent else amount
    return abs(submitted_value - expected_value) <= allowed


def _validate(db: DbClient, data: dict) -> dict[str, str]:
    errors: dict[str, str] = {}
    for field, label, table in (
        ("exam_id", "Exam", "exams"),
        ("subject_id", "Subject", "subjects"),
        ("chapter_id", "Chapter", "chapters"),
    ):
        if not data.get(field):
            errors[field] = f"{label} is required"
        elif not db.get(table, data[field]):
            errors[field] = f"{label} not found"
    if data.get("topic_id") and not db.get("topics", data["topic_id"]):
        errors["topic_id"] = "Topic not found"
    if not (data.get("question_blocks") or "").strip():
        errors["question_blocks"] = "Question content is required"

    difficulty = data.get("difficulty_category")
    if not difficulty:
        errors["difficulty_category"] = "Difficulty is required"
    elif difficulty not in {d.value for d in Difficulty}:
        errors["difficulty_category"] = "Unknown difficulty"

    category = data.get("category") or QuestionCategory.PYQ.value
    if category not in {c.value for c in QuestionCategory}:
        errors["category"] = "Category must be PYQ or DPP"
    elif category == QuestionCategory.PYQ.value:
        year = data.get("year")
        if not year:
            errors["year"] = "Year is required for PYQ"
        elif not MIN_YEAR <= int(year) <= utcnow().year:
            errors["year"] = "Year must be between 2000 and current year"

    month = data.get("month")
    if month and not 1 <= int(month) <= 12:
        errors["month"] = "Month must be between 1 and 12"
    if data.get("shift") and data["shift"] not in SHIFTS:
        errors["shift"] = "Unknown shift"

    question_type = data.get("question_type") or QuestionType.OBJECTIVE.value
    answer = (data.get("correct_answer") or "").strip()
    if question_type == QuestionType.OBJECTIVE.value:
        options = build_options(data.get("options") or [])
        if len(options) < MIN_OPTIONS:
            errors["options"] = "At least 2 options are required"
        if not answer:
            errors["correct_answer"] = "Correct answer is required"
        elif answer not in {o["id"] for o in options}:
            errors["correct_answer"] = "Select one of the options"
    elif question_type == QuestionType.NUMERICAL.value:
        if not answer:
            errors["correct_answer"] = "Correct answer is required"
        elif _parse_number(answer) is None:
            errors["correct_answer"] = "Must be a valid number"
        tolerance = data.get("tolerance") or "0"
        if tolerance not in TOLERANCE_CHOICES:
            errors["tolerance"] = "Unknown tolerance"
        elif tolerance == "custom":
            try:
                parse_tolerance(tolerance, data.get("custom_tolerance"))
            except ContentError:
                errors["custom_tolerance"] = "Enter a number like 0.05 or a percentage like 2%"
    else:
        errors["question_type"] = "Question type must be objective or numerical"
    return errors


def create_question(db: DbClient, feed: ChangeFeed, data: dict) -> dict:
    errors = _validate(db, data)
    if errors:
        raise ValidationFailed(errors)

    question_type = data.get("question_type") or QuestionType.OBJECTIVE.value
    category = data.get("category") or QuestionCategory.PYQ.value
    row = {
        "exam_id": data["exam_id"],
        "subject_id": data["subject_id"],
        "chapter_id": data["chapter_id"],
        "topic_id": data.get("topic_id") or None,
        "question_type": question_type,
        "category": category,
        "difficulty_category": data["difficulty_category"],
        "question_blocks": data["question_blocks"],
        "correct_answer": data["correct_answer"].strip(),
        "solution_blocks": data.get("solution_blocks") or None,
        "solution_video_url": data.get("solution_video_url") or None,
        "solution_image_url": data.get("solution_image_url") or None,
        "year": int(data["year"]) if category == QuestionCategory.PYQ.value else None,
        "month": int(data["month"]) if data.get("month") else None,
        "shift": data.get("shift") or None,
    }
    if question_type == QuestionType.NUMERICAL.value:
        row["units"] = data.get("units") or None
        row["tolerance"] = data.get("tolerance") or "0"
        row["custom_tolerance"] = data.get("custom_tolerance") or None
    else:
        row["options"] = json.dumps(build_options(data["options"]))

    question = db.insert("questions", row)
    publish(feed, "questions", ChangeType.INSERT, question["id"])
    logger.info("Question %s created (%s/%s)", question["id"], category, question_type)
    return with_parents(db, question)


def with_parents(db: DbClient, question: dict) -> dict:
    joined = dict(question)
    for field, table in (
        ("exam", "exams"),
        ("subject", "subjects"),
        ("chapter", "chapters"),
        ("topic", "topics"),
    ):
        parent_id = question.get(f"{field}_id")
        parent = db.get(table, parent_id) if parent_id else None
        joined[field] = {"id": parent["id"], "name": parent["name"]} if parent else None
    joined["options"] = json.loads(question["options"]) if question.get("options") else None
    return joined


def list_questions(db: DbClient, *, search: Optional[str] = None, **filters) -> list[dict]:
    eq = {k: v for k, v in filters.items() if k in LIST_FILTERS and v}
    questions = db.select(
        "questions",
        eq=eq or None,
        search=search,
        search_fields=("id", "question_blocks"),
        order_by="created_at",
        ascending=False,
    )
    return [with_parents(db, q) for q in questions]


def get_question(db: DbClient, question_id: str) -> dict:
    return with_parents(db, require_row(db, "questions", question_id, "Question"))


def delete_question(db: DbClient, feed: ChangeFeed, question_id: str) -> None:
    require_row(db, "questions", question_id, "Question")
    db.delete("questions", question_id)
    publish(feed, "questions", ChangeType.DELETE, question_id)


def question_stats(db: DbClient) -> dict:
    return {
        "total": db.count("questions"),
        "pyq": db.count("questions", eq={"category": QuestionCategory.PYQ.value}),
        "dpp": db.count("questions", eq={"category": QuestionCategory.DPP.value}),
        "objective": db.count("questions", eq={"question_type": QuestionType.OBJECTIVE.value}),
        "numerical": db.count("questions", eq={"question_type": QuestionType.NUMERICAL.value}),
    }


def check_answer(db: DbClient, question_id: str, submitted: str) -> dict:
    question = require_row(db, "questions", question_id, "Question")
    if question["question_type"] != QuestionType.NUMERICAL.value:
        correct = submitted.strip().upper() == question["correct_answer"].strip().upper()
    else:
        correct = answer_matches(
            question["correct_answer"],
            submitted,
            question.get("tolerance"),
            question.get("custom_tolerance"),
        )
    return {"correct": correct, "correct_answer": question["correct_answer"]}
