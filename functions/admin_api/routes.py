"""
HTTP routes for the admin API. Everything here sits behind the role gate.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse

from admin_api import banners, content, dashboard, questions, uploads
from admin_api.db import DbClient
from admin_api.dependencies import (
    CurrentUser,
    get_change_feed,
    get_db_client,
    get_storage_client,
    require_admin,
)
from admin_api.errors import ContentError
from admin_api.realtime import START_CURSOR, ChangeFeed
from admin_api.schemas import (
    AnswerCheckRequest,
    AnswerCheckResponse,
    BannerCreate,
    BannerListResponse,
    BannerPosition,
    BannerUpdate,
    ChangesResponse,
    ChapterPayload,
    ContentStatsResponse,
    EditorApplyRequest,
    EditorImageResponse,
    EditorPreviewRequest,
    EditorStateResponse,
    ExamPayload,
    FormulaCardPayload,
    NextOrderResponse,
    QuestionPayload,
    QuestionStatsResponse,
    SlugAvailableResponse,
    SubjectPayload,
    TopicPayload,
    UploadResponse,
)
from admin_api.storage import StorageClient, StorageError
from shared import latex_editor

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])


async def content_error_handler(request: Request, exc: ContentError) -> JSONResponse:
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)


def _editor_response(state: latex_editor.EditorState) -> EditorStateResponse:
    return EditorStateResponse(**state.as_dict(), caret=state.caret)


async def _upload(
    storage: StorageClient, rule: uploads.UploadRule, file: UploadFile
) -> dict:
    data = await file.read()
    try:
        return uploads.upload_image(storage, rule, file.filename, file.content_type, data)
    except StorageError as exc:
        raise HTTPException(status_code=502, detail="Failed to upload image") from exc


# --- Exams -----------------------------------------------------------------


@router.get("/exams")
def list_exams(db: DbClient = Depends(get_db_client)):
    return content.list_exams(db)


@router.post("/exams", status_code=201)
def create_exam(
    payload: ExamPayload,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return content.create_exam(db, feed, payload.name, payload.slug)


# --- Subjects --------------------------------------------------------------


@router.get("/subjects")
def list_subjects(
    search: Optional[str] = None,
    exam_id: Optional[str] = None,
    sort_by: str = "order",
    sort_order: str = "asc",
    db: DbClient = Depends(get_db_client),
):
    return content.list_subjects(
        db, search=search, exam_id=exam_id, sort_by=sort_by, sort_order=sort_order
    )


@router.get("/subjects/slug-available", response_model=SlugAvailableResponse)
def subject_slug_available(
    slug: str, exclude_id: Optional[str] = None, db: DbClient = Depends(get_db_client)
):
    return SlugAvailableResponse(
        slug=slug,
        available=content.slug_available(db, "subjects", slug, exclude_id=exclude_id),
    )


@router.get("/subjects/{subject_id}")
def get_subject(subject_id: str, db: DbClient = Depends(get_db_client)):
    return content.get_subject(db, subject_id)


@router.post("/subjects", status_code=201)
def create_subject(
    payload: SubjectPayload,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return content.create_subject(db, feed, payload.model_dump(exclude_unset=True))


@router.patch("/subjects/{subject_id}")
def update_subject(
    subject_id: str,
    payload: SubjectPayload,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return content.update_subject(
        db, feed, subject_id, payload.model_dump(exclude_unset=True)
    )


@router.delete("/subjects/{subject_id}", status_code=204)
def delete_subject(
    subject_id: str,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    content.delete_subject(db, feed, subject_id)


@router.get("/stats/content", response_model=ContentStatsResponse)
def content_stats(db: DbClient = Depends(get_db_client)):
    return content.content_stats(db)


# --- Chapters --------------------------------------------------------------


@router.get("/chapters")
def list_chapters(
    search: Optional[str] = None,
    subject_id: Optional[str] = None,
    sort_by: str = "order",
    sort_order: str = "asc",
    db: DbClient = Depends(get_db_client),
):
    return content.list_chapters(
        db, search=search, subject_id=subject_id, sort_by=sort_by, sort_order=sort_order
    )


@router.get("/chapters/slug-available", response_model=SlugAvailableResponse)
def chapter_slug_available(
    slug: str, exclude_id: Optional[str] = None, db: DbClient = Depends(get_db_client)
):
    return SlugAvailableResponse(
        slug=slug,
        available=content.slug_available(db, "chapters", slug, exclude_id=exclude_id),
    )


@router.get("/chapters/{chapter_id}")
def get_chapter(chapter_id: str, db: DbClient = Depends(get_db_client)):
    return content.get_chapter(db, chapter_id)


@router.post("/chapters", status_code=201)
def create_chapter(
    payload: ChapterPayload,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return content.create_chapter(db, feed, payload.model_dump(exclude_unset=True))


@router.patch("/chapters/{chapter_id}")
def update_chapter(
    chapter_id: str,
    payload: ChapterPayload,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return content.update_chapter(
        db, feed, chapter_id, payload.model_dump(exclude_unset=True)
    )


@router.delete("/chapters/{chapter_id}", status_code=204)
def delete_chapter(
    chapter_id: str,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    content.delete_chapter(db, feed, chapter_id)


# --- Topics ----------------------------------------------------------------


@router.get("/topics")
def list_topics(
    search: Optional[str] = None,
    chapter_id: Optional[str] = None,
    subject_id: Optional[str] = None,
    sort_by: str = "order",
    sort_order: str = "asc",
    db: DbClient = Depends(get_db_client),
):
    return content.list_topics(
        db,
        search=search,
        chapter_id=chapter_id,
        subject_id=subject_id,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/topics/next-order", response_model=NextOrderResponse)
def topic_next_order(chapter_id: str, db: DbClient = Depends(get_db_client)):
    return NextOrderResponse(
        next_order=content.next_order(db, "topics", {"chapter_id": chapter_id})
    )


@router.get("/topics/slug-available", response_model=SlugAvailableResponse)
def topic_slug_available(
    slug: str,
    chapter_id: str,
    exclude_id: Optional[str] = None,
    db: DbClient = Depends(get_db_client),
):
    available = content.slug_available(
        db, "topics", slug, exclude_id=exclude_id, scope={"chapter_id": chapter_id}
    )
    return SlugAvailableResponse(slug=slug, available=available)


@router.get("/topics/recent")
def recent_topics(
    limit: int = Query(5, ge=1, le=50), db: DbClient = Depends(get_db_client)
):
    return content.recent_topics(db, limit)


@router.get("/topics/{topic_id}")
def get_topic(topic_id: str, db: DbClient = Depends(get_db_client)):
    return content.get_topic(db, topic_id)


@router.post("/topics", status_code=201)
def create_topic(
    payload: TopicPayload,
    user: CurrentUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return content.create_topic(db, feed, payload.model_dump(exclude_unset=True), user.id)


@router.patch("/topics/{topic_id}")
def update_topic(
    topic_id: str,
    payload: TopicPayload,
    user: CurrentUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return content.update_topic(
        db, feed, topic_id, payload.model_dump(exclude_unset=True), user.id
    )


@router.delete("/topics/{topic_id}", status_code=204)
def delete_topic(
    topic_id: str,
    user: CurrentUser = Depends(require_admin),
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    content.delete_topic(db, feed, topic_id, user.id)


# --- Formula cards -----------------------------------------------------------


@router.get("/formula-cards")
def list_formula_cards(
    search: Optional[str] = None,
    chapter_id: Optional[str] = None,
    topic_id: Optional[str] = None,
    sort_by: str = "order",
    sort_order: str = "asc",
    db: DbClient = Depends(get_db_client),
):
    return content.list_formula_cards(
        db,
        search=search,
        chapter_id=chapter_id,
        topic_id=topic_id,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.post("/formula-cards/image", response_model=UploadResponse, status_code=201)
async def upload_formula_card_image(
    file: UploadFile = File(...),
    storage: StorageClient = Depends(get_storage_client),
):
    return await _upload(storage, uploads.FORMULA_CARD_IMAGE, file)


@router.get("/formula-cards/{card_id}")
def get_formula_card(card_id: str, db: DbClient = Depends(get_db_client)):
    return content.get_formula_card(db, card_id)


@router.post("/formula-cards", status_code=201)
def create_formula_card(
    payload: FormulaCardPayload,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return content.create_formula_card(db, feed, payload.model_dump(exclude_unset=True))


@router.patch("/formula-cards/{card_id}")
def update_formula_card(
    card_id: str,
    payload: FormulaCardPayload,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return content.update_formula_card(
        db, feed, card_id, payload.model_dump(exclude_unset=True)
    )


@router.delete("/formula-cards/{card_id}", status_code=204)
def delete_formula_card(
    card_id: str,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    content.delete_formula_card(db, feed, card_id)


# --- Questions ---------------------------------------------------------------


@router.get("/questions")
def list_questions(
    search: Optional[str] = None,
    exam_id: Optional[str] = None,
    subject_id: Optional[str] = None,
    chapter_id: Optional[str] = None,
    topic_id: Optional[str] = None,
    question_type: Optional[str] = None,
    category: Optional[str] = None,
    difficulty_category: Optional[str] = None,
    db: DbClient = Depends(get_db_client),
):
    return questions.list_questions(
        db,
        search=search,
        exam_id=exam_id,
        subject_id=subject_id,
        chapter_id=chapter_id,
        topic_id=topic_id,
        question_type=question_type,
        category=category,
        difficulty_category=difficulty_category,
    )


@router.get("/questions/stats", response_model=QuestionStatsResponse)
def question_stats(db: DbClient = Depends(get_db_client)):
    return questions.question_stats(db)


@router.get("/questions/{question_id}")
def get_question(question_id: str, db: DbClient = Depends(get_db_client)):
    return questions.get_question(db, question_id)


@router.post("/questions", status_code=201)
def create_question(
    payload: QuestionPayload,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return questions.create_question(db, feed, payload.model_dump())


@router.delete("/questions/{question_id}", status_code=204)
def delete_question(
    question_id: str,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    questions.delete_question(db, feed, question_id)


@router.post("/questions/{question_id}/check", response_model=AnswerCheckResponse)
def check_answer(
    question_id: str,
    payload: AnswerCheckRequest,
    db: DbClient = Depends(get_db_client),
):
    return questions.check_answer(db, question_id, payload.answer)


# --- Banners -----------------------------------------------------------------


@router.get("/banners", response_model=BannerListResponse)
def list_banners(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: DbClient = Depends(get_db_client),
):
    return banners.list_banners(db, page, limit)


@router.post("/banners/image", response_model=UploadResponse, status_code=201)
async def upload_banner_image(
    file: UploadFile = File(...),
    storage: StorageClient = Depends(get_storage_client),
):
    return await _upload(storage, uploads.BANNER_IMAGE, file)


@router.post("/banners", status_code=201)
def create_banner(
    payload: BannerCreate,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    banner = banners.create_banner(
        db,
        feed,
        payload.title,
        payload.image_url,
        payload.redirect_url,
        payload.is_active,
    )
    return {"banner": banner}


@router.get("/banners/{banner_id}")
def get_banner(banner_id: str, db: DbClient = Depends(get_db_client)):
    return banners.get_banner(db, banner_id)


@router.patch("/banners/{banner_id}")
def update_banner(
    banner_id: str,
    payload: BannerUpdate,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return banners.update_banner(db, feed, banner_id, payload.model_dump(exclude_unset=True))


@router.post("/banners/{banner_id}/toggle")
def toggle_banner(
    banner_id: str,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return banners.toggle_banner(db, feed, banner_id)


@router.post("/banners/{banner_id}/position")
def move_banner(
    banner_id: str,
    payload: BannerPosition,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    return banners.move_banner(db, feed, banner_id, payload.position)


@router.delete("/banners/{banner_id}", status_code=204)
def delete_banner(
    banner_id: str,
    db: DbClient = Depends(get_db_client),
    feed: ChangeFeed = Depends(get_change_feed),
):
    banners.delete_banner(db, feed, banner_id)


# --- Dashboard & change feed -------------------------------------------------


@router.get("/dashboard")
def dashboard_stats(
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    return dashboard.dashboard_stats(db, storage)


@router.get("/changes", response_model=ChangesResponse)
def list_changes(
    cursor: str = START_CURSOR,
    table: Optional[list[str]] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    feed: ChangeFeed = Depends(get_change_feed),
):
    events, next_cursor = feed.read_since(cursor, tables=table, limit=limit)
    return ChangesResponse(events=[e.as_dict() for e in events], cursor=next_cursor)


# --- Editor ------------------------------------------------------------------


@router.get("/editor/palette")
def editor_palette():
    return latex_editor.palette()


@router.post("/editor/apply", response_model=EditorStateResponse)
def editor_apply(payload: EditorApplyRequest):
    state = latex_editor.EditorState(
        payload.text, payload.selection_start, payload.selection_end
    )
    try:
        edited = latex_editor.apply_action(
            state,
            payload.action,
            latex=payload.latex,
            kind=payload.kind,
            url=payload.url,
            snippet=payload.snippet,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _editor_response(edited)


@router.post("/editor/preview")
def editor_preview(payload: EditorPreviewRequest):
    return {
        "segments": [s.as_dict() for s in latex_editor.split_preview(payload.text)]
    }


@router.post("/editor/image", response_model=EditorImageResponse, status_code=201)
async def editor_image(
    file: UploadFile = File(...),
    text: str = Form(""),
    selection_start: int = Form(0),
    selection_end: int = Form(0),
    storage: StorageClient = Depends(get_storage_client),
):
    uploaded = await _upload(storage, uploads.EDITOR_IMAGE, file)
    state = latex_editor.EditorState(text, selection_start, selection_end)
    edited = latex_editor.insert_image(state, uploaded["url"])
    return EditorImageResponse(
        url=uploaded["url"], path=uploaded["path"], edit=_editor_response(edited)
    )
