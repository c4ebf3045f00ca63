"""
Pydantic schemas for the admin API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class ExamPayload(BaseModel):
    name: str
    slug: Optional[str] = None


class SubjectPayload(BaseModel):
    exam_id: Optional[str] = None
    name: Optional[str] = None
    slug: Optional[str] = None
    order: Optional[int] = None


class ChapterPayload(BaseModel):
    subject_id: Optional[str] = None
    name: Optional[str] = None
    slug: Optional[str] = None
    order: Optional[int] = None


class TopicPayload(BaseModel):
    chapter_id: Optional[str] = None
    name: Optional[str] = None
    slug: Optional[str] = None
    order: Optional[int] = None


class FormulaCardPayload(BaseModel):
    chapter_id: Optional[str] = None
    topic_id: Optional[str] = None
    title: Optional[str] = None
    image_url: Optional[str] = None
    formula_text: Optional[str] = None
    tags: Optional[str] = None
    order: Optional[int] = None


class QuestionPayload(BaseModel):
    exam_id: Optional[str] = None
    subject_id: Optional[str] = None
    chapter_id: Optional[str] = None
    topic_id: Optional[str] = None
    question_type: Literal["objective", "numerical"] = "objective"
    category: Literal["PYQ", "DPP"] = "PYQ"
    difficulty_category: Optional[str] = None
    question_blocks: str = ""
    options: list[str] = Field(default_factory=list)
    correct_answer: str = ""
    solution_blocks: Optional[str] = None
    solution_video_url: Optional[str] = None
    solution_image_url: Optional[str] = None
    year: Optional[int] = None
    month: Optional[int] = None
    shift: Optional[str] = None
    units: Optional[str] = None
    tolerance: Optional[str] = "0"
    custom_tolerance: Optional[str] = None


class AnswerCheckRequest(BaseModel):
    answer: str


class AnswerCheckResponse(BaseModel):
    correct: bool
    correct_answer: str


class BannerCreate(BaseModel):
    title: Optional[str] = None
    image_url: Optional[str] = None
    redirect_url: Optional[str] = None
    is_active: bool = True


class BannerUpdate(BaseModel):
    title: Optional[str] = None
    image_url: Optional[str] = None
    redirect_url: Optional[str] = None
    is_active: Optional[bool] = None
    position: Optional[int] = None


class BannerPosition(BaseModel):
    position: int


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class BannerListResponse(BaseModel):
    banners: list[dict]
    pagination: Pagination


class SlugAvailableResponse(BaseModel):
    slug: str
    available: bool


class NextOrderResponse(BaseModel):
    next_order: int


class ContentStatsResponse(BaseModel):
    total_subjects: int
    total_chapters: int
    total_topics: int
    total_formula_cards: int


class QuestionStatsResponse(BaseModel):
    total: int
    pyq: int
    dpp: int
    objective: int
    numerical: int


class UploadResponse(BaseModel):
    url: str
    path: str
    warning: Optional[str] = None


class ChangesResponse(BaseModel):
    events: list[dict]
    cursor: str


class EditorState(BaseModel):
    text: str = ""
    selection_start: int = 0
    selection_end: int = 0


class EditorApplyRequest(EditorState):
    action: str
    latex: Optional[str] = None
    kind: Optional[str] = None
    url: Optional[str] = None
    snippet: Optional[str] = None


class EditorStateResponse(BaseModel):
    text: str
    selection_start: int
    selection_end: int
    caret: int


class EditorPreviewRequest(BaseModel):
    text: str = ""


class EditorImageResponse(BaseModel):
    url: str
    path: str
    edit: EditorStateResponse


class LoginRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    user: dict
    role: str
