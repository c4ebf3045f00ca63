"""
Table access for the hosted Postgres database and an in-memory test implementation.

Both clients expose the same small query surface the admin pages need:
equality / membership / greater-than filters, a case-insensitive substring
search across a few columns, ordering and paging.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    func,
    or_,
    select,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from shared.utils import new_id, utcnow


class DbClient(Protocol):
    """Interface for table access."""

    def insert(self, table: str, row: dict) -> dict:
        ...

    def get(self, table: str, row_id: str) -> Optional[dict]:
        ...

    def update(self, table: str, row_id: str, values: dict) -> Optional[dict]:
        ...

    def delete(self, table: str, row_id: str) -> bool:
        ...

    def select(
        self,
        table: str,
        *,
        eq: Optional[dict] = None,
        in_: Optional[dict] = None,
        gt: Optional[dict] = None,
        search: Optional[str] = None,
        search_fields: Iterable[str] = (),
        order_by: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[dict]:
        ...

    def count(
        self,
        table: str,
        *,
        eq: Optional[dict] = None,
        in_: Optional[dict] = None,
        gt: Optional[dict] = None,
    ) -> int:
        ...


def _columns(table: str) -> dict[str, Column]:
    sa_table = Base.metadata.tables.get(table)
    if sa_table is None:
        raise ValueError(f"Unknown table: {table}")
    return {column.name: column for column in sa_table.columns}


def _check_columns(table: str, names: Iterable[str]) -> None:
    known = _columns(table)
    for name in names:
        if name not in known:
            raise ValueError(f"Unknown column {table}.{name}")


def _prepare_insert(table: str, row: dict) -> dict:
    columns = _columns(table)
    _check_columns(table, row)
    prepared: dict[str, Any] = {}
    for name, column in columns.items():
        if name in row:
            prepared[name] = row[name]
        elif column.default is not None and column.default.is_scalar:
            prepared[name] = column.default.arg
        else:
            prepared[name] = None
    if not prepared.get("id"):
        prepared["id"] = new_id()
    if "created_at" in columns and prepared.get("created_at") is None:
        prepared["created_at"] = utcnow()
    if "updated_at" in columns and prepared.get("updated_at") is None:
        prepared["updated_at"] = prepared.get("created_at")
    return prepared


def _comparable(value: Any) -> Any:
    # In-memory rows mix aware and naive datetimes only through callers; drop
    # tzinfo so both compare.
    if hasattr(value, "tzinfo") and getattr(value, "tzinfo", None) is not None:
        return value.replace(tzinfo=None)
    return value


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.tables: Dict[str, Dict[str, dict]] = {
            name: {} for name in Base.metadata.tables
        }

    def _table(self, table: str) -> Dict[str, dict]:
        if table not in self.tables:
            raise ValueError(f"Unknown table: {table}")
        return self.tables[table]

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        for rows in self.tables.values():
            rows.clear()

    def insert(self, table: str, row: dict) -> dict:
        rows = self._table(table)
        prepared = _prepare_insert(table, row)
        rows[prepared["id"]] = prepared
        return copy.deepcopy(prepared)

    def get(self, table: str, row_id: str) -> Optional[dict]:
        row = self._table(table).get(row_id)
        return copy.deepcopy(row) if row else None

    def update(self, table: str, row_id: str, values: dict) -> Optional[dict]:
        _check_columns(table, values)
        row = self._table(table).get(row_id)
        if not row:
            return None
        row.update(values)
        if "updated_at" in row and "updated_at" not in values:
            row["updated_at"] = utcnow()
        return copy.deepcopy(row)

    def delete(self, table: str, row_id: str) -> bool:
        return self._table(table).pop(row_id, None) is not None

    def _filter(
        self,
        table: str,
        eq: Optional[dict],
        in_: Optional[dict],
        gt: Optional[dict],
        search: Optional[str],
        search_fields: Iterable[str],
    ) -> list[dict]:
        search_fields = tuple(search_fields)
        _check_columns(table, [*(eq or {}), *(in_ or {}), *(gt or {}), *search_fields])
        needle = (search or "").lower()
        matched = []
        for row in self._table(table).values():
            if any(row.get(k) != v for k, v in (eq or {}).items()):
                continue
            if any(row.get(k) not in set(v) for k, v in (in_ or {}).items()):
                continue
            if any(
                row.get(k) is None or _comparable(row.get(k)) <= _comparable(v)
                for k, v in (gt or {}).items()
            ):
                continue
            if needle and not any(
                needle in str(row.get(f) or "").lower() for f in search_fields
            ):
                continue
            matched.append(row)
        return matched

    def select(
        self,
        table: str,
        *,
        eq: Optional[dict] = None,
        in_: Optional[dict] = None,
        gt: Optional[dict] = None,
        search: Optional[str] = None,
        search_fields: Iterable[str] = (),
        order_by: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[dict]:
        rows = self._filter(table, eq, in_, gt, search, search_fields)
        if order_by:
            _check_columns(table, [order_by])
            present = [r for r in rows if r.get(order_by) is not None]
            missing = [r for r in rows if r.get(order_by) is None]
            present.sort(key=lambda r: _comparable(r[order_by]), reverse=not ascending)
            # Postgres puts NULLs last ascending and first descending.
            rows = present + missing if ascending else missing + present
        rows = rows[offset:]
        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    def count(
        self,
        table: str,
        *,
        eq: Optional[dict] = None,
        in_: Optional[dict] = None,
        gt: Optional[dict] = None,
    ) -> int:
        return len(self._filter(table, eq, in_, gt, None, ()))


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @staticmethod
    def _model(table: str):
        model = ROW_MODELS.get(table)
        if model is None:
            raise ValueError(f"Unknown table: {table}")
        return model

    @staticmethod
    def _to_dict(row) -> dict:
        return {
            column.name: copy.deepcopy(getattr(row, column.key))
            for column in row.__table__.columns
        }

    def _apply_filters(self, stmt, model, table, eq, in_, gt):
        _check_columns(table, [*(eq or {}), *(in_ or {}), *(gt or {})])
        for name, value in (eq or {}).items():
            column = getattr(model, name)
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        for name, values in (in_ or {}).items():
            stmt = stmt.where(getattr(model, name).in_(list(values)))
        for name, value in (gt or {}).items():
            stmt = stmt.where(getattr(model, name) > value)
        return stmt

    def insert(self, table: str, row: dict) -> dict:
        model = self._model(table)
        prepared = _prepare_insert(table, row)
        with self.Session() as session:
            record = model(**prepared)
            session.add(record)
            session.commit()
            session.refresh(record)
            return self._to_dict(record)

    def get(self, table: str, row_id: str) -> Optional[dict]:
        model = self._model(table)
        with self.Session() as session:
            record = session.get(model, row_id)
            return self._to_dict(record) if record else None

    def update(self, table: str, row_id: str, values: dict) -> Optional[dict]:
        model = self._model(table)
        _check_columns(table, values)
        with self.Session() as session:
            record = session.get(model, row_id)
            if not record:
                return None
            for name, value in values.items():
                setattr(record, name, value)
            if hasattr(record, "updated_at") and "updated_at" not in values:
                record.updated_at = utcnow()
            session.commit()
            session.refresh(record)
            return self._to_dict(record)

    def delete(self, table: str, row_id: str) -> bool:
        model = self._model(table)
        with self.Session() as session:
            record = session.get(model, row_id)
            if not record:
                return False
            session.delete(record)
            session.commit()
            return True

    def select(
        self,
        table: str,
        *,
        eq: Optional[dict] = None,
        in_: Optional[dict] = None,
        gt: Optional[dict] = None,
        search: Optional[str] = None,
        search_fields: Iterable[str] = (),
        order_by: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[dict]:
        model = self._model(table)
        stmt = self._apply_filters(select(model), model, table, eq, in_, gt)
        search_fields = tuple(search_fields)
        if search and search_fields:
            _check_columns(table, search_fields)
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(*[getattr(model, name).ilike(pattern) for name in search_fields])
            )
        if order_by:
            _check_columns(table, [order_by])
            column = getattr(model, order_by)
            stmt = stmt.order_by(
                column.asc().nulls_last() if ascending else column.desc().nulls_first()
            )
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self.Session() as session:
            return [self._to_dict(r) for r in session.execute(stmt).scalars().all()]

    def count(
        self,
        table: str,
        *,
        eq: Optional[dict] = None,
        in_: Optional[dict] = None,
        gt: Optional[dict] = None,
    ) -> int:
        model = self._model(table)
        stmt = self._apply_filters(
            select(func.count()).select_from(model), model, table, eq, in_, gt
        )
        with self.Session() as session:
            return session.execute(stmt).scalar_one()


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=True, index=True)
    role = Column(String, nullable=False, default="student")
    last_sign_in_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class ExamRow(Base):
    __tablename__ = "exams"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class SubjectRow(Base):
    __tablename__ = "subjects"

    id = Column(String, primary_key=True)
    exam_id = Column(String, ForeignKey("exams.id"), nullable=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, index=True)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)


class ChapterRow(Base):
    __tablename__ = "chapters"

    id = Column(String, primary_key=True)
    subject_id = Column(String, ForeignKey("subjects.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, index=True)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)


class TopicRow(Base):
    __tablename__ = "topics"

    id = Column(String, primary_key=True)
    chapter_id = Column(String, ForeignKey("chapters.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, index=True)
    order = Column(Integer, nullable=False, default=0)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)


class FormulaCardRow(Base):
    __tablename__ = "formula_cards"

    id = Column(String, primary_key=True)
    chapter_id = Column(String, ForeignKey("chapters.id"), nullable=False, index=True)
    topic_id = Column(String, ForeignKey("topics.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    image_url = Column(String, nullable=True)
    formula_text = Column(Text, nullable=True)
    tags = Column(String, nullable=True)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)


class QuestionRow(Base):
    __tablename__ = "questions"

    id = Column(String, primary_key=True)
    exam_id = Column(String, ForeignKey("exams.id"), nullable=False, index=True)
    subject_id = Column(String, ForeignKey("subjects.id"), nullable=False, index=True)
    chapter_id = Column(String, ForeignKey("chapters.id"), nullable=False, index=True)
    topic_id = Column(String, ForeignKey("topics.id"), nullable=True, index=True)
    question_type = Column(String, nullable=False, default="objective")
    category = Column(String, nullable=False, default="PYQ")
    difficulty_category = Column(String, nullable=False)
    question_blocks = Column(Text, nullable=False)
    options = Column(Text, nullable=True)
    correct_answer = Column(String, nullable=False)
    solution_blocks = Column(Text, nullable=True)
    solution_video_url = Column(String, nullable=True)
    solution_image_url = Column(String, nullable=True)
    year = Column(Integer, nullable=True)
    month = Column(Integer, nullable=True)
    shift = Column(String, nullable=True)
    units = Column(String, nullable=True)
    tolerance = Column(String, nullable=True)
    custom_tolerance = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class BannerRow(Base):
    __tablename__ = "banners"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    image_url = Column(String, nullable=False)
    redirect_url = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)


class AuditLogRow(Base):
    __tablename__ = "audit_logs"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=True, index=True)
    action = Column(String, nullable=False)
    resource_id = Column(String, nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)


ROW_MODELS = {
    model.__tablename__: model
    for model in (
        UserRow,
        ExamRow,
        SubjectRow,
        ChapterRow,
        TopicRow,
        FormulaCardRow,
        QuestionRow,
        BannerRow,
        AuditLogRow,
    )
}
