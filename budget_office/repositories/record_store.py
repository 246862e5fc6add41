"""Persistence operations shared by record forms and services."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from budget_office.core.errors import OperationalError
from budget_office.models.entities import utcnow

ModelT = TypeVar("ModelT")


class RecordStore:
    """Thin transactional wrapper around a SQLAlchemy session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- Transactions ----------
    def begin(self) -> None:
        if not self.db.in_transaction():
            self.db.begin()

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        """Nested transaction; a failure inside rolls back to the savepoint only."""

        with self.db.begin_nested():
            yield

    def _flush(self) -> None:
        try:
            self.db.flush()
        except SQLAlchemyError as exc:
            raise OperationalError(f"Store write failed: {exc.__class__.__name__}") from exc

    # ---------- Writes ----------
    def insert(self, model: type[ModelT], fields: dict[str, Any]) -> ModelT:
        now = utcnow()
        record = model(**fields)
        if hasattr(record, "created_at"):
            record.created_at = now
        if hasattr(record, "updated_at"):
            record.updated_at = now
        self.db.add(record)
        self._flush()
        return record

    def update_fields(self, record: ModelT, fields: dict[str, Any]) -> ModelT:
        for name, value in fields.items():
            setattr(record, name, value)
        if hasattr(record, "updated_at"):
            record.updated_at = utcnow()
        self._flush()
        return record

    def soft_delete(self, record: Any) -> None:
        now = utcnow()
        record.deleted_at = now
        record.updated_at = now
        self._flush()

    def restore(self, record: Any) -> None:
        record.deleted_at = None
        record.updated_at = utcnow()
        self._flush()

    def force_delete(self, record: Any) -> None:
        self.db.delete(record)
        self._flush()

    # ---------- Reads ----------
    def get(self, model: type[ModelT], record_id: UUID, *, include_deleted: bool = False) -> ModelT | None:
        query = select(model).where(model.id == record_id)
        if not include_deleted:
            query = query.where(model.deleted_at.is_(None))
        return self.db.scalar(query)

    def find_children(
        self,
        parent: Any,
        model: type[ModelT],
        *,
        foreign_key: str,
        include_deleted: bool = False,
        only_deleted: bool = False,
        **filters: Any,
    ) -> list[ModelT]:
        query = select(model).where(getattr(model, foreign_key) == parent.id)
        if only_deleted:
            query = query.where(model.deleted_at.is_not(None))
        elif not include_deleted:
            query = query.where(model.deleted_at.is_(None))
        for name, value in filters.items():
            query = query.where(getattr(model, name) == value)
        return list(self.db.scalars(query.order_by(model.created_at.asc())).all())

    def first(self, query: Select) -> Any:
        return self.db.scalar(query.limit(1))

    def all(self, query: Select) -> list[Any]:
        return list(self.db.scalars(query).all())

    def exists(self, query: Select) -> bool:
        return bool(self.db.scalar(select(query.exists())))

    def count(self, query: Select) -> int:
        return int(self.db.scalar(select(func.count()).select_from(query.subquery())) or 0)
