"""Shared plumbing for the record services."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import Select, or_
from sqlalchemy.orm import Session

from budget_office.core.errors import NotFoundError, ValidationError
from budget_office.core.logging import get_logger
from budget_office.repositories.record_store import RecordStore

logger = get_logger(__name__)

ModelT = TypeVar("ModelT")


def apply_search(query: Select, search: str | None, *columns: Any) -> Select:
    """Case-insensitive ``LIKE`` over the given columns."""

    term = (search or "").strip()
    if not term:
        return query
    pattern = f"%{term.lower()}%"
    return query.where(or_(*(column.ilike(pattern) for column in columns)))


class RecordService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.store = RecordStore(db)

    def _require(
        self,
        model: type[ModelT],
        record_id: UUID,
        *,
        label: str,
        include_deleted: bool = False,
    ) -> ModelT:
        record = self.store.get(model, record_id, include_deleted=include_deleted)
        if record is None:
            raise NotFoundError(f"{label} not found.")
        return record

    @contextmanager
    def _transaction(self, event: str, context: dict[str, Any]) -> Iterator[dict[str, Any]]:
        """Run the block in one transaction and log ``event`` or ``<event>_failed``.

        The block may add keys to the yielded context before it is logged.
        """

        self.store.begin()
        try:
            yield context
            self.store.commit()
        except ValidationError:
            self.store.rollback()
            raise
        except Exception as exc:
            self.store.rollback()
            logger.error(f"{event}_failed", extra={"context": {**context, "error": str(exc)}})
            raise

        logger.info(event, extra={"context": context})
