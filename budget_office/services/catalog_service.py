"""Application service for the budget catalogs.

One service instance handles one catalog kind: ``classifiers``,
``subclassifiers``, ``financings``, ``products`` or ``purposes``.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from budget_office.core.auth import RequestUserContext
from budget_office.core.errors import DomainInvariantError, NotFoundError
from budget_office.core.permissions import authorize
from budget_office.forms.catalogs import CATALOG_POLICIES
from budget_office.forms.lifecycle import RecordForm, RecordPolicy
from budget_office.models.entities import Classifier, Subclassifier
from budget_office.services.base import RecordService, apply_search

CATALOG_LABELS = {
    "classifiers": "Classifier",
    "subclassifiers": "Subclassifier",
    "financings": "Financing source",
    "products": "Product",
    "purposes": "Purpose",
}


class CatalogService(RecordService):
    def __init__(self, db: Session, kind: str) -> None:
        super().__init__(db)
        policy_class = CATALOG_POLICIES.get(kind)
        if policy_class is None:
            raise NotFoundError(f"Unknown catalog '{kind}'.")
        self.kind = kind
        self.label = CATALOG_LABELS[kind]
        self.policy: RecordPolicy[Any] = policy_class(self.store)
        self.model = self.policy.model

    def form(self) -> RecordForm[Any]:
        return RecordForm(self.policy, self.store)

    def serialize_record(self, record: Any) -> dict[str, object]:
        payload: dict[str, object] = {"id": str(record.id)}
        for field in self.policy.fields:
            value = getattr(record, field)
            payload[field] = str(value) if isinstance(value, UUID) else value
        payload["created_at"] = record.created_at.isoformat()
        payload["updated_at"] = record.updated_at.isoformat()
        payload["deleted_at"] = record.deleted_at.isoformat() if record.deleted_at else None
        return payload

    def _log_context(self, record: Any, context: RequestUserContext) -> dict[str, Any]:
        return {"catalog": self.kind, "id": str(record.id), "user_id": str(context.user_id)}

    # ---------- Reads ----------
    def list_records(
        self,
        *,
        context: RequestUserContext,
        search: str | None = None,
        only_active: bool = False,
        classifier_id: UUID | None = None,
    ) -> list[Any]:
        authorize("view", context, self.model)

        model = self.model
        query = select(model).where(model.deleted_at.is_(None))
        columns = [getattr(model, name) for name in ("code", "name", "alternate_name") if hasattr(model, name)]
        query = apply_search(query, search, *columns)
        if only_active:
            query = query.where(model.is_active.is_(True))
        if classifier_id is not None and model is Subclassifier:
            query = query.where(Subclassifier.classifier_id == classifier_id)
        order_column = model.code if hasattr(model, "code") else model.name
        return self.store.all(query.order_by(order_column.asc()))

    def get_record(self, *, context: RequestUserContext, record_id: UUID) -> Any:
        record = self._require(self.model, record_id, label=self.label)
        authorize("view", context, record)
        return record

    # ---------- Writes ----------
    def create_record(self, *, context: RequestUserContext, data: dict[str, Any]) -> Any:
        return self.form().create(context, data)

    def update_record(self, *, context: RequestUserContext, record_id: UUID, data: dict[str, Any]) -> Any:
        record = self._require(self.model, record_id, label=self.label)
        return self.form().update(context, record, data)

    def toggle_status(self, *, context: RequestUserContext, record_id: UUID, is_active: bool) -> Any:
        record = self._require(self.model, record_id, label=self.label)
        authorize("toggle_status", context, record)

        with self._transaction(
            "catalog.status_changed",
            {**self._log_context(record, context), "is_active": is_active},
        ):
            self.store.update_fields(record, {"is_active": is_active})
        return record

    def delete_record(self, *, context: RequestUserContext, record_id: UUID) -> None:
        record = self._require(self.model, record_id, label=self.label)
        authorize("delete", context, record)
        if self.model is Classifier and self.store.exists(
            select(Subclassifier).where(
                Subclassifier.classifier_id == record.id,
                Subclassifier.deleted_at.is_(None),
            )
        ):
            raise DomainInvariantError("The classifier cannot be deleted because it has subclassifiers.")

        with self._transaction("catalog.deleted", self._log_context(record, context)):
            self.store.soft_delete(record)

    def restore_record(self, *, context: RequestUserContext, record_id: UUID) -> Any:
        record = self._require(self.model, record_id, label=self.label, include_deleted=True)
        authorize("restore", context, record)
        if not record.is_deleted:
            raise DomainInvariantError(f"The {self.label.lower()} is not deleted.")

        with self._transaction("catalog.restored", self._log_context(record, context)):
            self.store.restore(record)
        return record
