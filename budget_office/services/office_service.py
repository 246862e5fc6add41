"""Application service for offices (cost centers)."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from budget_office.core.auth import RequestUserContext
from budget_office.core.errors import DomainInvariantError
from budget_office.core.permissions import authorize
from budget_office.forms.lifecycle import RecordForm
from budget_office.forms.offices import OfficeRecordPolicy
from budget_office.models.entities import Office, Subunit
from budget_office.services.base import RecordService, apply_search
from budget_office.services.subunit_sync import SubunitSynchronizer


class OfficeService(RecordService):
    """Office lifecycle. Every path that touches an office keeps its subunits in step."""

    def __init__(self, db: Session) -> None:
        super().__init__(db)
        self.synchronizer = SubunitSynchronizer(self.store)

    def form(self) -> RecordForm[Office]:
        return RecordForm(OfficeRecordPolicy(self.store, self.synchronizer), self.store)

    @staticmethod
    def serialize_office(office: Office, *, subunit_count: int | None = None) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": str(office.id),
            "code": office.code,
            "name": office.name,
            "short_name": office.short_name,
            "description": office.description,
            "is_active": office.is_active,
            "created_at": office.created_at.isoformat(),
            "updated_at": office.updated_at.isoformat(),
            "deleted_at": office.deleted_at.isoformat() if office.deleted_at else None,
        }
        if subunit_count is not None:
            payload["subunit_count"] = subunit_count
        return payload

    # ---------- Reads ----------
    def get_office(self, *, context: RequestUserContext, office_id: UUID) -> Office:
        office = self._require(Office, office_id, label="Office")
        authorize("view", context, office)
        return office

    def list_offices(
        self,
        *,
        context: RequestUserContext,
        search: str | None = None,
        only_active: bool = False,
    ) -> list[tuple[Office, int]]:
        authorize("view", context, Office)

        subunit_counts = (
            select(Subunit.office_id, func.count(Subunit.id).label("subunit_count"))
            .where(Subunit.deleted_at.is_(None))
            .group_by(Subunit.office_id)
            .subquery()
        )
        query = (
            select(Office, func.coalesce(subunit_counts.c.subunit_count, 0))
            .outerjoin(subunit_counts, subunit_counts.c.office_id == Office.id)
            .where(Office.deleted_at.is_(None))
        )
        query = apply_search(query, search, Office.code, Office.name, Office.short_name)
        if only_active:
            query = query.where(Office.is_active.is_(True))
        rows = self.db.execute(query.order_by(Office.code.asc())).all()
        return [(office, int(count)) for office, count in rows]

    def statistics(self, *, context: RequestUserContext, office_id: UUID) -> dict[str, int]:
        office = self.get_office(context=context, office_id=office_id)
        base = select(Subunit).where(Subunit.office_id == office.id, Subunit.deleted_at.is_(None))
        return {
            "total_subunits": self.store.count(base),
            "active_subunits": self.store.count(base.where(Subunit.is_active.is_(True))),
            "system_subunits": self.store.count(base.where(Subunit.is_system.is_(True))),
            "user_subunits": self.store.count(base.where(Subunit.is_system.is_(False))),
        }

    # ---------- Writes ----------
    def create_office(self, *, context: RequestUserContext, data: dict[str, Any]) -> Office:
        return self.form().create(context, data)

    def update_office(self, *, context: RequestUserContext, office_id: UUID, data: dict[str, Any]) -> Office:
        office = self._require(Office, office_id, label="Office")
        return self.form().update(context, office, data)

    def toggle_status(self, *, context: RequestUserContext, office_id: UUID, is_active: bool) -> Office:
        office = self._require(Office, office_id, label="Office")
        authorize("toggle_status", context, office)

        with self._transaction(
            "office.status_changed",
            {"office_id": str(office.id), "is_active": is_active, "user_id": str(context.user_id)},
        ):
            self.store.update_fields(office, {"is_active": is_active})
        return office

    def delete_office(self, *, context: RequestUserContext, office_id: UUID) -> None:
        office = self._require(Office, office_id, label="Office")
        authorize("delete", context, office)

        with self._transaction(
            "office.deleted",
            {"office_id": str(office.id), "code": office.code, "user_id": str(context.user_id)},
        ) as log_context:
            log_context["subunits_deleted"] = self.synchronizer.on_office_soft_deleted(office)
            self.store.soft_delete(office)

    def restore_office(self, *, context: RequestUserContext, office_id: UUID) -> Office:
        office = self._require(Office, office_id, label="Office", include_deleted=True)
        authorize("restore", context, office)
        if not office.is_deleted:
            raise DomainInvariantError("The office is not deleted.")

        with self._transaction(
            "office.restored",
            {"office_id": str(office.id), "code": office.code, "user_id": str(context.user_id)},
        ) as log_context:
            self.store.restore(office)
            log_context["subunits_restored"] = self.synchronizer.on_office_restored(office)
        return office

    def force_delete_office(self, *, context: RequestUserContext, office_id: UUID) -> None:
        office = self._require(Office, office_id, label="Office", include_deleted=True)
        authorize("force_delete", context, office)

        with self._transaction(
            "office.force_deleted",
            {"office_id": str(office.id), "code": office.code, "user_id": str(context.user_id)},
        ) as log_context:
            log_context["subunits_deleted"] = self.synchronizer.on_office_force_deleted(office)
            self.store.force_delete(office)
