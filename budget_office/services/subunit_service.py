"""Application service for user-managed subunits.

Every direct mutation runs ``ensure_subunit_mutable`` before authorization,
so system subunits are rejected with a domain error even for Super Admins.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select

from budget_office.core.auth import RequestUserContext
from budget_office.core.errors import DomainInvariantError
from budget_office.core.permissions import authorize
from budget_office.forms.lifecycle import RecordForm
from budget_office.forms.offices import SubunitRecordPolicy
from budget_office.models.entities import Office, Subunit
from budget_office.services.base import RecordService, apply_search
from budget_office.services.subunit_sync import SubunitSynchronizer, ensure_subunit_mutable


class SubunitService(RecordService):
    def form(self) -> RecordForm[Subunit]:
        return RecordForm(SubunitRecordPolicy(self.store), self.store)

    @staticmethod
    def serialize_subunit(subunit: Subunit) -> dict[str, object]:
        return {
            "id": str(subunit.id),
            "office_id": str(subunit.office_id),
            "name": subunit.name,
            "description": subunit.description,
            "is_active": subunit.is_active,
            "is_system": subunit.is_system,
            "created_at": subunit.created_at.isoformat(),
            "updated_at": subunit.updated_at.isoformat(),
            "deleted_at": subunit.deleted_at.isoformat() if subunit.deleted_at else None,
        }

    def _log_context(self, subunit: Subunit, context: RequestUserContext) -> dict[str, Any]:
        return {
            "subunit_id": str(subunit.id),
            "office_id": str(subunit.office_id),
            "user_id": str(context.user_id),
        }

    # ---------- Reads ----------
    def list_for_office(
        self,
        *,
        context: RequestUserContext,
        office_id: UUID,
        include_system: bool = True,
        search: str | None = None,
        only_active: bool = False,
    ) -> list[Subunit]:
        office = self._require(Office, office_id, label="Office")
        authorize("view", context, Subunit)

        query = select(Subunit).where(Subunit.office_id == office.id, Subunit.deleted_at.is_(None))
        if not include_system:
            query = query.where(Subunit.is_system.is_(False))
        if only_active:
            query = query.where(Subunit.is_active.is_(True))
        query = apply_search(query, search, Subunit.name)
        # System subunit first, then by name.
        return self.store.all(query.order_by(Subunit.is_system.desc(), Subunit.name.asc()))

    def system_subunit(self, *, context: RequestUserContext, office_id: UUID) -> Subunit | None:
        office = self._require(Office, office_id, label="Office")
        authorize("view", context, Subunit)
        return SubunitSynchronizer(self.store).system_subunit_for(office)

    # ---------- Writes ----------
    def create_subunit(self, *, context: RequestUserContext, office_id: UUID, data: dict[str, Any]) -> Subunit:
        self._require(Office, office_id, label="Office")
        return self.form().create(context, {**data, "office_id": office_id})

    def update_subunit(self, *, context: RequestUserContext, subunit_id: UUID, data: dict[str, Any]) -> Subunit:
        subunit = self._require(Subunit, subunit_id, label="Subunit")
        ensure_subunit_mutable(subunit, "update")
        return self.form().update(context, subunit, data)

    def toggle_status(self, *, context: RequestUserContext, subunit_id: UUID, is_active: bool) -> Subunit:
        subunit = self._require(Subunit, subunit_id, label="Subunit")
        ensure_subunit_mutable(subunit, "toggle_status")
        authorize("toggle_status", context, subunit)

        with self._transaction(
            "subunit.status_changed",
            {**self._log_context(subunit, context), "is_active": is_active},
        ):
            self.store.update_fields(subunit, {"is_active": is_active})
        return subunit

    def delete_subunit(self, *, context: RequestUserContext, subunit_id: UUID) -> None:
        subunit = self._require(Subunit, subunit_id, label="Subunit")
        ensure_subunit_mutable(subunit, "delete")
        authorize("delete", context, subunit)

        with self._transaction("subunit.deleted", self._log_context(subunit, context)):
            self.store.soft_delete(subunit)

    def restore_subunit(self, *, context: RequestUserContext, subunit_id: UUID) -> Subunit:
        subunit = self._require(Subunit, subunit_id, label="Subunit", include_deleted=True)
        ensure_subunit_mutable(subunit, "restore")
        authorize("restore", context, subunit)
        if not subunit.is_deleted:
            raise DomainInvariantError("The subunit is not deleted.")
        if self.store.get(Office, subunit.office_id) is None:
            raise DomainInvariantError("Restore the office before restoring its subunits.")

        with self._transaction("subunit.restored", self._log_context(subunit, context)):
            self.store.restore(subunit)
        return subunit

    def force_delete_subunit(self, *, context: RequestUserContext, subunit_id: UUID) -> None:
        subunit = self._require(Subunit, subunit_id, label="Subunit", include_deleted=True)
        ensure_subunit_mutable(subunit, "force_delete")
        authorize("force_delete", context, subunit)

        with self._transaction("subunit.force_deleted", self._log_context(subunit, context)):
            self.store.force_delete(subunit)
