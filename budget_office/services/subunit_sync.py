"""Keeps every office's system subunit in step with the office itself.

Each non-deleted office owns exactly one subunit with ``is_system = True``
whose name equals the office name. The office lifecycle calls in here
explicitly, inside its own transaction:

* created       -> create the system subunit; failure aborts the office create
* renamed       -> rename the system subunit; failure is logged, never raised
* soft-deleted  -> soft-delete every subunit; failure aborts
* force-deleted -> physically delete every subunit; failure aborts
* restored      -> restore every soft-deleted subunit; failure aborts
"""

from __future__ import annotations

from budget_office.core.errors import DomainInvariantError
from budget_office.core.logging import get_logger
from budget_office.models.entities import Office, Subunit
from budget_office.repositories.record_store import RecordStore

logger = get_logger(__name__)

GUARD_MESSAGES = {
    "update": (
        "System subunits cannot be edited directly. "
        "They are synchronized automatically with their office."
    ),
    "toggle_status": (
        "The status of a system subunit is synchronized automatically with its office "
        "and cannot be changed directly."
    ),
    "delete": "System subunits cannot be deleted directly. They are removed together with their office.",
    "force_delete": (
        "System subunits cannot be permanently deleted directly. "
        "They are removed together with their office."
    ),
    "restore": "System subunits cannot be restored directly. They are restored together with their office.",
}


def ensure_subunit_mutable(subunit: Subunit, action: str) -> None:
    """Reject direct mutation of a system subunit, whoever the caller is."""

    if subunit.is_system:
        raise DomainInvariantError(GUARD_MESSAGES.get(action, GUARD_MESSAGES["update"]))


class SubunitSynchronizer:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def system_subunit_for(self, office: Office) -> Subunit | None:
        subunits = self.store.find_children(office, Subunit, foreign_key="office_id", is_system=True)
        return subunits[0] if subunits else None

    def on_office_created(self, office: Office) -> Subunit:
        try:
            subunit = self.store.insert(
                Subunit,
                {
                    "office_id": office.id,
                    "name": office.name,
                    "is_active": True,
                    "is_system": True,
                },
            )
        except Exception as exc:
            logger.error(
                "subunit.system_create_failed",
                extra={
                    "context": {"office_id": str(office.id), "office_name": office.name, "error": str(exc)}
                },
            )
            raise

        logger.info(
            "subunit.system_created",
            extra={"context": {"office_id": str(office.id), "office_name": office.name}},
        )
        return subunit

    def on_office_renamed(self, office: Office, old_name: str | None = None) -> None:
        """Rename the system subunit. Never raises: the office data stays authoritative."""

        try:
            with self.store.savepoint():
                subunit = self.system_subunit_for(office)
                if subunit is None:
                    logger.warning(
                        "subunit.system_missing",
                        extra={"context": {"office_id": str(office.id), "office_name": office.name}},
                    )
                    return
                previous_name = subunit.name
                self.store.update_fields(subunit, {"name": office.name})
        except Exception as exc:
            logger.error(
                "subunit.sync_failed",
                extra={"context": {"office_id": str(office.id), "error": str(exc)}},
            )
            return

        logger.info(
            "subunit.synced",
            extra={
                "context": {
                    "office_id": str(office.id),
                    "subunit_id": str(subunit.id),
                    "old_name": previous_name,
                    "new_name": office.name,
                    "office_old_name": old_name,
                }
            },
        )

    def on_office_soft_deleted(self, office: Office) -> int:
        try:
            subunits = self.store.find_children(office, Subunit, foreign_key="office_id")
            for subunit in subunits:
                self.store.soft_delete(subunit)
        except Exception as exc:
            logger.error(
                "subunit.cascade_delete_failed",
                extra={"context": {"office_id": str(office.id), "error": str(exc)}},
            )
            raise

        logger.info(
            "subunit.cascade_deleted",
            extra={"context": {"office_id": str(office.id), "deleted_count": len(subunits)}},
        )
        return len(subunits)

    def on_office_force_deleted(self, office: Office) -> int:
        try:
            subunits = self.store.find_children(office, Subunit, foreign_key="office_id", include_deleted=True)
            for subunit in subunits:
                self.store.force_delete(subunit)
        except Exception as exc:
            logger.error(
                "subunit.cascade_force_delete_failed",
                extra={"context": {"office_id": str(office.id), "error": str(exc)}},
            )
            raise

        logger.warning(
            "subunit.cascade_force_deleted",
            extra={"context": {"office_id": str(office.id), "deleted_count": len(subunits)}},
        )
        return len(subunits)

    def on_office_restored(self, office: Office) -> int:
        try:
            subunits = self.store.find_children(office, Subunit, foreign_key="office_id", only_deleted=True)
            for subunit in subunits:
                self.store.restore(subunit)
        except Exception as exc:
            logger.error(
                "subunit.cascade_restore_failed",
                extra={"context": {"office_id": str(office.id), "error": str(exc)}},
            )
            raise

        logger.info(
            "subunit.cascade_restored",
            extra={"context": {"office_id": str(office.id), "restored_count": len(subunits)}},
        )
        return len(subunits)
