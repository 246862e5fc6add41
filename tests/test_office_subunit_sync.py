from __future__ import annotations

from typing import Any

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from budget_office.core.auth import RequestUserContext
from budget_office.core.errors import DomainInvariantError, OperationalError, ValidationError
from budget_office.models.entities import Office, Subunit
from budget_office.repositories.record_store import RecordStore
from budget_office.services.office_service import OfficeService
from budget_office.services.subunit_service import SubunitService


def _create_office(
    db: Session,
    actor: RequestUserContext,
    *,
    code: str = "CC-01",
    name: str = "Finance Department",
) -> Office:
    return OfficeService(db).create_office(context=actor, data={"code": code, "name": name})


def _subunits(db: Session, office: Office, *, include_deleted: bool = False) -> list[Subunit]:
    query = select(Subunit).where(Subunit.office_id == office.id)
    if not include_deleted:
        query = query.where(Subunit.deleted_at.is_(None))
    return list(db.scalars(query.order_by(Subunit.created_at.asc())).all())


def _system_subunit(db: Session, office: Office) -> Subunit:
    rows = [subunit for subunit in _subunits(db, office) if subunit.is_system]
    assert len(rows) == 1
    return rows[0]


def test_office_create_normalizes_input_and_creates_system_subunit(
    db_session: Session,
    super_admin: RequestUserContext,
) -> None:
    office = _create_office(db_session, super_admin, code="cc-01", name=" finance  dept ")

    assert office.code == "CC-01"
    assert office.name == "Finance Dept"

    system_subunit = _system_subunit(db_session, office)
    assert system_subunit.name == "Finance Dept"
    assert system_subunit.is_active is True


def test_office_create_is_aborted_when_system_subunit_insert_fails(
    db_session: Session,
    super_admin: RequestUserContext,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    original_insert = RecordStore.insert

    def failing_insert(self: RecordStore, model: type, fields: dict[str, Any]) -> Any:
        if model is Subunit:
            raise OperationalError("subunit insert failed")
        return original_insert(self, model, fields)

    monkeypatch.setattr(RecordStore, "insert", failing_insert)

    with pytest.raises(OperationalError):
        _create_office(db_session, super_admin)

    assert db_session.scalar(select(func.count()).select_from(Office)) == 0
    assert db_session.scalar(select(func.count()).select_from(Subunit)) == 0


def test_office_rename_renames_system_subunit(db_session: Session, super_admin: RequestUserContext) -> None:
    office = _create_office(db_session, super_admin, name="Finance Dept")

    OfficeService(db_session).update_office(
        context=super_admin,
        office_id=office.id,
        data={"name": "treasury office"},
    )

    assert office.name == "Treasury Office"
    assert _system_subunit(db_session, office).name == "Treasury Office"


def test_office_rename_succeeds_when_subunit_sync_fails(
    db_session: Session,
    super_admin: RequestUserContext,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    office = _create_office(db_session, super_admin, name="Finance Dept")
    original_update = RecordStore.update_fields

    def failing_update(self: RecordStore, record: Any, fields: dict[str, Any]) -> Any:
        if isinstance(record, Subunit):
            raise OperationalError("subunit rename failed")
        return original_update(self, record, fields)

    monkeypatch.setattr(RecordStore, "update_fields", failing_update)

    with caplog.at_level("ERROR"):
        updated = OfficeService(db_session).update_office(
            context=super_admin,
            office_id=office.id,
            data={"name": "Treasury Office"},
        )

    assert updated.name == "Treasury Office"
    db_session.expire_all()
    assert db_session.get(Office, office.id).name == "Treasury Office"
    assert _system_subunit(db_session, office).name == "Finance Dept"
    assert any(record.getMessage() == "subunit.sync_failed" for record in caplog.records)


def test_office_update_without_name_change_leaves_system_subunit(
    db_session: Session,
    super_admin: RequestUserContext,
    caplog: pytest.LogCaptureFixture,
) -> None:
    office = _create_office(db_session, super_admin)

    with caplog.at_level("INFO"):
        OfficeService(db_session).update_office(
            context=super_admin,
            office_id=office.id,
            data={"description": "Handles payments"},
        )

    assert not any(record.getMessage() == "subunit.synced" for record in caplog.records)
    assert _system_subunit(db_session, office).name == "Finance Department"


@pytest.mark.parametrize(
    ("operation", "message_fragment"),
    [
        ("update", "cannot be edited directly"),
        ("toggle", "synchronized automatically"),
        ("delete", "cannot be deleted directly"),
        ("force_delete", "cannot be permanently deleted"),
    ],
)
def test_system_subunit_is_protected_even_for_super_admin(
    db_session: Session,
    super_admin: RequestUserContext,
    operation: str,
    message_fragment: str,
) -> None:
    office = _create_office(db_session, super_admin)
    system_subunit = _system_subunit(db_session, office)
    service = SubunitService(db_session)

    with pytest.raises(DomainInvariantError) as exc_info:
        if operation == "update":
            service.update_subunit(context=super_admin, subunit_id=system_subunit.id, data={"name": "Renamed"})
        elif operation == "toggle":
            service.toggle_status(context=super_admin, subunit_id=system_subunit.id, is_active=False)
        elif operation == "delete":
            service.delete_subunit(context=super_admin, subunit_id=system_subunit.id)
        else:
            service.force_delete_subunit(context=super_admin, subunit_id=system_subunit.id)

    assert message_fragment in exc_info.value.message
    db_session.expire_all()
    stored = db_session.get(Subunit, system_subunit.id)
    assert stored is not None
    assert stored.deleted_at is None
    assert stored.name == "Finance Department"
    assert stored.is_active is True


def test_direct_subunit_create_forces_user_flag(db_session: Session, super_admin: RequestUserContext) -> None:
    office = _create_office(db_session, super_admin)

    subunit = SubunitService(db_session).create_subunit(
        context=super_admin,
        office_id=office.id,
        data={"name": "payroll unit", "is_system": True},
    )

    assert subunit.is_system is False
    assert subunit.name == "Payroll Unit"
    assert len([row for row in _subunits(db_session, office) if row.is_system]) == 1


def test_update_cannot_flip_system_flag(db_session: Session, super_admin: RequestUserContext) -> None:
    office = _create_office(db_session, super_admin)
    service = SubunitService(db_session)
    subunit = service.create_subunit(context=super_admin, office_id=office.id, data={"name": "Payroll Unit"})

    updated = service.update_subunit(
        context=super_admin,
        subunit_id=subunit.id,
        data={"name": "Payroll Team", "is_system": True},
    )

    assert updated.name == "Payroll Team"
    assert updated.is_system is False


def test_subunit_name_is_unique_per_office(db_session: Session, super_admin: RequestUserContext) -> None:
    first = _create_office(db_session, super_admin, code="CC-01", name="Finance Department")
    second = _create_office(db_session, super_admin, code="CC-02", name="Legal Department")
    service = SubunitService(db_session)
    service.create_subunit(context=super_admin, office_id=first.id, data={"name": "Payroll Unit"})

    with pytest.raises(ValidationError) as exc_info:
        service.create_subunit(context=super_admin, office_id=first.id, data={"name": "payroll unit"})
    assert "name" in exc_info.value.errors

    other = service.create_subunit(context=super_admin, office_id=second.id, data={"name": "Payroll Unit"})
    assert other.office_id == second.id


def test_office_soft_delete_and_restore_cascade_to_subunits(
    db_session: Session,
    super_admin: RequestUserContext,
) -> None:
    office = _create_office(db_session, super_admin)
    SubunitService(db_session).create_subunit(context=super_admin, office_id=office.id, data={"name": "Payroll Unit"})
    service = OfficeService(db_session)

    service.delete_office(context=super_admin, office_id=office.id)

    db_session.expire_all()
    rows = _subunits(db_session, office, include_deleted=True)
    assert len(rows) == 2
    assert all(row.deleted_at is not None for row in rows)
    assert db_session.get(Office, office.id).deleted_at is not None

    service.restore_office(context=super_admin, office_id=office.id)

    db_session.expire_all()
    rows = _subunits(db_session, office, include_deleted=True)
    assert all(row.deleted_at is None for row in rows)
    assert db_session.get(Office, office.id).deleted_at is None


def test_office_force_delete_removes_all_subunits(db_session: Session, super_admin: RequestUserContext) -> None:
    office = _create_office(db_session, super_admin)
    subunit_service = SubunitService(db_session)
    extra = subunit_service.create_subunit(context=super_admin, office_id=office.id, data={"name": "Payroll Unit"})
    subunit_service.delete_subunit(context=super_admin, subunit_id=extra.id)
    office_id = office.id

    OfficeService(db_session).force_delete_office(context=super_admin, office_id=office_id)

    assert db_session.scalar(select(func.count()).select_from(Office)) == 0
    assert db_session.scalar(
        select(func.count()).select_from(Subunit).where(Subunit.office_id == office_id)
    ) == 0


def test_restoring_subunit_of_deleted_office_is_rejected(
    db_session: Session,
    super_admin: RequestUserContext,
) -> None:
    office = _create_office(db_session, super_admin)
    subunit = SubunitService(db_session).create_subunit(
        context=super_admin,
        office_id=office.id,
        data={"name": "Payroll Unit"},
    )
    OfficeService(db_session).delete_office(context=super_admin, office_id=office.id)

    with pytest.raises(DomainInvariantError):
        SubunitService(db_session).restore_subunit(context=super_admin, subunit_id=subunit.id)


def test_office_statistics_counts_subunits(db_session: Session, super_admin: RequestUserContext) -> None:
    office = _create_office(db_session, super_admin)
    service = SubunitService(db_session)
    service.create_subunit(context=super_admin, office_id=office.id, data={"name": "Payroll Unit"})
    inactive = service.create_subunit(context=super_admin, office_id=office.id, data={"name": "Archive Unit"})
    service.toggle_status(context=super_admin, subunit_id=inactive.id, is_active=False)

    stats = OfficeService(db_session).statistics(context=super_admin, office_id=office.id)

    assert stats == {
        "total_subunits": 3,
        "active_subunits": 2,
        "system_subunits": 1,
        "user_subunits": 2,
    }


def test_rename_with_ampersand_leaves_user_subunits_untouched(
    db_session: Session,
    super_admin: RequestUserContext,
) -> None:
    office = _create_office(db_session, super_admin, code="cc-01", name=" finance  dept ")
    payroll = SubunitService(db_session).create_subunit(
        context=super_admin,
        office_id=office.id,
        data={"name": "Payroll Unit"},
    )

    OfficeService(db_session).update_office(
        context=super_admin,
        office_id=office.id,
        data={"name": "Finance & Budget"},
    )

    db_session.expire_all()
    assert _system_subunit(db_session, office).name == "Finance & Budget"
    assert db_session.get(Subunit, payroll.id).name == "Payroll Unit"


def test_post_update_failure_rolls_back_office_write(
    db_session: Session,
    super_admin: RequestUserContext,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    office = _create_office(db_session, super_admin, name="Finance Dept")

    def failing_after_update(self: Any, record: Office, changes: dict[str, Any], data: dict[str, Any]) -> None:
        raise RuntimeError("hook failed")

    monkeypatch.setattr(
        "budget_office.forms.offices.OfficeRecordPolicy.after_update",
        failing_after_update,
    )

    with pytest.raises(RuntimeError):
        OfficeService(db_session).update_office(
            context=super_admin,
            office_id=office.id,
            data={"name": "Treasury Office", "short_name": "TRE"},
        )

    db_session.expire_all()
    stored = db_session.get(Office, office.id)
    assert stored.name == "Finance Dept"
    assert stored.short_name is None


@pytest.mark.parametrize("name", ["<b>Finance Dept</b>", "<b>finance</b>  <i>DEPT</i>"])
def test_markup_cannot_bypass_office_name_uniqueness(
    db_session: Session,
    super_admin: RequestUserContext,
    name: str,
) -> None:
    _create_office(db_session, super_admin, code="CC-01", name="Finance Dept")

    with pytest.raises(ValidationError) as exc_info:
        _create_office(db_session, super_admin, code="CC-02", name=name)

    assert exc_info.value.errors["name"] == ["This name is already registered."]
    assert db_session.scalars(select(Office.name)).all() == ["Finance Dept"]
    assert db_session.scalars(select(Subunit.name)).all() == ["Finance Dept"]


def test_markup_only_office_name_is_required(db_session: Session, super_admin: RequestUserContext) -> None:
    with pytest.raises(ValidationError) as exc_info:
        _create_office(db_session, super_admin, code="CC-01", name="<i></i><b></b>")

    assert "name" in exc_info.value.errors
    assert db_session.scalar(select(func.count()).select_from(Office)) == 0
    assert db_session.scalar(select(func.count()).select_from(Subunit)) == 0
