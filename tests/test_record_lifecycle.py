from __future__ import annotations

from typing import Any

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from budget_office.core.auth import RequestUserContext
from budget_office.core.errors import AuthorizationError, NotFoundError, OperationalError, ValidationError
from budget_office.forms.catalogs import PurposeRecordPolicy
from budget_office.forms.lifecycle import (
    RecordForm,
    collapse_whitespace,
    lower_email,
    optional_text,
    sanitize,
    title_case,
    upper_code,
)
from budget_office.forms.offices import OfficeRecordPolicy
from budget_office.models.entities import Office, Purpose
from budget_office.repositories.record_store import RecordStore


def _office_form(db: Session) -> RecordForm[Office]:
    store = RecordStore(db)
    return RecordForm(OfficeRecordPolicy(store), store)


@pytest.mark.parametrize(
    ("helper", "raw", "expected"),
    [
        (collapse_whitespace, "  a   b \t c ", "a b c"),
        (title_case, " finance  dept ", "Finance Dept"),
        (title_case, "TREASURY office", "Treasury Office"),
        (title_case, "finance-dept  north", "Finance-Dept North"),
        (title_case, "<b>finance</b> dept", "Finance Dept"),
        (upper_code, "<i>cc-01</i>", "CC-01"),
        (upper_code, " cc-01 ", "CC-01"),
        (lower_email, " Jane.Doe@Example.COM ", "jane.doe@example.com"),
    ],
)
def test_normalization_helpers_are_idempotent(helper: Any, raw: str, expected: str) -> None:
    assert helper(raw) == expected
    assert helper(helper(raw)) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, None),
        ("", None),
        ("   ", None),
        ("<b></b> ", None),
        ("  Handles   payments ", "Handles payments"),
    ],
)
def test_optional_text_turns_blank_input_into_none(raw: str | None, expected: str | None) -> None:
    assert optional_text(raw) == expected


def test_sanitize_strips_tags_and_whitespace_from_strings_only() -> None:
    cleaned = sanitize({"name": "  <b>Finance</b> Dept ", "is_active": True, "description": None})

    assert cleaned == {"name": "Finance Dept", "is_active": True, "description": None}


def test_create_persists_sanitized_payload_and_resets_buffer(
    db_session: Session,
    super_admin: RequestUserContext,
    caplog: pytest.LogCaptureFixture,
) -> None:
    form = _office_form(db_session)
    form.fill(code="cc-01", name="finance dept", description="<script>x</script>Main office")

    with caplog.at_level("INFO"):
        office = form.create(super_admin)

    assert office.description == "xMain office"
    assert form.data == form.policy.defaults()
    assert form.record is None
    created = [record for record in caplog.records if record.getMessage() == "record.created"]
    assert len(created) == 1
    assert created[0].context["entity"] == "office"
    assert created[0].context["user_id"] == str(super_admin.user_id)


def test_validation_failure_returns_every_field_and_logs_nothing(
    db_session: Session,
    super_admin: RequestUserContext,
    caplog: pytest.LogCaptureFixture,
) -> None:
    form = _office_form(db_session)

    with caplog.at_level("INFO"), pytest.raises(ValidationError) as exc_info:
        form.create(super_admin, {"code": "c", "name": "ab"})

    assert set(exc_info.value.errors) == {"code", "name"}
    assert caplog.records == []
    assert db_session.scalar(select(func.count()).select_from(Office)) == 0


def test_code_pattern_and_uniqueness(db_session: Session, super_admin: RequestUserContext) -> None:
    _office_form(db_session).create(super_admin, {"code": "CC-01", "name": "Finance Dept"})

    with pytest.raises(ValidationError) as exc_info:
        _office_form(db_session).create(super_admin, {"code": "cc-01", "name": "finance dept"})
    assert exc_info.value.errors["code"] == ["This code is already registered."]
    assert exc_info.value.errors["name"] == ["This name is already registered."]

    with pytest.raises(ValidationError) as exc_info:
        _office_form(db_session).create(super_admin, {"code": "CC_02", "name": "Legal Dept"})
    assert "code" in exc_info.value.errors


def test_uniqueness_ignores_the_record_being_updated(db_session: Session, super_admin: RequestUserContext) -> None:
    office = _office_form(db_session).create(super_admin, {"code": "CC-01", "name": "Finance Dept"})

    updated = _office_form(db_session).update(super_admin, office, {"short_name": "FIN"})

    assert updated.short_name == "FIN"
    assert updated.code == "CC-01"


def test_authorization_is_checked_before_validation(db_session: Session, viewer: RequestUserContext) -> None:
    with pytest.raises(AuthorizationError):
        _office_form(db_session).create(viewer, {"code": "", "name": ""})


def test_custom_capability_check_is_used(db_session: Session, super_admin: RequestUserContext) -> None:
    seen: list[tuple[str, Any]] = []

    def deny_all(ability: str, actor: RequestUserContext, subject: Any) -> bool:
        seen.append((ability, subject))
        return False

    with pytest.raises(AuthorizationError):
        _office_form(db_session).create(super_admin, {"code": "CC-01", "name": "Finance"}, can_perform=deny_all)

    assert seen == [("create", Office)]


def test_update_without_record_raises_not_found(db_session: Session, super_admin: RequestUserContext) -> None:
    with pytest.raises(NotFoundError):
        _office_form(db_session).update(super_admin)


def test_store_failure_rolls_back_and_is_logged(
    db_session: Session,
    super_admin: RequestUserContext,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    def failing_insert(self: RecordStore, model: type, fields: dict[str, Any]) -> Any:
        raise OperationalError("disk full")

    monkeypatch.setattr(RecordStore, "insert", failing_insert)
    store = RecordStore(db_session)
    form = RecordForm(PurposeRecordPolicy(store), store)

    with caplog.at_level("ERROR"), pytest.raises(OperationalError):
        form.create(super_admin, {"name": "Public Safety"})

    failures = [record for record in caplog.records if record.getMessage() == "record.create_failed"]
    assert len(failures) == 1
    context = failures[0].context
    assert context["entity"] == "purpose"
    assert context["error"] == "disk full"
    assert context["user_id"] == str(super_admin.user_id)
    assert context["file"].endswith("test_record_lifecycle.py")
    assert isinstance(context["line"], int)
    assert db_session.scalar(select(func.count()).select_from(Purpose)) == 0


def test_update_logs_success_with_record_id(
    db_session: Session,
    super_admin: RequestUserContext,
    caplog: pytest.LogCaptureFixture,
) -> None:
    store = RecordStore(db_session)
    purpose = RecordForm(PurposeRecordPolicy(store), store).create(super_admin, {"name": "public safety"})
    purpose_id = purpose.id

    with caplog.at_level("INFO"):
        RecordForm(PurposeRecordPolicy(store), store).update(super_admin, purpose, {"name": "civil defense"})

    updated = [record for record in caplog.records if record.getMessage() == "record.updated"]
    assert len(updated) == 1
    assert updated[0].context["id"] == str(purpose_id)
    assert purpose.name == "Civil Defense"


def test_markup_is_stripped_before_storage(db_session: Session, super_admin: RequestUserContext) -> None:
    office = _office_form(db_session).create(
        super_admin,
        {"code": "CC-01", "name": "Finance Dept", "short_name": "<script>x</script> trailing "},
    )

    db_session.expire_all()
    assert db_session.get(Office, office.id).short_name == "x trailing"
