"""Record policies for offices (cost centers) and their subunits."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from budget_office.core.auth import RequestUserContext
from budget_office.forms.lifecycle import RecordPolicy, optional_text, title_case, upper_code
from budget_office.forms.rules import FieldRules
from budget_office.models.entities import Office, Subunit
from budget_office.repositories.record_store import RecordStore
from budget_office.services.subunit_sync import SubunitSynchronizer, ensure_subunit_mutable

OFFICE_CODE_PATTERN = r"[A-Z0-9-]+"


class OfficeRecordPolicy(RecordPolicy[Office]):
    """Code is upper-cased, names are title-cased; the system subunit follows the office."""

    model = Office
    entity_name = "office"
    fields = ("code", "name", "short_name", "description", "is_active")

    def __init__(self, store: RecordStore, synchronizer: SubunitSynchronizer | None = None) -> None:
        self.store = store
        self.synchronizer = synchronizer or SubunitSynchronizer(store)

    def defaults(self) -> dict[str, Any]:
        return {"code": "", "name": "", "short_name": None, "description": None, "is_active": True}

    def normalize(self, data: dict[str, Any]) -> dict[str, Any]:
        normalized = dict(data)
        normalized["code"] = upper_code(data.get("code"))
        normalized["name"] = title_case(data.get("name"))
        normalized["short_name"] = optional_text(data.get("short_name"))
        normalized["description"] = optional_text(data.get("description"))
        return normalized

    def validate(self, data: dict[str, Any], *, record: Office | None) -> None:
        rules = FieldRules(data, store=self.store, record=record)
        (
            rules.required("code")
            .length("code", min_length=2, max_length=20)
            .pattern(
                "code",
                OFFICE_CODE_PATTERN,
                "The code may only contain uppercase letters, numbers and hyphens.",
            )
            .unique("code", Office, message="This code is already registered.")
        )
        (
            rules.required("name")
            .length("name", min_length=3, max_length=100)
            .unique("name", Office, message="This name is already registered.")
        )
        rules.length("short_name", max_length=100)
        rules.length("description", max_length=500)
        rules.boolean("is_active")
        rules.raise_if_failed()

    def after_create(self, record: Office, data: dict[str, Any]) -> None:
        self.synchronizer.on_office_created(record)

    def after_update(
        self,
        record: Office,
        changes: dict[str, tuple[Any, Any]],
        data: dict[str, Any],
    ) -> None:
        if "name" in changes:
            old_name, _ = changes["name"]
            self.synchronizer.on_office_renamed(record, old_name)


class SubunitRecordPolicy(RecordPolicy[Subunit]):
    """User-created subunits. ``is_system`` is never taken from input."""

    model = Subunit
    entity_name = "subunit"
    fields = ("office_id", "name", "description", "is_active")

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def defaults(self) -> dict[str, Any]:
        return {"office_id": None, "name": "", "description": None, "is_active": True}

    def normalize(self, data: dict[str, Any]) -> dict[str, Any]:
        normalized = dict(data)
        office_id = data.get("office_id")
        if office_id is not None and not isinstance(office_id, UUID):
            try:
                office_id = UUID(str(office_id))
            except ValueError:
                pass
        normalized["office_id"] = office_id
        normalized["name"] = title_case(data.get("name"))
        normalized["description"] = optional_text(data.get("description"))
        return normalized

    def validate(self, data: dict[str, Any], *, record: Subunit | None) -> None:
        rules = FieldRules(data, store=self.store, record=record)
        rules.required("office_id", "The office is required.").exists(
            "office_id", Office, message="The selected office does not exist."
        )
        scope = {"office_id": data["office_id"]} if isinstance(data.get("office_id"), UUID) else None
        (
            rules.required("name")
            .length("name", min_length=3, max_length=100)
            .unique(
                "name",
                Subunit,
                scope=scope,
                message="A subunit with this name already exists in this office.",
            )
        )
        rules.length("description", max_length=500)
        rules.boolean("is_active")
        rules.raise_if_failed()

    def before_save(
        self,
        data: dict[str, Any],
        *,
        record: Subunit | None,
        actor: RequestUserContext,
    ) -> None:
        if record is not None:
            ensure_subunit_mutable(record, "update")

    def payload(self, data: dict[str, Any], *, record: Subunit | None) -> dict[str, Any]:
        payload = {field: data.get(field) for field in self.fields}
        if record is None:
            payload["is_system"] = False
        return payload
