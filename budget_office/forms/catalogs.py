"""Record policies for the budget catalogs."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from budget_office.forms.lifecycle import RecordPolicy, optional_text, title_case, upper_code
from budget_office.forms.rules import FieldRules
from budget_office.models.entities import Classifier, Financing, Product, Purpose, Subclassifier
from budget_office.repositories.record_store import RecordStore


class ClassifierRecordPolicy(RecordPolicy[Classifier]):
    model = Classifier
    entity_name = "classifier"
    fields = ("code", "name", "alternate_name", "description", "is_active")

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def defaults(self) -> dict[str, Any]:
        return {"code": "", "name": "", "alternate_name": None, "description": None, "is_active": True}

    def normalize(self, data: dict[str, Any]) -> dict[str, Any]:
        normalized = dict(data)
        normalized["code"] = upper_code(data.get("code"))
        normalized["name"] = title_case(data.get("name"))
        normalized["alternate_name"] = title_case(data.get("alternate_name")) or None
        normalized["description"] = optional_text(data.get("description"))
        return normalized

    def validate(self, data: dict[str, Any], *, record: Classifier | None) -> None:
        rules = FieldRules(data, store=self.store, record=record)
        (
            rules.required("code")
            .length("code", min_length=1, max_length=10)
            .pattern("code", r"[A-Z0-9.]+", "The code may only contain uppercase letters, numbers and dots.")
            .unique("code", Classifier, message="This code is already registered.")
        )
        (
            rules.required("name")
            .length("name", min_length=3, max_length=255)
            .unique("name", Classifier, message="This name is already registered.")
        )
        rules.length("alternate_name", max_length=255).unique(
            "alternate_name", Classifier, message="This alternate name is already registered."
        )
        rules.boolean("is_active")
        rules.raise_if_failed()


class SubclassifierRecordPolicy(RecordPolicy[Subclassifier]):
    model = Subclassifier
    entity_name = "subclassifier"
    fields = ("classifier_id", "code", "name", "is_active")

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def defaults(self) -> dict[str, Any]:
        return {"classifier_id": None, "code": "", "name": "", "is_active": True}

    def normalize(self, data: dict[str, Any]) -> dict[str, Any]:
        normalized = dict(data)
        classifier_id = data.get("classifier_id")
        if classifier_id is not None and not isinstance(classifier_id, UUID):
            try:
                classifier_id = UUID(str(classifier_id))
            except ValueError:
                pass
        normalized["classifier_id"] = classifier_id
        normalized["code"] = upper_code(data.get("code"))
        normalized["name"] = title_case(data.get("name"))
        return normalized

    def validate(self, data: dict[str, Any], *, record: Subclassifier | None) -> None:
        rules = FieldRules(data, store=self.store, record=record)
        rules.required("classifier_id", "The classifier is required.").exists(
            "classifier_id", Classifier, message="The selected classifier does not exist."
        )
        (
            rules.required("code")
            .length("code", min_length=3, max_length=255)
            .unique("code", Subclassifier, message="This code is already registered.")
        )
        rules.required("name").length("name", min_length=3, max_length=255)
        rules.boolean("is_active")
        rules.raise_if_failed()


class CodedCatalogRecordPolicy(RecordPolicy[Any]):
    """Financing sources and products: code, name and an optional description."""

    fields = ("code", "name", "description", "is_active")

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def defaults(self) -> dict[str, Any]:
        return {"code": "", "name": "", "description": None, "is_active": True}

    def normalize(self, data: dict[str, Any]) -> dict[str, Any]:
        normalized = dict(data)
        normalized["code"] = upper_code(data.get("code"))
        normalized["name"] = title_case(data.get("name"))
        normalized["description"] = optional_text(data.get("description"))
        return normalized

    def validate(self, data: dict[str, Any], *, record: Any) -> None:
        rules = FieldRules(data, store=self.store, record=record)
        (
            rules.required("code")
            .length("code", min_length=1, max_length=10)
            .pattern(
                "code",
                r"[A-Z0-9-]+",
                "The code may only contain uppercase letters, numbers and hyphens.",
            )
            .unique("code", self.model, message="This code is already registered.")
        )
        (
            rules.required("name")
            .length("name", min_length=3, max_length=255)
            .unique("name", self.model, message="This name is already registered.")
        )
        rules.boolean("is_active")
        rules.raise_if_failed()


class FinancingRecordPolicy(CodedCatalogRecordPolicy):
    model = Financing
    entity_name = "financing"


class ProductRecordPolicy(CodedCatalogRecordPolicy):
    model = Product
    entity_name = "product"


class PurposeRecordPolicy(RecordPolicy[Purpose]):
    model = Purpose
    entity_name = "purpose"
    fields = ("name", "is_active")

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def defaults(self) -> dict[str, Any]:
        return {"name": "", "is_active": True}

    def normalize(self, data: dict[str, Any]) -> dict[str, Any]:
        return {**data, "name": title_case(data.get("name"))}

    def validate(self, data: dict[str, Any], *, record: Purpose | None) -> None:
        rules = FieldRules(data, store=self.store, record=record)
        (
            rules.required("name")
            .length("name", min_length=3, max_length=255)
            .unique("name", Purpose, message="This name is already registered.")
        )
        rules.boolean("is_active")
        rules.raise_if_failed()


CATALOG_POLICIES: dict[str, type[RecordPolicy[Any]]] = {
    "classifiers": ClassifierRecordPolicy,
    "subclassifiers": SubclassifierRecordPolicy,
    "financings": FinancingRecordPolicy,
    "products": ProductRecordPolicy,
    "purposes": PurposeRecordPolicy,
}
