"""Generic create/update lifecycle for managed records.

A ``RecordForm`` runs one fixed pipeline for every record type and delegates
the entity specific parts to a ``RecordPolicy``:

    authorize -> before_validation -> normalize -> validate -> before_save
    -> [transaction: sanitize -> insert/update -> after_create/after_update
        -> after_save -> commit] -> log -> reset

Hooks that run inside the transaction succeed or fail together with the
primary write.
"""

from __future__ import annotations

import re
import traceback
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from budget_office.core.auth import RequestUserContext
from budget_office.core.errors import AuthorizationError, NotFoundError, ValidationError
from budget_office.core.logging import get_logger
from budget_office.core.permissions import can_perform as default_can_perform
from budget_office.repositories.record_store import RecordStore

logger = get_logger(__name__)

ModelT = TypeVar("ModelT")
CapabilityCheck = Callable[[str, RequestUserContext, Any], bool]

_WHITESPACE_RE = re.compile(r"\s+")
_TAG_RE = re.compile(r"<[^>]*>")


# ---------- Normalization helpers ----------
# Every helper strips markup before normalizing.
def strip_tags(value: str) -> str:
    stripped = _TAG_RE.sub("", value)
    while stripped != value:
        value, stripped = stripped, _TAG_RE.sub("", stripped)
    return stripped


def collapse_whitespace(value: str | None) -> str:
    if value is None:
        return ""
    return _WHITESPACE_RE.sub(" ", strip_tags(str(value))).strip()


def _title_word(word: str) -> str:
    return "-".join(part.capitalize() for part in word.split("-"))


def title_case(value: str | None) -> str:
    return " ".join(_title_word(word) for word in collapse_whitespace(value).split(" "))


def upper_code(value: str | None) -> str:
    return collapse_whitespace(value).upper()


def lower_email(value: str | None) -> str:
    return collapse_whitespace(value).lower()


def optional_text(value: str | None) -> str | None:
    """Collapse free text; blank input becomes ``None``."""

    if value is None:
        return None
    return collapse_whitespace(value) or None


def sanitize(data: dict[str, Any]) -> dict[str, Any]:
    """Strip markup tags and surrounding whitespace from every string value."""

    return {
        key: strip_tags(value).strip() if isinstance(value, str) else value
        for key, value in data.items()
    }


class RecordPolicy(Generic[ModelT]):
    """Entity specific behaviour plugged into ``RecordForm``.

    Every hook defaults to a no-op, ``normalize`` and ``payload`` default to
    identity over ``fields``.
    """

    model: type[ModelT]
    entity_name: str = "record"
    fields: tuple[str, ...] = ()

    def defaults(self) -> dict[str, Any]:
        return {field: None for field in self.fields}

    def extract(self, record: ModelT) -> dict[str, Any]:
        return {field: getattr(record, field) for field in self.fields}

    def before_validation(
        self,
        data: dict[str, Any],
        *,
        record: ModelT | None,
        actor: RequestUserContext,
    ) -> None:
        return None

    def normalize(self, data: dict[str, Any]) -> dict[str, Any]:
        return dict(data)

    def validate(self, data: dict[str, Any], *, record: ModelT | None) -> None:
        return None

    def before_save(
        self,
        data: dict[str, Any],
        *,
        record: ModelT | None,
        actor: RequestUserContext,
    ) -> None:
        return None

    def payload(self, data: dict[str, Any], *, record: ModelT | None) -> dict[str, Any]:
        return {field: data.get(field) for field in self.fields}

    def after_create(self, record: ModelT, data: dict[str, Any]) -> None:
        return None

    def after_update(
        self,
        record: ModelT,
        changes: dict[str, tuple[Any, Any]],
        data: dict[str, Any],
    ) -> None:
        return None

    def after_save(self, record: ModelT) -> None:
        return None


def _error_origin(exc: BaseException) -> tuple[str | None, int | None]:
    frames = traceback.extract_tb(exc.__traceback__)
    if not frames:
        return None, None
    return frames[-1].filename, frames[-1].lineno


class RecordForm(Generic[ModelT]):
    """Input buffer plus the create/update pipeline for one record type."""

    def __init__(self, policy: RecordPolicy[ModelT], store: RecordStore) -> None:
        self.policy = policy
        self.store = store
        self.record: ModelT | None = None
        self.data: dict[str, Any] = policy.defaults()

    # ---------- Buffer ----------
    def fill(self, **values: Any) -> None:
        for name, value in values.items():
            if name in self.data:
                self.data[name] = value

    def set_record(self, record: ModelT) -> None:
        self.record = record
        self.data = {**self.policy.defaults(), **self.policy.extract(record)}

    def reset(self) -> None:
        self.record = None
        self.data = self.policy.defaults()

    # ---------- Pipeline ----------
    def _authorize(
        self,
        ability: str,
        actor: RequestUserContext,
        subject: Any,
        can_perform: CapabilityCheck,
    ) -> None:
        if not can_perform(ability, actor, subject):
            raise AuthorizationError()

    def _prepare(self, actor: RequestUserContext, record: ModelT | None) -> None:
        self.policy.before_validation(self.data, record=record, actor=actor)
        self.data = self.policy.normalize(self.data)
        self.policy.validate(self.data, record=record)
        self.policy.before_save(self.data, record=record, actor=actor)

    def _failure_context(
        self,
        exc: Exception,
        actor: RequestUserContext,
        record_id: Any = None,
    ) -> dict[str, Any]:
        file, line = _error_origin(exc)
        context: dict[str, Any] = {
            "entity": self.policy.entity_name,
            "error": str(exc),
            "user_id": str(actor.user_id),
            "file": file,
            "line": line,
        }
        if record_id is not None:
            context["id"] = str(record_id)
        return context

    def create(
        self,
        actor: RequestUserContext,
        raw_fields: dict[str, Any] | None = None,
        *,
        can_perform: CapabilityCheck = default_can_perform,
    ) -> ModelT:
        if raw_fields:
            self.fill(**raw_fields)

        self._authorize("create", actor, self.policy.model, can_perform)
        self._prepare(actor, None)

        self.store.begin()
        try:
            payload = sanitize(self.policy.payload(self.data, record=None))
            record = self.store.insert(self.policy.model, payload)
            self.policy.after_create(record, self.data)
            self.policy.after_save(record)
            record_id = record.id
            self.store.commit()
        except ValidationError:
            self.store.rollback()
            raise
        except Exception as exc:
            self.store.rollback()
            logger.error("record.create_failed", extra={"context": self._failure_context(exc, actor)})
            raise

        logger.info(
            "record.created",
            extra={
                "context": {
                    "entity": self.policy.entity_name,
                    "id": str(record_id),
                    "user_id": str(actor.user_id),
                }
            },
        )
        self.reset()
        return record

    def update(
        self,
        actor: RequestUserContext,
        record: ModelT | None = None,
        raw_fields: dict[str, Any] | None = None,
        *,
        can_perform: CapabilityCheck = default_can_perform,
    ) -> ModelT:
        if record is not None:
            self.set_record(record)
        if self.record is None:
            raise NotFoundError("No record has been set for update.")
        if raw_fields:
            self.fill(**raw_fields)

        target = self.record
        record_id = target.id
        self._authorize("update", actor, target, can_perform)
        self._prepare(actor, target)

        self.store.begin()
        try:
            payload = sanitize(self.policy.payload(self.data, record=target))
            changes = {
                name: (getattr(target, name), value)
                for name, value in payload.items()
                if getattr(target, name) != value
            }
            self.store.update_fields(target, payload)
            self.policy.after_update(target, changes, self.data)
            self.policy.after_save(target)
            self.store.commit()
        except ValidationError:
            self.store.rollback()
            raise
        except Exception as exc:
            self.store.rollback()
            logger.error(
                "record.update_failed",
                extra={"context": self._failure_context(exc, actor, record_id)},
            )
            raise

        logger.info(
            "record.updated",
            extra={
                "context": {
                    "entity": self.policy.entity_name,
                    "id": str(record_id),
                    "user_id": str(actor.user_id),
                }
            },
        )
        self.reset()
        return target
