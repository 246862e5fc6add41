"""Field validation rules collected into a field -> messages map."""

from __future__ import annotations

import re
from typing import Any
from uuid import UUID

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select

from budget_office.core.errors import ValidationError
from budget_office.repositories.record_store import RecordStore

_EMAIL_ADAPTER: TypeAdapter[str] = TypeAdapter(EmailStr)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _label(field: str) -> str:
    return field.replace("_", " ")


class FieldRules:
    """Accumulates violations for one validation pass.

    Rules other than ``required`` skip blank values, so optional fields only
    get checked when a value is supplied.
    """

    def __init__(self, data: dict[str, Any], *, store: RecordStore, record: Any = None) -> None:
        self.data = data
        self.store = store
        self.record = record
        self.errors: dict[str, list[str]] = {}

    def fail(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)

    def _value(self, field: str) -> Any:
        return self.data.get(field)

    def _skip(self, field: str) -> bool:
        return field in self.errors or _is_blank(self._value(field))

    def required(self, field: str, message: str | None = None) -> FieldRules:
        if _is_blank(self._value(field)):
            self.fail(field, message or f"The {_label(field)} field is required.")
        return self

    def length(
        self,
        field: str,
        *,
        min_length: int | None = None,
        max_length: int | None = None,
    ) -> FieldRules:
        if self._skip(field):
            return self
        value = self._value(field)
        if not isinstance(value, str):
            self.fail(field, f"The {_label(field)} must be a string.")
            return self
        if min_length is not None and len(value) < min_length:
            self.fail(field, f"The {_label(field)} must be at least {min_length} characters.")
        if max_length is not None and len(value) > max_length:
            self.fail(field, f"The {_label(field)} may not be greater than {max_length} characters.")
        return self

    def pattern(self, field: str, regex: str, message: str) -> FieldRules:
        if self._skip(field):
            return self
        if not re.fullmatch(regex, str(self._value(field))):
            self.fail(field, message)
        return self

    def boolean(self, field: str) -> FieldRules:
        value = self._value(field)
        if value is not None and not isinstance(value, bool):
            self.fail(field, f"The {_label(field)} field must be true or false.")
        return self

    def unique(
        self,
        field: str,
        model: type,
        *,
        message: str,
        scope: dict[str, Any] | None = None,
    ) -> FieldRules:
        """Case-insensitive uniqueness among non-deleted rows, ignoring the edited record."""

        if self._skip(field):
            return self
        column = getattr(model, field)
        query = select(model).where(
            func.lower(column) == str(self._value(field)).lower(),
            model.deleted_at.is_(None),
        )
        for name, value in (scope or {}).items():
            query = query.where(getattr(model, name) == value)
        if self.record is not None and self.record.id is not None:
            query = query.where(model.id != self.record.id)
        if self.store.exists(query):
            self.fail(field, message)
        return self

    def exists(self, field: str, model: type, *, message: str) -> FieldRules:
        if self._skip(field):
            return self
        value = self._value(field)
        try:
            record_id = value if isinstance(value, UUID) else UUID(str(value))
        except ValueError:
            self.fail(field, message)
            return self
        if self.store.get(model, record_id) is None:
            self.fail(field, message)
        return self

    def email(self, field: str) -> FieldRules:
        if self._skip(field):
            return self
        try:
            _EMAIL_ADAPTER.validate_python(str(self._value(field)))
        except PydanticValidationError:
            self.fail(field, f"The {_label(field)} must be a valid email address.")
        return self

    def strong_password(self, field: str, *, min_length: int = 8) -> FieldRules:
        if self._skip(field):
            return self
        value = str(self._value(field))
        if len(value) < min_length:
            self.fail(field, f"The {_label(field)} must be at least {min_length} characters.")
        elif not re.search(r"[a-z]", value):
            self.fail(field, f"The {_label(field)} must contain at least one lowercase letter.")
        elif not re.search(r"[A-Z]", value):
            self.fail(field, f"The {_label(field)} must contain at least one uppercase letter.")
        elif not re.search(r"[0-9]", value):
            self.fail(field, f"The {_label(field)} must contain at least one number.")
        return self

    def raise_if_failed(self) -> None:
        if self.errors:
            raise ValidationError(self.errors)
