"""Application service for back-office user administration."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select

from budget_office.core.auth import RequestUserContext, load_user_roles
from budget_office.core.config import get_settings
from budget_office.core.errors import AuthorizationError, DomainInvariantError
from budget_office.core.permissions import authorize, can_perform
from budget_office.core.security import hash_password
from budget_office.forms.lifecycle import RecordForm
from budget_office.forms.rules import FieldRules
from budget_office.forms.users import UserRecordPolicy, ensure_not_last_super_admin
from budget_office.models.entities import AppRole, Role, User, UserRole
from budget_office.services.base import RecordService, apply_search


class UserService(RecordService):
    def form(self) -> RecordForm[User]:
        return RecordForm(UserRecordPolicy(self.store), self.store)

    def serialize_user(self, user: User) -> dict[str, object]:
        roles = load_user_roles(self.db, user_id=user.id)
        return {
            "id": str(user.id),
            "name": user.name,
            "email": user.email,
            "role": roles[0].value if roles else None,
            "is_active": user.is_active,
            "created_at": user.created_at.isoformat(),
            "updated_at": user.updated_at.isoformat(),
        }

    def _log_context(self, user: User, context: RequestUserContext) -> dict[str, Any]:
        return {"target_user_id": str(user.id), "email": user.email, "user_id": str(context.user_id)}

    # ---------- Reads ----------
    def get_user(self, *, context: RequestUserContext, user_id: UUID) -> User:
        user = self._require(User, user_id, label="User")
        if user.id != context.user_id:
            authorize("view", context, user)
        return user

    def list_users(
        self,
        *,
        context: RequestUserContext,
        search: str | None = None,
        only_active: bool = False,
        role: AppRole | None = None,
    ) -> list[User]:
        authorize("view", context, User)

        query = select(User).where(User.deleted_at.is_(None))
        query = apply_search(query, search, User.name, User.email)
        if only_active:
            query = query.where(User.is_active.is_(True))
        if role is not None:
            query = (
                query.join(UserRole, UserRole.user_id == User.id)
                .join(Role, Role.id == UserRole.role_id)
                .where(Role.name == role.value)
            )
        return self.store.all(query.order_by(User.name.asc()))

    # ---------- Writes ----------
    def create_user(self, *, context: RequestUserContext, data: dict[str, Any]) -> User:
        return self.form().create(context, data)

    def update_user(self, *, context: RequestUserContext, user_id: UUID, data: dict[str, Any]) -> User:
        user = self._require(User, user_id, label="User")
        return self.form().update(context, user, data)

    def activate(self, *, context: RequestUserContext, user_id: UUID) -> User:
        user = self._require(User, user_id, label="User")
        authorize("toggle_status", context, user)

        with self._transaction("user.activated", self._log_context(user, context)):
            self.store.update_fields(user, {"is_active": True})
        return user

    def deactivate(self, *, context: RequestUserContext, user_id: UUID) -> User:
        user = self._require(User, user_id, label="User")
        authorize("toggle_status", context, user)
        ensure_not_last_super_admin(self.db, user)

        with self._transaction("user.deactivated", self._log_context(user, context)):
            self.store.update_fields(user, {"is_active": False})
        return user

    def delete_user(self, *, context: RequestUserContext, user_id: UUID) -> None:
        user = self._require(User, user_id, label="User")
        if user.id == context.user_id:
            raise DomainInvariantError("You cannot delete your own account.")
        authorize("delete", context, user)
        ensure_not_last_super_admin(self.db, user)

        with self._transaction("user.deleted", self._log_context(user, context)):
            self.store.soft_delete(user)

    def change_password(self, *, context: RequestUserContext, user_id: UUID, password: str) -> User:
        user = self._require(User, user_id, label="User")
        if user.id != context.user_id and not can_perform("update", context, user):
            raise AuthorizationError()

        min_length = get_settings().password_min_length
        rules = FieldRules({"password": password}, store=self.store, record=user)
        rules.required("password").length("password", max_length=72)
        rules.strong_password("password", min_length=min_length)
        rules.raise_if_failed()

        with self._transaction("user.password_changed", self._log_context(user, context)):
            self.store.update_fields(user, {"password": hash_password(password)})
        return user
