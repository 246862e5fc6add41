"""Record policy for back-office user accounts."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from budget_office.core.auth import RequestUserContext, ensure_default_roles, load_user_roles
from budget_office.core.config import get_settings
from budget_office.core.errors import AuthorizationError, DomainInvariantError
from budget_office.core.permissions import UserAccess
from budget_office.core.security import hash_password
from budget_office.forms.lifecycle import RecordPolicy, lower_email, title_case
from budget_office.forms.rules import FieldRules
from budget_office.models.entities import AppRole, Role, User, UserRole
from budget_office.repositories.record_store import RecordStore

LAST_SUPER_ADMIN_MESSAGE = "The last active Super Admin cannot be removed, deactivated or demoted."


def active_super_admin_count(db: Session, *, exclude_user_id: UUID | None = None) -> int:
    query = (
        select(func.count(func.distinct(User.id)))
        .join(UserRole, UserRole.user_id == User.id)
        .join(Role, Role.id == UserRole.role_id)
        .where(
            Role.name == AppRole.SUPER_ADMIN.value,
            User.is_active.is_(True),
            User.deleted_at.is_(None),
        )
    )
    if exclude_user_id is not None:
        query = query.where(User.id != exclude_user_id)
    return int(db.scalar(query) or 0)


def ensure_not_last_super_admin(db: Session, user: User) -> None:
    """Reject removing ``user`` from the pool of active Super Admins when it is the last one."""

    if not user.is_active or user.deleted_at is not None:
        return
    if AppRole.SUPER_ADMIN not in load_user_roles(db, user_id=user.id):
        return
    if active_super_admin_count(db, exclude_user_id=user.id) == 0:
        raise DomainInvariantError(LAST_SUPER_ADMIN_MESSAGE)


def assign_single_role(db: Session, user: User, role: AppRole) -> None:
    roles = ensure_default_roles(db)
    db.execute(delete(UserRole).where(UserRole.user_id == user.id))
    db.add(UserRole(user_id=user.id, role_id=roles[role].id))
    db.flush()


def _coerce_role(value: Any) -> Any:
    if isinstance(value, AppRole) or value is None:
        return value
    try:
        return AppRole(str(value).strip())
    except ValueError:
        return value


class UserRecordPolicy(RecordPolicy[User]):
    """Accounts carry exactly one role; passwords are stored as bcrypt hashes."""

    model = User
    entity_name = "user"
    fields = ("name", "email", "role", "password", "is_active")

    def __init__(self, store: RecordStore) -> None:
        self.store = store
        self.settings = get_settings()

    def defaults(self) -> dict[str, Any]:
        return {"name": "", "email": "", "role": None, "password": "", "is_active": True}

    def extract(self, record: User) -> dict[str, Any]:
        roles = load_user_roles(self.store.db, user_id=record.id)
        return {
            "name": record.name,
            "email": record.email,
            "role": roles[0] if roles else None,
            "password": "",
            "is_active": record.is_active,
        }

    def normalize(self, data: dict[str, Any]) -> dict[str, Any]:
        normalized = dict(data)
        normalized["name"] = title_case(data.get("name"))
        normalized["email"] = lower_email(data.get("email"))
        normalized["role"] = _coerce_role(data.get("role"))
        return normalized

    def validate(self, data: dict[str, Any], *, record: User | None) -> None:
        rules = FieldRules(data, store=self.store, record=record)
        rules.required("name").length("name", min_length=2, max_length=100)
        (
            rules.required("email")
            .length("email", max_length=100)
            .email("email")
            .unique("email", User, message="This email is already registered.")
        )
        rules.required("role", "The role field is required.")
        if data.get("role") is not None and not isinstance(data["role"], AppRole):
            rules.fail("role", "The selected role is invalid.")
        if record is None:
            rules.required("password")
        # bcrypt only accepts up to 72 bytes.
        rules.length("password", max_length=72)
        rules.strong_password("password", min_length=self.settings.password_min_length)
        rules.boolean("is_active")
        rules.raise_if_failed()

    def before_save(
        self,
        data: dict[str, Any],
        *,
        record: User | None,
        actor: RequestUserContext,
    ) -> None:
        role: AppRole = data["role"]
        current_roles = load_user_roles(self.store.db, user_id=record.id) if record is not None else ()
        if role not in current_roles and not UserAccess.assign_role(actor, role):
            raise AuthorizationError("Only a Super Admin can assign the Super Admin role.")

        if record is None:
            return
        loses_super_admin = role is not AppRole.SUPER_ADMIN or data.get("is_active") is False
        if loses_super_admin:
            ensure_not_last_super_admin(self.store.db, record)

    def payload(self, data: dict[str, Any], *, record: User | None) -> dict[str, Any]:
        payload = {
            "name": data.get("name"),
            "email": data.get("email"),
            "is_active": data.get("is_active"),
        }
        password = data.get("password")
        if password:
            payload["password"] = hash_password(password)
        return payload

    def after_create(self, record: User, data: dict[str, Any]) -> None:
        assign_single_role(self.store.db, record, data["role"])

    def after_update(
        self,
        record: User,
        changes: dict[str, tuple[Any, Any]],
        data: dict[str, Any],
    ) -> None:
        if data["role"] not in load_user_roles(self.store.db, user_id=record.id):
            assign_single_role(self.store.db, record, data["role"])
