"""Authorization oracle: per-model ability rules behind ``can_perform``."""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import object_session

from budget_office.core.auth import RequestUserContext, load_user_roles
from budget_office.core.errors import AuthorizationError
from budget_office.models.entities import (
    AppRole,
    Classifier,
    Financing,
    Office,
    Product,
    Purpose,
    Subclassifier,
    Subunit,
    User,
)


class OfficeAccess:
    @staticmethod
    def view(actor: RequestUserContext, _: Any = None) -> bool:
        return actor.has_permission("view offices")

    @staticmethod
    def create(actor: RequestUserContext, _: Any = None) -> bool:
        return actor.has_permission("create offices")

    @staticmethod
    def update(actor: RequestUserContext, _: Any = None) -> bool:
        return actor.has_permission("edit offices")

    @staticmethod
    def toggle_status(actor: RequestUserContext, _: Any = None) -> bool:
        return actor.has_permission("edit offices")

    @staticmethod
    def delete(actor: RequestUserContext, _: Any = None) -> bool:
        return actor.has_permission("delete offices")

    @staticmethod
    def restore(actor: RequestUserContext, _: Any = None) -> bool:
        return actor.has_permission("delete offices")

    @staticmethod
    def force_delete(actor: RequestUserContext, _: Any = None) -> bool:
        return actor.has_permission("delete offices") and actor.is_super_admin


class SubunitAccess(OfficeAccess):
    """Subunits share office permissions; system subunits are never directly mutable."""

    @staticmethod
    def update(actor: RequestUserContext, subunit: Subunit | None = None) -> bool:
        if subunit is not None and subunit.is_system:
            return False
        return actor.has_permission("edit offices")

    @staticmethod
    def toggle_status(actor: RequestUserContext, subunit: Subunit | None = None) -> bool:
        if subunit is not None and subunit.is_system:
            return False
        return actor.has_permission("edit offices")

    @staticmethod
    def delete(actor: RequestUserContext, subunit: Subunit | None = None) -> bool:
        if subunit is not None and subunit.is_system:
            return False
        return actor.has_permission("delete offices")

    @staticmethod
    def force_delete(actor: RequestUserContext, subunit: Subunit | None = None) -> bool:
        if subunit is not None and subunit.is_system:
            return False
        return actor.has_permission("delete offices") and actor.is_super_admin


class CatalogAccess:
    @staticmethod
    def view(actor: RequestUserContext, _: Any = None) -> bool:
        return actor.has_permission("view catalogs")

    @staticmethod
    def create(actor: RequestUserContext, _: Any = None) -> bool:
        return actor.has_permission("create catalogs")

    @staticmethod
    def update(actor: RequestUserContext, _: Any = None) -> bool:
        return actor.has_permission("edit catalogs")

    @staticmethod
    def toggle_status(actor: RequestUserContext, _: Any = None) -> bool:
        return actor.has_permission("edit catalogs")

    @staticmethod
    def delete(actor: RequestUserContext, _: Any = None) -> bool:
        return actor.has_permission("delete catalogs")

    @staticmethod
    def restore(actor: RequestUserContext, _: Any = None) -> bool:
        return actor.has_permission("delete catalogs")


class UserAccess:
    """User administration rules.

    The target user's roles are read through the session the record is
    attached to.
    """

    @staticmethod
    def _target_is_super_admin(user: User | None) -> bool:
        if user is None or user.id is None:
            return False
        db = object_session(user)
        if db is None:
            return False
        return AppRole.SUPER_ADMIN in load_user_roles(db, user_id=user.id)

    @staticmethod
    def view(actor: RequestUserContext, _: Any = None) -> bool:
        return actor.has_permission("view users")

    @staticmethod
    def create(actor: RequestUserContext, _: Any = None) -> bool:
        return actor.has_permission("create users")

    @classmethod
    def update(cls, actor: RequestUserContext, user: User | None = None) -> bool:
        if not actor.has_permission("edit users"):
            return False
        if user is not None and user.id == actor.user_id:
            return True
        if cls._target_is_super_admin(user) and not actor.is_super_admin:
            return False
        return True

    @classmethod
    def toggle_status(cls, actor: RequestUserContext, user: User | None = None) -> bool:
        if not actor.has_permission("edit users"):
            return False
        if user is not None and user.id == actor.user_id:
            return False
        if cls._target_is_super_admin(user) and not actor.is_super_admin:
            return False
        return True

    @classmethod
    def delete(cls, actor: RequestUserContext, user: User | None = None) -> bool:
        if not actor.has_permission("delete users"):
            return False
        if user is not None and user.id == actor.user_id:
            return False
        if cls._target_is_super_admin(user) and not actor.is_super_admin:
            return False
        return True

    @staticmethod
    def assign_role(actor: RequestUserContext, role: AppRole) -> bool:
        if not actor.has_permission("edit users") and not actor.has_permission("create users"):
            return False
        if actor.is_super_admin:
            return True
        return role is not AppRole.SUPER_ADMIN


ACCESS_RULES: dict[type, type] = {
    Office: OfficeAccess,
    Subunit: SubunitAccess,
    User: UserAccess,
    Classifier: CatalogAccess,
    Subclassifier: CatalogAccess,
    Financing: CatalogAccess,
    Product: CatalogAccess,
    Purpose: CatalogAccess,
}


def can_perform(ability: str, actor: RequestUserContext, subject: Any) -> bool:
    """Answer whether ``actor`` may perform ``ability`` on ``subject``.

    ``subject`` is a model class for class-level abilities (``create``,
    ``view``) or a record instance for per-record checks.
    """

    if not actor.is_active:
        return False

    model = subject if isinstance(subject, type) else type(subject)
    rules = ACCESS_RULES.get(model)
    if rules is None:
        return False

    # Self-protection rules on users apply to Super Admins as well.
    if actor.is_super_admin and not (model is User and ability in {"delete", "toggle_status"}):
        return True

    check = getattr(rules, ability, None)
    if check is None:
        return False
    record = None if isinstance(subject, type) else subject
    return bool(check(actor, record))


def authorize(ability: str, actor: RequestUserContext, subject: Any) -> None:
    if not can_perform(ability, actor, subject):
        raise AuthorizationError()
