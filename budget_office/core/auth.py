"""Authentication context extraction and role/permission resolution."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from budget_office.core.config import get_settings
from budget_office.db.dependencies import get_db_session
from budget_office.models.entities import AppRole, Role, User, UserRole

OFFICE_PERMISSIONS = frozenset({"view offices", "create offices", "edit offices", "delete offices"})
CATALOG_PERMISSIONS = frozenset({"view catalogs", "create catalogs", "edit catalogs", "delete catalogs"})
USER_PERMISSIONS = frozenset({"view users", "create users", "edit users", "delete users"})


ROLE_PERMISSIONS: dict[AppRole, frozenset[str]] = {
    AppRole.SUPER_ADMIN: OFFICE_PERMISSIONS | CATALOG_PERMISSIONS | USER_PERMISSIONS,
    AppRole.ADMINISTRATOR: OFFICE_PERMISSIONS
    | CATALOG_PERMISSIONS
    | frozenset({"view users", "create users", "edit users"}),
    AppRole.BUDGET_ANALYST: frozenset(
        {"view offices", "view catalogs", "create catalogs", "edit catalogs"}
    ),
    AppRole.VIEWER: frozenset({"view offices", "view catalogs"}),
}


@dataclass(frozen=True)
class RequestUserContext:
    """Acting user resolved from request headers and DB state."""

    user_id: UUID
    email: str
    name: str
    is_active: bool
    roles: tuple[AppRole, ...]

    @property
    def permissions(self) -> frozenset[str]:
        granted: set[str] = set()
        for role in self.roles:
            granted |= ROLE_PERMISSIONS.get(role, frozenset())
        return frozenset(granted)

    @property
    def is_super_admin(self) -> bool:
        return AppRole.SUPER_ADMIN in self.roles

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


def ensure_default_roles(db: Session) -> dict[AppRole, Role]:
    """Create missing role rows and return them keyed by role.

    Utility exported for tests and seed helpers.
    """

    existing = {role.name: role for role in db.scalars(select(Role)).all()}
    roles: dict[AppRole, Role] = {}
    for app_role in AppRole:
        role = existing.get(app_role.value)
        if role is None:
            role = Role(name=app_role.value)
            db.add(role)
        roles[app_role] = role
    db.flush()
    return roles


def load_user_roles(db: Session, *, user_id: UUID) -> tuple[AppRole, ...]:
    names = db.scalars(
        select(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .where(UserRole.user_id == user_id)
        .order_by(Role.name.asc())
    ).all()
    known = {role.value: role for role in AppRole}
    return tuple(known[name] for name in names if name in known)


def build_user_context(db: Session, user: User) -> RequestUserContext:
    return RequestUserContext(
        user_id=user.id,
        email=user.email,
        name=user.name,
        is_active=user.is_active,
        roles=load_user_roles(db, user_id=user.id),
    )


def _resolve_email(x_user_email: str | None) -> str:
    if x_user_email and x_user_email.strip():
        return x_user_email.strip().lower()

    settings = get_settings()
    if settings.auth_allow_dev_principal:
        return settings.auth_dev_email.strip().lower()

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing identity header. Expected X-User-Email.",
    )


def get_current_user_context(
    x_user_email: str | None = Header(default=None, alias="X-User-Email"),
    db: Session = Depends(get_db_session),
) -> RequestUserContext:
    """Resolve current request user and its roles.

    Header strategy: trusted header from the auth proxy or test clients.
    Deactivated accounts are rejected before any handler runs.
    """

    email = _resolve_email(x_user_email)
    user = db.scalar(select(User).where(User.email == email, User.deleted_at.is_(None)))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user.",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your account has been deactivated. Contact the administrator.",
        )

    return build_user_context(db, user)
