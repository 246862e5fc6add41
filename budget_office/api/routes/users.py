"""User administration endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from budget_office.core.auth import RequestUserContext, get_current_user_context
from budget_office.db.dependencies import get_db_session
from budget_office.models.entities import AppRole
from budget_office.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


class UserCreatePayload(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    email: str = Field(min_length=3, max_length=100)
    role: str = Field(min_length=1, max_length=64)
    # bcrypt only accepts up to 72 bytes.
    password: str = Field(min_length=1, max_length=72)
    is_active: bool = True


class UserUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    email: str | None = Field(default=None, min_length=3, max_length=100)
    role: str | None = Field(default=None, min_length=1, max_length=64)
    password: str | None = Field(default=None, max_length=72)
    is_active: bool | None = None


class PasswordPayload(BaseModel):
    password: str = Field(min_length=1, max_length=72)


@router.get("")
def list_users(
    search: str | None = Query(default=None, max_length=100),
    only_active: bool = False,
    role: AppRole | None = None,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = UserService(db)
    rows = service.list_users(context=context, search=search, only_active=only_active, role=role)
    return {"items": [service.serialize_user(user) for user in rows]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = UserService(db)
    user = service.create_user(context=context, data=payload.model_dump())
    return service.serialize_user(user)


@router.get("/{user_id}")
def get_user(
    user_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = UserService(db)
    return service.serialize_user(service.get_user(context=context, user_id=user_id))


@router.patch("/{user_id}")
def update_user(
    user_id: UUID,
    payload: UserUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = UserService(db)
    user = service.update_user(
        context=context,
        user_id=user_id,
        data=payload.model_dump(exclude_unset=True),
    )
    return service.serialize_user(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    UserService(db).delete_user(context=context, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{user_id}/activate")
def activate_user(
    user_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = UserService(db)
    return service.serialize_user(service.activate(context=context, user_id=user_id))


@router.post("/{user_id}/deactivate")
def deactivate_user(
    user_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = UserService(db)
    return service.serialize_user(service.deactivate(context=context, user_id=user_id))


@router.put("/{user_id}/password", status_code=status.HTTP_204_NO_CONTENT)
def change_user_password(
    user_id: UUID,
    payload: PasswordPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    UserService(db).change_password(context=context, user_id=user_id, password=payload.password)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
