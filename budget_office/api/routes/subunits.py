"""Direct subunit endpoints. System subunits are rejected with 409."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from budget_office.core.auth import RequestUserContext, get_current_user_context
from budget_office.db.dependencies import get_db_session
from budget_office.services.subunit_service import SubunitService

router = APIRouter(prefix="/subunits", tags=["subunits"])


class SubunitUpdatePayload(BaseModel):
    name: str | None = Field(default=None, min_length=3, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    is_active: bool | None = None


class StatusPayload(BaseModel):
    is_active: bool


@router.patch("/{subunit_id}")
def update_subunit(
    subunit_id: UUID,
    payload: SubunitUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = SubunitService(db)
    subunit = service.update_subunit(
        context=context,
        subunit_id=subunit_id,
        data=payload.model_dump(exclude_unset=True),
    )
    return service.serialize_subunit(subunit)


@router.patch("/{subunit_id}/status")
def change_subunit_status(
    subunit_id: UUID,
    payload: StatusPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = SubunitService(db)
    subunit = service.toggle_status(context=context, subunit_id=subunit_id, is_active=payload.is_active)
    return service.serialize_subunit(subunit)


@router.delete("/{subunit_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_subunit(
    subunit_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    SubunitService(db).delete_subunit(context=context, subunit_id=subunit_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{subunit_id}/restore")
def restore_subunit(
    subunit_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = SubunitService(db)
    return service.serialize_subunit(service.restore_subunit(context=context, subunit_id=subunit_id))


@router.delete("/{subunit_id}/force", status_code=status.HTTP_204_NO_CONTENT)
def force_delete_subunit(
    subunit_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    SubunitService(db).force_delete_subunit(context=context, subunit_id=subunit_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
