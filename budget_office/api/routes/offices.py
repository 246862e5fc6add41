"""Office (cost center) endpoints, including the subunits nested under an office."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from budget_office.core.auth import RequestUserContext, get_current_user_context
from budget_office.db.dependencies import get_db_session
from budget_office.services.office_service import OfficeService
from budget_office.services.subunit_service import SubunitService

router = APIRouter(prefix="/offices", tags=["offices"])

# Case and surrounding whitespace are normalized later.
OFFICE_CODE_INPUT = r"^\s*[A-Za-z0-9-]+\s*$"


class OfficeCreatePayload(BaseModel):
    code: str = Field(min_length=2, max_length=20, pattern=OFFICE_CODE_INPUT)
    name: str = Field(min_length=3, max_length=100)
    short_name: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    is_active: bool = True


class OfficeUpdatePayload(BaseModel):
    code: str | None = Field(default=None, min_length=2, max_length=20, pattern=OFFICE_CODE_INPUT)
    name: str | None = Field(default=None, min_length=3, max_length=100)
    short_name: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    is_active: bool | None = None


class StatusPayload(BaseModel):
    is_active: bool


class SubunitCreatePayload(BaseModel):
    name: str = Field(min_length=3, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    is_active: bool = True
    # Accepted for compatibility, always stored as False.
    is_system: bool | None = None


@router.get("")
def list_offices(
    search: str | None = Query(default=None, max_length=100),
    only_active: bool = False,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = OfficeService(db)
    rows = service.list_offices(context=context, search=search, only_active=only_active)
    return {"items": [service.serialize_office(office, subunit_count=count) for office, count in rows]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_office(
    payload: OfficeCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = OfficeService(db)
    office = service.create_office(context=context, data=payload.model_dump())
    return service.serialize_office(office)


@router.get("/{office_id}")
def get_office(
    office_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = OfficeService(db)
    return service.serialize_office(service.get_office(context=context, office_id=office_id))


@router.patch("/{office_id}")
def update_office(
    office_id: UUID,
    payload: OfficeUpdatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = OfficeService(db)
    office = service.update_office(
        context=context,
        office_id=office_id,
        data=payload.model_dump(exclude_unset=True),
    )
    return service.serialize_office(office)


@router.delete("/{office_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_office(
    office_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    OfficeService(db).delete_office(context=context, office_id=office_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{office_id}/restore")
def restore_office(
    office_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = OfficeService(db)
    return service.serialize_office(service.restore_office(context=context, office_id=office_id))


@router.delete("/{office_id}/force", status_code=status.HTTP_204_NO_CONTENT)
def force_delete_office(
    office_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    OfficeService(db).force_delete_office(context=context, office_id=office_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{office_id}/status")
def change_office_status(
    office_id: UUID,
    payload: StatusPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = OfficeService(db)
    office = service.toggle_status(context=context, office_id=office_id, is_active=payload.is_active)
    return service.serialize_office(office)


@router.get("/{office_id}/statistics")
def office_statistics(
    office_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, int]:
    return OfficeService(db).statistics(context=context, office_id=office_id)


@router.get("/{office_id}/subunits")
def list_office_subunits(
    office_id: UUID,
    include_system: bool = True,
    only_active: bool = False,
    search: str | None = Query(default=None, max_length=100),
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = SubunitService(db)
    rows = service.list_for_office(
        context=context,
        office_id=office_id,
        include_system=include_system,
        search=search,
        only_active=only_active,
    )
    return {"items": [service.serialize_subunit(subunit) for subunit in rows]}


@router.post("/{office_id}/subunits", status_code=status.HTTP_201_CREATED)
def create_office_subunit(
    office_id: UUID,
    payload: SubunitCreatePayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = SubunitService(db)
    subunit = service.create_subunit(
        context=context,
        office_id=office_id,
        data=payload.model_dump(),
    )
    return service.serialize_subunit(subunit)
