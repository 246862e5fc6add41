"""Catalog endpoints: classifiers, subclassifiers, financing sources, products and purposes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from budget_office.core.auth import RequestUserContext, get_current_user_context
from budget_office.db.dependencies import get_db_session
from budget_office.services.catalog_service import CatalogService

router = APIRouter(prefix="/catalogs", tags=["catalogs"])


class CatalogRecordPayload(BaseModel):
    """Union of catalog fields; fields a catalog does not have are ignored."""

    code: str | None = Field(default=None, min_length=1, max_length=255)
    name: str | None = Field(default=None, min_length=3, max_length=255)
    alternate_name: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=500)
    classifier_id: UUID | None = None
    is_active: bool | None = None


class StatusPayload(BaseModel):
    is_active: bool


@router.get("/{kind}")
def list_catalog_records(
    kind: str,
    search: str | None = Query(default=None, max_length=100),
    only_active: bool = False,
    classifier_id: UUID | None = None,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[object]]:
    service = CatalogService(db, kind)
    rows = service.list_records(
        context=context,
        search=search,
        only_active=only_active,
        classifier_id=classifier_id,
    )
    return {"items": [service.serialize_record(record) for record in rows]}


@router.post("/{kind}", status_code=status.HTTP_201_CREATED)
def create_catalog_record(
    kind: str,
    payload: CatalogRecordPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = CatalogService(db, kind)
    record = service.create_record(context=context, data=payload.model_dump(exclude_unset=True))
    return service.serialize_record(record)


@router.get("/{kind}/{record_id}")
def get_catalog_record(
    kind: str,
    record_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = CatalogService(db, kind)
    return service.serialize_record(service.get_record(context=context, record_id=record_id))


@router.patch("/{kind}/{record_id}")
def update_catalog_record(
    kind: str,
    record_id: UUID,
    payload: CatalogRecordPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = CatalogService(db, kind)
    record = service.update_record(
        context=context,
        record_id=record_id,
        data=payload.model_dump(exclude_unset=True),
    )
    return service.serialize_record(record)


@router.patch("/{kind}/{record_id}/status")
def change_catalog_record_status(
    kind: str,
    record_id: UUID,
    payload: StatusPayload,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = CatalogService(db, kind)
    record = service.toggle_status(context=context, record_id=record_id, is_active=payload.is_active)
    return service.serialize_record(record)


@router.delete("/{kind}/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_catalog_record(
    kind: str,
    record_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> Response:
    CatalogService(db, kind).delete_record(context=context, record_id=record_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{kind}/{record_id}/restore")
def restore_catalog_record(
    kind: str,
    record_id: UUID,
    context: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = CatalogService(db, kind)
    return service.serialize_record(service.restore_record(context=context, record_id=record_id))
