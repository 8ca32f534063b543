from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from hospital_queue.db.session import get_db
from hospital_queue.deps import get_current_user
from hospital_queue.models.slot_template import BookingCategory, SlotTemplate
from hospital_queue.models.user import User
from hospital_queue.schemas.slot_template import SlotTemplateCreate, SlotTemplateOut, SlotTemplateUpdate
from hospital_queue.services.actors import Actor
from hospital_queue.services.permissions import can_manage_templates
from hospital_queue.services.templates import (
    TemplateConflictError,
    TemplateError,
    create_template,
    deactivate_template,
    get_template,
    list_templates,
    update_template,
)

router = APIRouter(prefix="/templates", tags=["templates"])


def _managed_template(db: Session, template_id: int, user: User) -> SlotTemplate:
    template = get_template(db, template_id)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    if not can_manage_templates(user.role, template.category):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return template


def _raise_template_error(exc: TemplateError):
    if isinstance(exc, TemplateConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("", response_model=list[SlotTemplateOut])
def get_templates(
    category: BookingCategory | None = Query(default=None),
    clinic_id: int | None = Query(default=None),
    day_of_week: int | None = Query(default=None, ge=0, le=6),
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return list_templates(
        db,
        category=category,
        clinic_id=clinic_id,
        day_of_week=day_of_week,
        include_inactive=include_inactive,
    )


@router.post("", response_model=SlotTemplateOut, status_code=status.HTTP_201_CREATED)
def add_template(
    payload: SlotTemplateCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    if not can_manage_templates(user.role, payload.category):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    try:
        return create_template(
            db,
            category=payload.category,
            clinic_id=payload.clinic_id,
            day_of_week=payload.day_of_week,
            start_time=payload.start_time,
            end_time=payload.end_time,
            capacity=payload.capacity,
            doctor_name=payload.doctor_name,
            actor=Actor.from_user(user),
            request_id=request_id,
        )
    except TemplateError as exc:
        _raise_template_error(exc)


@router.patch("/{template_id}", response_model=SlotTemplateOut)
def patch_template(
    template_id: int,
    payload: SlotTemplateUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    template = _managed_template(db, template_id, user)
    try:
        return update_template(
            db,
            template=template,
            changes=payload.model_dump(exclude_unset=True),
            actor=Actor.from_user(user),
            request_id=request_id,
        )
    except TemplateError as exc:
        _raise_template_error(exc)


@router.post("/{template_id}/deactivate", response_model=SlotTemplateOut)
def deactivate(
    template_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    template = _managed_template(db, template_id, user)
    return deactivate_template(
        db, template=template, actor=Actor.from_user(user), request_id=request_id
    )
