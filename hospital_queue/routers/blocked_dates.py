from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from hospital_queue.db.session import get_db
from hospital_queue.deps import require_permission
from hospital_queue.models.blocked_date import BlockedDate
from hospital_queue.models.user import User
from hospital_queue.schemas.blocked_date import BlockedDateCreate, BlockedDateCreated, BlockedDateOut
from hospital_queue.services.actors import Actor
from hospital_queue.services.blocked_dates import (
    BlockedDateConflictError,
    block_date,
    list_blocked_dates,
    unblock_date,
)

router = APIRouter(prefix="/blocked-dates", tags=["blocked-dates"])


@router.get("", response_model=list[BlockedDateOut])
def get_blocked_dates(
    upcoming: bool = Query(default=True),
    db: Session = Depends(get_db),
):
    return list_blocked_dates(db, upcoming_only=upcoming)


@router.post("", response_model=BlockedDateCreated, status_code=status.HTTP_201_CREATED)
def add_blocked_date(
    payload: BlockedDateCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("blocked_dates.manage")),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    try:
        result = block_date(
            db,
            target=payload.blocked_date,
            reason=payload.reason,
            actor=Actor.from_user(user),
            request_id=request_id,
        )
    except BlockedDateConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    out = BlockedDateOut.model_validate(result.blocked)
    return BlockedDateCreated(**out.model_dump(), affected_bookings=result.affected_bookings)


@router.delete("/{blocked_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_blocked_date(
    blocked_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission("blocked_dates.manage")),
    request_id: str | None = Header(default=None, alias="x-request-id"),
):
    blocked = db.get(BlockedDate, blocked_id)
    if not blocked:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Blocked date not found")
    unblock_date(db, blocked=blocked, actor=Actor.from_user(user), request_id=request_id)
