from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hospital_queue.db.session import get_db
from hospital_queue.deps import require_permission
from hospital_queue.models.user import User
from hospital_queue.services.patient_ids import next_patient_id

router = APIRouter(prefix="/patient-ids", tags=["patients"])


@router.post("/next")
def issue_patient_id(
    db: Session = Depends(get_db),
    _user: User = Depends(require_permission("patient_ids.issue")),
):
    return {"unique_patient_id": next_patient_id(db)}
