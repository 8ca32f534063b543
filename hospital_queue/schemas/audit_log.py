from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AuditLogOut(BaseModel):
    """One audit row. The actor is a staff user, a patient, or the system."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    actor_kind: str
    actor_user_id: Optional[int] = None
    actor_patient_id: Optional[int] = None
    actor_email: Optional[str] = None
    action: str
    entity_type: str
    entity_id: str
    request_id: Optional[str] = None
    ip_address: Optional[str] = None
    details: Optional[dict] = None
