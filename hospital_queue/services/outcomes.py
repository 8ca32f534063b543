from __future__ import annotations

import enum
from dataclasses import dataclass


class RejectionCode(str, enum.Enum):
    template_not_found = "TemplateNotFound"
    date_not_bookable = "DateNotBookable"
    slot_full = "SlotFull"
    patient_already_booked = "PatientAlreadyBooked"
    patient_not_found = "PatientNotFound"
    booking_not_found = "BookingNotFound"
    invalid_status_transition = "InvalidStatusTransition"
    cancellation_window_expired = "CancellationWindowExpired"
    action_not_permitted = "ActionNotPermitted"


@dataclass(frozen=True)
class Rejection:
    code: RejectionCode
    message: str


@dataclass(frozen=True)
class Allocation:
    booking_id: int
    slot_number: int


def reject(code: RejectionCode, message: str) -> Rejection:
    return Rejection(code=code, message=message)
