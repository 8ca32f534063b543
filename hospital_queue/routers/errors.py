from fastapi import HTTPException, Request, status

from hospital_queue.services.outcomes import Rejection, RejectionCode

REJECTION_STATUS = {
    RejectionCode.template_not_found: status.HTTP_404_NOT_FOUND,
    RejectionCode.patient_not_found: status.HTTP_404_NOT_FOUND,
    RejectionCode.booking_not_found: status.HTTP_404_NOT_FOUND,
    RejectionCode.date_not_bookable: status.HTTP_400_BAD_REQUEST,
    RejectionCode.action_not_permitted: status.HTTP_403_FORBIDDEN,
    RejectionCode.slot_full: status.HTTP_409_CONFLICT,
    RejectionCode.patient_already_booked: status.HTTP_409_CONFLICT,
    RejectionCode.invalid_status_transition: status.HTTP_409_CONFLICT,
    RejectionCode.cancellation_window_expired: status.HTTP_409_CONFLICT,
}


def raise_for_rejection(rejection: Rejection) -> None:
    raise HTTPException(
        status_code=REJECTION_STATUS[rejection.code],
        detail=rejection.message,
        headers={"X-Rejection-Code": rejection.code.value},
    )


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None
