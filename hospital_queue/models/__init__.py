from hospital_queue.models.base import Base
from hospital_queue.models.user import Role, User
from hospital_queue.models.audit_log import AuditLog
from hospital_queue.models.patient import Gender, Patient
from hospital_queue.models.clinic import Clinic
from hospital_queue.models.slot_template import BookingCategory, SlotTemplate
from hospital_queue.models.blocked_date import BlockedDate
from hospital_queue.models.booking import Booking, BookingStatus
from hospital_queue.models.slot_counter import SlotCounter
from hospital_queue.models.patient_id_sequence import PatientIdSequence
from hospital_queue.models.prescription import Prescription

__all__ = [
    "Base",
    "Role",
    "User",
    "AuditLog",
    "Gender",
    "Patient",
    "Clinic",
    "BookingCategory",
    "SlotTemplate",
    "BlockedDate",
    "Booking",
    "BookingStatus",
    "SlotCounter",
    "PatientIdSequence",
    "Prescription",
]
