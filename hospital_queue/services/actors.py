from __future__ import annotations

import enum
from dataclasses import dataclass

from hospital_queue.models.patient import Patient
from hospital_queue.models.user import Role, User


class ActorKind(str, enum.Enum):
    staff = "staff"
    patient = "patient"
    system = "system"


@dataclass(frozen=True)
class Actor:
    """Whoever is driving a state change, as supplied by the session layer."""

    kind: ActorKind
    id: int | None = None
    email: str | None = None
    role: Role | None = None

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(kind=ActorKind.staff, id=user.id, email=user.email, role=user.role)

    @classmethod
    def from_patient(cls, patient: Patient) -> "Actor":
        return cls(kind=ActorKind.patient, id=patient.id)

    @classmethod
    def system(cls) -> "Actor":
        return cls(kind=ActorKind.system)

    @property
    def is_staff(self) -> bool:
        return self.kind == ActorKind.staff

    @property
    def is_patient(self) -> bool:
        return self.kind == ActorKind.patient
