from __future__ import annotations

from hospital_queue.models.slot_template import BookingCategory
from hospital_queue.models.user import Role

ROLE_PERMISSIONS: dict[Role, frozenset[str]] = {
    Role.super_admin: frozenset(
        {
            "bookings.general",
            "bookings.specialty",
            "templates.general",
            "templates.specialty",
            "clinics.manage",
            "patients.view",
            "patients.register",
            "prescriptions.issue",
            "blocked_dates.manage",
            "audit.view",
            "reports.view",
            "users.manage",
            "patient_ids.issue",
        }
    ),
    Role.opd_admin: frozenset(
        {
            "bookings.general",
            "templates.general",
            "patients.view",
            "patients.register",
            "prescriptions.issue",
            "reports.view",
        }
    ),
    Role.clinic_admin: frozenset(
        {
            "bookings.specialty",
            "templates.specialty",
            "clinics.manage",
            "patients.view",
            "patients.register",
            "prescriptions.issue",
            "reports.view",
        }
    ),
    Role.user_creator: frozenset({"patients.register"}),
}


def has_permission(role: Role | None, permission: str) -> bool:
    if role is None:
        return False
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def can_manage_bookings(role: Role | None, category: BookingCategory) -> bool:
    return has_permission(role, f"bookings.{category.value}")


def can_manage_templates(role: Role | None, category: BookingCategory) -> bool:
    return has_permission(role, f"templates.{category.value}")
