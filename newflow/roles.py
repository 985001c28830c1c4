"""
Role context: the capability check consumed by the patient-search workflow.

Authorization is enforced by the backend; this only answers
``can(permission)`` for the signed-in role so callers can fail early.
"""
from dataclasses import dataclass, field

ROLES = (
    "super_admin", "admin", "doctor", "nurse",
    "receptionist", "patient", "lab_tech", "pharmacist",
)

PERMISSIONS = (
    # Users
    "manage_users", "view_users", "create_users", "edit_users", "delete_users",
    # Patients
    "manage_patients", "view_patients", "create_patients", "edit_patients", "delete_patients",
    # Doctors
    "manage_doctors", "view_doctors", "create_doctors", "edit_doctors", "delete_doctors",
    # Appointments
    "manage_appointments", "view_appointments", "create_appointments",
    "edit_appointments", "delete_appointments",
    # Medical records
    "manage_medical_records", "view_medical_records",
    "create_medical_records", "edit_medical_records",
    # Analytics
    "view_analytics", "view_reports", "export_data",
    # Settings
    "manage_settings", "view_settings",
    # Billing
    "manage_billing", "view_billing",
    # Lab
    "manage_lab_results", "view_lab_results",
    # Pharmacy
    "manage_pharmacy", "view_pharmacy",
)

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "super_admin": frozenset(PERMISSIONS),
    "admin": frozenset({
        "manage_users", "view_users", "create_users", "edit_users",
        "manage_patients", "view_patients", "create_patients", "edit_patients",
        "manage_doctors", "view_doctors", "create_doctors", "edit_doctors",
        "manage_appointments", "view_appointments", "create_appointments", "edit_appointments",
        "view_analytics", "view_reports", "export_data",
        "manage_settings", "view_settings",
        "manage_billing", "view_billing",
    }),
    "doctor": frozenset({
        "view_patients", "edit_patients",
        "view_appointments", "create_appointments", "edit_appointments",
        "manage_medical_records", "view_medical_records",
        "create_medical_records", "edit_medical_records",
        "view_lab_results", "view_analytics",
    }),
    "nurse": frozenset({
        "view_patients", "edit_patients",
        "view_appointments", "create_appointments", "edit_appointments",
        "view_medical_records", "create_medical_records", "view_lab_results",
    }),
    "receptionist": frozenset({
        "view_patients", "create_patients", "edit_patients",
        "view_appointments", "create_appointments", "edit_appointments",
        "view_billing",
    }),
    "patient": frozenset({
        "view_appointments", "create_appointments", "view_medical_records", "view_billing",
    }),
    "lab_tech": frozenset({
        "view_patients", "manage_lab_results", "view_lab_results", "view_appointments",
    }),
    "pharmacist": frozenset({
        "view_patients", "manage_pharmacy", "view_pharmacy",
        "view_medical_records", "view_appointments",
    }),
}


@dataclass(frozen=True)
class RoleContext:
    role: str
    permissions: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def for_role(cls, role: str) -> "RoleContext":
        return cls(role=role, permissions=ROLE_PERMISSIONS.get(role, frozenset()))

    def can(self, permission: str) -> bool:
        return permission in self.permissions

    def can_any(self, permissions) -> bool:
        return any(self.can(p) for p in permissions)

    def can_all(self, permissions) -> bool:
        return all(self.can(p) for p in permissions)
