"""Authenticated actor schemas."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class UserRole(str, Enum):
    """Roles issued by the auth service."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"


class Actor(BaseModel):
    """The caller of an operation, as vouched for by the access token."""

    id: UUID
    role: UserRole

    model_config = {"frozen": True}

    @property
    def is_patient(self) -> bool:
        """Check if the actor is a patient."""
        return self.role == UserRole.PATIENT

    @property
    def is_doctor(self) -> bool:
        """Check if the actor is a doctor."""
        return self.role == UserRole.DOCTOR

    @property
    def is_admin(self) -> bool:
        """Check if the actor is an administrator."""
        return self.role == UserRole.ADMIN
