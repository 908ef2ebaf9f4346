"""Doctor lookups used by scheduling."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    DoctorNotFoundException,
    NotApprovedException,
    ProfileIncompleteException,
)
from app.models.doctor_profiles import doctor_profiles
from app.models.users import users


class DoctorService:
    """Read-only access to doctor accounts and profiles."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def get_profile(self, doctor_id: UUID) -> dict | None:
        """Get a doctor's profile by the doctor's user ID."""
        query = select(doctor_profiles).where(doctor_profiles.c.user_id == doctor_id)
        result = await self.db.execute(query)
        profile = result.mappings().first()
        return dict(profile) if profile else None

    async def get_doctor_account(self, doctor_id: UUID) -> dict | None:
        """Get an active doctor account."""
        query = select(users).where(
            users.c.id == doctor_id,
            users.c.role == "doctor",
            users.c.is_active.is_(True),
        )
        result = await self.db.execute(query)
        account = result.mappings().first()
        return dict(account) if account else None

    async def get_bookable_doctor(self, doctor_id: UUID) -> dict:
        """
        Resolve a doctor that patients may book.

        Returns:
            Profile merged with the account's ``full_name``

        Raises:
            DoctorNotFoundException: No active doctor account
            ProfileIncompleteException: Doctor has not published a profile
            NotApprovedException: Profile not yet verified by an administrator
        """
        account = await self.get_doctor_account(doctor_id)
        if not account:
            raise DoctorNotFoundException()

        profile = await self.get_profile(doctor_id)
        if not profile or profile["consultation_fee"] is None:
            raise ProfileIncompleteException()

        if not profile["is_approved"]:
            raise NotApprovedException()

        profile["full_name"] = account["full_name"]
        return profile
