"""Per-doctor booking locks."""

import asyncio
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger(__name__)

# pg advisory keys are signed 64-bit integers
_ADVISORY_KEY_MASK = 0x7FFFFFFFFFFFFFFF


def advisory_key(doctor_id: UUID) -> int:
    """Derive a stable advisory lock key from a doctor id."""
    return doctor_id.int & _ADVISORY_KEY_MASK


class DoctorLockRegistry:
    """
    Serializes the check-then-insert booking sequence per doctor.

    Inside one process an ``asyncio.Lock`` per doctor orders competing
    bookers. On PostgreSQL a transaction-scoped advisory lock is taken as
    well, so workers in other processes queue on the same doctor; it is
    released by the commit or rollback that ends the booking transaction.
    Bookings for different doctors never contend.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, doctor_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(doctor_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[doctor_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, db: AsyncSession, doctor_id: UUID) -> AsyncIterator[None]:
        """
        Hold the booking lock for a doctor.

        The caller must commit or roll back ``db`` before leaving the block.

        Args:
            db: Session whose transaction performs the booking
            doctor_id: Doctor whose calendar is being written
        """
        lock = self._lock_for(doctor_id)
        async with lock:
            if db.get_bind().dialect.name == "postgresql":
                await db.execute(select(func.pg_advisory_xact_lock(advisory_key(doctor_id))))
            logger.debug("doctor_booking_lock_acquired", doctor_id=str(doctor_id))
            yield
