"""Slot resolver: maps instants onto a doctor's recurring open hours."""

from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, tzinfo
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.timezones import as_utc, resolve_timezone, utc_now
from app.models.appointments import appointments
from app.schemas.appointments import LIVE_STATUSES
from app.schemas.availability import AvailabilityRuleResponse, OpenWindow
from app.services.availability_service import AvailabilityService
from app.services.doctor_service import DoctorService


def merge_windows(rules: Iterable[AvailabilityRuleResponse]) -> list[OpenWindow]:
    """
    Union the enabled rules of one day into disjoint, sorted windows.

    Overlapping and touching windows are joined.
    """
    spans = sorted(
        (rule.start_time, rule.end_time) for rule in rules if rule.is_available
    )
    merged: list[list[time]] = []
    for start, end in spans:
        if merged and start <= merged[-1][1]:
            merged[-1][1] = max(merged[-1][1], end)
        else:
            merged.append([start, end])
    return [OpenWindow(start_time=start, end_time=end) for start, end in merged]


def intervals_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    """Half-open interval overlap: [a, a_end) and [b, b_end)."""
    return start_a < end_b and start_b < end_a


async def fetch_live_intervals(
    db: AsyncSession,
    doctor_id: UUID,
    window_start: datetime,
    window_end: datetime,
) -> list[tuple[datetime, datetime, UUID]]:
    """
    Live appointments of a doctor starting inside ``[window_start, window_end)``.

    Returns:
        (start, end, appointment_id) tuples in UTC
    """
    stmt = select(
        appointments.c.id,
        appointments.c.appointment_at,
        appointments.c.duration_minutes,
    ).where(
        appointments.c.doctor_id == doctor_id,
        appointments.c.status.in_([status.value for status in LIVE_STATUSES]),
        appointments.c.appointment_at >= window_start,
        appointments.c.appointment_at < window_end,
    )
    result = await db.execute(stmt)
    intervals = []
    for row in result.fetchall():
        start = as_utc(row.appointment_at)
        intervals.append((start, start + timedelta(minutes=row.duration_minutes), row.id))
    return intervals


class SlotResolver:
    """Answers whether a doctor is open at a given instant."""

    def __init__(self, db: AsyncSession, availability: AvailabilityService):
        """Initialize with the availability store."""
        self.db = db
        self.availability = availability
        self.doctors = DoctorService(db)

    async def doctor_timezone(self, doctor_id: UUID, profile: dict | None = None) -> tzinfo:
        """Time zone of the doctor's profile, or the platform default."""
        if profile is None:
            profile = await self.doctors.get_profile(doctor_id)
        zone_name = profile.get("timezone") if profile else None
        return resolve_timezone(zone_name, settings.default_timezone)

    async def open_windows(self, doctor_id: UUID, day_of_week: int) -> list[OpenWindow]:
        """Merged open windows for one ISO day."""
        rules = await self.availability.list_rules(doctor_id, day_of_week)
        return merge_windows(rules)

    async def is_open(
        self,
        doctor_id: UUID,
        instant: datetime,
        tz: tzinfo | None = None,
    ) -> bool:
        """
        Check whether ``instant`` falls inside an enabled window.

        The instant is converted to the doctor's local day and time. Windows
        are half-open, so a window's end time is never bookable. A day with
        no rules is closed.
        """
        if tz is None:
            tz = await self.doctor_timezone(doctor_id)
        local = as_utc(instant).astimezone(tz)
        time_of_day = local.time().replace(tzinfo=None)

        windows = await self.open_windows(doctor_id, local.isoweekday())
        return any(w.start_time <= time_of_day < w.end_time for w in windows)

    async def available_slots(
        self,
        doctor_id: UUID,
        on_date: date,
        duration_minutes: int,
        tz: tzinfo | None = None,
    ) -> tuple[list[OpenWindow], list[datetime]]:
        """
        Bookable slot starts for a local calendar date.

        Slots step through each merged window at ``duration_minutes`` and must
        end by the window's close. Past starts and starts overlapping a live
        appointment are left out.

        Returns:
            (merged windows, slot start instants in UTC)
        """
        if tz is None:
            tz = await self.doctor_timezone(doctor_id)
        windows = await self.open_windows(doctor_id, on_date.isoweekday())
        if not windows:
            return windows, []

        step = timedelta(minutes=duration_minutes)
        day_start = datetime.combine(on_date, time.min, tzinfo=tz)
        lookback = timedelta(minutes=settings.max_appointment_duration_minutes)
        taken = await fetch_live_intervals(
            self.db,
            doctor_id,
            as_utc(day_start - lookback),
            as_utc(day_start + timedelta(days=1)),
        )
        now = utc_now()

        slots: list[datetime] = []
        for window in windows:
            cursor = datetime.combine(on_date, window.start_time, tzinfo=tz)
            close = datetime.combine(on_date, window.end_time, tzinfo=tz)
            while cursor + step <= close:
                start = as_utc(cursor)
                end = start + step
                if start > now and not any(
                    intervals_overlap(start, end, t_start, t_end) for t_start, t_end, _ in taken
                ):
                    slots.append(start)
                cursor += step
        return windows, slots
