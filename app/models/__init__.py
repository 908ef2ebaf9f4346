"""Database models."""

from sqlalchemy import MetaData

from app.models.appointments import appointments
from app.models.appointments import metadata as appointments_metadata
from app.models.availability_rules import availability_rules
from app.models.availability_rules import metadata as availability_metadata
from app.models.doctor_profiles import doctor_profiles
from app.models.doctor_profiles import metadata as doctor_profiles_metadata
from app.models.notifications import metadata as notifications_metadata
from app.models.notifications import notifications
from app.models.payments import metadata as payments_metadata
from app.models.payments import payments
from app.models.users import metadata as users_metadata
from app.models.users import users

# Combined metadata for create_all in scripts and tests
metadata = MetaData()
for _source in (
    users_metadata,
    doctor_profiles_metadata,
    availability_metadata,
    appointments_metadata,
    payments_metadata,
    notifications_metadata,
):
    for _table in _source.tables.values():
        _table.to_metadata(metadata)

__all__ = [
    "appointments",
    "availability_rules",
    "doctor_profiles",
    "metadata",
    "notifications",
    "payments",
    "users",
]
