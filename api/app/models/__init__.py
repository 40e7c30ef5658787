"""All models imported here for Alembic autogenerate discovery."""

from app.models.base import Base
from app.models.member import Member
from app.models.reservation import RecurrenceType, Reservation, ReservationKind
from app.models.rule import BookingRule

__all__ = [
    "Base",
    "Member",
    "BookingRule",
    "Reservation",
    "ReservationKind",
    "RecurrenceType",
]
