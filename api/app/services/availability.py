"""Slot availability and the public day grid.

A slot is one court for one hour. Occupancy answers two questions: is the
slot free, and if not, what kind of booking holds it. The day grid is what
members see: every court for every operating hour, with booker names
reduced to an initial and admin-only fields left out.
"""

from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.reservation import Reservation, ReservationKind
from app.services.club_time import hours_until
from app.services.reservations import get_slot, list_for_date
from app.services.rules_config import RuleConfig

FREE = "free"


def anonymize_name(name: str | None) -> str:
    """First letter plus mask: "Anna" -> "A***"."""
    if not name:
        return "****"
    return name[0].upper() + "***"


async def slot_status(db: AsyncSession, slot_date: date, court: int, hour: int) -> tuple[str, Reservation | None]:
    """Return ("free", None) or (kind, reservation) for the occupying booking."""
    reservation = await get_slot(db, slot_date, court, hour)
    if reservation is None:
        return FREE, None
    return reservation.kind.value, reservation


def _public_booking(reservation: Reservation) -> dict:
    booking = {
        "id": reservation.id,
        "kind": reservation.kind.value,
        "booker": anonymize_name(reservation.booker_first_name),
        "partner": None,
        "comment": None,
        "label": None,
        "is_joined": reservation.is_joined,
        "series_id": reservation.recurrence_parent_id,
    }
    if reservation.kind == ReservationKind.SPECIAL:
        booking["booker"] = None
        booking["label"] = reservation.special_label or "Special booking"
    if reservation.kind == ReservationKind.HALF:
        # Half-booking comments are public: members leave contact details there
        booking["comment"] = reservation.booker_comment
    if reservation.is_joined:
        booking["partner"] = anonymize_name(reservation.partner_first_name)
    return booking


def build_day_grid(
    config: RuleConfig,
    grid_date: date,
    reservations: list[Reservation],
    now: datetime,
) -> list[dict]:
    """All slots of a day, hour by hour, court by court.

    Each slot dict: court, hour, is_past, is_available, booking (public view
    of the occupying reservation or None). Slots are past once they started.
    """
    by_slot = {(r.court, r.start_hour): r for r in reservations}

    slots: list[dict] = []
    for hour in config.hours:
        is_past = hours_until(grid_date, hour, now) <= 0
        for court in config.courts:
            reservation = by_slot.get((court, hour))
            slots.append(
                {
                    "court": court,
                    "hour": hour,
                    "is_past": is_past,
                    "is_available": reservation is None and not is_past,
                    "booking": _public_booking(reservation) if reservation else None,
                }
            )
    return slots


async def day_grid(db: AsyncSession, config: RuleConfig, grid_date: date, now: datetime) -> list[dict]:
    return build_day_grid(config, grid_date, await list_for_date(db, grid_date), now)
