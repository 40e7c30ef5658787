"""Booking store: all reservation writes go through here.

The (date, court, start_hour) unique constraint is the authoritative guard
against double-booking. Every insert path translates a violation of that
constraint into SlotConflict so callers can tell "someone else was faster"
apart from other write failures.
"""

import logging
from datetime import date

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ReservationNotFound, SlotConflict
from app.models.reservation import SLOT_CONSTRAINT, Reservation, ReservationKind

logger = logging.getLogger(__name__)

# PostgreSQL unique_violation
_UNIQUE_VIOLATION = "23505"


def is_slot_conflict(exc: IntegrityError) -> bool:
    """True if the integrity error is the slot uniqueness constraint."""
    orig = exc.orig
    text = str(orig)
    if getattr(orig, "sqlstate", None) == _UNIQUE_VIOLATION or getattr(orig, "pgcode", None) == _UNIQUE_VIOLATION:
        return SLOT_CONSTRAINT in text
    # SQLite: "UNIQUE constraint failed: reservations.date, reservations.court, reservations.start_hour"
    return "UNIQUE constraint failed: reservations.date" in text or SLOT_CONSTRAINT in text


async def insert_reservation(db: AsyncSession, reservation: Reservation) -> Reservation:
    """Insert one reservation. Raises SlotConflict if the slot was taken meanwhile.

    On conflict the session's transaction is rolled back; nothing else
    should be pending in it.
    """
    db.add(reservation)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        if is_slot_conflict(exc):
            logger.info(
                "Slot conflict on insert: court %s %s %02d:00", reservation.court, reservation.date, reservation.start_hour
            )
            raise SlotConflict() from exc
        raise
    return reservation


async def get_reservation(db: AsyncSession, reservation_id: str) -> Reservation:
    result = await db.execute(select(Reservation).where(Reservation.id == reservation_id))
    reservation = result.scalar_one_or_none()
    if reservation is None:
        raise ReservationNotFound()
    return reservation


async def get_slot(db: AsyncSession, slot_date: date, court: int, hour: int) -> Reservation | None:
    result = await db.execute(
        select(Reservation).where(
            Reservation.date == slot_date,
            Reservation.court == court,
            Reservation.start_hour == hour,
        )
    )
    return result.scalar_one_or_none()


async def list_between(db: AsyncSession, start: date, end: date) -> list[Reservation]:
    """Reservations from start to end, both inclusive, in calendar order."""
    result = await db.execute(
        select(Reservation)
        .where(Reservation.date >= start, Reservation.date <= end)
        .order_by(Reservation.date, Reservation.start_hour, Reservation.court)
    )
    return list(result.scalars().all())


async def list_for_date(db: AsyncSession, slot_date: date) -> list[Reservation]:
    return await list_between(db, slot_date, slot_date)


async def mark_joined(
    db: AsyncSession,
    reservation_id: str,
    first_name: str,
    last_name: str,
    birth_year: int,
    comment: str | None,
) -> bool:
    """Turn an open half-booking into a full booking.

    Conditional update: only one of two concurrent joiners can match the
    open-half predicate. Returns False if the row was no longer open.
    """
    result = await db.execute(
        update(Reservation)
        .where(
            Reservation.id == reservation_id,
            Reservation.kind == ReservationKind.HALF,
            Reservation.is_joined.is_(False),
        )
        .values(
            is_joined=True,
            kind=ReservationKind.FULL,
            partner_first_name=first_name,
            partner_last_name=last_name,
            partner_birth_year=birth_year,
            partner_comment=comment or None,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def update_comment(db: AsyncSession, reservation: Reservation, comment: str | None) -> Reservation:
    reservation.booker_comment = comment or None
    await db.flush()
    return reservation


# Fields an admin may change on a single reservation. Slot and kind stay fixed.
ADMIN_EDITABLE_FIELDS = (
    "special_label",
    "booker_first_name",
    "booker_last_name",
    "booker_comment",
    "partner_first_name",
    "partner_last_name",
    "partner_comment",
    "double_match_names",
)


async def update_reservation(db: AsyncSession, reservation_id: str, changes: dict) -> Reservation:
    """Apply an admin edit. Series members become individually modified.

    Blank optional text is stored as NULL.
    """
    reservation = await get_reservation(db, reservation_id)
    for field, value in changes.items():
        if field not in ADMIN_EDITABLE_FIELDS:
            raise ValueError(f"{field} is not editable")
        if isinstance(value, str):
            value = value.strip() or None
        setattr(reservation, field, value)
    await db.flush()
    return reservation


async def delete_reservation(db: AsyncSession, reservation_id: str) -> bool:
    result = await db.execute(
        delete(Reservation).where(Reservation.id == reservation_id).execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def delete_reservations(db: AsyncSession, reservation_ids: list[str]) -> int:
    if not reservation_ids:
        return 0
    result = await db.execute(
        delete(Reservation)
        .where(Reservation.id.in_(reservation_ids))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
