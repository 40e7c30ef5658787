"""Booking rules enforcement.

All member-facing booking decisions live here, separate from the route
handlers: creating a booking, joining a half-booking, cancelling, editing
the comment and disclosing who plays. Each check returns an error or None;
the evaluate functions raise the first failure, in a fixed order.

The rule configuration and "now" are passed in explicitly, so every check
is deterministic for a given input.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    BookingError,
    CannotJoinOwnBooking,
    ConfirmationRequired,
    CoreTimeLimitExceeded,
    IdentityMismatch,
    InvalidSlot,
    NotAMember,
    NotJoinable,
    OutsideBookingWindow,
    SlotTaken,
)
from app.models.reservation import Reservation, ReservationKind
from app.services.availability import FREE, slot_status
from app.services.club_time import hours_until, iso_week_bounds
from app.services.members import Identity, verify_member
from app.services.rate_limit import check_rate_limit
from app.services.reservations import (
    delete_reservation,
    get_reservation,
    insert_reservation,
    mark_joined,
    update_comment,
)
from app.services.rules_config import RuleConfig

logger = logging.getLogger(__name__)

MEMBER_KINDS = (ReservationKind.HALF, ReservationKind.FULL, ReservationKind.DOUBLE)


@dataclass(frozen=True)
class BookingRequest:
    court: int
    date: date
    start_hour: int
    kind: ReservationKind
    identity: Identity
    comment: str | None = None
    email: str | None = None
    double_match_names: str | None = None
    client_ip: str | None = None


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def check_slot_shape(config: RuleConfig, court: int, hour: int, kind: ReservationKind) -> BookingError | None:
    """Court and hour must exist in the configured grid; members cannot book specials."""
    if kind not in MEMBER_KINDS:
        return InvalidSlot(f"Booking type '{kind}' cannot be booked by members.")
    if court not in config.courts:
        return InvalidSlot(f"Court {court} does not exist (1-{config.courts_count}).")
    if hour not in config.hours:
        return InvalidSlot(
            f"Courts can be booked from {config.day_start_hour:02d}:00 to {config.day_end_hour:02d}:00."
        )
    return None


def check_booking_window(
    config: RuleConfig, kind: ReservationKind, slot_date: date, hour: int, now: datetime
) -> OutsideBookingWindow | None:
    """Half-bookings have their own window and are exempt from the general one.

    half:         half_booking_min_hours <= hours ahead <= half_booking_max_hours
    full/double:  0 < hours ahead <= booking_window_hours
    """
    ahead = hours_until(slot_date, hour, now)

    if kind == ReservationKind.HALF:
        if not config.half_booking_min_hours <= ahead <= config.half_booking_max_hours:
            return OutsideBookingWindow(
                f"Half-bookings are only possible between {config.half_booking_max_hours} and "
                f"{config.half_booking_min_hours} hours before the start."
            )
        return None

    if ahead <= 0:
        return OutsideBookingWindow("Cannot book a slot that has already started.")
    if ahead > config.booking_window_hours:
        return OutsideBookingWindow(
            f"Courts can be booked at most {config.booking_window_hours} hours in advance."
        )
    return None


def check_core_time_limits(
    config: RuleConfig,
    kind: ReservationKind,
    slot_date: date,
    hour: int,
    week_reservations: list[Reservation],
) -> CoreTimeLimitExceeded | None:
    """Per-member caps on core-time play, per day and per ISO week.

    week_reservations are the requester's non-special bookings in the ISO week
    of slot_date. Singles (full and half) and doubles are counted separately;
    a half-booking counts as a full single hour.
    """
    if not config.is_core_time(slot_date, hour):
        return None

    core = [r for r in week_reservations if config.is_core_time(r.date, r.start_hour)]

    if kind == ReservationKind.DOUBLE:
        partition = [r for r in core if r.kind == ReservationKind.DOUBLE]
        max_day, max_week, label = config.double_max_per_day, config.double_max_per_week, "double"
    else:
        partition = [r for r in core if r.kind != ReservationKind.DOUBLE]
        max_day, max_week, label = config.single_max_per_day, config.single_max_per_week, "single"

    today = sum(1 for r in partition if r.date == slot_date)
    if today >= max_day:
        return CoreTimeLimitExceeded("day", label, max_day)
    if len(partition) >= max_week:
        return CoreTimeLimitExceeded("week", label, max_week)
    return None


async def fetch_week_reservations(db: AsyncSession, identity: Identity, slot_date: date) -> list[Reservation]:
    """The member's non-special bookings in the Monday-Sunday week of slot_date."""
    monday, sunday = iso_week_bounds(slot_date)
    result = await db.execute(
        select(Reservation).where(
            func.lower(Reservation.booker_first_name) == identity.first_name.lower(),
            func.lower(Reservation.booker_last_name) == identity.last_name.lower(),
            Reservation.booker_birth_year == identity.birth_year,
            Reservation.date >= monday,
            Reservation.date <= sunday,
            Reservation.kind != ReservationKind.SPECIAL,
        )
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Booking
# ---------------------------------------------------------------------------


async def evaluate_booking(
    db: AsyncSession, config: RuleConfig, request: BookingRequest, now: datetime
) -> Reservation:
    """Run the booking rules in order and return the reservation to persist.

    1. slot exists   2. identity is a member   3. booking window
    4. core-time limits   5. slot free (advisory, re-checked by the store)
    """
    error = check_slot_shape(config, request.court, request.start_hour, request.kind)
    if error:
        raise error

    if not await verify_member(db, request.identity):
        raise NotAMember()

    error = check_booking_window(config, request.kind, request.date, request.start_hour, now)
    if error:
        raise error

    if config.is_core_time(request.date, request.start_hour):
        week = await fetch_week_reservations(db, request.identity, request.date)
        error = check_core_time_limits(config, request.kind, request.date, request.start_hour, week)
        if error:
            raise error

    occupied_by, _ = await slot_status(db, request.date, request.court, request.start_hour)
    if occupied_by != FREE:
        raise SlotTaken(occupied_by)

    is_half = request.kind == ReservationKind.HALF
    is_double = request.kind == ReservationKind.DOUBLE
    return Reservation(
        court=request.court,
        date=request.date,
        start_hour=request.start_hour,
        kind=request.kind,
        booker_first_name=request.identity.first_name,
        booker_last_name=request.identity.last_name,
        booker_birth_year=request.identity.birth_year,
        booker_email=request.email if is_half else None,
        booker_comment=request.comment if is_half else None,
        double_match_names=request.double_match_names if is_double else None,
        is_joined=False,
        created_by_admin=False,
        created_by_ip=request.client_ip,
        created_at=now.astimezone(UTC),
    )


async def book_slot(db: AsyncSession, config: RuleConfig, request: BookingRequest, now: datetime) -> Reservation:
    """Rate limit, evaluate and insert a member booking.

    Raises SlotConflict if the slot was taken between the pre-check and the insert.
    """
    if request.client_ip:
        await check_rate_limit(db, request.client_ip, now)

    try:
        reservation = await evaluate_booking(db, config, request, now)
    except BookingError as exc:
        logger.info("Booking rejected (%s): court %s %s %02d:00", exc.rule, request.court, request.date, request.start_hour)
        raise

    await insert_reservation(db, reservation)
    logger.info(
        "Booked %s court %s %s %02d:00 id=%s",
        reservation.kind.value,
        reservation.court,
        reservation.date,
        reservation.start_hour,
        reservation.id,
    )
    return reservation


# ---------------------------------------------------------------------------
# Join / cancel / edit / info
# ---------------------------------------------------------------------------


def check_joinable(reservation: Reservation, identity: Identity) -> BookingError | None:
    if not reservation.is_open_half:
        return NotJoinable()
    if identity.is_booker_of(reservation):
        return CannotJoinOwnBooking()
    return None


async def join_booking(
    db: AsyncSession, reservation_id: str, identity: Identity, comment: str | None = None
) -> Reservation:
    """Complete a half-booking with a partner. The booking becomes a full booking."""
    if not await verify_member(db, identity):
        raise NotAMember()

    reservation = await get_reservation(db, reservation_id)
    error = check_joinable(reservation, identity)
    if error:
        raise error

    joined = await mark_joined(
        db, reservation.id, identity.first_name, identity.last_name, identity.birth_year, comment
    )
    if not joined:
        # Another member joined (or the sweeper removed it) since we read the row
        raise NotJoinable()

    await db.refresh(reservation)
    logger.info("Half-booking %s joined", reservation.id)
    return reservation


def check_booker(reservation: Reservation, identity: Identity) -> IdentityMismatch | None:
    if not identity.is_booker_of(reservation):
        return IdentityMismatch()
    return None


async def cancel_booking(
    db: AsyncSession, reservation_id: str, identity: Identity, confirmed: bool = False
) -> Reservation:
    """Delete a booking on behalf of its booker.

    A joined booking also belongs to the partner, so it needs a second,
    explicit confirmation (confirmed=True) before it is removed.
    """
    reservation = await get_reservation(db, reservation_id)
    error = check_booker(reservation, identity)
    if error:
        raise error
    if reservation.is_joined and not confirmed:
        raise ConfirmationRequired()

    await delete_reservation(db, reservation.id)
    logger.info("Booking %s cancelled by booker", reservation.id)
    return reservation


async def edit_comment(
    db: AsyncSession, reservation_id: str, identity: Identity, comment: str | None
) -> Reservation:
    reservation = await get_reservation(db, reservation_id)
    error = check_booker(reservation, identity)
    if error:
        raise error
    return await update_comment(db, reservation, comment)


async def booking_info(db: AsyncSession, reservation_id: str, identity: Identity) -> dict:
    """Names and comments of both players, for either the booker or the partner."""
    reservation = await get_reservation(db, reservation_id)
    if not (identity.is_booker_of(reservation) or identity.is_partner_of(reservation)):
        raise IdentityMismatch()

    partner_name = None
    if reservation.is_joined:
        partner_name = f"{reservation.partner_first_name} {reservation.partner_last_name}"
    return {
        "id": reservation.id,
        "booker_name": f"{reservation.booker_first_name} {reservation.booker_last_name}",
        "booker_comment": reservation.booker_comment,
        "partner_name": partner_name,
        "partner_comment": reservation.partner_comment,
    }
