"""Half-booking expiry.

A half-booking that nobody joined is released once its start is closer than
half_booking_expiry_hours. The distance is measured in club-local time with
the offset of the slot's own date, so the sweep stays correct across DST
changes. Deletion is guarded by "still an open half-booking", which makes a
sweep racing a join harmless: whichever write lands first wins.

The sweep is idempotent: a second run with the same clock deletes nothing.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import async_session_factory
from app.models.reservation import Reservation, ReservationKind
from app.services.club_time import club_now, hours_until
from app.services.notifications import NotificationPayload, half_booking_expired, notify_all
from app.services.rules_config import RuleConfig, load_rule_config

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    deleted: int
    notified: int = 0
    pending_notifications: list[tuple[str, NotificationPayload]] | None = None


def is_expired(config: RuleConfig, reservation: Reservation, now: datetime) -> bool:
    return hours_until(reservation.date, reservation.start_hour, now) < config.half_booking_expiry_hours


async def find_expired(db: AsyncSession, config: RuleConfig, now: datetime) -> list[Reservation]:
    result = await db.execute(
        select(Reservation).where(
            Reservation.kind == ReservationKind.HALF,
            Reservation.is_joined.is_(False),
        )
    )
    return [r for r in result.scalars().all() if is_expired(config, r, now)]


async def sweep(db: AsyncSession, config: RuleConfig, now: datetime) -> SweepResult:
    """Delete expired half-bookings in the session's transaction.

    Notifications are collected, not sent: the caller dispatches them once
    the deletion is committed (see dispatch).
    """
    expired = await find_expired(db, config, now)
    if not expired:
        return SweepResult(deleted=0, pending_notifications=[])

    result = await db.execute(
        delete(Reservation)
        .where(
            Reservation.id.in_([r.id for r in expired]),
            Reservation.kind == ReservationKind.HALF,
            Reservation.is_joined.is_(False),
        )
        .returning(Reservation.id)
        .execution_options(synchronize_session=False)
    )
    # Rows joined since the read survive the guard and are left out here
    deleted_ids = set(result.scalars().all())
    removed = [r for r in expired if r.id in deleted_ids]

    pending = []
    if config.email_notifications_enabled:
        pending = [(r.booker_email, half_booking_expired(r)) for r in removed if r.booker_email]

    for reservation in removed:
        logger.info(
            "Expired half-booking %s: court %s %s %02d:00",
            reservation.id,
            reservation.court,
            reservation.date,
            reservation.start_hour,
        )
    return SweepResult(deleted=len(removed), pending_notifications=pending)


async def dispatch(result: SweepResult) -> SweepResult:
    """Send the notifications of a committed sweep. Never raises."""
    if result.pending_notifications:
        result.notified = await notify_all(result.pending_notifications)
    result.pending_notifications = []
    return result


async def run_sweep(now: datetime | None = None) -> SweepResult:
    """One complete sweep with its own session: load rules, delete, commit, notify."""
    now = now or club_now()
    async with async_session_factory() as db:
        config = await load_rule_config(db)
        result = await sweep(db, config, now)
        await db.commit()

    await dispatch(result)
    logger.info("Expiry sweep at %s: %d deleted, %d notified", now.isoformat(), result.deleted, result.notified)
    return result
