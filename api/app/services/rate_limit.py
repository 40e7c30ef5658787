"""Per-IP rate limit on self-service bookings.

Counts accepted member bookings from the same client address within a
rolling window, using the reservations themselves as the ledger. Rejected
requests never create a row, so only accepted submissions count.
"""

from datetime import UTC, datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import RateLimited
from app.models.reservation import Reservation


async def recent_bookings_from(db: AsyncSession, client_ip: str, now: datetime) -> int:
    since = (now - timedelta(minutes=settings.booking_rate_window_minutes)).astimezone(UTC)
    result = await db.execute(
        select(func.count(Reservation.id)).where(
            Reservation.created_by_ip == client_ip,
            Reservation.created_by_admin.is_(False),
            Reservation.created_at >= since,
        )
    )
    return result.scalar_one()


async def check_rate_limit(db: AsyncSession, client_ip: str, now: datetime) -> None:
    if await recent_bookings_from(db, client_ip, now) >= settings.booking_rate_limit:
        raise RateLimited()
