"""Member notifications: expired half-bookings and completed half-bookings.

Dispatch is fire-and-forget. A failed notification is logged and dropped;
it never reaches the caller and never undoes the booking change that
triggered it.
"""

import logging
from dataclasses import dataclass
from datetime import date
from email.message import EmailMessage
from email.utils import formataddr

import aiosmtplib

from app.core.config import settings
from app.models.reservation import Reservation

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 10


async def send_email(to: str, subject: str, body: str) -> None:
    """Send a plain-text email in the club's name."""
    message = EmailMessage()
    message["From"] = formataddr((settings.club_name, settings.smtp_from))
    message["To"] = to
    message["Subject"] = f"[{settings.app_name}] {subject}"
    message.set_content(body)

    await aiosmtplib.send(
        message, hostname=settings.smtp_host, port=settings.smtp_port, timeout=SMTP_TIMEOUT_SECONDS
    )
    logger.info("Notification sent to %s: %s", to, subject)


@dataclass(frozen=True)
class NotificationPayload:
    subject: str
    first_name: str
    date: date
    hour: int
    court: int
    body: str


def half_booking_expired(reservation: Reservation) -> NotificationPayload:
    body = (
        f"Hello {reservation.booker_first_name},\n\n"
        f"No partner joined your half-booking for court {reservation.court} on "
        f"{reservation.date:%d.%m.%Y} at {reservation.start_hour:02d}:00, "
        f"so it has been released for other members.\n\n"
        f"{settings.club_name}"
    )
    return NotificationPayload(
        subject="Your half-booking has expired",
        first_name=reservation.booker_first_name,
        date=reservation.date,
        hour=reservation.start_hour,
        court=reservation.court,
        body=body,
    )


def half_booking_joined(reservation: Reservation) -> NotificationPayload:
    body = (
        f"Hello {reservation.booker_first_name},\n\n"
        f"Your half-booking is complete!\n\n"
        f"Date: {reservation.date:%d.%m.%Y}\n"
        f"Time: {reservation.start_hour:02d}:00\n"
        f"Court: {reservation.court}\n\n"
        f"Partner: {reservation.partner_first_name} {reservation.partner_last_name}\n"
    )
    if reservation.partner_comment:
        body += f"Comment: {reservation.partner_comment}\n"
    body += f"\n{settings.club_name}"
    return NotificationPayload(
        subject="Your half-booking is complete",
        first_name=reservation.booker_first_name,
        date=reservation.date,
        hour=reservation.start_hour,
        court=reservation.court,
        body=body,
    )


async def notify(email: str, payload: NotificationPayload) -> bool:
    """Send one notification. Returns False instead of raising on failure."""
    try:
        await send_email(email, payload.subject, payload.body)
    except Exception:
        logger.exception("Notification to %s failed (%s)", email, payload.subject)
        return False
    return True


async def notify_all(notifications: list[tuple[str, NotificationPayload]]) -> int:
    """Send each notification independently. Returns how many were delivered."""
    sent = 0
    for email, payload in notifications:
        if await notify(email, payload):
            sent += 1
    return sent
