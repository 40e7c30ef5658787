"""Member booking routes: day grid, book, join, cancel, comment, info.

Members identify themselves with name and birth year on every request; the
rules engine does all checking. Rejections are BookingError subclasses,
rendered by the handler registered in app.main.
"""

from datetime import date, datetime

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.dependencies import client_ip, get_now, get_rule_config
from app.models.reservation import ReservationKind
from app.schemas import (
    BookingCreate,
    BookingInfoOut,
    CancelRequest,
    CommentUpdate,
    DayGridOut,
    IdentityIn,
    JoinRequest,
    PublicRulesOut,
    ReservationOut,
)
from app.services.availability import day_grid
from app.services.booking_rules import (
    BookingRequest,
    book_slot,
    booking_info,
    cancel_booking,
    edit_comment,
    join_booking,
)
from app.services.members import Identity
from app.services.notifications import half_booking_joined, notify
from app.services.rules_config import RuleConfig

router = APIRouter(prefix="/bookings", tags=["bookings"])
rules_router = APIRouter(tags=["rules"])


def _identity(body) -> Identity:
    return Identity.of(body.first_name, body.last_name, body.birth_year)


@router.get("", response_model=DayGridOut)
async def get_day(
    day: date = Query(alias="date"),
    db: AsyncSession = Depends(get_db),
    config: RuleConfig = Depends(get_rule_config),
    now: datetime = Depends(get_now),
):
    return {
        "date": day,
        "courts": list(config.courts),
        "hours": list(config.hours),
        "slots": await day_grid(db, config, day, now),
    }


@router.post("", response_model=ReservationOut, status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: BookingCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    config: RuleConfig = Depends(get_rule_config),
    now: datetime = Depends(get_now),
):
    booking_request = BookingRequest(
        court=body.court,
        date=body.date,
        start_hour=body.start_hour,
        kind=ReservationKind(body.kind),
        identity=_identity(body),
        comment=(body.comment or "").strip() or None,
        email=body.email,
        double_match_names=(body.double_match_names or "").strip() or None,
        client_ip=client_ip(request),
    )
    return await book_slot(db, config, booking_request, now)


@router.post("/{reservation_id}/join", response_model=ReservationOut)
async def join(
    reservation_id: str,
    body: JoinRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    config: RuleConfig = Depends(get_rule_config),
):
    comment = (body.comment or "").strip() or None
    reservation = await join_booking(db, reservation_id, _identity(body), comment)

    if config.email_notifications_enabled and reservation.booker_email:
        background_tasks.add_task(notify, reservation.booker_email, half_booking_joined(reservation))
    return reservation


@router.post("/{reservation_id}/cancel", status_code=status.HTTP_204_NO_CONTENT)
async def cancel(reservation_id: str, body: CancelRequest, db: AsyncSession = Depends(get_db)):
    await cancel_booking(db, reservation_id, _identity(body), confirmed=body.confirmed)


@router.patch("/{reservation_id}/comment", response_model=ReservationOut)
async def update_comment(reservation_id: str, body: CommentUpdate, db: AsyncSession = Depends(get_db)):
    comment = (body.comment or "").strip() or None
    return await edit_comment(db, reservation_id, _identity(body), comment)


@router.post("/{reservation_id}/info", response_model=BookingInfoOut)
async def info(reservation_id: str, body: IdentityIn, db: AsyncSession = Depends(get_db)):
    return await booking_info(db, reservation_id, _identity(body))


@rules_router.get("/rules", response_model=PublicRulesOut)
async def public_rules(config: RuleConfig = Depends(get_rule_config)):
    data = config.model_dump()
    data["core_time_days"] = sorted(config.core_time_days)
    return data
