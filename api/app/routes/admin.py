"""Admin routes: login, rulebook, reservations, series and the expiry sweep."""

import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import authenticate_admin, create_admin_token
from app.core.database import get_db
from app.core.dependencies import get_now, get_rule_config, require_admin
from app.core.exceptions import ReservationNotFound
from app.schemas import (
    AdminDeleteOut,
    AdminReservationOut,
    AdminReservationUpdate,
    ConflictOut,
    LoginRequest,
    RuleOut,
    RuleUpdate,
    SeriesCreate,
    SeriesDeleteOut,
    SeriesPreviewOut,
    SeriesPreviewRequest,
    SeriesResultOut,
    SeriesSummaryOut,
    SweepOut,
    TokenResponse,
)
from app.services import series as series_service
from app.services.expiry import dispatch, sweep
from app.services.reservations import delete_reservation, get_reservation, list_between, update_reservation
from app.services.rules_config import RuleConfig, list_rules, set_rule

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest):
    if not authenticate_admin(body.email, body.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    return TokenResponse(access_token=create_admin_token())


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@router.get("/rules", response_model=list[RuleOut])
async def get_rules(_: str = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await list_rules(db)


@router.put("/rules/{key}", response_model=RuleOut)
async def update_rule(
    key: str,
    body: RuleUpdate,
    admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rule = await set_rule(db, key, body.value)
    logger.info("Rule %s changed by %s", rule.key, admin)
    return RuleOut(key=rule.key, value=rule.value, description=rule.description, updated_at=rule.updated_at)


# ---------------------------------------------------------------------------
# Reservations
# ---------------------------------------------------------------------------


@router.get("/reservations", response_model=list[AdminReservationOut])
async def get_reservations(
    day: date | None = Query(default=None, alias="date"),
    start: date | None = None,
    end: date | None = None,
    _: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """One day (`date`) or an inclusive range (`start` and `end`)."""
    if day is not None:
        start = end = day
    if start is None or end is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Pass either date or both start and end"
        )
    if end < start:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="end is before start")
    return await list_between(db, start, end)


@router.patch("/reservations/{reservation_id}", response_model=AdminReservationOut)
async def edit_reservation(
    reservation_id: str,
    body: AdminReservationUpdate,
    admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    changes = body.model_dump(exclude_unset=True)
    reservation = await update_reservation(db, reservation_id, changes)
    logger.info("Reservation %s edited by %s: %s", reservation.id, admin, ", ".join(sorted(changes)) or "no changes")
    return reservation


@router.delete("/reservations/{reservation_id}", response_model=AdminDeleteOut)
async def remove_reservation(
    reservation_id: str,
    admin: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    reservation = await get_reservation(db, reservation_id)
    series_id = reservation.recurrence_parent_id
    if not await delete_reservation(db, reservation.id):
        raise ReservationNotFound()

    logger.info("Reservation %s deleted by %s", reservation.id, admin)
    warning = None
    if series_id:
        warning = "This booking was part of a series. The other bookings of the series were kept."
    return AdminDeleteOut(id=reservation.id, series_id=series_id, warning=warning)


# ---------------------------------------------------------------------------
# Series
# ---------------------------------------------------------------------------


@router.post("/series/preview", response_model=SeriesPreviewOut)
async def preview_series(
    body: SeriesPreviewRequest,
    _: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    config: RuleConfig = Depends(get_rule_config),
):
    preview = await series_service.preview_series(db, config, body.spec, body.replacing_series_id)
    return SeriesPreviewOut(
        count=preview.count,
        conflicts=[ConflictOut.model_validate(c) for c in preview.conflicts],
        replaces=preview.replaces,
        warning=preview.warning,
    )


@router.post("/series", response_model=SeriesResultOut, status_code=status.HTTP_201_CREATED)
async def create_series(
    body: SeriesCreate,
    _: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    config: RuleConfig = Depends(get_rule_config),
):
    result = await series_service.save_series(
        db, config, body.spec, replacing_series_id=body.replacing_series_id, overwrite=body.overwrite
    )
    return SeriesResultOut(series_id=result.series_id, created=result.created, deleted=result.deleted)


@router.get("/series", response_model=list[SeriesSummaryOut])
async def get_series(_: str = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await series_service.list_series(db)


@router.get("/series/{series_id}/spec")
async def get_series_spec(series_id: str, _: str = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    spec = await series_service.series_spec(db, series_id)
    return spec.model_dump(mode="json")


@router.delete("/series/{series_id}", response_model=SeriesDeleteOut)
async def remove_series(series_id: str, _: str = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    deleted = await series_service.delete_series(db, series_id)
    return SeriesDeleteOut(series_id=series_id, deleted=deleted)


# ---------------------------------------------------------------------------
# Expiry sweep
# ---------------------------------------------------------------------------


@router.post("/sweep", response_model=SweepOut)
async def run_sweep(
    _: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    config: RuleConfig = Depends(get_rule_config),
    now: datetime = Depends(get_now),
):
    result = await sweep(db, config, now)
    # Notifications only go out for deletions that are committed
    await db.commit()
    await dispatch(result)
    return SweepOut(deleted=result.deleted, notified=result.notified)
