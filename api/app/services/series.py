"""Recurring and blanket special bookings made by administrators.

A series spec expands to one special reservation per (day, court, hour).
Two shapes:

  einmalig  one date, a set of courts, a contiguous hour range [start, end)
  weekly    a date range, ISO weekdays, a set of courts, any set of hours

All members of a series share recurrence_parent_id, which is the id of the
series' first member (that row references itself). Ids are generated here,
before anything is written, so the whole series is inserted in one
transaction: either every row is stored or none is.

Editing a series is destructive: the old members are deleted and the new
spec is generated from scratch. Per-occurrence changes made in between are
lost, which the preview warns about.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Annotated, Literal

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidSpec, PartialSeriesFailure, ReservationNotFound, SeriesConflict
from app.models.reservation import RecurrenceType, Reservation, ReservationKind, new_reservation_id
from app.services.reservations import delete_reservations, is_slot_conflict
from app.services.rules_config import RuleConfig

logger = logging.getLogger(__name__)

# Display identity stored on admin-generated rows
ADMIN_FIRST_NAME = "Admin"
ADMIN_LAST_NAME = "System"
ADMIN_BIRTH_YEAR = 2000

DEFAULT_LABEL = "Abo"


class OneOffSeriesSpec(BaseModel):
    mode: Literal["einmalig"] = "einmalig"
    day: date
    courts: list[int]
    start_hour: int
    end_hour: int
    label: str = DEFAULT_LABEL


class WeeklySeriesSpec(BaseModel):
    mode: Literal["weekly"] = "weekly"
    start_date: date
    end_date: date
    weekdays: list[int]  # ISO, 1=Mon..7=Sun
    courts: list[int]
    hours: list[int]
    label: str = DEFAULT_LABEL


SeriesSpec = Annotated[OneOffSeriesSpec | WeeklySeriesSpec, Field(discriminator="mode")]


@dataclass
class SeriesResult:
    series_id: str
    created: int
    deleted: int = 0


@dataclass
class SeriesPreview:
    count: int
    conflicts: list[Reservation] = field(default_factory=list)
    replaces: int = 0
    warning: str | None = None


@dataclass
class SeriesSummary:
    series_id: str
    label: str
    count: int
    first_date: date
    last_date: date
    recurrence_type: str


# ---------------------------------------------------------------------------
# Expansion (pure)
# ---------------------------------------------------------------------------


def _check_courts(courts: list[int], config: RuleConfig) -> list[int]:
    if not courts:
        raise InvalidSpec("Select at least one court.")
    unknown = sorted(c for c in set(courts) if c not in config.courts)
    if unknown:
        raise InvalidSpec(f"Unknown court(s): {', '.join(map(str, unknown))}.")
    return sorted(set(courts))


def _check_hours(hours: list[int], config: RuleConfig) -> list[int]:
    if not hours:
        raise InvalidSpec("Select at least one hour.")
    outside = sorted(h for h in set(hours) if h not in config.hours)
    if outside:
        raise InvalidSpec(
            f"Hour(s) {', '.join(map(str, outside))} are outside "
            f"{config.day_start_hour:02d}:00-{config.day_end_hour:02d}:00."
        )
    return sorted(set(hours))


def _days(spec: OneOffSeriesSpec | WeeklySeriesSpec) -> list[date]:
    if isinstance(spec, OneOffSeriesSpec):
        return [spec.day]

    if spec.end_date < spec.start_date:
        raise InvalidSpec("End date is before start date.")
    if not spec.weekdays:
        raise InvalidSpec("Select at least one weekday.")
    if any(d < 1 or d > 7 for d in spec.weekdays):
        raise InvalidSpec("Weekdays must be ISO numbers 1 (Mon) to 7 (Sun).")

    weekdays = set(spec.weekdays)
    days = []
    current = spec.start_date
    while current <= spec.end_date:
        if current.isoweekday() in weekdays:
            days.append(current)
        current += timedelta(days=1)
    return days


def expand(spec: OneOffSeriesSpec | WeeklySeriesSpec, config: RuleConfig) -> list[Reservation]:
    """Turn a spec into unsaved special reservations sharing one series id."""
    courts = _check_courts(spec.courts, config)

    if isinstance(spec, OneOffSeriesSpec):
        if spec.start_hour >= spec.end_hour:
            raise InvalidSpec("Start hour must be before end hour.")
        hours = _check_hours(list(range(spec.start_hour, spec.end_hour)), config)
        recurrence_type, end_date = RecurrenceType.ONE_OFF, None
    else:
        hours = _check_hours(spec.hours, config)
        recurrence_type, end_date = RecurrenceType.WEEKLY, spec.end_date

    days = _days(spec)
    if not days:
        raise InvalidSpec("No day in the date range matches the selected weekdays.")

    label = spec.label.strip() or DEFAULT_LABEL
    series_id = new_reservation_id()
    candidates = []
    for day in days:
        for court in courts:
            for hour in hours:
                candidates.append(
                    Reservation(
                        id=new_reservation_id() if candidates else series_id,
                        court=court,
                        date=day,
                        start_hour=hour,
                        kind=ReservationKind.SPECIAL,
                        special_label=label,
                        booker_first_name=ADMIN_FIRST_NAME,
                        booker_last_name=ADMIN_LAST_NAME,
                        booker_birth_year=ADMIN_BIRTH_YEAR,
                        recurrence_parent_id=series_id,
                        recurrence_type=recurrence_type,
                        recurrence_end_date=end_date,
                        is_joined=False,
                        created_by_admin=True,
                    )
                )
    return candidates


# ---------------------------------------------------------------------------
# Store interaction
# ---------------------------------------------------------------------------


def conflict_view(reservation: Reservation) -> dict:
    """Plain snapshot of a conflicting booking; stays valid after a rollback."""
    return {
        "id": reservation.id,
        "court": reservation.court,
        "date": reservation.date,
        "start_hour": reservation.start_hour,
        "kind": reservation.kind.value,
        "booker_first_name": reservation.booker_first_name,
        "booker_last_name": reservation.booker_last_name,
    }


async def series_member_ids(db: AsyncSession, series_id: str) -> list[str]:
    result = await db.execute(select(Reservation.id).where(Reservation.recurrence_parent_id == series_id))
    return list(result.scalars().all())


async def find_conflicts(
    db: AsyncSession, candidates: list[Reservation], replacing_series_id: str | None = None
) -> list[Reservation]:
    """Every existing non-special reservation on a candidate slot.

    Members of the series being replaced are not conflicts: they go away.
    """
    if not candidates:
        return []
    wanted = {(c.date, c.court, c.start_hour) for c in candidates}
    query = select(Reservation).where(
        Reservation.date.in_({c.date for c in candidates}),
        Reservation.kind != ReservationKind.SPECIAL,
    )
    if replacing_series_id:
        query = query.where(
            (Reservation.recurrence_parent_id.is_(None)) | (Reservation.recurrence_parent_id != replacing_series_id)
        )
    result = await db.execute(query.order_by(Reservation.date, Reservation.start_hour, Reservation.court))
    return [r for r in result.scalars().all() if (r.date, r.court, r.start_hour) in wanted]


async def commit_series(
    db: AsyncSession, candidates: list[Reservation], delete_ids: list[str] | None = None
) -> SeriesResult:
    """Delete delete_ids and insert the series, all in the session's transaction.

    The first member goes in first (it is the series id), then the rest. If
    any insert fails the transaction is rolled back, which also restores the
    deleted rows, and PartialSeriesFailure is raised.
    """
    if not candidates:
        raise InvalidSpec("The series is empty.")

    series_id = candidates[0].recurrence_parent_id
    try:
        deleted = await delete_reservations(db, list(delete_ids or []))
        first, *rest = candidates
        db.add(first)
        await db.flush()
        if rest:
            db.add_all(rest)
            await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        conflict = is_slot_conflict(exc)
        logger.warning("Series %s not saved, rolled back (%s)", series_id, exc.orig)
        if conflict:
            raise PartialSeriesFailure(
                "A slot of the series was booked in the meantime. Nothing was saved; please try again.",
                slot_conflict=True,
            ) from exc
        raise PartialSeriesFailure("The series could not be saved. Nothing was saved.") from exc

    logger.info("Series %s saved: %d created, %d deleted", series_id, len(candidates), deleted)
    return SeriesResult(series_id=series_id, created=len(candidates), deleted=deleted)


async def preview_series(
    db: AsyncSession,
    config: RuleConfig,
    spec: OneOffSeriesSpec | WeeklySeriesSpec,
    replacing_series_id: str | None = None,
) -> SeriesPreview:
    candidates = expand(spec, config)
    conflicts = await find_conflicts(db, candidates, replacing_series_id)
    preview = SeriesPreview(count=len(candidates), conflicts=conflicts)
    if replacing_series_id:
        preview.replaces = len(await series_member_ids(db, replacing_series_id))
        preview.warning = (
            f"All {preview.replaces} booking(s) of the existing series will be deleted and recreated. "
            "Changes made to single occurrences will be lost."
        )
    return preview


async def save_series(
    db: AsyncSession,
    config: RuleConfig,
    spec: OneOffSeriesSpec | WeeklySeriesSpec,
    replacing_series_id: str | None = None,
    overwrite: bool = False,
) -> SeriesResult:
    """Create a series, or replace replacing_series_id with a new one.

    Conflicting member bookings are reported all together (SeriesConflict)
    unless overwrite is set, in which case they are deleted with the batch.
    """
    candidates = expand(spec, config)

    delete_ids: list[str] = []
    if replacing_series_id:
        delete_ids = await series_member_ids(db, replacing_series_id)
        if not delete_ids:
            raise ReservationNotFound("Series not found.")

    conflicts = await find_conflicts(db, candidates, replacing_series_id)
    if conflicts and not overwrite:
        raise SeriesConflict([conflict_view(c) for c in conflicts])

    delete_ids = list(dict.fromkeys(delete_ids + [c.id for c in conflicts]))
    return await commit_series(db, candidates, delete_ids)


async def delete_series(db: AsyncSession, series_id: str) -> int:
    deleted = await delete_reservations(db, await series_member_ids(db, series_id))
    if not deleted:
        raise ReservationNotFound("Series not found.")
    logger.info("Series %s deleted (%d bookings)", series_id, deleted)
    return deleted


async def _series_members(db: AsyncSession, series_id: str | None = None) -> list[Reservation]:
    query = select(Reservation).where(
        Reservation.kind == ReservationKind.SPECIAL,
        Reservation.recurrence_parent_id.is_not(None),
    )
    if series_id:
        query = query.where(Reservation.recurrence_parent_id == series_id)
    result = await db.execute(query.order_by(Reservation.date, Reservation.start_hour, Reservation.court))
    return list(result.scalars().all())


async def list_series(db: AsyncSession) -> list[SeriesSummary]:
    groups: dict[str, list[Reservation]] = {}
    for reservation in await _series_members(db):
        groups.setdefault(reservation.recurrence_parent_id, []).append(reservation)

    summaries = [
        SeriesSummary(
            series_id=series_id,
            label=members[0].special_label or DEFAULT_LABEL,
            count=len(members),
            first_date=min(m.date for m in members),
            last_date=max(m.date for m in members),
            recurrence_type=(members[0].recurrence_type or RecurrenceType.WEEKLY).value,
        )
        for series_id, members in groups.items()
    ]
    summaries.sort(key=lambda s: s.first_date)
    return summaries


async def series_spec(db: AsyncSession, series_id: str) -> OneOffSeriesSpec | WeeklySeriesSpec:
    """Rebuild the spec of a stored series, e.g. to prefill an edit form."""
    members = await _series_members(db, series_id)
    if not members:
        raise ReservationNotFound("Series not found.")

    courts = sorted({m.court for m in members})
    hours = sorted({m.start_hour for m in members})
    label = members[0].special_label or DEFAULT_LABEL

    if members[0].recurrence_type == RecurrenceType.ONE_OFF:
        return OneOffSeriesSpec(
            day=members[0].date, courts=courts, start_hour=hours[0], end_hour=hours[-1] + 1, label=label
        )

    return WeeklySeriesSpec(
        start_date=min(m.date for m in members),
        end_date=members[0].recurrence_end_date or max(m.date for m in members),
        weekdays=sorted({m.date.isoweekday() for m in members}),
        courts=courts,
        hours=hours,
        label=label,
    )
