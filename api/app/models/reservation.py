"""Reservation model.

A reservation occupies one court for one hour on one day. Member bookings
(half/full/double) and admin blanket bookings (special) share the table so
that the slot uniqueness constraint covers all of them.
"""

import datetime as dt
import enum
import uuid

from sqlalchemy import (
    Boolean,
    Date,
    Enum,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin

SLOT_CONSTRAINT = "uq_reservations_slot"


def new_reservation_id() -> str:
    return str(uuid.uuid4())


class ReservationKind(enum.StrEnum):
    HALF = "half"          # Booker waiting for a partner
    FULL = "full"          # Singles, or a half-booking that was joined
    DOUBLE = "double"      # Doubles, extra players named for admins only
    SPECIAL = "special"    # Admin blanket booking (Abo, Gesperrt, ...)


class RecurrenceType(enum.StrEnum):
    ONE_OFF = "einmalig"
    WEEKLY = "weekly"


class Reservation(TimestampMixin, Base):
    __tablename__ = "reservations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_reservation_id)

    # Where / when
    court: Mapped[int] = mapped_column(nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_hour: Mapped[int] = mapped_column(nullable=False)

    kind: Mapped[ReservationKind] = mapped_column(
        Enum(ReservationKind, name="reservation_kind", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )

    # Booker (display identity and credential at the same time)
    booker_first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    booker_last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    booker_birth_year: Mapped[int] = mapped_column(nullable=False)
    booker_email: Mapped[str | None] = mapped_column(String(254))
    booker_comment: Mapped[str | None] = mapped_column(Text)

    # Partner, set when a half-booking is joined
    partner_first_name: Mapped[str | None] = mapped_column(String(100))
    partner_last_name: Mapped[str | None] = mapped_column(String(100))
    partner_birth_year: Mapped[int | None] = mapped_column()
    partner_comment: Mapped[str | None] = mapped_column(Text)
    is_joined: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    double_match_names: Mapped[str | None] = mapped_column(Text)  # admin-only
    special_label: Mapped[str | None] = mapped_column(String(100))

    # Series linkage: the series id is the id of its first member
    recurrence_parent_id: Mapped[str | None] = mapped_column(String(36))
    recurrence_type: Mapped[RecurrenceType | None] = mapped_column(
        Enum(RecurrenceType, name="recurrence_type", values_callable=lambda e: [x.value for x in e]),
    )
    recurrence_end_date: Mapped[dt.date | None] = mapped_column(Date)

    # Provenance
    created_by_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by_ip: Mapped[str | None] = mapped_column(String(64))

    __table_args__ = (
        # One reservation per court and hour. This is the only real guard
        # against concurrent double-booking; application checks are advisory.
        UniqueConstraint("date", "court", "start_hour", name=SLOT_CONSTRAINT),
        Index("ix_reservations_series", "recurrence_parent_id"),
        Index("ix_reservations_booker", "booker_last_name", "booker_birth_year", "date"),
        Index("ix_reservations_ip_created", "created_by_ip", "created_at"),
    )

    @property
    def is_open_half(self) -> bool:
        return self.kind == ReservationKind.HALF and not self.is_joined

    def __repr__(self) -> str:
        return f"<Reservation {self.date} {self.start_hour:02d}:00 court={self.court} {self.kind}>"
