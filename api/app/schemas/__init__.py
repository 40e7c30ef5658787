"""Pydantic schemas for API serialisation."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.services.series import SeriesSpec

# --- Auth (admin) ---


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: str
    password: str


# --- Member identity ---


class IdentityIn(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    birth_year: int = Field(ge=1900, le=2100)


# --- Booking ---


class BookingCreate(IdentityIn):
    court: int
    date: date
    start_hour: int
    kind: Literal["half", "full", "double"]
    comment: str | None = Field(default=None, max_length=500)
    email: EmailStr | None = None
    double_match_names: str | None = Field(default=None, max_length=500)


class JoinRequest(IdentityIn):
    comment: str | None = Field(default=None, max_length=500)


class CancelRequest(IdentityIn):
    confirmed: bool = False


class CommentUpdate(IdentityIn):
    comment: str | None = Field(default=None, max_length=500)


class ReservationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    court: int
    date: date
    start_hour: int
    kind: str
    is_joined: bool
    booker_first_name: str
    booker_last_name: str
    booker_comment: str | None
    special_label: str | None
    created_at: datetime


class AdminReservationOut(ReservationOut):
    booker_birth_year: int
    booker_email: str | None
    partner_first_name: str | None
    partner_last_name: str | None
    partner_birth_year: int | None
    partner_comment: str | None
    double_match_names: str | None
    recurrence_parent_id: str | None
    recurrence_type: str | None
    recurrence_end_date: date | None
    created_by_admin: bool
    created_by_ip: str | None


class AdminReservationUpdate(BaseModel):
    """Ad-hoc admin edit. Only the fields sent are changed."""

    model_config = ConfigDict(str_strip_whitespace=True)

    # Booker names can be replaced but not cleared
    booker_first_name: str = Field(default=None, min_length=1, max_length=100)
    booker_last_name: str = Field(default=None, min_length=1, max_length=100)
    booker_comment: str | None = Field(default=None, max_length=500)
    special_label: str | None = Field(default=None, max_length=100)
    partner_first_name: str | None = Field(default=None, max_length=100)
    partner_last_name: str | None = Field(default=None, max_length=100)
    partner_comment: str | None = Field(default=None, max_length=500)
    double_match_names: str | None = Field(default=None, max_length=500)


class AdminDeleteOut(BaseModel):
    id: str
    series_id: str | None
    warning: str | None = None


class BookingInfoOut(BaseModel):
    id: str
    booker_name: str
    booker_comment: str | None
    partner_name: str | None
    partner_comment: str | None


# --- Day grid ---


class PublicBookingOut(BaseModel):
    id: str
    kind: str
    booker: str | None  # "A***"
    partner: str | None
    comment: str | None  # half-bookings only
    label: str | None  # special bookings only
    is_joined: bool
    series_id: str | None


class GridSlotOut(BaseModel):
    court: int
    hour: int
    is_past: bool
    is_available: bool
    booking: PublicBookingOut | None


class DayGridOut(BaseModel):
    date: date
    courts: list[int]
    hours: list[int]
    slots: list[GridSlotOut]


# --- Rules ---


class RuleOut(BaseModel):
    key: str
    value: str
    description: str | None
    updated_at: datetime | None = None


class RuleUpdate(BaseModel):
    value: str = Field(max_length=200)


class PublicRulesOut(BaseModel):
    day_start_hour: int
    day_end_hour: int
    courts_count: int
    slot_duration_minutes: int
    booking_window_hours: int
    half_booking_min_hours: int
    half_booking_max_hours: int
    half_booking_expiry_hours: int
    core_time_start: int
    core_time_end: int
    core_time_days: list[int]
    single_max_per_day: int
    single_max_per_week: int
    double_max_per_day: int
    double_max_per_week: int


# --- Series ---


class SeriesPreviewRequest(BaseModel):
    spec: SeriesSpec
    replacing_series_id: str | None = None


class SeriesCreate(SeriesPreviewRequest):
    overwrite: bool = False


class ConflictOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    court: int
    date: date
    start_hour: int
    kind: str
    booker_first_name: str
    booker_last_name: str


class SeriesPreviewOut(BaseModel):
    count: int
    conflicts: list[ConflictOut]
    replaces: int
    warning: str | None


class SeriesResultOut(BaseModel):
    series_id: str
    created: int
    deleted: int


class SeriesSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    series_id: str
    label: str
    count: int
    first_date: date
    last_date: date
    recurrence_type: str


class SeriesDeleteOut(BaseModel):
    series_id: str
    deleted: int


# --- Sweep ---


class SweepOut(BaseModel):
    deleted: int
    notified: int
