"""Domain errors for booking, joining, cancelling and series generation.

Every error carries a machine-readable rule name, a human-readable message
and the HTTP status the API layer responds with. None of them are retried
automatically.
"""

from fastapi import status


class BookingError(Exception):
    """Base class: a request was rejected by the booking rules."""

    rule = "booking_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_detail(self) -> list[dict]:
        return [{"rule": self.rule, "message": self.message}]


class NotAMember(BookingError):
    rule = "not_a_member"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Member not found. Please check name and birth year."):
        super().__init__(message)


class IdentityMismatch(BookingError):
    rule = "identity_mismatch"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "The details do not match the booker."):
        super().__init__(message)


class OutsideBookingWindow(BookingError):
    rule = "booking_window"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class CoreTimeLimitExceeded(BookingError):
    rule = "core_time_limit"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, scope: str, kind: str, limit: int):
        self.scope = scope  # "day" | "week"
        self.kind = kind  # "single" | "double"
        self.limit = limit
        label = "doubles" if kind == "double" else "singles"
        period = "daily" if scope == "day" else "weekly"
        super().__init__(f"You have reached your {period} core-time limit for {label} (max. {limit} h/{scope}).")


class InvalidSlot(BookingError):
    rule = "invalid_slot"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class SlotTaken(BookingError):
    """Advisory pre-check: the slot is already occupied."""

    rule = "slot_taken"
    status_code = status.HTTP_409_CONFLICT

    MESSAGES = {
        "half": "This court has an open half-booking. Join it instead.",
        "special": "This court is reserved by the club.",
    }

    def __init__(self, occupied_by: str | None = None):
        self.occupied_by = occupied_by  # kind of the occupying booking
        super().__init__(self.MESSAGES.get(occupied_by, "This court is already booked."))


class SlotConflict(BookingError):
    """Authoritative: the store's uniqueness constraint rejected the write."""

    rule = "slot_conflict"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Someone else just booked this court. Please pick another slot."):
        super().__init__(message)


class ReservationNotFound(BookingError):
    rule = "not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Booking not found."):
        super().__init__(message)


class NotJoinable(BookingError):
    rule = "not_joinable"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "This booking is not an open half-booking."):
        super().__init__(message)


class CannotJoinOwnBooking(BookingError):
    rule = "own_booking"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "You cannot join your own booking."):
        super().__init__(message)


class ConfirmationRequired(BookingError):
    """Cancelling a joined booking removes the partner too; ask twice."""

    rule = "confirmation_required"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "A partner has already joined this booking. Confirm again to cancel it for both players."):
        super().__init__(message)


class RateLimited(BookingError):
    rule = "rate_limited"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, message: str = "Too many bookings. Please wait a few minutes."):
        super().__init__(message)


class InvalidRuleValue(BookingError):
    rule = "invalid_rule"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidSpec(BookingError):
    rule = "invalid_spec"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class SeriesConflict(BookingError):
    """Generated series collides with member bookings; all collisions are listed."""

    rule = "series_conflict"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, conflicts: list[dict]):
        self.conflicts = conflicts
        super().__init__(
            f"{len(conflicts)} slot(s) are already booked by members. Overwrite them to save the series."
        )


class PartialSeriesFailure(BookingError):
    """A series insert failed part-way; nothing of the batch was kept."""

    rule = "series_failed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, slot_conflict: bool = False):
        self.slot_conflict = slot_conflict
        if slot_conflict:
            self.status_code = status.HTTP_409_CONFLICT
        super().__init__(message)
