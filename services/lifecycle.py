"""
Booking state machine.

    BOOKED --cancel (before start)--> CANCELLED
    BOOKED --complete---------------> COMPLETED

CANCELLED and COMPLETED are terminal.
"""
from datetime import datetime

from models.booking import Booking, BookingStatus
from utils.clock import minutes_between
from utils.errors import IllegalStateError, ValidationError

MIN_BOOKING_MINUTES = 30
MAX_BOOKING_MINUTES = 24 * 60


def validate_window(start_time: datetime, end_time: datetime, duration: int, now: datetime,
                    min_minutes: int = MIN_BOOKING_MINUTES, max_minutes: int = MAX_BOOKING_MINUTES,
                    check_start: bool = True):
    """
    Timing checks for a new or edited reservation window, in order.

    `check_start=False` skips the future-start rule, for edits that keep the
    current start time of a booking already under way.
    """
    if check_start and start_time <= now:
        raise ValidationError("Start time cannot be in the past")

    if end_time < start_time:
        raise ValidationError("End time must be after start time")
    if end_time == start_time:
        raise ValidationError("Start time and end time cannot be the same")

    if duration is None or minutes_between(start_time, end_time) != duration:
        raise ValidationError("Duration does not match the time range")

    if duration < min_minutes:
        raise ValidationError(f"Minimum booking duration is {min_minutes} minutes")
    if duration > max_minutes:
        raise ValidationError(f"Maximum booking duration is {max_minutes} minutes")


def _reject_terminal(booking: Booking, action: str):
    if not booking.is_terminal:
        return
    if booking.status == BookingStatus.CANCELLED:
        raise IllegalStateError(f"Cannot {action} a cancelled booking")
    if booking.status == BookingStatus.COMPLETED:
        raise IllegalStateError(f"Cannot {action} a completed booking")


def ensure_editable(booking: Booking):
    _reject_terminal(booking, "update")


def cancel(booking: Booking, now: datetime):
    if booking.status == BookingStatus.CANCELLED:
        raise IllegalStateError("Booking is already cancelled")
    _reject_terminal(booking, "cancel")
    if booking.start_time <= now:
        raise IllegalStateError("Cannot cancel a booking that has already started")
    booking.status = BookingStatus.CANCELLED


def complete(booking: Booking):
    if booking.status == BookingStatus.COMPLETED:
        raise IllegalStateError("Booking is already completed")
    _reject_terminal(booking, "complete")
    booking.status = BookingStatus.COMPLETED


def transition(booking: Booking, target: str, now: datetime):
    if target not in BookingStatus.ALL:
        raise ValidationError(f"Unknown booking status: {target}")
    if target == BookingStatus.CANCELLED:
        cancel(booking, now)
    elif target == BookingStatus.COMPLETED:
        complete(booking)
    else:
        _reject_terminal(booking, "rebook")
        raise IllegalStateError("Booking is already booked")
