import time
from datetime import timedelta
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from models import db
from models.booking import Booking, BookingStatus
from services.reconciler import ExpiryReconciler, complete_expired_bookings

from fakes import NOW, booking_request


def _statuses():
    db.session.expire_all()
    return {b.id: b.status for b in Booking.query.all()}


def test_expired_booking_completed_and_second_tick_is_noop(service, clock):
    booking = service.create_booking(booking_request(start_in=timedelta(hours=1), minutes=60))
    tick = booking.end_time + timedelta(minutes=5)

    assert complete_expired_bookings(tick) == 1
    assert _statuses() == {booking.id: BookingStatus.COMPLETED}

    assert complete_expired_bookings(tick) == 0
    assert _statuses() == {booking.id: BookingStatus.COMPLETED}


def test_only_booked_and_ended_rows_are_touched(service):
    ended = service.create_booking(booking_request(start_in=timedelta(hours=1), minutes=60))
    cancelled = service.create_booking(booking_request(start_in=timedelta(hours=2), minutes=30))
    running = service.create_booking(booking_request(start_in=timedelta(hours=3), minutes=240))
    service.cancel_booking(cancelled.id)

    complete_expired_bookings(NOW + timedelta(hours=4))

    assert _statuses() == {
        ended.id: BookingStatus.COMPLETED,
        cancelled.id: BookingStatus.CANCELLED,
        running.id: BookingStatus.BOOKED,
    }


def test_end_time_equal_to_now_is_not_expired(service):
    booking = service.create_booking(booking_request(minutes=60))
    assert complete_expired_bookings(booking.end_time) == 0


def test_run_once_uses_own_app_context(app, service):
    booking = service.create_booking(booking_request(minutes=60))
    reconciler = ExpiryReconciler(app, interval_seconds=60)

    assert reconciler.run_once(now=booking.end_time + timedelta(seconds=1)) == 1
    assert _statuses()[booking.id] == BookingStatus.COMPLETED


def test_run_once_survives_database_errors(app):
    reconciler = ExpiryReconciler(app)
    boom = OperationalError("SELECT", {}, Exception("database is locked"))
    with patch("services.reconciler.complete_expired_bookings", side_effect=boom):
        assert reconciler.run_once(now=NOW) == 0


def test_start_and_stop_thread(app):
    reconciler = ExpiryReconciler(app, interval_seconds=0.01, clock=lambda: NOW)
    with patch.object(ExpiryReconciler, "run_once", return_value=0) as run_once:
        reconciler.start()
        reconciler.start()  # second start is a no-op
        deadline = time.time() + 2
        while not run_once.called and time.time() < deadline:
            time.sleep(0.01)
        reconciler.stop(timeout=1)

    assert run_once.called
    assert not reconciler.running


def test_loop_keeps_running_after_unexpected_error(app):
    reconciler = ExpiryReconciler(app, interval_seconds=0.01, clock=lambda: NOW)
    ticks = []

    def flaky_run_once(*args, **kwargs):
        ticks.append(1)
        if len(ticks) == 1:
            raise RuntimeError("unexpected")
        return 0

    with patch.object(ExpiryReconciler, "run_once", side_effect=flaky_run_once):
        reconciler.start()
        deadline = time.time() + 2
        while len(ticks) < 2 and time.time() < deadline:
            time.sleep(0.01)
        still_running = reconciler.running
        reconciler.stop(timeout=1)

    assert len(ticks) >= 2
    assert still_running
