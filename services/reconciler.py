import logging
import threading

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.booking import Booking, BookingStatus
from utils.clock import utcnow

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60


def complete_expired_bookings(now=None) -> int:
    """
    Mark every BOOKED reservation whose end_time has passed as COMPLETED.

    One commit per sweep, so a failure leaves no booking half-updated. Only
    BOOKED rows are selected, which makes repeated sweeps a no-op.
    """
    now = now or utcnow()
    expired = (
        Booking.query
        .filter(Booking.status == BookingStatus.BOOKED, Booking.end_time < now)
        .with_for_update()
        .populate_existing()
        .all()
    )
    if not expired:
        return 0

    for booking in expired:
        booking.status = BookingStatus.COMPLETED
    db.session.commit()

    logger.info("Auto-completed %d expired bookings", len(expired))
    return len(expired)


class ExpiryReconciler:
    """
    Periodic sweep owned by the Flask app. Runs complete_expired_bookings()
    every `interval_seconds` on a daemon thread, inside an app context.
    """

    def __init__(self, app, interval_seconds=DEFAULT_INTERVAL_SECONDS, clock=None):
        self.app = app
        self.interval_seconds = interval_seconds
        self.clock = clock or utcnow
        self._stop = threading.Event()
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self, now=None) -> int:
        with self.app.app_context():
            try:
                return complete_expired_bookings(now or self.clock())
            except SQLAlchemyError:
                db.session.rollback()
                logger.exception("Expiry sweep failed; retrying on next tick")
                return 0
            finally:
                db.session.remove()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="booking-expiry-reconciler", daemon=True)
        self._thread.start()
        logger.info("Started expiry reconciler (every %ss)", self.interval_seconds)

    def stop(self, timeout=None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None

    def _loop(self):
        # wait() returns True once stop() is called
        while not self._stop.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception:
                logger.exception("Expiry sweep crashed; retrying on next tick")
