import logging

from sqlalchemy import exists, update
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking, BookingStatus
from models.port_lock import PortLock

logger = logging.getLogger(__name__)


def intervals_overlap(start_a, end_a, start_b, end_b) -> bool:
    # half-open [start, end): touching windows do not overlap
    return start_a < end_b and start_b < end_a


def _overlap_filter(port_id: int, start_time, end_time, exclude_booking_id=None):
    criteria = [
        Booking.port_id == port_id,
        Booking.status == BookingStatus.BOOKED,
        Booking.start_time < end_time,
        Booking.end_time > start_time,
    ]
    if exclude_booking_id is not None:
        criteria.append(Booking.id != exclude_booking_id)
    return criteria


def is_port_booked(port_id: int, start_time, end_time, exclude_booking_id=None) -> bool:
    """True if any BOOKED reservation on the port intersects [start_time, end_time)."""
    stmt = db.select(exists().where(*_overlap_filter(port_id, start_time, end_time, exclude_booking_id)))
    return bool(db.session.execute(stmt).scalar())


def find_overlapping(port_id: int, start_time, end_time, exclude_booking_id=None):
    stmt = (
        db.select(Booking)
        .where(*_overlap_filter(port_id, start_time, end_time, exclude_booking_id))
        .order_by(Booking.start_time.asc())
    )
    return db.session.execute(stmt).scalars().all()


def lock_port(port_id: int) -> None:
    """
    Take the per-port write lock for the current transaction.

    The UPDATE is what acquires the lock (row lock on PostgreSQL/MySQL, the
    database write lock on SQLite), so the overlap check that follows cannot
    race another writer on the same port. Must be called before
    is_port_booked() in the transaction that inserts.

    The row is created on first use, inside a savepoint. If another first-time
    writer inserted it in the meantime, the savepoint is rolled back and the
    UPDATE is retried against that row, so the outer transaction survives.
    """
    if _bump_lock(port_id):
        return
    try:
        with db.session.begin_nested():
            db.session.add(PortLock(port_id=port_id, version=1))
    except IntegrityError:
        logger.debug("Lock row for port %s created concurrently", port_id)
        _bump_lock(port_id)


def _bump_lock(port_id: int) -> bool:
    result = db.session.execute(
        update(PortLock)
        .where(PortLock.port_id == port_id)
        .values(version=PortLock.version + 1)
    )
    return result.rowcount > 0
