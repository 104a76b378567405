import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from models import db
from models.booking import Booking, BookingStatus
from services import lifecycle
from services.availability import is_port_booked, lock_port
from services.external import StationDirectory, UserDirectory
from services.pricing import BASE_RATE_PER_HOUR, POWER_MULTIPLIER, calculate_cost
from services.reconciler import complete_expired_bookings
from utils.clock import minutes_between, utcnow
from utils.errors import (
    ConflictError,
    DownstreamUnavailable,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

PORT_UNAVAILABLE = "Port is not available for the specified time range"
CONCURRENT_UPDATE = "Booking was modified concurrently, please retry"


@dataclass
class BookingRequest:
    user_id: int
    station_id: int
    port_id: int
    start_time: datetime
    end_time: datetime
    duration: int


@dataclass
class BookingPatch:
    """Partial update. Fields left as None are not touched."""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    status: Optional[str] = None

    @property
    def changes_window(self) -> bool:
        return any(v is not None for v in (self.start_time, self.end_time, self.duration))


class BookingService:
    def __init__(self, users, stations, clock=None,
                 base_rate_per_hour=BASE_RATE_PER_HOUR, power_multiplier=POWER_MULTIPLIER,
                 min_duration_minutes=lifecycle.MIN_BOOKING_MINUTES,
                 max_duration_minutes=lifecycle.MAX_BOOKING_MINUTES):
        self.users = users
        self.stations = stations
        self.clock = clock or utcnow
        self.base_rate_per_hour = base_rate_per_hour
        self.power_multiplier = power_multiplier
        self.min_duration_minutes = min_duration_minutes
        self.max_duration_minutes = max_duration_minutes

    @classmethod
    def from_config(cls, config):
        timeout = config.get("EXTERNAL_TIMEOUT_SECONDS", 5)
        return cls(
            users=UserDirectory(config.get("AUTH_SERVICE_URL"), timeout=timeout),
            stations=StationDirectory(config.get("STATION_SERVICE_URL"), timeout=timeout),
            base_rate_per_hour=config.get("BASE_RATE_PER_HOUR", BASE_RATE_PER_HOUR),
            power_multiplier=config.get("POWER_MULTIPLIER", POWER_MULTIPLIER),
            min_duration_minutes=config.get("MIN_BOOKING_MINUTES", lifecycle.MIN_BOOKING_MINUTES),
            max_duration_minutes=config.get("MAX_BOOKING_MINUTES", lifecycle.MAX_BOOKING_MINUTES),
        )

    # ---------- writes ----------

    def create_booking(self, req: BookingRequest) -> Booking:
        logger.info("Creating booking for user: %s, station: %s, port: %s",
                    req.user_id, req.station_id, req.port_id)

        # time bounds first: a bad window never reaches the sibling services
        self._validate_window(req.start_time, req.end_time, req.duration)

        if not self.users.user_exists(req.user_id):
            raise NotFoundError("User does not exist")
        if not self.stations.station_exists(req.station_id):
            raise NotFoundError("Station does not exist")

        # cheap unlocked check before pricing; _reserve repeats it under the port lock
        if is_port_booked(req.port_id, req.start_time, req.end_time):
            raise ConflictError(PORT_UNAVAILABLE)

        port = self.stations.get_port_info(req.station_id, req.port_id)
        total_cost = self._cost(req.duration, port.max_power_kw)

        booking = Booking(
            user_id=req.user_id,
            station_id=req.station_id,
            port_id=req.port_id,
            start_time=req.start_time,
            end_time=req.end_time,
            duration=req.duration,
            total_cost=total_cost,
            status=BookingStatus.BOOKED,
            created_at=self.clock(),
        )
        self._reserve(booking, req.port_id, req.start_time, req.end_time)

        logger.info("Booking created successfully with ID: %s", booking.id)
        return booking

    def update_booking(self, booking_id: int, patch: BookingPatch) -> Booking:
        booking = self.get_booking(booking_id)
        lifecycle.ensure_editable(booking)

        port = None
        if patch.changes_window:
            # port metadata may have changed since the booking was made;
            # fetched before the row lock so no HTTP call runs while it is held
            port = self.stations.get_port_info(booking.station_id, booking.port_id)

        try:
            booking = self._get_for_update(booking_id)
            lifecycle.ensure_editable(booking)
            now = self.clock()

            if patch.changes_window:
                start_time = patch.start_time or booking.start_time
                end_time = patch.end_time or booking.end_time
                if patch.duration is not None:
                    duration = patch.duration
                else:
                    duration = minutes_between(start_time, end_time)
                self._validate_window(start_time, end_time, duration, check_start=patch.start_time is not None)

                booking.start_time = start_time
                booking.end_time = end_time
                booking.duration = duration
                booking.total_cost = self._cost(duration, port.max_power_kw)

            if patch.status is not None and patch.status != BookingStatus.BOOKED:
                lifecycle.transition(booking, patch.status, now)

            if patch.changes_window and booking.status == BookingStatus.BOOKED:
                self._reserve(booking, booking.port_id, booking.start_time, booking.end_time,
                              exclude_booking_id=booking.id)
            else:
                db.session.commit()
        except StaleDataError as exc:
            db.session.rollback()
            raise ConflictError(CONCURRENT_UPDATE) from exc
        except Exception:
            # nothing half-applied stays in the session
            db.session.rollback()
            raise

        logger.info("Booking updated successfully with ID: %s", booking.id)
        return booking

    def cancel_booking(self, booking_id: int) -> Booking:
        booking = self._get_for_update(booking_id)
        try:
            lifecycle.cancel(booking, self.clock())
            db.session.commit()
        except StaleDataError as exc:
            db.session.rollback()
            raise ConflictError(CONCURRENT_UPDATE) from exc
        except Exception:
            db.session.rollback()
            raise
        logger.info("Booking cancelled successfully with ID: %s", booking.id)
        return booking

    def complete_booking(self, booking_id: int) -> Booking:
        booking = self._get_for_update(booking_id)
        try:
            lifecycle.complete(booking)
            db.session.commit()
        except StaleDataError as exc:
            db.session.rollback()
            raise ConflictError(CONCURRENT_UPDATE) from exc
        except Exception:
            db.session.rollback()
            raise
        logger.info("Booking completed successfully with ID: %s", booking.id)
        return booking

    # ---------- reads ----------

    def get_booking(self, booking_id: int) -> Booking:
        booking = db.session.get(Booking, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking not found with id: {booking_id}")
        return booking

    def _get_for_update(self, booking_id: int) -> Booking:
        """
        Load the booking for a status or window change.

        Takes a row lock where the database supports SELECT ... FOR UPDATE and
        always re-reads the row, so the state checks see the committed status.
        On SQLite the lock is a no-op and the version column catches the race.
        """
        stmt = (
            db.select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        booking = db.session.execute(stmt).scalar_one_or_none()
        if booking is None:
            raise NotFoundError(f"Booking not found with id: {booking_id}")
        return booking

    def list_all_bookings(self):
        # statuses shown to admins should not lag behind the reconciler
        complete_expired_bookings(self.clock())
        return Booking.query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    def list_user_bookings(self, user_id: int):
        return self._newest_first(Booking.query.filter_by(user_id=user_id))

    def list_station_bookings(self, station_id: int):
        return self._newest_first(Booking.query.filter_by(station_id=station_id))

    def list_by_status(self, status: str):
        if status not in BookingStatus.ALL:
            raise ValidationError(f"Unknown booking status: {status}")
        return self._newest_first(Booking.query.filter_by(status=status))

    def list_active_bookings(self):
        return self.list_by_status(BookingStatus.BOOKED)

    def list_recent_user_bookings(self, user_id: int, limit: int = 10):
        return (
            Booking.query
            .filter_by(user_id=user_id)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .limit(limit)
            .all()
        )

    def list_upcoming_user_bookings(self, user_id: int):
        return (
            Booking.query
            .filter(
                Booking.user_id == user_id,
                Booking.status == BookingStatus.BOOKED,
                Booking.start_time >= self.clock(),
            )
            .order_by(Booking.start_time.asc())
            .all()
        )

    def list_completed_user_bookings(self, user_id: int):
        return (
            Booking.query
            .filter_by(user_id=user_id, status=BookingStatus.COMPLETED)
            .order_by(Booking.end_time.desc())
            .all()
        )

    def list_bookings_in_range(self, start: datetime, end: datetime, user_id: int = None):
        if end < start:
            raise ValidationError("endDate must not be before startDate")
        q = Booking.query.filter(Booking.start_time >= start, Booking.start_time <= end)
        if user_id is not None:
            q = q.filter(Booking.user_id == user_id)
        return q.order_by(Booking.start_time.asc()).all()

    def is_port_available(self, port_id: int, start_time: datetime, end_time: datetime) -> bool:
        if end_time <= start_time:
            raise ValidationError("endTime must be after startTime")
        return not is_port_booked(port_id, start_time, end_time)

    def station_earnings(self, station_id: int) -> float:
        total = (
            db.session.query(db.func.coalesce(db.func.sum(Booking.total_cost), 0.0))
            .filter(Booking.station_id == station_id, Booking.status != BookingStatus.CANCELLED)
            .scalar()
        )
        return round(float(total), 2)

    def user_statistics(self, user_id: int) -> dict:
        rows = (
            db.session.query(Booking.status, db.func.count(Booking.id))
            .filter(Booking.user_id == user_id)
            .group_by(Booking.status)
            .all()
        )
        counts = {status: count for status, count in rows}
        return {
            "total_bookings": sum(counts.values()),
            "active_bookings": counts.get(BookingStatus.BOOKED, 0),
            "completed_bookings": counts.get(BookingStatus.COMPLETED, 0),
            "cancelled_bookings": counts.get(BookingStatus.CANCELLED, 0),
        }

    def to_response(self, booking: Booking) -> dict:
        out = booking.to_dict()
        out.update(station_name=None, station_address=None, connector_type=None, max_power_kw=None)
        try:
            station = self.stations.get_station_info(booking.station_id)
            out["station_name"] = station.name
            out["station_address"] = station.address

            port = self.stations.get_port_info(booking.station_id, booking.port_id)
            out["connector_type"] = port.connector_type
            out["max_power_kw"] = port.max_power_kw
        except (DownstreamUnavailable, NotFoundError) as exc:
            logger.warning("Could not fetch external information for booking %s: %s", booking.id, exc)
        return out

    # ---------- helpers ----------

    def _validate_window(self, start_time, end_time, duration, check_start=True):
        lifecycle.validate_window(
            start_time, end_time, duration, self.clock(),
            min_minutes=self.min_duration_minutes,
            max_minutes=self.max_duration_minutes,
            check_start=check_start,
        )

    def _cost(self, duration: int, max_power_kw) -> float:
        return calculate_cost(duration, max_power_kw, self.base_rate_per_hour, self.power_multiplier)

    def _reserve(self, booking: Booking, port_id: int, start_time, end_time, exclude_booking_id=None):
        """Lock the port, re-check overlap and persist, all in one transaction."""
        try:
            lock_port(port_id)
            if is_port_booked(port_id, start_time, end_time, exclude_booking_id=exclude_booking_id):
                raise ConflictError(PORT_UNAVAILABLE)
            db.session.add(booking)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError(PORT_UNAVAILABLE) from exc
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def _newest_first(query):
        return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()
