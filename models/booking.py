from utils.clock import utcnow
from models.db import db


class BookingStatus:
    BOOKED = "BOOKED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"

    ALL = (BOOKED, CANCELLED, COMPLETED)
    TERMINAL = (CANCELLED, COMPLETED)


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    # references into the auth and station services, not enforced here
    user_id = db.Column(db.Integer, nullable=False, index=True)
    station_id = db.Column(db.Integer, nullable=False, index=True)
    port_id = db.Column(db.Integer, nullable=False, index=True)

    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False)
    duration = db.Column(db.Integer, nullable=False)  # minutes
    total_cost = db.Column(db.Float, nullable=False, default=0.0)

    status = db.Column(db.String(20), nullable=False, default=BookingStatus.BOOKED, index=True)
    # status values: BOOKED, CANCELLED, COMPLETED

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    # bumped on every UPDATE; a write based on a stale read raises StaleDataError
    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        db.Index("ix_bookings_port_status", "port_id", "status"),
        db.CheckConstraint("end_time > start_time", name="ck_bookings_window"),
        db.CheckConstraint("duration > 0", name="ck_bookings_duration_positive"),
        db.CheckConstraint("total_cost >= 0", name="ck_bookings_cost_non_negative"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in BookingStatus.TERMINAL

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "station_id": self.station_id,
            "port_id": self.port_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration": self.duration,
            "total_cost": self.total_cost,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Booking {self.id} port={self.port_id} {self.status}>"
