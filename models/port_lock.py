from models.db import db


class PortLock(db.Model):
    """
    One row per charging port. Writers bump `version` before checking for
    overlapping bookings so that concurrent reservations on the same port
    serialise on this row.
    """
    __tablename__ = "port_locks"

    port_id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    version = db.Column(db.Integer, nullable=False, default=0)
