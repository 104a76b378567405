from .db import db
from .booking import Booking, BookingStatus
from .port_lock import PortLock
