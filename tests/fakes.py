"""Test doubles for the auth and station services, plus request builders."""
from datetime import datetime, timedelta

from services.booking_service import BookingRequest
from services.external import PortInfo, StationInfo
from utils.errors import DownstreamUnavailable, NotFoundError

NOW = datetime(2026, 6, 1, 12, 0, 0)

STATION_ID = 10
PORT_ID = 100           # 50 kW CCS2
SLOW_PORT_ID = 101      # 22 kW Type2
USER_ID = 1


class FakeUserDirectory:
    def __init__(self, user_ids=(1, 2, 3)):
        self.user_ids = set(user_ids)
        self.calls = []
        self.down = False

    def user_exists(self, user_id):
        self.calls.append(user_id)
        if self.down:
            raise DownstreamUnavailable("auth-service is unavailable")
        return user_id in self.user_ids


class FakeStationDirectory:
    def __init__(self):
        self.stations = {STATION_ID: StationInfo(id=STATION_ID, name="Hive Central", address="1 Main St")}
        self.ports = {
            (STATION_ID, PORT_ID): PortInfo(id=PORT_ID, connector_type="CCS2", max_power_kw=50.0, price_per_hour=12.0),
            (STATION_ID, SLOW_PORT_ID): PortInfo(id=SLOW_PORT_ID, connector_type="Type2", max_power_kw=22.0, price_per_hour=8.0),
        }
        self.calls = []
        self.down = False

    def _hit(self, name):
        self.calls.append(name)
        if self.down:
            raise DownstreamUnavailable("station-service is unavailable")

    def station_exists(self, station_id):
        self._hit("station_exists")
        return station_id in self.stations

    def get_station_info(self, station_id):
        self._hit("get_station_info")
        if station_id not in self.stations:
            raise NotFoundError(f"Station not found with ID: {station_id}")
        return self.stations[station_id]

    def get_port_info(self, station_id, port_id):
        self._hit("get_port_info")
        if (station_id, port_id) not in self.ports:
            raise NotFoundError(f"Port not found with ID: {port_id} in station: {station_id}")
        return self.ports[(station_id, port_id)]


class Clock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def booking_request(start_in=timedelta(hours=1), minutes=60, port_id=PORT_ID, user_id=USER_ID,
                    station_id=STATION_ID, now=NOW):
    start = now + start_in
    return BookingRequest(
        user_id=user_id,
        station_id=station_id,
        port_id=port_id,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        duration=minutes,
    )
