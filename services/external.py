import logging
from dataclasses import dataclass
from typing import Optional

import requests

from utils.errors import DownstreamUnavailable, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5


@dataclass
class StationInfo:
    id: Optional[int]
    name: Optional[str]
    address: Optional[str]


@dataclass
class PortInfo:
    id: Optional[int]
    connector_type: Optional[str]
    max_power_kw: Optional[float]
    price_per_hour: Optional[float]


def _pick(data: dict, *keys):
    # sibling services speak camelCase; accept snake_case too
    for key in keys:
        if key in data:
            return data[key]
    return None


class _ServiceClient:
    service_name = "service"

    def __init__(self, base_url: str, timeout=DEFAULT_TIMEOUT_SECONDS, session: requests.Session = None):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get(self, path: str):
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("%s unreachable at %s: %s", self.service_name, url, exc)
            raise DownstreamUnavailable(f"{self.service_name} is unavailable") from exc

        if resp.status_code >= 500:
            logger.error("%s returned %s for %s", self.service_name, resp.status_code, url)
            raise DownstreamUnavailable(f"{self.service_name} is unavailable")
        return resp

    @staticmethod
    def _json(resp):
        try:
            return resp.json()
        except ValueError:
            return None


class UserDirectory(_ServiceClient):
    """Auth service lookups."""
    service_name = "auth-service"

    def user_exists(self, user_id: int) -> bool:
        resp = self._get(f"/auth/get-by-id/{user_id}/exists")
        if resp.status_code == 404:
            return False
        if resp.status_code != 200:
            raise DownstreamUnavailable(f"{self.service_name} rejected the user lookup")
        return self._json(resp) is True


class StationDirectory(_ServiceClient):
    """Station service lookups: station existence, station details and port metadata."""
    service_name = "station-service"

    def station_exists(self, station_id: int) -> bool:
        resp = self._get(f"/stations/{station_id}/exists")
        if resp.status_code == 404:
            return False
        if resp.status_code != 200:
            raise DownstreamUnavailable(f"{self.service_name} rejected the station lookup")
        return self._json(resp) is True

    def get_station_info(self, station_id: int) -> StationInfo:
        resp = self._get(f"/stations/{station_id}")
        data = self._json(resp) if resp.status_code == 200 else None
        if resp.status_code == 404 or not isinstance(data, dict):
            raise NotFoundError(f"Station not found with ID: {station_id}")
        return StationInfo(
            id=_pick(data, "id"),
            name=_pick(data, "name"),
            address=_pick(data, "address"),
        )

    def get_port_info(self, station_id: int, port_id: int) -> PortInfo:
        resp = self._get(f"/stations/{station_id}/ports/{port_id}")
        data = self._json(resp) if resp.status_code == 200 else None
        if resp.status_code == 404 or not isinstance(data, dict):
            raise NotFoundError(f"Port not found with ID: {port_id} in station: {station_id}")
        return PortInfo(
            id=_pick(data, "id"),
            connector_type=_pick(data, "connectorType", "connector_type"),
            max_power_kw=_pick(data, "maxPowerKw", "max_power_kw"),
            price_per_hour=_pick(data, "pricePerHour", "price_per_hour"),
        )
