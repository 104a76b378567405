from unittest.mock import Mock

import pytest
import requests

from services.external import StationDirectory, UserDirectory
from utils.errors import DownstreamUnavailable, NotFoundError


def _response(status=200, payload=None):
    resp = Mock(status_code=status)
    if payload is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = payload
    return resp


def _session(*responses):
    session = Mock(spec=requests.Session)
    session.get.side_effect = list(responses)
    return session


def test_user_exists_calls_auth_service():
    session = _session(_response(200, True))
    users = UserDirectory("http://auth/", timeout=3, session=session)

    assert users.user_exists(7) is True
    session.get.assert_called_once_with("http://auth/auth/get-by-id/7/exists", timeout=3)


@pytest.mark.parametrize("resp", [_response(200, False), _response(404), _response(200, None)])
def test_user_missing(resp):
    users = UserDirectory("http://auth", session=_session(resp))
    assert users.user_exists(7) is False


def test_connection_error_is_downstream_unavailable():
    session = Mock(spec=requests.Session)
    session.get.side_effect = requests.ConnectionError("refused")
    users = UserDirectory("http://auth", session=session)

    with pytest.raises(DownstreamUnavailable):
        users.user_exists(1)


def test_server_error_is_downstream_unavailable():
    stations = StationDirectory("http://stations", session=_session(_response(502)))
    with pytest.raises(DownstreamUnavailable):
        stations.station_exists(1)


def test_station_exists():
    session = _session(_response(200, True))
    stations = StationDirectory("http://stations", session=session)
    assert stations.station_exists(10) is True
    assert session.get.call_args[0][0] == "http://stations/stations/10/exists"


def test_station_info_parsed():
    payload = {"id": 10, "name": "Hive Central", "address": "1 Main St", "city": "Pune"}
    stations = StationDirectory("http://stations", session=_session(_response(200, payload)))

    info = stations.get_station_info(10)
    assert (info.id, info.name, info.address) == (10, "Hive Central", "1 Main St")


def test_port_info_parsed_from_camel_case():
    payload = {"id": 100, "connectorType": "CCS2", "maxPowerKw": 50.0, "pricePerHour": 12.0}
    session = _session(_response(200, payload))
    stations = StationDirectory("http://stations", session=session)

    port = stations.get_port_info(10, 100)
    assert port.connector_type == "CCS2"
    assert port.max_power_kw == 50.0
    assert port.price_per_hour == 12.0
    assert session.get.call_args[0][0] == "http://stations/stations/10/ports/100"


def test_port_info_not_found():
    stations = StationDirectory("http://stations", session=_session(_response(404)))
    with pytest.raises(NotFoundError):
        stations.get_port_info(10, 999)


def test_station_info_empty_body_not_found():
    stations = StationDirectory("http://stations", session=_session(_response(200, None)))
    with pytest.raises(NotFoundError):
        stations.get_station_info(10)
