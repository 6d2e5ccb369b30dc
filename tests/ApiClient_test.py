import pytest
from unittest.mock import MagicMock

import requests

from fireboard2mqtt.ApiClient import ApiClient
from fireboard2mqtt.exceptions import CloudApiError

from tests import simulator


def makeResponse(status=200, body=None, reason='OK'):
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.reason = reason
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response

@pytest.fixture
def session(request):
    s = requests.Session()
    s.get = MagicMock()
    return s

@pytest.fixture
def client(request, session):
    return ApiClient('abc123', 'https://fireboard.example/api', timeout=3, session=session)

def test_headers(client, session):
    assert(session.headers['Authorization']=='Token abc123')
    assert(session.headers['User-Agent'].startswith('fireboard2mqtt/'))

def test_get_device(client, session):
    session.get.return_value = makeResponse(body=simulator.deviceSnapshot())

    device = client.getDevice(simulator.UUID)

    assert(device['hardware_id']==simulator.HARDWARE_ID)
    session.get.assert_called_once_with('https://fireboard.example/api/v1/devices/{0}.json'.format(simulator.UUID), timeout=3)

def test_get_devices(client, session):
    session.get.return_value = makeResponse(body=[simulator.deviceSnapshot()])

    assert(len(client.getDevices())==1)
    session.get.assert_called_once_with('https://fireboard.example/api/v1/devices.json', timeout=3)

def test_http_error(client, session):
    session.get.return_value = makeResponse(status=429, reason='Too Many Requests')
    with pytest.raises(CloudApiError) as e:
        client.getDevice(simulator.UUID)
    assert(e.value.status==429)

def test_network_error(client, session):
    session.get.side_effect = requests.ConnectionError('connection reset')
    with pytest.raises(CloudApiError):
        client.getDevices()

def test_malformed_body(client, session):
    session.get.return_value = makeResponse(body=ValueError('Expecting value'))
    with pytest.raises(CloudApiError):
        client.getDevice(simulator.UUID)

def test_unexpected_shapes(client, session):
    session.get.return_value = makeResponse(body={'detail': 'not a list'})
    with pytest.raises(CloudApiError):
        client.getDevices()

    session.get.return_value = makeResponse(body=[])
    with pytest.raises(CloudApiError):
        client.getDevice(simulator.UUID)

def test_get_drivelog(client, session):
    session.get.return_value = makeResponse(body=simulator.drivelogSnapshot())

    assert(client.getDrivelog(simulator.UUID)['modetype']=='auto')
    session.get.assert_called_once_with('https://fireboard.example/api/v1/devices/{0}/drivelog.json'.format(simulator.UUID), timeout=3)

def test_empty_drivelog_is_none(client, session):
    session.get.return_value = makeResponse(body={})
    assert(client.getDrivelog(simulator.UUID) is None)

    session.get.return_value = makeResponse(body=[])
    with pytest.raises(CloudApiError):
        client.getDrivelog(simulator.UUID)
